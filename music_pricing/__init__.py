"""Album-vs-tracks price analysis for digital music storefronts."""

__version__ = "1.0.0"
