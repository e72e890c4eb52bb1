"""Shared fixtures for the music pricing test suite."""

from __future__ import annotations

import sys
from decimal import Decimal
from pathlib import Path

import pytest

# Ensure the package is importable from tests/ without an install
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from music_pricing.config.storefront import StorefrontConfig
from music_pricing.errors import NavigationFailure
from music_pricing.models import PriceObservation

# A tiny storefront whose selectors the fakes below understand.
TEST_STORE = StorefrontConfig(
    name="test-shop",
    base_url="https://shop.test",
    search_url_template="https://shop.test/s?k={query}",
    query_suffix="",
    result_selectors=(".result", ".result-alt"),
    title_selectors=(".title",),
    link_selectors=("a.link", "a.alt-link"),
    price_selectors=(".price", ".price-alt"),
    album_price_selectors=(".album-price",),
    album_title_selectors=("#album-title",),
)


# =====================================================================
# In-memory automation engine
# =====================================================================


class FakeElement:
    """``ElementQuery`` with canned text, attributes and children."""

    def __init__(self, text="", *, attrs=None, children=None, visible=True):
        self.text = text
        self.attrs = attrs or {}
        self.children = children or {}
        self.visible = visible
        self.clicks = 0

    async def read_text(self, timeout_ms):
        return self.text

    async def read_attribute(self, name, timeout_ms):
        return self.attrs.get(name)

    async def is_visible(self, timeout_ms):
        return self.visible

    async def click(self):
        self.clicks += 1

    async def locate(self, selector):
        return list(self.children.get(selector, []))


def result_card(title, href=None, *, title_selector=".title", link_selector="a.link"):
    """A search result card with a title child and (optionally) a link."""
    children = {title_selector: [FakeElement(title)]}
    if href is not None:
        children[link_selector] = [FakeElement(title, attrs={"href": href})]
    return FakeElement(title, children=children)


class FakePage:
    """``PageQuery`` over a URL → {selector: [elements]} mapping.

    Unknown URLs load as empty pages.  URLs in *fail_urls* raise
    ``NavigationFailure``; *raise_on_navigate* raises as-is.
    """

    def __init__(self, pages=None, *, fail_urls=(), raise_on_navigate=None):
        self.pages = pages or {}
        self.fail_urls = set(fail_urls)
        self.raise_on_navigate = raise_on_navigate
        self.visited: list[str] = []
        self.waits: list[int] = []
        self.current = None

    async def navigate(self, url):
        self.visited.append(url)
        if self.raise_on_navigate is not None:
            raise self.raise_on_navigate
        if url in self.fail_urls:
            raise NavigationFailure(url, "net::ERR_CONNECTION_RESET")
        self.current = url

    async def locate(self, selector):
        return list(self.pages.get(self.current, {}).get(selector, []))

    async def wait(self, duration_ms):
        self.waits.append(duration_ms)


@pytest.fixture
def store():
    return TEST_STORE


@pytest.fixture
def recorded_events():
    """List that doubles as an event sink: ``on_event=recorded_events.append``."""
    return []


# =====================================================================
# Observation factory
# =====================================================================


@pytest.fixture
def make_observation():
    """Factory that builds ``PriceObservation`` records with sensible defaults.

    Prices may be given as strings; they are converted to ``Decimal``.
    Unavailable observations get a default error unless one is given.
    """

    def _make(
        *,
        artist="Queen",
        song="Bohemian Rhapsody",
        album=None,
        track_price="1.29",
        album_price=None,
        album_name=None,
        available=True,
        search_query=None,
        error=None,
        error_kind=None,
    ):
        if not available:
            error = error or "No search results found"
            error_kind = error_kind or "no_results"
            track_price = "0"
        return PriceObservation(
            artist=artist,
            song=song,
            album=album,
            track_price=Decimal(str(track_price)),
            album_price=Decimal(str(album_price)) if album_price is not None else None,
            album_name=album_name,
            available=available,
            search_query=search_query or f"{artist} {song}",
            error=error,
            error_kind=error_kind,
        )

    return _make
