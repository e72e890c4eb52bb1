"""
Storefront configuration: browser defaults and selector cascades.

Everything site-specific lives here as data.  The extractor only ever
walks ordered selector lists, so a layout change on the storefront is a
config edit (or a ``SELECTORS_FILE`` JSON override), not a code change.

Default target: the Amazon US digital-music store (MP3 downloads).

Selector cascades (first hit wins):
  - result_selectors        one element per search result card
  - title_selectors         title text, looked up *inside* a card
  - link_selectors          product link, looked up *inside* a card
  - price_selectors         track price on the product page
  - album_price_selectors   album price on the product page (optional)
  - album_title_selectors   album title on the product page (optional)
"""

from __future__ import annotations

import json
import logging
import random as _random
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any
from urllib.parse import quote_plus

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Browser / Playwright defaults (stealth configuration)
# ---------------------------------------------------------------------------

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--disable-infobars",
    "--disable-features=VizDisplayCompositor",
]

# Pool of realistic Chrome User-Agents, rotated per browser context so
# each worker session presents a different fingerprint.
_USER_AGENT_POOL = [
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
]


def get_user_agent() -> str:
    """Return a randomly selected realistic Chrome User-Agent."""
    return _random.choice(_USER_AGENT_POOL)


_VIEWPORT_BASES = [
    (1920, 1080),
    (1440, 900),
    (1536, 864),
]


def get_viewport() -> dict[str, int]:
    """Return a slightly randomized desktop viewport."""
    w, h = _random.choice(_VIEWPORT_BASES)
    return {
        "width": w + _random.randint(-16, 16),
        "height": h + _random.randint(-8, 8),
    }


EXTRA_HTTP_HEADERS = {"Accept-Language": "en-US,en;q=0.9"}

# Resource types aborted on every worker page.
BLOCKED_RESOURCE_TYPES = frozenset({"image", "stylesheet", "font", "media"})

# Use 'domcontentloaded', NOT 'networkidle'. Amazon pages keep
# long-polling ad and metrics endpoints open indefinitely.
WAIT_UNTIL = "domcontentloaded"

GOTO_TIMEOUT_MS = 45_000

# ---------------------------------------------------------------------------
# Extraction timing
# ---------------------------------------------------------------------------

# Bounded wait for a single selector lookup (visibility / text / attribute).
SELECTOR_TIMEOUT_MS = 1_000

# Settle time after the search page and product page load.
SEARCH_SETTLE_MS = 2_000
PRODUCT_SETTLE_MS = 1_000

# Fewer results than this triggers one refined search.
MIN_SEARCH_RESULTS = 3

# Only the first N result cards are considered as candidates.
MAX_CANDIDATES = 5

# ---------------------------------------------------------------------------
# Storefront selectors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StorefrontConfig:
    """Site-specific strings the extractor needs, as plain data."""

    name: str
    base_url: str
    search_url_template: str
    query_suffix: str
    result_selectors: tuple[str, ...]
    title_selectors: tuple[str, ...]
    link_selectors: tuple[str, ...]
    price_selectors: tuple[str, ...]
    album_price_selectors: tuple[str, ...]
    album_title_selectors: tuple[str, ...]

    def search_url(self, query: str) -> str:
        """Digital-music search URL for *query* (suffix appended, URL-encoded)."""
        full_query = f"{query} {self.query_suffix}".strip()
        return self.search_url_template.format(query=quote_plus(full_query))


AMAZON_MUSIC = StorefrontConfig(
    name="amazon-music",
    base_url="https://www.amazon.com",
    search_url_template=(
        "https://www.amazon.com/s?k={query}&i=digital-music"
        "&rh=n%3A163856011,p_n_format_browse-bin%3A625007011"
    ),
    query_suffix="mp3",
    result_selectors=(
        '[data-component-type="s-search-result"]',
        "div.s-result-item[data-asin]:not([data-asin=''])",
    ),
    title_selectors=(
        "h2 a span",
        "h2 span",
        "[data-cy='title-recipe'] a span",
        "a.a-link-normal .a-text-normal",
    ),
    link_selectors=(
        "h2 a",
        "[data-cy='title-recipe'] a",
        "a.a-link-normal.s-no-outline",
        "a.a-link-normal[href*='/dp/']",
    ),
    price_selectors=(
        "#priceblock_dealprice",
        "#priceblock_ourprice",
        ".a-price.a-text-price.a-size-medium.apexPriceToPay .a-offscreen",
        "#tmm-grid-swatch-DOWNLOADABLE_MUSIC_TRACK .a-price .a-offscreen",
        ".a-button-selected .a-button-text .a-price .a-offscreen",
        ".a-price .a-offscreen",
    ),
    album_price_selectors=(
        "#tmm-grid-swatch-MUSIC_ALBUM .a-price .a-offscreen",
        '[data-a-button-group="album"] .a-price .a-offscreen',
    ),
    album_title_selectors=(
        "#productTitle",
        "#dmusicProductTitle_feature_div h1",
    ),
)

_SELECTOR_FIELDS = {
    f.name for f in fields(StorefrontConfig) if f.name.endswith("_selectors")
}


def load_storefront(
    path: str | Path | None = None,
    *,
    base: StorefrontConfig = AMAZON_MUSIC,
) -> StorefrontConfig:
    """Return *base* with per-key overrides from a JSON file.

    The file is an object whose keys are ``StorefrontConfig`` field
    names; selector fields take a list of strings.  Unknown keys are
    ignored with a warning so an old override file keeps working.
    """
    if not path:
        return base

    raw: dict[str, Any] = json.loads(Path(path).read_text(encoding="utf-8"))
    known = {f.name for f in fields(StorefrontConfig)}
    overrides: dict[str, Any] = {}

    for key, value in raw.items():
        if key not in known:
            logger.warning("Ignoring unknown storefront key %r in %s", key, path)
            continue
        if key in _SELECTOR_FIELDS:
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ValueError(f"{key} must be a list of selector strings")
            value = tuple(value)
        overrides[key] = value

    logger.info("Loaded %d storefront override(s) from %s", len(overrides), path)
    return replace(base, **overrides)
