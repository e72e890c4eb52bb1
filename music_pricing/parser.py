"""
Text helpers for scraped storefront data.

Turns raw element text into prices and decides whether a search result
label plausibly refers to the requested track.  All functions are pure
(no I/O) and operate on plain strings so they are easy to unit-test
independently of Playwright.
"""

from __future__ import annotations

import re
from decimal import Decimal

from .models import ZERO, MusicItem

# =====================================================================
# 1. Price extraction
# =====================================================================

# Sanity bound for a single digital track or album (exclusive both ends).
MAX_PLAUSIBLE_PRICE = Decimal("50")

_RE_CONTROL_WS = re.compile(r"[\n\r\t]")

# Tried in order.  One capture group = whole amount, two = dollars/cents.
_PRICE_PATTERNS = [
    re.compile(r"\$(\d+\.\d{2})"),          # $1.29
    re.compile(r"\$(\d+)"),                 # $1
    re.compile(r"(\d+)\.(\d{2})"),          # 1.29
    re.compile(r"(\d+)\s*\.\s*(\d{2})"),    # 1 . 29
]


def extract_price(text: str | None) -> Decimal:
    """Return the first plausible price in *text*, or ``Decimal("0")``.

    Only the first match of each pattern is considered; a pattern whose
    match falls outside ``(0, 50)`` hands over to the next pattern.

    >>> extract_price("$1.29")
    Decimal('1.29')
    >>> extract_price("$75.00")
    Decimal('0')
    """
    if not text:
        return ZERO
    clean = _RE_CONTROL_WS.sub("", text).strip()

    for pattern in _PRICE_PATTERNS:
        m = pattern.search(clean)
        if not m:
            continue
        groups = m.groups()
        amount = groups[0] if len(groups) == 1 else f"{groups[0]}.{groups[1]}"
        price = Decimal(amount)
        if ZERO < price < MAX_PLAUSIBLE_PRICE:
            return price

    return ZERO


# =====================================================================
# 2. Candidate filtering
# =====================================================================

# Non-music merchandise that shares the artist/song name.
# "cd " keeps its trailing space so "cdbaby" or "encd" don't trip it.
MERCH_KEYWORDS = (
    "poster",
    "print",
    "wall art",
    "t-shirt",
    "mug",
    "vinyl",
    "cd ",
    "dvd",
    "book",
)


def is_merchandise(label: str) -> bool:
    lower = label.lower()
    return any(keyword in lower for keyword in MERCH_KEYWORDS)


def is_acceptable_candidate(label: str, item: MusicItem) -> bool:
    """True when *label* mentions the song or artist and is not merch."""
    lower = label.lower()
    mentions_item = item.song.lower() in lower or item.artist.lower() in lower
    return mentions_item and not is_merchandise(lower)


# =====================================================================
# 3. Search queries
# =====================================================================


def build_search_query(item: MusicItem) -> str:
    """``"artist song[ album]"``, the query recorded on the observation."""
    parts = [item.artist, item.song]
    if item.album:
        parts.append(item.album)
    return " ".join(parts)


def build_refined_query(item: MusicItem) -> str:
    """Narrower follow-up query: the song title quoted as a phrase."""
    query = f'{item.artist} "{item.song}"'
    if item.album:
        query += f" {item.album}"
    return query
