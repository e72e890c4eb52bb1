"""
Selector cascades.

Each helper walks an ordered selector list against a scope (a page or a
result card) and returns the first usable hit together with the
selector that produced it.  A selector that errors or times out is
skipped and the next one in the list is the fallback.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Callable, Sequence

from .page_query import ElementQuery, PageQuery

logger = logging.getLogger(__name__)

Scope = PageQuery | ElementQuery


async def locate_all(
    scope: Scope,
    selectors: Sequence[str],
) -> tuple[str, list[ElementQuery]] | None:
    """First selector that matches at least one element."""
    for selector in selectors:
        try:
            elements = await scope.locate(selector)
        except Exception as exc:
            logger.debug("locate %r failed: %s", selector, exc)
            continue
        if elements:
            return selector, elements
    return None


async def first_text(
    scope: Scope,
    selectors: Sequence[str],
    timeout_ms: int,
) -> tuple[str, str] | None:
    """First non-empty (stripped) text of the first element per selector."""
    for selector in selectors:
        try:
            elements = await scope.locate(selector)
            if not elements:
                continue
            text = await elements[0].read_text(timeout_ms)
        except Exception as exc:
            logger.debug("text via %r failed: %s", selector, exc)
            continue
        if text and text.strip():
            return selector, text.strip()
    return None


async def first_attribute(
    scope: Scope,
    selectors: Sequence[str],
    name: str,
    timeout_ms: int,
) -> tuple[str, str] | None:
    """First non-empty attribute *name* of the first element per selector."""
    for selector in selectors:
        try:
            elements = await scope.locate(selector)
            if not elements:
                continue
            value = await elements[0].read_attribute(name, timeout_ms)
        except Exception as exc:
            logger.debug("attribute %r via %r failed: %s", name, selector, exc)
            continue
        if value and value.strip():
            return selector, value.strip()
    return None


async def first_visible_price(
    scope: Scope,
    selectors: Sequence[str],
    parse: Callable[[str], Decimal],
    timeout_ms: int,
) -> tuple[str, Decimal] | None:
    """First visible element whose text parses to a positive price."""
    for selector in selectors:
        try:
            elements = await scope.locate(selector)
            if not elements:
                continue
            element = elements[0]
            if not await element.is_visible(timeout_ms):
                continue
            text = await element.read_text(timeout_ms) or ""
        except Exception as exc:
            logger.debug("price via %r failed: %s", selector, exc)
            continue
        price = parse(text)
        if price > 0:
            return selector, price
    return None
