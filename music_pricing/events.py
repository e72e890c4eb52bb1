"""
Structured progress events.

The extractor and scheduler never print; they hand a ``ScrapeEvent`` to
an ``EventSink`` callable.  ``log_event`` is the default sink and turns
events into log lines; tests pass a list's ``append`` instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from .models import MusicItem

logger = logging.getLogger("progress")

# Extractor
SEARCH_STARTED = "search_started"
RESULTS_FOUND = "results_found"
QUERY_REFINED = "query_refined"
CANDIDATE_CHECKED = "candidate_checked"
CANDIDATE_REJECTED = "candidate_rejected"
CANDIDATE_SKIPPED = "candidate_skipped"
PRODUCT_OPENED = "product_opened"
TRACK_PRICE_FOUND = "track_price_found"
ALBUM_PRICE_FOUND = "album_price_found"
ALBUM_NAME_FOUND = "album_name_found"
ITEM_SUCCEEDED = "item_succeeded"
ITEM_FAILED = "item_failed"

# Scheduler
RUN_STARTED = "run_started"
CHUNK_STARTED = "chunk_started"
CHUNK_COMPLETED = "chunk_completed"
ITEM_RETRY = "item_retry"
ITEM_TIMED_OUT = "item_timed_out"
RUN_COMPLETED = "run_completed"


@dataclass(frozen=True)
class ScrapeEvent:
    kind: str
    item: MusicItem | None = None
    payload: dict[str, Any] = field(default_factory=dict)


EventSink = Callable[[ScrapeEvent], None]


def _fmt(event: ScrapeEvent) -> str:
    p = event.payload
    k = event.kind
    if k == SEARCH_STARTED:
        return f"Searching for: {p.get('query')}"
    if k == RESULTS_FOUND:
        return f"{p.get('count')} result(s) for '{p.get('query')}'"
    if k == QUERY_REFINED:
        return f"Only {p.get('count')} result(s), refining to '{p.get('query')}'"
    if k == CANDIDATE_CHECKED:
        return f"Checking result {p.get('index')}: {p.get('title')}"
    if k == CANDIDATE_REJECTED:
        return f"Rejected result {p.get('index')}: {p.get('title')}"
    if k == CANDIDATE_SKIPPED:
        return f"Result {p.get('index')} has no product link"
    if k == PRODUCT_OPENED:
        return f"Navigating to product page: {p.get('url')}"
    if k == TRACK_PRICE_FOUND:
        return f"Found track price: ${p.get('price')} ({p.get('selector')})"
    if k == ALBUM_PRICE_FOUND:
        return f"Found album price: ${p.get('price')}"
    if k == ALBUM_NAME_FOUND:
        return f"Album name: {p.get('name')}"
    if k == ITEM_SUCCEEDED:
        return f"Priced at ${p.get('price')}"
    if k == ITEM_FAILED:
        return f"Unavailable: {p.get('error')}"
    if k == RUN_STARTED:
        return (
            f"Pricing {p.get('items')} item(s) in {p.get('chunks')} chunk(s) "
            f"(concurrency={p.get('concurrency')}, sequential={p.get('sequential')})"
        )
    if k == CHUNK_STARTED:
        return f"Chunk {p.get('chunk')}/{p.get('chunks')}: {p.get('size')} item(s)"
    if k == CHUNK_COMPLETED:
        return (
            f"Chunk {p.get('chunk')}/{p.get('chunks')} done: "
            f"{p.get('available')}/{p.get('size')} priced, progress {p.get('done')}/{p.get('total')}"
        )
    if k == ITEM_RETRY:
        return f"Retrying (attempt {p.get('attempt')}/{p.get('attempts')}) after: {p.get('error')}"
    if k == ITEM_TIMED_OUT:
        return f"Timed out after {p.get('timeout')}s"
    if k == RUN_COMPLETED:
        return f"Run complete: {p.get('available')}/{p.get('items')} priced"
    return f"{k} {p}"


def log_event(event: ScrapeEvent) -> None:
    """Default sink: one log line per event."""
    level = logging.WARNING if event.kind in (ITEM_FAILED, ITEM_TIMED_OUT) else logging.INFO
    if event.kind in (CANDIDATE_CHECKED, CANDIDATE_REJECTED, CANDIDATE_SKIPPED):
        level = logging.DEBUG
    if event.item is not None:
        logger.log(level, "[%s] %s", event.item.label, _fmt(event))
    else:
        logger.log(level, "%s", _fmt(event))


def emit(sink: EventSink | None, kind: str, item: MusicItem | None = None, **payload: Any) -> None:
    """Deliver one event; a failing sink is logged, never raised."""
    if sink is None:
        return
    try:
        sink(ScrapeEvent(kind=kind, item=item, payload=payload))
    except Exception as exc:
        logger.warning("Event sink failed on %s: %s", kind, exc)
