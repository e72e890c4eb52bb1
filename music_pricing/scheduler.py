"""
Batch scheduler: runs extractors over the item list.

Chunked mode (concurrency C = number of extractors, C > 1):
  - items are split into chunks of C, in input order
    (chunk i = items[i*C : (i+1)*C]);
  - chunks run strictly one after another; inside a chunk item j runs
    on extractor ``j % C`` and all of them run concurrently;
  - the next chunk starts only after every task of the current chunk
    finished (barrier) plus ``chunk_delay_sec``.

Sequential mode (C == 1 or ``sequential=True``): one item at a time on
the first extractor, ``chunk_delay_sec`` between consecutive items.

Every item gets a hard deadline (``item_timeout_sec``) and up to
``max_retries`` extra attempts when the failure looks transient
(navigation error, timeout, unexpected fault).  A task never raises:
whatever happens, it resolves to a ``PriceObservation``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Protocol, Sequence, TypeVar

from . import events
from .errors import TIMEOUT_KIND, TRANSIENT_KINDS, InvalidInputError, TaskFault
from .events import EventSink, emit
from .models import MusicItem, PriceObservation
from .parser import build_search_query

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Extractor(Protocol):
    async def extract(self, item: MusicItem) -> PriceObservation: ...


def chunk_items(items: Sequence[T], size: int) -> list[list[T]]:
    """Split *items* into ``ceil(len/size)`` consecutive chunks of at most *size*."""
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class BatchScheduler:
    """Drives a fixed pool of extractors (one per browser session)."""

    def __init__(
        self,
        extractors: Sequence[Extractor],
        *,
        chunk_delay_sec: float = 3.0,
        sequential: bool = False,
        item_timeout_sec: float | None = 120.0,
        max_retries: int = 0,
        retry_delay_sec: float = 5.0,
        preserve_input_order: bool = True,
        on_event: EventSink | None = events.log_event,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if not extractors:
            raise ValueError("at least one extractor is required")
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._extractors = list(extractors)
        self.chunk_delay_sec = chunk_delay_sec
        self.sequential = sequential or len(self._extractors) == 1
        self.item_timeout_sec = item_timeout_sec
        self.max_retries = max_retries
        self.retry_delay_sec = retry_delay_sec
        self.preserve_input_order = preserve_input_order
        self.on_event = on_event
        self._sleep = sleep

    @property
    def concurrency(self) -> int:
        return 1 if self.sequential else len(self._extractors)

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    async def schedule(self, items: Sequence[MusicItem]) -> list[PriceObservation]:
        """Price every item; returns one observation per item."""
        if not items:
            raise InvalidInputError("No music items to price")

        chunks = chunk_items(items, self.concurrency)
        emit(
            self.on_event, events.RUN_STARTED,
            items=len(items), chunks=len(chunks),
            concurrency=self.concurrency, sequential=self.sequential,
        )

        results: list[PriceObservation] = []
        for index, chunk in enumerate(chunks):
            emit(
                self.on_event, events.CHUNK_STARTED,
                chunk=index + 1, chunks=len(chunks), size=len(chunk),
            )
            chunk_results = await self._run_chunk(chunk)
            results.extend(chunk_results)
            emit(
                self.on_event, events.CHUNK_COMPLETED,
                chunk=index + 1, chunks=len(chunks), size=len(chunk),
                available=sum(1 for r in chunk_results if r.available),
                done=len(results), total=len(items),
            )
            if index < len(chunks) - 1 and self.chunk_delay_sec > 0:
                await self._sleep(self.chunk_delay_sec)

        emit(
            self.on_event, events.RUN_COMPLETED,
            items=len(results), available=sum(1 for r in results if r.available),
        )
        return results

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run_chunk(self, chunk: list[MusicItem]) -> list[PriceObservation]:
        """Run one chunk to completion (the barrier)."""
        count = len(self._extractors)
        tasks = [
            asyncio.ensure_future(self._run_item(self._extractors[j % count], item))
            for j, item in enumerate(chunk)
        ]
        if self.preserve_input_order:
            return list(await asyncio.gather(*tasks))
        return [await done for done in asyncio.as_completed(tasks)]

    async def _run_item(self, extractor: Extractor, item: MusicItem) -> PriceObservation:
        attempts = 1 + self.max_retries
        observation = await self._attempt(extractor, item)
        for attempt in range(2, attempts + 1):
            if observation.available or observation.error_kind not in TRANSIENT_KINDS:
                break
            emit(
                self.on_event, events.ITEM_RETRY, item,
                attempt=attempt, attempts=attempts, error=observation.error,
            )
            await self._sleep(self.retry_delay_sec)
            observation = await self._attempt(extractor, item)
        return observation

    async def _attempt(self, extractor: Extractor, item: MusicItem) -> PriceObservation:
        try:
            if self.item_timeout_sec is None:
                return await extractor.extract(item)
            return await asyncio.wait_for(extractor.extract(item), timeout=self.item_timeout_sec)
        except asyncio.TimeoutError:
            emit(self.on_event, events.ITEM_TIMED_OUT, item, timeout=self.item_timeout_sec)
            return PriceObservation.failure(
                item,
                error=f"Timed out after {self.item_timeout_sec:g}s",
                error_kind=TIMEOUT_KIND,
                search_query=build_search_query(item),
            )
        except Exception as exc:
            logger.error("[%s] Extractor raised: %s", item.label, exc, exc_info=True)
            return PriceObservation.failure(
                item,
                error=f"Search failed: {str(exc) or type(exc).__name__}",
                error_kind=TaskFault.kind,
                search_query=build_search_query(item),
            )
