"""
Per-item price extraction state machine.

One ``PriceExtractor`` is bound to one browsing session; each call to
``extract()`` runs a fresh state machine for one item:

    SEARCH_NAVIGATE → RESULTS_EVALUATE ─(< 3 results, once)→ REFINE ─┐
          ▲                     │                                    │
          └─────────────────────┼────────────────────────────────────┘
                                ▼
    RESULT_SCAN → CANDIDATE_FILTER → PRODUCT_NAVIGATE → PRICE_EXTRACT
        ▲  (rejected / no link)  │                           │
        └────────────────────────┘                SUCCESS | FAILURE

Rules:
  - At most ``MAX_CANDIDATES`` result cards are scanned.
  - The first card that passes the candidate filter ends the scan
    (first-match policy); a price is never taken from a later card.
  - Album price / album title lookups are opportunistic: missing values
    leave the fields ``None`` and never fail the item.
  - Every exception is converted to an unavailable observation at the
    ``extract()`` boundary; nothing reaches the scheduler.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from urllib.parse import urljoin

from . import events
from .config.storefront import (
    AMAZON_MUSIC,
    MAX_CANDIDATES,
    MIN_SEARCH_RESULTS,
    PRODUCT_SETTLE_MS,
    SEARCH_SETTLE_MS,
    SELECTOR_TIMEOUT_MS,
    StorefrontConfig,
)
from .errors import (
    ExtractionError,
    NoMatchingCandidate,
    NoPriceExtracted,
    NoResultsFound,
    TaskFault,
)
from .events import EventSink, emit
from .handlers.cascade import first_attribute, first_text, first_visible_price, locate_all
from .handlers.page_query import ElementQuery, PageQuery
from .models import MusicItem, PriceObservation
from .parser import (
    build_refined_query,
    build_search_query,
    extract_price,
    is_acceptable_candidate,
)

logger = logging.getLogger(__name__)


class ExtractionState(enum.Enum):
    SEARCH_NAVIGATE = "search_navigate"
    RESULTS_EVALUATE = "results_evaluate"
    REFINE = "refine"
    RESULT_SCAN = "result_scan"
    CANDIDATE_FILTER = "candidate_filter"
    PRODUCT_NAVIGATE = "product_navigate"
    PRICE_EXTRACT = "price_extract"
    SUCCESS = "success"
    FAILURE = "failure"


TERMINAL_STATES = frozenset({ExtractionState.SUCCESS, ExtractionState.FAILURE})


@dataclass(frozen=True)
class ExtractionTimeouts:
    """Waits used by one extraction, all in milliseconds."""

    selector_ms: int = SELECTOR_TIMEOUT_MS
    search_settle_ms: int = SEARCH_SETTLE_MS
    product_settle_ms: int = PRODUCT_SETTLE_MS


@dataclass
class _Run:
    """Mutable working state of one item's state machine."""

    item: MusicItem
    query: str
    refined: bool = False
    results: list[ElementQuery] = field(default_factory=list)
    broad_count: int = 0
    broad_query: str = ""
    cursor: int = 0
    title: str = ""
    product_url: str = ""
    track_price: Decimal | None = None
    album_price: Decimal | None = None
    album_name: str | None = None
    error: ExtractionError | None = None
    trace: list[ExtractionState] = field(default_factory=list)

    @property
    def candidate(self) -> ElementQuery:
        return self.results[self.cursor]


class PriceExtractor:
    """Prices one item at a time against a single ``PageQuery`` session."""

    def __init__(
        self,
        session: PageQuery,
        *,
        storefront: StorefrontConfig = AMAZON_MUSIC,
        timeouts: ExtractionTimeouts | None = None,
        on_event: EventSink | None = events.log_event,
        min_results: int = MIN_SEARCH_RESULTS,
        max_candidates: int = MAX_CANDIDATES,
    ) -> None:
        self.session = session
        self.storefront = storefront
        self.timeouts = timeouts or ExtractionTimeouts()
        self.on_event = on_event
        self.min_results = min_results
        self.max_candidates = max_candidates
        self.last_trace: list[ExtractionState] = []

        self._handlers = {
            ExtractionState.SEARCH_NAVIGATE: self._search_navigate,
            ExtractionState.RESULTS_EVALUATE: self._results_evaluate,
            ExtractionState.REFINE: self._refine,
            ExtractionState.RESULT_SCAN: self._result_scan,
            ExtractionState.CANDIDATE_FILTER: self._candidate_filter,
            ExtractionState.PRODUCT_NAVIGATE: self._product_navigate,
            ExtractionState.PRICE_EXTRACT: self._price_extract,
        }

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    async def extract(self, item: MusicItem) -> PriceObservation:
        """Run the state machine for *item*; always returns an observation."""
        run = _Run(item=item, query=build_search_query(item))
        self.last_trace = run.trace
        emit(self.on_event, events.SEARCH_STARTED, item, query=run.query)

        state = ExtractionState.SEARCH_NAVIGATE
        try:
            while state not in TERMINAL_STATES:
                run.trace.append(state)
                state = await self._handlers[state](run)
        except ExtractionError as exc:
            run.error = exc
            state = ExtractionState.FAILURE
        except Exception as exc:
            logger.debug("[%s] unexpected failure", item.label, exc_info=True)
            run.error = TaskFault(f"Search failed: {str(exc) or type(exc).__name__}")
            state = ExtractionState.FAILURE
        run.trace.append(state)

        if state is ExtractionState.SUCCESS and run.track_price is not None:
            emit(self.on_event, events.ITEM_SUCCEEDED, item, price=run.track_price)
            return PriceObservation.success(
                item,
                track_price=run.track_price,
                album_price=run.album_price,
                album_name=run.album_name,
                search_query=run.query,
            )

        error = run.error or TaskFault("Extraction ended without a price")
        emit(self.on_event, events.ITEM_FAILED, item, error=str(error), error_kind=error.kind)
        return PriceObservation.failure(
            item,
            error=str(error),
            error_kind=error.kind,
            search_query=run.query,
        )

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    async def _search_navigate(self, run: _Run) -> ExtractionState:
        await self.session.navigate(self.storefront.search_url(run.query))
        await self.session.wait(self.timeouts.search_settle_ms)
        return ExtractionState.RESULTS_EVALUATE

    async def _results_evaluate(self, run: _Run) -> ExtractionState:
        found = await locate_all(self.session, self.storefront.result_selectors)
        run.results = found[1] if found else []
        emit(self.on_event, events.RESULTS_FOUND, run.item, query=run.query, count=len(run.results))

        if len(run.results) < self.min_results and not run.refined:
            return ExtractionState.REFINE

        if not run.results and run.broad_count:
            # The refined search came back empty; reload the broader one.
            # Result handles from the first page are stale after navigating.
            run.query, run.broad_count = run.broad_query, 0
            return ExtractionState.SEARCH_NAVIGATE

        if not run.results:
            raise NoResultsFound(run.query)
        run.cursor = 0
        return ExtractionState.RESULT_SCAN

    async def _refine(self, run: _Run) -> ExtractionState:
        run.refined = True
        run.broad_count = len(run.results)
        run.broad_query = run.query
        run.query = build_refined_query(run.item)
        emit(
            self.on_event, events.QUERY_REFINED, run.item,
            query=run.query, count=run.broad_count,
        )
        return ExtractionState.SEARCH_NAVIGATE

    async def _result_scan(self, run: _Run) -> ExtractionState:
        limit = min(len(run.results), self.max_candidates)
        if run.cursor >= limit:
            raise NoMatchingCandidate(limit)

        card = run.candidate
        hit = await first_text(card, self.storefront.title_selectors, self.timeouts.selector_ms)
        if hit:
            run.title = hit[1]
        else:
            run.title = (await card.read_text(self.timeouts.selector_ms) or "").strip()

        emit(self.on_event, events.CANDIDATE_CHECKED, run.item, index=run.cursor + 1, title=run.title)
        return ExtractionState.CANDIDATE_FILTER

    async def _candidate_filter(self, run: _Run) -> ExtractionState:
        if is_acceptable_candidate(run.title, run.item):
            return ExtractionState.PRODUCT_NAVIGATE
        emit(self.on_event, events.CANDIDATE_REJECTED, run.item, index=run.cursor + 1, title=run.title)
        run.cursor += 1
        return ExtractionState.RESULT_SCAN

    async def _product_navigate(self, run: _Run) -> ExtractionState:
        hit = await first_attribute(
            run.candidate, self.storefront.link_selectors, "href", self.timeouts.selector_ms,
        )
        if hit is None:
            emit(self.on_event, events.CANDIDATE_SKIPPED, run.item, index=run.cursor + 1)
            run.cursor += 1
            return ExtractionState.RESULT_SCAN

        run.product_url = urljoin(self.storefront.base_url + "/", hit[1])
        emit(self.on_event, events.PRODUCT_OPENED, run.item, url=run.product_url, title=run.title)
        await self.session.navigate(run.product_url)
        await self.session.wait(self.timeouts.product_settle_ms)
        return ExtractionState.PRICE_EXTRACT

    async def _price_extract(self, run: _Run) -> ExtractionState:
        timeout = self.timeouts.selector_ms
        hit = await first_visible_price(
            self.session, self.storefront.price_selectors, extract_price, timeout,
        )
        if hit is None:
            raise NoPriceExtracted(run.product_url)

        selector, run.track_price = hit
        emit(self.on_event, events.TRACK_PRICE_FOUND, run.item, price=run.track_price, selector=selector)

        album_hit = await first_visible_price(
            self.session, self.storefront.album_price_selectors, extract_price, timeout,
        )
        if album_hit:
            run.album_price = album_hit[1]
            emit(self.on_event, events.ALBUM_PRICE_FOUND, run.item, price=run.album_price)

        title_hit = await first_text(self.session, self.storefront.album_title_selectors, timeout)
        if title_hit:
            run.album_name = title_hit[1]
            emit(self.on_event, events.ALBUM_NAME_FOUND, run.item, name=run.album_name)

        return ExtractionState.SUCCESS
