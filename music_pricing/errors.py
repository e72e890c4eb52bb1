"""
Failure taxonomy for the pricing pipeline.

Per-item failures (everything deriving from ``ExtractionError``) never
leave the extractor: they are turned into an unavailable
``PriceObservation`` whose ``error_kind`` is the class's ``kind``.
``EngineInitError`` and ``InvalidInputError`` are fatal to the run.
"""

from __future__ import annotations


class PricingError(Exception):
    """Base class for every error raised by this package."""

    kind = "error"


class ExtractionError(PricingError):
    kind = "extraction_error"


class NavigationFailure(ExtractionError):
    kind = "navigation_failure"

    def __init__(self, url: str, reason: object) -> None:
        self.url = url
        super().__init__(f"Navigation failed for {url}: {reason}")


class NoResultsFound(ExtractionError):
    kind = "no_results"

    def __init__(self, query: str) -> None:
        super().__init__(f"No search results found for '{query}'")


class NoMatchingCandidate(ExtractionError):
    kind = "no_matching_candidate"

    def __init__(self, scanned: int) -> None:
        self.scanned = scanned
        super().__init__(f"No matching track among the first {scanned} results")


class NoPriceExtracted(ExtractionError):
    kind = "no_price"

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"No MP3 price found for this track ({url})")


class TaskFault(ExtractionError):
    """Any other exception raised while pricing one item."""

    kind = "task_fault"


# Not an exception class: the scheduler's per-item deadline.
TIMEOUT_KIND = "timeout"

# Failure kinds the scheduler retries.
TRANSIENT_KINDS = frozenset({NavigationFailure.kind, TaskFault.kind, TIMEOUT_KIND})


class EngineInitError(PricingError):
    kind = "engine_init"


class InvalidInputError(PricingError):
    kind = "invalid_input"
