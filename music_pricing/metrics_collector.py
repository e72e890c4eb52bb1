"""
Post-run metrics: one dict summarising pipeline health.

Called at the end of each ``analyze`` run.  A sudden drop in success
rate, or one failure kind dominating, usually means the storefront
changed its markup and the selectors need attention.

Usage from main.py:
    from .metrics_collector import collect_run_metrics
    collect_run_metrics(observations, runtime_seconds=elapsed)
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import date
from decimal import Decimal
from typing import Any, Sequence

from .models import PriceObservation

logger = logging.getLogger("metrics")


def collect_run_metrics(
    observations: Sequence[PriceObservation],
    *,
    runtime_seconds: float = 0,
) -> dict[str, Any]:
    """Compute and log run metrics from the finalized observations."""
    available = [o for o in observations if o.available]
    failures = Counter(o.error_kind or "unknown" for o in observations if not o.available)
    prices = [o.track_price for o in available]

    total = len(observations)
    success_rate = round(len(available) / total * 100, 1) if total > 0 else 0
    avg_price = (
        round(float(sum(prices, Decimal("0")) / len(prices)), 2) if prices else 0
    )

    metrics: dict[str, Any] = {
        "run_date": date.today().isoformat(),
        "total_tracks": total,
        "available_tracks": len(available),
        "unavailable_tracks": total - len(available),
        "success_rate": success_rate,

        # Failure breakdown by error kind
        "failures_by_kind": dict(failures),

        # Prices
        "avg_track_price": avg_price,
        "albums_seen": len({(o.artist, o.album_name) for o in available if o.album_name}),

        "runtime_seconds": round(runtime_seconds, 1),
    }

    logger.info(
        "Run metrics: %d tracks | %d available (%.1f%%) | avg=$%.2f | %d album(s) | %.1fs",
        total, len(available), success_rate, avg_price,
        metrics["albums_seen"], metrics["runtime_seconds"],
    )
    if failures:
        logger.info(
            "Failures by kind: %s",
            ", ".join(f"{kind}={count}" for kind, count in failures.most_common()),
        )

    return metrics
