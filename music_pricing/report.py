"""
Report aggregation and the end-of-run console summary.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Sequence

from .models import ZERO, AlbumAnalysis, PriceObservation, PricingReport

logger = logging.getLogger("report")

_BANNER = "=" * 60
_HUNDRED = Decimal("100")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def assemble_report(
    observations: Sequence[PriceObservation],
    *,
    total_cost: Decimal,
    optimized_cost: Decimal,
    album_analysis: Iterable[AlbumAnalysis] = (),
    recommendations: Iterable[str] = (),
    timestamp: str | None = None,
) -> PricingReport:
    """Build the immutable run report from optimizer output.

    ``total_savings`` is ``total_cost - optimized_cost`` and the
    percentage is 0 when nothing was priced.
    """
    total_savings = total_cost - optimized_cost
    savings_percentage = total_savings / total_cost * _HUNDRED if total_cost > 0 else ZERO

    return PricingReport(
        timestamp=timestamp or _now_iso(),
        total_tracks=len(observations),
        available_tracks=sum(1 for o in observations if o.available),
        total_cost=total_cost,
        optimized_cost=optimized_cost,
        total_savings=total_savings,
        savings_percentage=savings_percentage,
        tracks=tuple(observations),
        album_analysis=tuple(album_analysis),
        recommendations=tuple(recommendations),
    )


def log_summary(report: PricingReport) -> None:
    logger.info(_BANNER)
    logger.info("MUSIC PRICING ANALYSIS REPORT")
    logger.info(_BANNER)
    logger.info("Analysis date:     %s", report.timestamp)
    logger.info("Total tracks:      %d", report.total_tracks)
    logger.info("Available:         %d", report.available_tracks)

    logger.info("COST ANALYSIS:")
    logger.info("  Individual track cost: $%.2f", report.total_cost)
    logger.info("  Optimized cost:        $%.2f", report.optimized_cost)
    logger.info(
        "  Total savings:         $%.2f (%.1f%%)",
        report.total_savings, report.savings_percentage,
    )

    saving_albums = [a for a in report.album_analysis if a.savings > 0]
    if saving_albums:
        logger.info("ALBUM RECOMMENDATIONS:")
        for album in saving_albums:
            logger.info("  * %s - %s", album.artist, album.album_name)
            logger.info(
                "    %d tracks: $%.2f (album) vs $%.2f (individual), save $%.2f",
                album.track_count, album.album_price,
                album.total_track_price, album.savings,
            )

    if report.recommendations:
        logger.info("ADDITIONAL RECOMMENDATIONS:")
        for rec in report.recommendations:
            logger.info("  * %s", rec)

    unavailable = report.unavailable_tracks
    if unavailable:
        logger.info("UNAVAILABLE TRACKS:")
        for track in unavailable:
            if track.error:
                logger.info("  * %s (%s)", track.label, track.error)
            else:
                logger.info("  * %s", track.label)

    logger.info(_BANNER)
