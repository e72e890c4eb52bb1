"""
Album-vs-tracks purchase optimizer.

Pipeline (``analyze_pricing``):
  1. **Grouping**: available observations are grouped by artist, and by
     (artist, album name) when they carry a positive album price.
  2. **Album analysis**: every album group with at least
     ``MIN_ALBUM_TRACKS`` tracks gets an ``AlbumAnalysis`` (savings may be
     negative; then the advice is to buy individual tracks).
  3. **Optimized cost**: each album that saves money is bought once and
     covers its member tracks; every other available track is bought
     individually.
  4. **Recommendations**: compilation hints for artists with at least
     ``COMPILATION_MIN_TRACKS`` tracks, then the money-saving albums.

Pure: inputs are never mutated, and two calls on the same observations
give identical reports apart from the timestamp.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Sequence

from .models import ZERO, AlbumAnalysis, PriceObservation, PricingReport
from .report import assemble_report

logger = logging.getLogger("analyzer")

# Fewer tracks than this never justify looking at the album price.
MIN_ALBUM_TRACKS = 3

# Artists with this many wanted tracks get a greatest-hits hint.
COMPILATION_MIN_TRACKS = 10

INDIVIDUAL_TRACKS_ADVICE = "Buy individual tracks"


def _total(observations: Sequence[PriceObservation]) -> Decimal:
    return sum((o.track_price for o in observations), ZERO)


def group_by_artist(
    available: Sequence[PriceObservation],
) -> dict[str, list[PriceObservation]]:
    groups: dict[str, list[PriceObservation]] = defaultdict(list)
    for obs in available:
        groups[obs.artist].append(obs)
    return groups


def group_by_album(
    available: Sequence[PriceObservation],
) -> dict[tuple[str, str], list[int]]:
    """(artist, album_name) → indices into *available*.

    Only observations with an album name and a positive album price
    take part; each index lands in exactly one group.
    """
    groups: dict[tuple[str, str], list[int]] = defaultdict(list)
    for index, obs in enumerate(available):
        if obs.album_name and obs.album_price is not None and obs.album_price > 0:
            groups[(obs.artist, obs.album_name)].append(index)
    return groups


def album_recommendation(
    album_name: str,
    album_price: Decimal,
    track_count: int,
    total_track_price: Decimal,
    savings: Decimal,
) -> str:
    if savings <= 0:
        return INDIVIDUAL_TRACKS_ADVICE
    return (
        f'Buy album "{album_name}" for ${album_price:.2f} instead of '
        f"{track_count} tracks for ${total_track_price:.2f} (save ${savings:.2f})"
    )


def analyze_album(
    artist: str,
    album_name: str,
    tracks: Sequence[PriceObservation],
) -> AlbumAnalysis:
    """Compare one album's price with the sum of its wanted tracks."""
    # Every member was grouped on a positive album price; the first one
    # speaks for the album.
    album_price = tracks[0].album_price
    assert album_price is not None
    total_track_price = _total(tracks)
    savings = total_track_price - album_price
    return AlbumAnalysis(
        album_name=album_name,
        artist=artist,
        album_price=album_price,
        tracks=tuple(t.song for t in tracks),
        total_track_price=total_track_price,
        savings=savings,
        recommendation=album_recommendation(
            album_name, album_price, len(tracks), total_track_price, savings,
        ),
    )


def compilation_recommendation(artist: str, tracks: Sequence[PriceObservation]) -> str:
    return (
        f"Consider searching for '{artist}' greatest hits or compilation album "
        f"({len(tracks)} tracks = ${_total(tracks):.2f})"
    )


def analyze_pricing(
    observations: Sequence[PriceObservation],
    *,
    timestamp: str | None = None,
) -> PricingReport:
    """Turn finalized observations into a ``PricingReport``."""
    available = [o for o in observations if o.available]

    artist_groups = group_by_artist(available)
    album_groups = group_by_album(available)

    analyses: list[AlbumAnalysis] = []
    covered: set[int] = set()
    optimized_cost = ZERO

    for (artist, album_name), indices in album_groups.items():
        if len(indices) < MIN_ALBUM_TRACKS:
            continue
        analysis = analyze_album(artist, album_name, [available[i] for i in indices])
        analyses.append(analysis)
        if analysis.savings > 0:
            optimized_cost += analysis.album_price
            covered.update(indices)

    optimized_cost += sum(
        (obs.track_price for i, obs in enumerate(available) if i not in covered),
        ZERO,
    )

    recommendations = [
        compilation_recommendation(artist, tracks)
        for artist, tracks in artist_groups.items()
        if len(tracks) >= COMPILATION_MIN_TRACKS
    ]
    recommendations.extend(a.recommendation for a in analyses if a.savings > 0)

    logger.debug(
        "Analyzed %d observation(s): %d available, %d album group(s), %d qualifying",
        len(observations), len(available), len(album_groups), len(analyses),
    )

    return assemble_report(
        observations,
        total_cost=_total(available),
        optimized_cost=optimized_cost,
        album_analysis=analyses,
        recommendations=recommendations,
        timestamp=timestamp,
    )
