"""
Input list and report files.

Input CSV: one row per wanted track.  Header names are matched loosely
(``artist``/``Artist``, ``song``/``Song``/``title``/``Title``,
``album``/``Album``); rows without an artist or song are skipped.

Outputs:
  - JSON: ``PricingReport.to_dict()`` with two-space indent.
  - CSV: one row per track, then a SUMMARY block and, when there are
    any, a RECOMMENDATIONS block.
"""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Mapping

from .errors import InvalidInputError
from .models import MusicItem, PricingReport, PriceObservation

logger = logging.getLogger("report_io")

_ARTIST_KEYS = ("artist", "Artist")
_SONG_KEYS = ("song", "Song", "title", "Title")
_ALBUM_KEYS = ("album", "Album")

CSV_REPORT_HEADER = [
    "Artist", "Song", "Album", "Track Price", "Album Price",
    "Album Name", "Available", "Recommendation", "Error",
]


def _pick(row: Mapping[str, str | None], keys: tuple[str, ...]) -> str:
    for key in keys:
        value = row.get(key)
        if value:
            return value.strip()
    return ""


def read_music_csv(path: str | Path) -> list[MusicItem]:
    """Load the wanted-tracks list from *path*.

    Raises ``InvalidInputError`` when the file cannot be read.  An empty
    result is returned as-is; the scheduler decides that it is fatal.
    """
    path = Path(path)
    items: list[MusicItem] = []
    try:
        with path.open(newline="", encoding="utf-8-sig") as fh:
            for row in csv.DictReader(fh):
                artist = _pick(row, _ARTIST_KEYS)
                song = _pick(row, _SONG_KEYS)
                if not artist or not song:
                    continue
                items.append(MusicItem(artist=artist, song=song, album=_pick(row, _ALBUM_KEYS) or None))
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise InvalidInputError(f"Failed to read CSV file {path}: {exc}") from exc

    logger.info("Loaded %d tracks from %s", len(items), path)
    return items


def write_json_report(report: PricingReport, path: str | Path) -> None:
    path = Path(path)
    path.write_text(json.dumps(report.to_dict(), indent=2) + "\n", encoding="utf-8")
    logger.info("JSON report saved to %s", path)


def track_recommendation(report: PricingReport, track: PriceObservation) -> str:
    """``Buy album (save $X.XX)`` when *track* belongs to a saving album."""
    for analysis in report.album_analysis:
        if (
            analysis.savings > 0
            and analysis.artist == track.artist
            and track.song in analysis.tracks
        ):
            return f"Buy album (save ${analysis.savings:.2f})"
    return ""


def _track_row(report: PricingReport, track: PriceObservation) -> list[str]:
    return [
        track.artist,
        track.song,
        track.album or "",
        f"${track.track_price:.2f}" if track.available else "",
        f"${track.album_price:.2f}" if track.album_price else "",
        track.album_name or "",
        "Yes" if track.available else "No",
        track_recommendation(report, track),
        track.error or "",
    ]


def write_csv_report(report: PricingReport, path: str | Path) -> None:
    path = Path(path)
    with path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow(CSV_REPORT_HEADER)
        for track in report.tracks:
            writer.writerow(_track_row(report, track))

        writer.writerow([])
        writer.writerow(["SUMMARY"])
        writer.writerow([f"Total Tracks: {report.total_tracks}"])
        writer.writerow([f"Available Tracks: {report.available_tracks}"])
        writer.writerow([f"Total Cost (Individual): ${report.total_cost:.2f}"])
        writer.writerow([f"Optimized Cost: ${report.optimized_cost:.2f}"])
        writer.writerow([
            f"Total Savings: ${report.total_savings:.2f} ({report.savings_percentage:.1f}%)"
        ])

        if report.recommendations:
            writer.writerow([])
            writer.writerow(["RECOMMENDATIONS"])
            for rec in report.recommendations:
                writer.writerow([rec])

    logger.info("CSV report saved to %s", path)
