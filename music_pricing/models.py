"""
Records that flow through the pricing pipeline.

  MusicItem         one (artist, song, album?) line from the input list
  PriceObservation  the scraped result for one item, available or not
  AlbumAnalysis     album-vs-tracks comparison for one qualifying album
  PricingReport     the final, immutable run report

All records are frozen.  Money is ``Decimal``; absent values are ``None``.
``to_dict()`` produces the camelCase keys used by the JSON report.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

ZERO = Decimal("0")


def _money(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


@dataclass(frozen=True)
class MusicItem:
    artist: str
    song: str
    album: str | None = None

    @property
    def label(self) -> str:
        return f"{self.artist} - {self.song}"

    def to_dict(self) -> dict[str, Any]:
        return {"artist": self.artist, "song": self.song, "album": self.album}


@dataclass(frozen=True)
class PriceObservation(MusicItem):
    track_price: Decimal = ZERO
    album_price: Decimal | None = None
    album_name: str | None = None
    available: bool = False
    search_query: str = ""
    error: str | None = None
    error_kind: str | None = None

    @classmethod
    def success(
        cls,
        item: MusicItem,
        *,
        track_price: Decimal,
        search_query: str,
        album_price: Decimal | None = None,
        album_name: str | None = None,
    ) -> "PriceObservation":
        return cls(
            artist=item.artist,
            song=item.song,
            album=item.album,
            track_price=track_price,
            album_price=album_price,
            album_name=album_name,
            available=True,
            search_query=search_query,
        )

    @classmethod
    def failure(
        cls,
        item: MusicItem,
        *,
        error: str,
        error_kind: str,
        search_query: str,
    ) -> "PriceObservation":
        """Unavailable observation; ``error`` must describe why."""
        if not error:
            raise ValueError("an unavailable observation needs a diagnostic error")
        return cls(
            artist=item.artist,
            song=item.song,
            album=item.album,
            track_price=ZERO,
            available=False,
            search_query=search_query,
            error=error,
            error_kind=error_kind,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "trackPrice": float(self.track_price),
            "albumPrice": _money(self.album_price),
            "albumName": self.album_name,
            "available": self.available,
            "searchQuery": self.search_query,
            "error": self.error,
            "errorKind": self.error_kind,
        }


@dataclass(frozen=True)
class AlbumAnalysis:
    album_name: str
    artist: str
    album_price: Decimal
    tracks: tuple[str, ...]
    total_track_price: Decimal
    savings: Decimal
    recommendation: str

    @property
    def track_count(self) -> int:
        return len(self.tracks)

    def to_dict(self) -> dict[str, Any]:
        return {
            "albumName": self.album_name,
            "artist": self.artist,
            "albumPrice": float(self.album_price),
            "tracks": list(self.tracks),
            "trackCount": self.track_count,
            "totalTrackPrice": float(self.total_track_price),
            "savings": float(self.savings),
            "recommendation": self.recommendation,
        }


@dataclass(frozen=True)
class PricingReport:
    timestamp: str
    total_tracks: int
    available_tracks: int
    total_cost: Decimal
    optimized_cost: Decimal
    total_savings: Decimal
    savings_percentage: Decimal
    tracks: tuple[PriceObservation, ...] = field(default_factory=tuple)
    album_analysis: tuple[AlbumAnalysis, ...] = field(default_factory=tuple)
    recommendations: tuple[str, ...] = field(default_factory=tuple)

    @property
    def unavailable_tracks(self) -> list[PriceObservation]:
        return [t for t in self.tracks if not t.available]

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "totalTracks": self.total_tracks,
            "availableTracks": self.available_tracks,
            "totalCost": float(self.total_cost),
            "optimizedCost": float(self.optimized_cost),
            "totalSavings": float(self.total_savings),
            "savingsPercentage": float(self.savings_percentage),
            "tracks": [t.to_dict() for t in self.tracks],
            "albumAnalysis": [a.to_dict() for a in self.album_analysis],
            "recommendations": list(self.recommendations),
        }
