"""
Music pricing orchestrator.

Reads a CSV of wanted tracks, prices every track on the digital-music
storefront with a small pool of stealth browser sessions, then compares
album prices against buying tracks one by one.

Usage:
    music-pricing analyze -i tracks.csv -o report.json -c report.csv
    music-pricing analyze -i tracks.csv --sequential --visible
    music-pricing price -a "Taylor Swift" -s "Shake It Off" -l "1989"

Environment variables (see config/settings.py):
    SCRAPE_CONCURRENCY=3      # browser sessions per chunk
    SCRAPE_DELAY_MS=3000      # pause between chunks
    SCRAPE_MAX_RETRIES=2      # extra attempts for transient failures
    HEADLESS=false            # watch the browser work
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from typing import Sequence

from .analyzer import analyze_pricing
from .browser import open_sessions
from .config import Settings, StorefrontConfig, load_settings, load_storefront
from .errors import EngineInitError, InvalidInputError
from .extractor import PriceExtractor
from .metrics_collector import collect_run_metrics
from .models import MusicItem, PriceObservation
from .report import log_summary
from .report_io import read_music_csv, write_csv_report, write_json_report
from .scheduler import BatchScheduler

logger = logging.getLogger("orchestrator")


def _configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="music-pricing",
        description="Price music tracks on a digital storefront and find album savings",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every candidate and selector")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Analyze pricing for tracks listed in a CSV file")
    analyze.add_argument("-i", "--input", required=True, help="Input CSV file with music tracks")
    analyze.add_argument("-o", "--output-json", default=None, help="Output JSON report file")
    analyze.add_argument("-c", "--output-csv", default=None, help="Output CSV report file")
    analyze.add_argument("--visible", action="store_true", help="Run the browser visibly (for debugging)")
    analyze.add_argument("-d", "--delay", type=int, default=None, help="Delay between chunks in milliseconds")
    analyze.add_argument("-r", "--retries", type=int, default=None, help="Extra attempts for transient failures")
    analyze.add_argument("-j", "--concurrency", type=int, default=None, help="Browser sessions to run in parallel")
    analyze.add_argument("--sequential", action="store_true", help="Price one track at a time")
    analyze.add_argument("--item-timeout", type=float, default=None, help="Deadline per track attempt in seconds")
    analyze.add_argument(
        "--completion-order", action="store_true",
        help="Collect results in completion order inside each chunk",
    )
    analyze.add_argument("--selectors", default=None, help="JSON file overriding storefront selectors")

    price = sub.add_parser("price", help="Get the price of a single track")
    price.add_argument("-a", "--artist", required=True, help="Artist name")
    price.add_argument("-s", "--song", required=True, help="Song title")
    price.add_argument("-l", "--album", default=None, help="Album name (optional)")
    price.add_argument("--visible", action="store_true", help="Run the browser visibly")
    price.add_argument("--selectors", default=None, help="JSON file overriding storefront selectors")

    return parser


def resolve_settings(args: argparse.Namespace, base: Settings | None = None) -> Settings:
    """Environment settings with CLI flags layered on top."""
    settings = base or load_settings()
    if getattr(args, "visible", False):
        settings.headless = False
    if getattr(args, "delay", None) is not None:
        settings.delay_ms = args.delay
    if getattr(args, "retries", None) is not None:
        settings.max_retries = args.retries
    if getattr(args, "concurrency", None) is not None:
        settings.concurrency = args.concurrency
    if getattr(args, "sequential", False):
        settings.sequential = True
    if getattr(args, "item_timeout", None) is not None:
        settings.item_timeout_sec = args.item_timeout
    if getattr(args, "completion_order", False):
        settings.preserve_input_order = False
    if getattr(args, "selectors", None):
        settings.selectors_file = args.selectors
    settings.validate()
    return settings


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def price_items(
    items: Sequence[MusicItem],
    settings: Settings,
    storefront: StorefrontConfig,
) -> list[PriceObservation]:
    """Open the browser pool and run every item through the scheduler."""
    session_count = 1 if settings.sequential else settings.concurrency
    async with open_sessions(session_count, headless=settings.headless) as sessions:
        extractors = [PriceExtractor(s, storefront=storefront) for s in sessions]
        scheduler = BatchScheduler(
            extractors,
            chunk_delay_sec=settings.delay_sec,
            sequential=settings.sequential,
            item_timeout_sec=settings.item_timeout_sec,
            max_retries=settings.max_retries,
            retry_delay_sec=settings.retry_delay_sec,
            preserve_input_order=settings.preserve_input_order,
        )
        return await scheduler.schedule(items)


async def run_analyze(args: argparse.Namespace) -> None:
    start = time.monotonic()
    settings = resolve_settings(args)
    storefront = load_storefront(settings.selectors_file)

    logger.info("=" * 60)
    logger.info("Music pricing analysis: %s", args.input)
    logger.info(
        "concurrency=%d sequential=%s delay=%dms retries=%d headless=%s",
        settings.concurrency, settings.sequential, settings.delay_ms,
        settings.max_retries, settings.headless,
    )
    logger.info("=" * 60)

    items = read_music_csv(args.input)
    if not items:
        raise InvalidInputError(f"No valid music items found in {args.input}")

    observations = await price_items(items, settings, storefront)
    report = analyze_pricing(observations)
    log_summary(report)

    if args.output_json:
        write_json_report(report, args.output_json)
    if args.output_csv:
        write_csv_report(report, args.output_csv)

    collect_run_metrics(observations, runtime_seconds=time.monotonic() - start)


async def run_price(args: argparse.Namespace) -> PriceObservation:
    settings = resolve_settings(args)
    settings.sequential = True
    settings.max_retries = 0
    storefront = load_storefront(settings.selectors_file)

    item = MusicItem(artist=args.artist, song=args.song, album=args.album)
    logger.info("Searching for: %s", item.label)
    [result] = await price_items([item], settings, storefront)

    if result.available:
        logger.info("Found track: $%.2f", result.track_price)
        if result.album_price and result.album_name:
            logger.info('Album "%s": $%.2f', result.album_name, result.album_price)
    else:
        logger.info("Track not available: %s", result.error)
    return result


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    command = run_analyze if args.command == "analyze" else run_price
    try:
        asyncio.run(command(args))
    except (EngineInitError, InvalidInputError) as exc:
        logger.error("%s", exc)
        sys.exit(1)
    except (ValueError, OSError) as exc:
        # Bad settings, unreadable selectors file or unwritable report path.
        logger.error("Run aborted: %s", exc)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        sys.exit(130)


if __name__ == "__main__":
    main()
