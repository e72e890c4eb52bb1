"""
Runtime settings read from the environment (``.env`` supported).

Environment variables:
    SCRAPE_CONCURRENCY=3          # browser sessions / items per chunk
    SCRAPE_DELAY_MS=3000          # pause between chunks (or items when sequential)
    SCRAPE_MAX_RETRIES=2          # extra attempts for transient failures
    SCRAPE_RETRY_DELAY_SEC=5
    ITEM_TIMEOUT_SEC=120          # hard deadline per item attempt
    HEADLESS=true
    SEQUENTIAL=false              # one item at a time, delay after each
    PRESERVE_INPUT_ORDER=true     # false = completion order inside a chunk
    SELECTORS_FILE=               # optional JSON storefront override

CLI flags take precedence; see ``main.py``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass
class Settings:
    concurrency: int = 3
    delay_ms: int = 3_000
    max_retries: int = 2
    retry_delay_sec: float = 5.0
    item_timeout_sec: float = 120.0
    headless: bool = True
    sequential: bool = False
    preserve_input_order: bool = True
    selectors_file: str | None = None

    @property
    def delay_sec(self) -> float:
        return self.delay_ms / 1000

    def validate(self) -> None:
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if self.delay_ms < 0:
            raise ValueError("delay must be >= 0")
        if self.max_retries < 0:
            raise ValueError("retries must be >= 0")
        if self.item_timeout_sec <= 0:
            raise ValueError("item timeout must be > 0")


def load_settings(*, dotenv: bool = True) -> Settings:
    """Build ``Settings`` from the environment."""
    if dotenv:
        load_dotenv()

    settings = Settings(
        concurrency=_env_int("SCRAPE_CONCURRENCY", 3),
        delay_ms=_env_int("SCRAPE_DELAY_MS", 3_000),
        max_retries=_env_int("SCRAPE_MAX_RETRIES", 2),
        retry_delay_sec=_env_float("SCRAPE_RETRY_DELAY_SEC", 5.0),
        item_timeout_sec=_env_float("ITEM_TIMEOUT_SEC", 120.0),
        headless=_env_bool("HEADLESS", True),
        sequential=_env_bool("SEQUENTIAL", False),
        preserve_input_order=_env_bool("PRESERVE_INPUT_ORDER", True),
        selectors_file=os.getenv("SELECTORS_FILE") or None,
    )
    settings.validate()
    return settings
