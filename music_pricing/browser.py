"""
Browser lifecycle for the pricing workers.

One Chromium instance is shared by the whole run; every worker gets its
own isolated ``BrowserContext`` + ``Page`` (a *session*), so cookies and
navigation state never leak between concurrent items.

Stealth stack (applied to every session):
  1. playwright-stealth patches webdriver, plugins, languages,
     chrome.runtime, permissions, WebGL and friends.
  2. Analytics domain blocking plus image/stylesheet/font/media
     aborts.
  3. Randomized viewport + User-Agent rotation per context.

Usage::

    async with open_sessions(3, headless=True) as sessions:
        extractors = [PriceExtractor(s) for s in sessions]
        ...

Everything opened inside ``open_sessions`` is closed on every exit path.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator

from playwright.async_api import (
    Browser,
    BrowserContext,
    Playwright,
    Route,
    async_playwright,
)
from playwright_stealth import Stealth

from .config.storefront import (
    BLOCKED_RESOURCE_TYPES,
    BROWSER_ARGS,
    EXTRA_HTTP_HEADERS,
    GOTO_TIMEOUT_MS,
    WAIT_UNTIL,
    get_user_agent,
    get_viewport,
)
from .errors import EngineInitError
from .handlers.page_query import PlaywrightPageQuery

logger = logging.getLogger(__name__)

_STEALTH = Stealth()

# Third-party analytics that slow page loads and add detection surface.
_BLOCKED_ANALYTICS_HOSTS = (
    "google-analytics.com",
    "googletagmanager.com",
    "doubleclick.net",
    "facebook.net",
    "amazon-adsystem.com",
)


async def launch_browser(
    pw: Playwright,
    *,
    headless: bool = True,
    extra_args: list[str] | None = None,
) -> Browser:
    """Launch the shared Chromium instance."""
    args = BROWSER_ARGS + (extra_args or [])
    browser = await pw.chromium.launch(headless=headless, args=args)
    logger.info("Browser launched (headless=%s)", headless)
    return browser


async def _filter_requests(route: Route) -> None:
    request = route.request
    if (
        request.resource_type in BLOCKED_RESOURCE_TYPES
        or any(host in request.url for host in _BLOCKED_ANALYTICS_HOSTS)
    ):
        await route.abort()
    else:
        await route.continue_()


class BrowserSession:
    """One isolated worker session on a shared browser.

    Async context manager: ``__aenter__`` creates the context and page,
    ``__aexit__`` always closes both.  ``query`` is the ``PageQuery``
    handed to the extractor.
    """

    def __init__(
        self,
        browser: Browser,
        *,
        index: int = 0,
        wait_until: str = WAIT_UNTIL,
        navigation_timeout_ms: int = GOTO_TIMEOUT_MS,
    ) -> None:
        self.index = index
        self._browser = browser
        self._wait_until = wait_until
        self._navigation_timeout_ms = navigation_timeout_ms
        self._context: BrowserContext | None = None
        self._query: PlaywrightPageQuery | None = None

    async def __aenter__(self) -> "BrowserSession":
        self._context = await self._browser.new_context(
            viewport=get_viewport(),
            user_agent=get_user_agent(),
            locale="en-US",
            extra_http_headers=EXTRA_HTTP_HEADERS,
        )
        try:
            await _STEALTH.apply_stealth_async(self._context)
            page = await self._context.new_page()
            await page.route("**/*", _filter_requests)
        except BaseException:
            await self._context.close()
            raise

        self._query = PlaywrightPageQuery(
            page,
            wait_until=self._wait_until,
            navigation_timeout_ms=self._navigation_timeout_ms,
        )
        logger.info("[session %d] ready", self.index)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._query is not None:
            try:
                await self._query.page.close()
            except Exception as exc:
                logger.debug("[session %d] page close failed: %s", self.index, exc)
        if self._context is not None:
            try:
                await self._context.close()
            except Exception as exc:
                logger.debug("[session %d] context close failed: %s", self.index, exc)
        logger.info("[session %d] cleanup done", self.index)

    @property
    def query(self) -> PlaywrightPageQuery:
        assert self._query is not None, "BrowserSession must be used as an async context manager"
        return self._query


@asynccontextmanager
async def open_sessions(
    count: int,
    *,
    headless: bool = True,
    navigation_timeout_ms: int = GOTO_TIMEOUT_MS,
) -> AsyncIterator[list[PlaywrightPageQuery]]:
    """Start Playwright, launch one browser and open *count* sessions.

    Raises ``EngineInitError`` if the driver, browser or any session
    cannot be started.  Sessions, browser and driver are released in
    reverse order however the block exits.
    """
    if count < 1:
        raise ValueError("at least one session is required")

    async with AsyncExitStack() as stack:
        try:
            pw = await stack.enter_async_context(async_playwright())
            browser = await launch_browser(pw, headless=headless)
            stack.push_async_callback(browser.close)

            sessions: list[PlaywrightPageQuery] = []
            for index in range(count):
                session = BrowserSession(
                    browser,
                    index=index,
                    navigation_timeout_ms=navigation_timeout_ms,
                )
                await stack.enter_async_context(session)
                sessions.append(session.query)
        except Exception as exc:
            raise EngineInitError(f"Browser initialisation failed: {exc}") from exc

        logger.info("Opened %d browser session(s)", len(sessions))
        yield sessions
