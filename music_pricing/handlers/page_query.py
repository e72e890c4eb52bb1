"""
The automation-engine boundary.

``PageQuery`` / ``ElementQuery`` are the only capabilities the extractor
uses: navigate, locate elements by selector, read text/attributes, test
visibility and wait.  ``click`` belongs to the boundary as well but no
extractor state calls it yet.  ``PlaywrightPageQuery`` implements them on
top of a Playwright ``Page``; the test suite implements them in memory.
"""

from __future__ import annotations

import logging
from typing import Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page
from playwright.async_api import TimeoutError as PlaywrightTimeout

from ..config.storefront import GOTO_TIMEOUT_MS, WAIT_UNTIL
from ..errors import NavigationFailure

logger = logging.getLogger(__name__)


class ElementQuery(Protocol):
    async def read_text(self, timeout_ms: int) -> str | None: ...

    async def read_attribute(self, name: str, timeout_ms: int) -> str | None: ...

    async def is_visible(self, timeout_ms: int) -> bool: ...

    async def click(self) -> None: ...

    async def locate(self, selector: str) -> list["ElementQuery"]: ...


class PageQuery(Protocol):
    async def navigate(self, url: str) -> None: ...

    async def locate(self, selector: str) -> list[ElementQuery]: ...

    async def wait(self, duration_ms: int) -> None: ...


class PlaywrightElement:
    """``ElementQuery`` over a Playwright locator pinned to one element."""

    def __init__(self, locator: Locator) -> None:
        self._locator = locator

    async def read_text(self, timeout_ms: int) -> str | None:
        return await self._locator.text_content(timeout=timeout_ms)

    async def read_attribute(self, name: str, timeout_ms: int) -> str | None:
        return await self._locator.get_attribute(name, timeout=timeout_ms)

    async def is_visible(self, timeout_ms: int) -> bool:
        # Locator.is_visible() ignores its timeout, so wait explicitly.
        try:
            await self._locator.wait_for(state="visible", timeout=timeout_ms)
            return True
        except PlaywrightTimeout:
            return False

    async def click(self) -> None:
        await self._locator.click()

    async def locate(self, selector: str) -> list[ElementQuery]:
        return [PlaywrightElement(loc) for loc in await self._locator.locator(selector).all()]


class PlaywrightPageQuery:
    """``PageQuery`` over one Playwright page (one worker session)."""

    def __init__(
        self,
        page: Page,
        *,
        wait_until: str = WAIT_UNTIL,
        navigation_timeout_ms: int = GOTO_TIMEOUT_MS,
    ) -> None:
        self._page = page
        self._wait_until = wait_until
        self._navigation_timeout_ms = navigation_timeout_ms

    @property
    def page(self) -> Page:
        return self._page

    async def navigate(self, url: str) -> None:
        logger.debug("Navigating to %s (wait_until=%s)", url, self._wait_until)
        try:
            await self._page.goto(
                url,
                wait_until=self._wait_until,
                timeout=self._navigation_timeout_ms,
            )
        except PlaywrightError as exc:
            # Playwright messages carry a multi-line call log; keep the headline.
            lines = str(exc).splitlines()
            raise NavigationFailure(url, lines[0] if lines else type(exc).__name__) from exc

    async def locate(self, selector: str) -> list[ElementQuery]:
        return [PlaywrightElement(loc) for loc in await self._page.locator(selector).all()]

    async def wait(self, duration_ms: int) -> None:
        await self._page.wait_for_timeout(duration_ms)
