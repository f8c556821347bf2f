"""Headless browser capability used by the page fetcher, plus its Playwright implementation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, TypeVar

from playwright.async_api import (
    Browser,
    Error as PlaywrightError,
    Page,
    Playwright,
    Route,
    async_playwright,
)

from dcgallery.errors import BrowserUnavailableError, TransientPageError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BLOCKED_RESOURCE_TYPES = ("stylesheet", "image", "font")


class PageHandle(Protocol):
    """One browser tab, owned by exactly one fetch."""

    async def configure_for_scraping(self) -> None: ...

    async def navigate(self, url: str, timeout_sec: float) -> Optional[int]:
        """Load url and return the HTTP status of the main document (None if unknown)."""
        ...

    async def wait_for_selector(self, selector: str, timeout_sec: float) -> None: ...

    async def evaluate(self, extractor: Callable[..., T], *args: Any) -> T: ...

    async def close(self) -> None: ...


class BrowserSession(Protocol):
    async def open_page(self) -> PageHandle: ...


@dataclass(frozen=True)
class BrowserConfig:
    headless: bool = True
    user_agent: Optional[str] = None
    blocked_resource_types: tuple[str, ...] = DEFAULT_BLOCKED_RESOURCE_TYPES
    launch_args: tuple[str, ...] = ("--no-sandbox", "--disable-setuid-sandbox")


class PlaywrightPageHandle:
    def __init__(self, page: Page, browser: Browser, config: BrowserConfig):
        self._page = page
        self._browser = browser
        self._cfg = config

    async def configure_for_scraping(self) -> None:
        blocked = set(self._cfg.blocked_resource_types)

        async def _route(route: Route) -> None:
            if route.request.resource_type in blocked:
                await route.abort()
            else:
                await route.continue_()

        try:
            await self._page.route("**/*", _route)
        except PlaywrightError as e:
            raise self._translate(e) from e

    async def navigate(self, url: str, timeout_sec: float) -> Optional[int]:
        try:
            response = await self._page.goto(
                url,
                wait_until="networkidle",
                timeout=timeout_sec * 1000,
            )
        except PlaywrightError as e:
            raise self._translate(e) from e
        return response.status if response is not None else None

    async def wait_for_selector(self, selector: str, timeout_sec: float) -> None:
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_sec * 1000)
        except PlaywrightError as e:
            raise self._translate(e) from e

    async def evaluate(self, extractor: Callable[..., T], *args: Any) -> T:
        # Extractors are plain Python functions over the rendered DOM snapshot.
        try:
            html = await self._page.content()
        except PlaywrightError as e:
            raise self._translate(e) from e
        return extractor(html, *args)

    async def close(self) -> None:
        try:
            await self._page.close()
        except PlaywrightError as e:
            logger.debug("Page close failed (ignored): err=%s", e)

    def _translate(self, err: PlaywrightError) -> Exception:
        if not self._browser.is_connected():
            return BrowserUnavailableError(f"Browser disconnected: {err}")
        return TransientPageError(str(err))


class PlaywrightBrowserSession:
    """
    Owns one Chromium instance shared by all concurrent page fetches.

    Usage:
        async with PlaywrightBrowserSession(BrowserConfig()) as browser:
            page = await browser.open_page()
    """

    def __init__(self, config: BrowserConfig):
        self._cfg = config
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def start(self) -> "PlaywrightBrowserSession":
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self._cfg.headless,
            args=list(self._cfg.launch_args),
        )
        logger.info("Browser initialized: headless=%s", self._cfg.headless)
        return self

    async def close(self) -> None:
        try:
            if self._browser is not None:
                await self._browser.close()
        finally:
            self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None

    async def open_page(self) -> PlaywrightPageHandle:
        if self._browser is None or not self._browser.is_connected():
            raise BrowserUnavailableError("Browser is not running")
        try:
            page = await self._browser.new_page(user_agent=self._cfg.user_agent)
        except PlaywrightError as e:
            if not self._browser.is_connected():
                raise BrowserUnavailableError(f"Browser disconnected: {e}") from e
            raise TransientPageError(str(e)) from e
        return PlaywrightPageHandle(page, self._browser, self._cfg)

    async def __aenter__(self) -> "PlaywrightBrowserSession":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
