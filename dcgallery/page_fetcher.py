from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from dcgallery.browser import BrowserSession
from dcgallery.errors import PageServerError, TransientPageError
from dcgallery.extractors import LISTING_SELECTOR
from dcgallery.models import PageExtraction

logger = logging.getLogger(__name__)

SERVER_ERROR_STATUSES = frozenset({500, 503, 504})

Extractor = Callable[..., PageExtraction]
Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class FetchConfig:
    max_retries: int = 5
    navigation_timeout_sec: float = 60.0
    selector_timeout_sec: float = 10.0
    backoff_base_sec: float = 1.0
    backoff_max_sec: float = 10.0
    listing_selector: str = LISTING_SELECTOR


class PageFetcher:
    """
    Loads one listing page and runs an extractor against it:
    - Fresh page per attempt, closed on every exit path
    - 500/503/504 treated as transient
    - Retry with exponential backoff (capped)

    Returns None once the retry budget is spent, so a single bad page never
    aborts a crawl. Non-transient errors propagate.
    """

    def __init__(self, browser: BrowserSession, config: FetchConfig, sleep: Sleep = asyncio.sleep):
        self._browser = browser
        self._cfg = config
        self._sleep = sleep

    async def fetch(self, page_url: str, extractor: Extractor, *extractor_args: Any) -> Optional[PageExtraction]:
        for attempt in range(1, self._cfg.max_retries + 1):
            try:
                return await self._fetch_once(page_url, extractor, extractor_args)
            except TransientPageError as e:
                if attempt >= self._cfg.max_retries:
                    logger.error(
                        "Skipping page after %s failed attempts: url=%s err=%s",
                        attempt,
                        page_url,
                        e,
                    )
                    return None
                sleep_sec = self.compute_backoff(attempt)
                logger.warning(
                    "Page fetch failed (retrying): attempt=%s/%s url=%s sleep=%.2fs err=%s",
                    attempt,
                    self._cfg.max_retries,
                    page_url,
                    sleep_sec,
                    e,
                )
                await self._sleep(sleep_sec)
        return None

    def compute_backoff(self, attempt: int) -> float:
        # 1s, 2s, 4s, 8s, then capped
        return min(self._cfg.backoff_base_sec * (2 ** (attempt - 1)), self._cfg.backoff_max_sec)

    async def _fetch_once(self, page_url: str, extractor: Extractor, extractor_args: tuple) -> PageExtraction:
        page = await self._browser.open_page()
        try:
            await page.configure_for_scraping()
            status = await page.navigate(page_url, timeout_sec=self._cfg.navigation_timeout_sec)
            if status in SERVER_ERROR_STATUSES:
                raise PageServerError(status, page_url)

            try:
                await page.wait_for_selector(
                    self._cfg.listing_selector,
                    timeout_sec=self._cfg.selector_timeout_sec,
                )
            except TransientPageError as e:
                logger.debug("Listing selector wait timed out (continuing): url=%s err=%s", page_url, e)

            return await page.evaluate(extractor, *extractor_args)
        finally:
            await page.close()
