from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import replace
from typing import Optional

from dcgallery.aggregator import add_failed_page, add_page
from dcgallery.extractors import extract_posts, extract_posts_in_range
from dcgallery.gallery_url import build_page_url
from dcgallery.models import CrawlOutcome, GalleryDescriptor, PageExtraction
from dcgallery.page_fetcher import PageFetcher
from dcgallery.progress import NullProgressSink, ProgressSink

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 20


def stop_reason(extraction: PageExtraction, start_date: Optional[str]) -> Optional[str]:
    """
    Stopping rule for the open-ended date crawl. Listings are newest first,
    so a page that reached past start_date without any in-range post means
    every later page is older still.
    """
    if start_date:
        if extraction.found_older_than_start and not extraction.posts:
            return "Found posts older than target date, stopping..."
        return None
    if not extraction.posts:
        return "No more posts found, stopping..."
    return None


class GalleryCrawler:
    """
    Crawl strategies for one gallery:
    - crawl_pages_sequential: pages 1..N, one at a time
    - crawl_pages_batched: pages 1..N, `batch_size` concurrent fetches per batch
    - crawl_date_range: pages 1.. until the stopping rule fires

    Aggregation happens only in the task driving the crawl, after a page (or
    a whole batch) has come back, so no locking is involved. Cancellation is
    checked before every fetch or batch; in-flight fetches run to completion.
    """

    def __init__(
        self,
        descriptor: GalleryDescriptor,
        fetcher: PageFetcher,
        sink: Optional[ProgressSink] = None,
        cancel_event: Optional[asyncio.Event] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        if not descriptor.valid:
            raise ValueError(f"Cannot crawl an invalid gallery: {descriptor.source_url!r}")
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.descriptor = descriptor
        self.fetcher = fetcher
        self.sink = sink or NullProgressSink()
        self.cancel_event = cancel_event or asyncio.Event()
        self.batch_size = batch_size

    async def crawl_pages_sequential(self, pages: int) -> CrawlOutcome:
        outcome = CrawlOutcome()
        self.sink.send("info", {"message": f"Starting page-based scraping for {pages} pages"})

        for page in range(1, pages + 1):
            if self._cancelled(page):
                return _mark_cancelled(outcome)

            self.sink.send(
                "progress",
                {
                    "current_page": page,
                    "total_pages": pages,
                    "total_posts": outcome.total_posts,
                    "unique_users": len(outcome.user_aggregates),
                    "message": f"Scraping page {page} of {pages}...",
                },
            )
            extraction = await self.fetcher.fetch(self._page_url(page), extract_posts)
            outcome = self._record_page(outcome, page, extraction)

        return outcome

    async def crawl_pages_batched(self, pages: int) -> CrawlOutcome:
        outcome = CrawlOutcome()
        total_batches = math.ceil(pages / self.batch_size)
        self.sink.send("info", {"message": f"Starting batched scraping for {pages} pages"})

        for batch_start in range(1, pages + 1, self.batch_size):
            if self._cancelled(batch_start):
                return _mark_cancelled(outcome)

            batch_end = min(batch_start + self.batch_size - 1, pages)
            page_numbers = range(batch_start, batch_end + 1)
            # gather keeps results in page order; every fetch in the batch finishes
            # (and closes its page) before a failure propagates.
            results = await asyncio.gather(
                *(self.fetcher.fetch(self._page_url(page), extract_posts) for page in page_numbers),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result
            for page, extraction in zip(page_numbers, results):
                outcome = self._record_page(outcome, page, extraction)

            batch_number = (batch_start - 1) // self.batch_size + 1
            logger.info(
                "Completed batch %s of %s (pages %s-%s)",
                batch_number,
                total_batches,
                batch_start,
                batch_end,
            )
            if batch_number % 5 == 0:
                logger.info("Progress: %s%%", round(batch_number / total_batches * 100))

        return outcome

    async def crawl_date_range(
        self,
        start_date: Optional[str],
        end_date: Optional[str],
        max_consecutive_failures: int = 0,
    ) -> CrawlOutcome:
        """
        Crawl until the stopping rule fires. Pages that exhaust their retries
        are skipped and take no part in the stop decision;
        max_consecutive_failures > 0 bounds how many may be skipped in a row.
        """
        outcome = CrawlOutcome()
        consecutive_failures = 0
        page = 1
        self.sink.send(
            "info",
            {
                "message": "Starting date range scraping from "
                f"{start_date or 'beginning'} to {end_date or 'latest'}"
            },
        )

        while True:
            if self._cancelled(page):
                return _mark_cancelled(outcome)

            self.sink.send(
                "progress",
                {
                    "current_page": page,
                    "total_posts": outcome.total_posts,
                    "unique_users": len(outcome.user_aggregates),
                    "message": f"Scraping page {page}...",
                },
            )
            extraction = await self.fetcher.fetch(
                self._page_url(page), extract_posts_in_range, start_date, end_date
            )

            if extraction is None:
                outcome = add_failed_page(outcome)
                consecutive_failures += 1
                self.sink.send("warning", {"message": f"Skipping page {page} due to errors"})
                if max_consecutive_failures and consecutive_failures >= max_consecutive_failures:
                    message = f"Stopping: {consecutive_failures} consecutive pages failed"
                    logger.warning("%s (last page=%s)", message, page)
                    self.sink.send("warning", {"message": message})
                    return outcome
                page += 1
                continue

            consecutive_failures = 0
            outcome = self._record_page(outcome, page, extraction)
            logger.info(
                "Page %s results: %s posts found, found_older_than_start=%s",
                page,
                len(extraction.posts),
                extraction.found_older_than_start,
            )

            reason = stop_reason(extraction, start_date)
            if reason:
                self.sink.send("info", {"message": reason})
                return outcome
            page += 1

    # -------------------------
    # Helpers
    # -------------------------

    def _page_url(self, page: int) -> str:
        return build_page_url(self.descriptor, page)

    def _record_page(self, outcome: CrawlOutcome, page: int, extraction: Optional[PageExtraction]) -> CrawlOutcome:
        # Fixed-count crawls count an exhausted page as an empty one.
        if extraction is None:
            outcome = add_failed_page(outcome)
            posts_found = 0
            self.sink.send("warning", {"message": f"Page {page} failed after retries, counted as empty"})
        else:
            outcome = add_page(outcome, extraction.posts)
            posts_found = len(extraction.posts)

        self.sink.send(
            "pageComplete",
            {
                "page": page,
                "posts_found": posts_found,
                "total_posts": outcome.total_posts,
                "unique_users": len(outcome.user_aggregates),
            },
        )
        return outcome

    def _cancelled(self, next_page: int) -> bool:
        if not self.cancel_event.is_set():
            return False
        logger.info("Crawl cancelled before page %s", next_page)
        return True


def _mark_cancelled(outcome: CrawlOutcome) -> CrawlOutcome:
    return replace(outcome, cancelled=True)
