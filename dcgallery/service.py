from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from dcgallery.crawl_strategies import DEFAULT_BATCH_SIZE, GalleryCrawler
from dcgallery.errors import CrawlFailure, GalleryScrapeError, InvalidGalleryUrlError
from dcgallery.gallery_url import resolve_gallery_url
from dcgallery.models import CrawlMode, CrawlOutcome, CrawlRequest, GalleryDescriptor, ScrapeReport
from dcgallery.page_fetcher import PageFetcher
from dcgallery.progress import ProgressSink
from dcgallery.report import build_report, report_to_payload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScrapeConfig:
    batch_size: int = DEFAULT_BATCH_SIZE
    sequential_page_threshold: int = 3
    max_consecutive_failed_pages: int = 10


class GalleryScrapeService:
    """
    Entry point for a crawl request.

    - scrape(): picks sequential or batched crawling by page count
    - scrape_stream(): always sequential, reports progress to a sink

    Raises:
        InvalidGalleryUrlError: URL is not a recognized gallery (before any fetch)
        CrawlFailure: the crawl aborted; partial results are discarded
    """

    def __init__(self, fetcher: PageFetcher, config: ScrapeConfig):
        self.fetcher = fetcher
        self.cfg = config

    async def scrape(self, request: CrawlRequest, sink: Optional[ProgressSink] = None) -> ScrapeReport:
        descriptor = self._resolve(request)
        crawler = GalleryCrawler(descriptor, self.fetcher, sink=sink, batch_size=self.cfg.batch_size)

        if request.mode is CrawlMode.DATE_RANGE:
            outcome = await self._run(self._crawl_date_range(crawler, request))
        elif request.pages <= self.cfg.sequential_page_threshold:
            outcome = await self._run(crawler.crawl_pages_sequential(request.pages))
        else:
            outcome = await self._run(crawler.crawl_pages_batched(request.pages))

        report = build_report(descriptor, outcome, request.start_date, request.end_date)
        logger.info(
            "Scraping completed: gallery=%s pages=%s failed=%s posts=%s users=%s",
            report.gallery_id,
            report.pages_scraped,
            report.pages_failed,
            report.total_posts,
            report.unique_users,
        )
        return report

    async def scrape_stream(
        self,
        request: CrawlRequest,
        sink: ProgressSink,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ScrapeReport:
        """
        Sequential crawl that reports start/progress/pageComplete/... events.
        Errors are reported as an `error` event and then re-raised.
        """
        try:
            descriptor = self._resolve(request)
        except GalleryScrapeError as e:
            sink.send("error", {"message": str(e)})
            raise

        sink.send(
            "start",
            {
                "gallery_id": descriptor.gallery_id,
                "gallery_type": descriptor.variant.value,
                "url": descriptor.source_url,
                "start_date": request.start_date,
                "end_date": request.end_date,
            },
        )
        crawler = GalleryCrawler(descriptor, self.fetcher, sink=sink, cancel_event=cancel_event)

        try:
            if request.mode is CrawlMode.DATE_RANGE:
                outcome = await self._run(self._crawl_date_range(crawler, request))
            else:
                outcome = await self._run(crawler.crawl_pages_sequential(request.pages))
        except CrawlFailure as e:
            sink.send("error", {"message": str(e)})
            raise

        report = build_report(descriptor, outcome, request.start_date, request.end_date)
        sink.send("complete", report_to_payload(report))
        return report

    # -------------------------
    # Helpers
    # -------------------------

    def _resolve(self, request: CrawlRequest) -> GalleryDescriptor:
        descriptor = resolve_gallery_url(request.url)
        if not descriptor.valid:
            raise InvalidGalleryUrlError(request.url)
        return descriptor

    def _crawl_date_range(self, crawler: GalleryCrawler, request: CrawlRequest):
        return crawler.crawl_date_range(
            request.start_date,
            request.end_date,
            max_consecutive_failures=self.cfg.max_consecutive_failed_pages,
        )

    async def _run(self, crawl) -> CrawlOutcome:
        try:
            return await crawl
        except GalleryScrapeError as e:
            if isinstance(e, CrawlFailure):
                raise
            raise CrawlFailure(str(e)) from e
        except Exception as e:
            logger.exception("Crawl aborted by unexpected error")
            raise CrawlFailure(f"{type(e).__name__}: {e}") from e
