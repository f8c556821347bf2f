from __future__ import annotations

from typing import Optional


class GalleryScrapeError(Exception):
    """Base class for every error raised by the gallery scraper."""


class InvalidGalleryUrlError(GalleryScrapeError, ValueError):
    def __init__(self, url: Optional[str]):
        super().__init__("Invalid URL format. Expected DCInside gallery URL: %r" % (url,))
        self.url = url


class InvalidCrawlRequestError(GalleryScrapeError, ValueError):
    pass


class TransientPageError(GalleryScrapeError):
    """
    A single page load failed in a way worth retrying:
    navigation timeout, network error, upstream 5xx.
    """


class PageServerError(TransientPageError):
    def __init__(self, status_code: int, url: str):
        super().__init__(f"Server error: status={status_code} url={url}")
        self.status_code = status_code
        self.url = url


class CrawlFailure(GalleryScrapeError):
    """Fatal crawl error. The crawl is aborted and partial results are dropped."""


class BrowserUnavailableError(CrawlFailure):
    pass
