from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dcgallery.dates import is_date_key
from dcgallery.errors import InvalidCrawlRequestError


class GalleryVariant(str, enum.Enum):
    """URL template family of a gallery listing."""

    BOARD = "board"
    MINI = "mini"
    MGALLERY = "mgallery"
    UNKNOWN = "unknown"


class CrawlMode(str, enum.Enum):
    FIXED_PAGES = "fixedPages"
    DATE_RANGE = "dateRange"


@dataclass(frozen=True)
class GalleryDescriptor:
    """Gallery identity resolved from a user supplied URL."""

    gallery_id: Optional[str]
    variant: GalleryVariant
    source_url: str
    valid: bool


@dataclass(frozen=True)
class PostRecord:
    """One listing row attributed to an identifiable author."""

    user_id: str
    display_name: str
    origin_ip: str
    date_key: Optional[str] = None


@dataclass(frozen=True)
class PageExtraction:
    """
    Result of running an extractor against one listing page.

    found_older_than_start is None for the unconditional extractor and a bool
    for the date-filtered one.
    """

    posts: tuple[PostRecord, ...] = ()
    found_older_than_start: Optional[bool] = None


@dataclass(frozen=True)
class UserAggregate:
    user_id: str
    display_name: str
    origin_ip: str
    count: int


@dataclass(frozen=True)
class CrawlOutcome:
    user_aggregates: Mapping[str, UserAggregate] = field(default_factory=dict)
    total_posts: int = 0
    pages_scraped: int = 0
    pages_failed: int = 0
    cancelled: bool = False


@dataclass(frozen=True)
class ScrapeReport:
    """Final output of one crawl. user_stats is sorted by count, highest first."""

    gallery_id: str
    gallery_type: GalleryVariant
    url: str
    pages_scraped: int
    start_date: Optional[str]
    end_date: Optional[str]
    total_posts: int
    unique_users: int
    user_stats: tuple[UserAggregate, ...]
    pages_failed: int = 0
    cancelled: bool = False


@dataclass(frozen=True)
class CrawlRequest:
    url: str
    mode: CrawlMode
    pages: int = 1
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.url or not isinstance(self.url, str):
            raise InvalidCrawlRequestError("URL is required")
        if self.mode is CrawlMode.FIXED_PAGES and self.pages < 1:
            raise InvalidCrawlRequestError(f"pages must be >= 1, got {self.pages}")
        for name in ("start_date", "end_date"):
            value = getattr(self, name)
            if value is not None and not is_date_key(value):
                raise InvalidCrawlRequestError(f"{name} must be YYYY-MM-DD, got {value!r}")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise InvalidCrawlRequestError(
                f"start_date {self.start_date} is after end_date {self.end_date}"
            )

    @classmethod
    def from_params(
        cls,
        url: str,
        pages: int = 1,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> "CrawlRequest":
        """Build a request, switching to date-range mode whenever a date bound is given."""
        start_date = start_date or None
        end_date = end_date or None
        mode = CrawlMode.DATE_RANGE if (start_date or end_date) else CrawlMode.FIXED_PAGES
        return cls(url=url, mode=mode, pages=pages, start_date=start_date, end_date=end_date)
