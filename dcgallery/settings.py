from __future__ import annotations

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dcgallery.browser import DEFAULT_BLOCKED_RESOURCE_TYPES, BrowserConfig
from dcgallery.models import CrawlRequest
from dcgallery.page_fetcher import FetchConfig
from dcgallery.service import ScrapeConfig


class ScraperSettings(BaseSettings):
    """
    Environment-driven settings for the gallery scraper.
    """

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    # ---- Crawl request ----
    gallery_url: str = Field(
        default="https://gall.dcinside.com/mgallery/board/lists/?id=github",
        alias="DC_GALLERY_URL",
    )
    pages: int = Field(default=1, ge=1, alias="DC_PAGES")
    # Either date switches the crawl to date-range mode (YYYY-MM-DD).
    start_date: Optional[str] = Field(default=None, alias="DC_START_DATE")
    end_date: Optional[str] = Field(default=None, alias="DC_END_DATE")

    # ---- Page fetching ----
    max_retries: int = Field(default=5, ge=1, alias="DC_MAX_RETRIES")
    backoff_base_sec: float = Field(default=1.0, alias="DC_BACKOFF_BASE_SEC")
    backoff_max_sec: float = Field(default=10.0, alias="DC_BACKOFF_MAX_SEC")
    navigation_timeout_sec: float = Field(default=60.0, alias="DC_NAVIGATION_TIMEOUT_SEC")
    selector_timeout_sec: float = Field(default=10.0, alias="DC_SELECTOR_TIMEOUT_SEC")

    # ---- Crawl strategy ----
    batch_size: int = Field(default=20, ge=1, alias="DC_BATCH_SIZE")
    sequential_page_threshold: int = Field(default=3, ge=0, alias="DC_SEQUENTIAL_PAGE_THRESHOLD")
    # 0 disables the limit for open-ended date crawls
    max_consecutive_failed_pages: int = Field(default=10, ge=0, alias="DC_MAX_CONSECUTIVE_FAILED_PAGES")

    # ---- Browser ----
    headless: bool = Field(default=True, alias="DC_HEADLESS")
    user_agent: Optional[str] = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/120.0.0.0 Safari/537.36"
        ),
        alias="DC_USER_AGENT",
    )
    # Comma separated, e.g. "stylesheet,image,font"
    blocked_resource_types: str = Field(
        default=",".join(DEFAULT_BLOCKED_RESOURCE_TYPES),
        alias="DC_BLOCKED_RESOURCE_TYPES",
    )

    @field_validator("start_date", "end_date", "user_agent", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def crawl_request(self) -> CrawlRequest:
        return CrawlRequest.from_params(
            url=self.gallery_url,
            pages=self.pages,
            start_date=self.start_date,
            end_date=self.end_date,
        )

    def fetch_config(self) -> FetchConfig:
        return FetchConfig(
            max_retries=self.max_retries,
            navigation_timeout_sec=self.navigation_timeout_sec,
            selector_timeout_sec=self.selector_timeout_sec,
            backoff_base_sec=self.backoff_base_sec,
            backoff_max_sec=self.backoff_max_sec,
        )

    def browser_config(self) -> BrowserConfig:
        return BrowserConfig(
            headless=self.headless,
            user_agent=self.user_agent,
            blocked_resource_types=tuple(
                t.strip() for t in self.blocked_resource_types.split(",") if t.strip()
            ),
        )

    def scrape_config(self) -> ScrapeConfig:
        return ScrapeConfig(
            batch_size=self.batch_size,
            sequential_page_threshold=self.sequential_page_threshold,
            max_consecutive_failed_pages=self.max_consecutive_failed_pages,
        )


def load_settings() -> ScraperSettings:
    return ScraperSettings()
