from __future__ import annotations

import asyncio
import json
import logging
import sys

from dcgallery.browser import PlaywrightBrowserSession
from dcgallery.errors import CrawlFailure, InvalidCrawlRequestError, InvalidGalleryUrlError
from dcgallery.page_fetcher import PageFetcher
from dcgallery.progress import LoggingProgressSink
from dcgallery.report import report_to_payload
from dcgallery.service import GalleryScrapeService
from dcgallery.settings import load_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)

logger = logging.getLogger(__name__)


async def run() -> int:
    s = load_settings()

    try:
        request = s.crawl_request()
    except InvalidCrawlRequestError as e:
        print(json.dumps({"success": False, "error": str(e)}, ensure_ascii=False))
        return 2

    async with PlaywrightBrowserSession(s.browser_config()) as browser:
        service = GalleryScrapeService(PageFetcher(browser, s.fetch_config()), s.scrape_config())
        try:
            report = await service.scrape(request, sink=LoggingProgressSink())
        except InvalidGalleryUrlError as e:
            print(json.dumps({"success": False, "error": str(e)}, ensure_ascii=False))
            return 2
        except CrawlFailure as e:
            logger.error("Scraping failed: %s", e)
            print(json.dumps({"success": False, "error": str(e)}, ensure_ascii=False))
            return 1

    print(json.dumps(report_to_payload(report), ensure_ascii=False, indent=2))
    return 0


def main() -> None:
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
