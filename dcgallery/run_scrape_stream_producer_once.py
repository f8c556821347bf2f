from __future__ import annotations

import asyncio
import logging
import signal
import sys

from dcgallery.browser import PlaywrightBrowserSession
from dcgallery.errors import GalleryScrapeError, InvalidCrawlRequestError
from dcgallery.kafka_producer import GalleryKafkaProducer, KafkaProducerConfig, KafkaProgressSink
from dcgallery.page_fetcher import PageFetcher
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
        logger.error("Invalid crawl request: %s", e)
        return 2

    producer_cfg = KafkaProducerConfig.from_env()
    producer = GalleryKafkaProducer(producer_cfg)

    # Ctrl+C stops issuing new page fetches; the pages already in flight finish.
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except NotImplementedError:
        logger.debug("Signal handlers unsupported on this platform")

    try:
        async with PlaywrightBrowserSession(s.browser_config()) as browser:
            service = GalleryScrapeService(PageFetcher(browser, s.fetch_config()), s.scrape_config())
            try:
                report = await service.scrape_stream(request, KafkaProgressSink(producer), cancel_event)
            except GalleryScrapeError as e:
                logger.error("Scraping failed: %s", e)
                return 1

        producer.send_report(report)
        logger.info(
            "Produced report: gallery=%s pages=%s users=%s cancelled=%s topic=%s",
            report.gallery_id, report.pages_scraped, report.unique_users, report.cancelled, producer_cfg.topic
        )
    finally:
        producer.close()
    return 0


def main() -> None:
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
