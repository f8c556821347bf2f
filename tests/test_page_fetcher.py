from __future__ import annotations

import asyncio

import pytest

from dcgallery.errors import BrowserUnavailableError, TransientPageError
from dcgallery.extractors import extract_posts, extract_posts_in_range
from dcgallery.page_fetcher import FetchConfig, PageFetcher

URL = "https://gall.dcinside.com/mgallery/board/lists/?id=xyz&page=1"


def _fetch(fetcher: PageFetcher, extractor=extract_posts, *args):
    return asyncio.run(fetcher.fetch(URL, extractor, *args))


def test_fetch_returns_extraction_on_first_success(fake_browser_cls, make_listing, no_sleep):
    browser = fake_browser_cls({URL: [make_listing([{"uid": "u1", "nick": "a"}])]})
    result = _fetch(PageFetcher(browser, FetchConfig(), sleep=no_sleep))

    assert [p.user_id for p in result.posts] == ["u1"]
    assert browser.opened == browser.closed == 1
    assert no_sleep.calls == []


def test_server_errors_are_retried_with_backoff(fake_browser_cls, make_listing, no_sleep):
    html = make_listing([{"uid": "u1", "nick": "a"}])
    browser = fake_browser_cls({URL: [503, 500, TransientPageError("net::ERR_TIMED_OUT"), html]})
    result = _fetch(PageFetcher(browser, FetchConfig(), sleep=no_sleep))

    assert [p.user_id for p in result.posts] == ["u1"]
    assert no_sleep.calls == [1.0, 2.0, 4.0]
    assert browser.opened == browser.closed == 4


def test_exhausted_retries_return_none(fake_browser_cls, no_sleep):
    browser = fake_browser_cls({URL: [504]})
    fetcher = PageFetcher(browser, FetchConfig(max_retries=5), sleep=no_sleep)

    assert _fetch(fetcher) is None
    assert _fetch(fetcher, extract_posts_in_range, "2024-01-01", None) is None
    # no sleep after the final attempt
    assert no_sleep.calls == [1.0, 2.0, 4.0, 8.0] * 2
    assert browser.opened == browser.closed == 10


def test_backoff_is_capped():
    fetcher = PageFetcher(None, FetchConfig(backoff_base_sec=1.0, backoff_max_sec=10.0))
    assert [fetcher.compute_backoff(n) for n in range(1, 7)] == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]


def test_listing_wait_timeout_is_tolerated(fake_browser_cls, make_listing, no_sleep):
    browser = fake_browser_cls({URL: [make_listing([{"uid": "u1", "nick": "a"}])]})
    browser.selector_times_out = True
    result = _fetch(PageFetcher(browser, FetchConfig(), sleep=no_sleep))

    assert len(result.posts) == 1
    assert no_sleep.calls == []


def test_non_transient_errors_propagate_and_release_page(fake_browser_cls, no_sleep):
    browser = fake_browser_cls({URL: [BrowserUnavailableError("browser crashed")]})
    fetcher = PageFetcher(browser, FetchConfig(), sleep=no_sleep)

    with pytest.raises(BrowserUnavailableError):
        _fetch(fetcher)
    assert browser.opened == browser.closed == 1
    assert no_sleep.calls == []


def test_open_page_failure_is_retried(fake_browser_cls, no_sleep):
    browser = fake_browser_cls()
    browser.open_error = TransientPageError("target closed")
    fetcher = PageFetcher(browser, FetchConfig(max_retries=2), sleep=no_sleep)

    assert _fetch(fetcher) is None
    assert no_sleep.calls == [1.0]
    assert browser.closed == 0
