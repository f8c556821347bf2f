from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

import pytest

from dcgallery.errors import TransientPageError


def listing_html(rows: list[dict[str, Any]]) -> str:
    """
    Build a listing page shaped like the gallery markup.

    Row keys: uid, nick, nick_comm, ip, date (title attribute), date_text,
    notice (row class), notice_icon, no_writer.
    """
    out = []
    for i, r in enumerate(rows, start=1):
        classes = "ub-content us-post" + (" ub-notice" if r.get("notice") else "")
        icon = '<em class="icon_img icon_notice"></em>' if r.get("notice_icon") else ""
        writer = ""
        if not r.get("no_writer"):
            nick = f'<span class="nickname" title="{r["nick"]}"><em>{r["nick"]}</em></span>' if r.get("nick") else ""
            nick_comm = f'<span class="nick_comm">{r["nick_comm"]}</span>' if r.get("nick_comm") else ""
            ip = f'<span class="ip">{r["ip"]}</span>' if r.get("ip") else ""
            writer = (
                f'<td class="gall_writer ub-writer" data-uid="{r.get("uid", "")}">'
                f"{nick}{nick_comm}{ip}</td>"
            )
        date_attr = f' title="{r["date"]}"' if r.get("date") else ""
        date_cell = f'<td class="gall_date"{date_attr}>{r.get("date_text", "")}</td>'
        if r.get("no_date"):
            date_cell = ""
        out.append(
            f'<tr class="{classes}" data-no="{1000 - i}">'
            f'<td class="gall_num">{1000 - i}</td>'
            f'<td class="gall_tit ub_word"><a href="#">{icon}title {i}</a></td>'
            f"{writer}{date_cell}</tr>"
        )
    return (
        '<html><body><table class="gall_list"><tbody class="listwrap2">'
        + "".join(out)
        + "</tbody></table></body></html>"
    )


class FakePage:
    def __init__(self, browser: "FakeBrowser"):
        self.browser = browser
        self.configured = False
        self._html = ""

    async def configure_for_scraping(self) -> None:
        self.configured = True

    async def navigate(self, url: str, timeout_sec: float) -> Optional[int]:
        self.browser.navigations.append(url)
        self.browser.in_flight += 1
        self.browser.max_in_flight = max(self.browser.max_in_flight, self.browser.in_flight)
        try:
            await asyncio.sleep(self.browser.delays.get(url, 0))
        finally:
            self.browser.in_flight -= 1

        outcome = self.browser.next_outcome(url)
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, int):
            return outcome
        self._html = outcome
        return 200

    async def wait_for_selector(self, selector: str, timeout_sec: float) -> None:
        if self.browser.selector_times_out:
            raise TransientPageError(f"Timeout waiting for {selector}")

    async def evaluate(self, extractor: Callable[..., Any], *args: Any) -> Any:
        return extractor(self._html, *args)

    async def close(self) -> None:
        self.browser.closed += 1


class FakeBrowser:
    """
    Scripted browser. `scripts` maps a page URL to per-attempt outcomes:
    html (str), an HTTP status (int) or an exception. The last outcome
    repeats; unknown URLs serve `default_html`.
    """

    def __init__(self, scripts: Optional[dict[str, list[Any]]] = None, default_html: str = ""):
        self.scripts = {k: list(v) for k, v in (scripts or {}).items()}
        self.default_html = default_html or listing_html([])
        self.navigations: list[str] = []
        self.opened = 0
        self.closed = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.selector_times_out = False
        self.delays: dict[str, float] = {}
        self.open_error: Optional[BaseException] = None

    async def open_page(self) -> FakePage:
        if self.open_error is not None:
            raise self.open_error
        self.opened += 1
        return FakePage(self)

    def next_outcome(self, url: str) -> Any:
        script = self.scripts.get(url)
        if not script:
            return self.default_html
        if len(script) > 1:
            return script.pop(0)
        return script[0]


class RecordingSink:
    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    def send(self, event: str, payload) -> None:
        self.events.append((event, dict(payload)))

    def names(self) -> list[str]:
        return [e for e, _ in self.events]


class RecordingSleep:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def make_listing():
    return listing_html


@pytest.fixture
def fake_browser_cls():
    return FakeBrowser


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def no_sleep():
    return RecordingSleep()
