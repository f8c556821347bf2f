from __future__ import annotations

from datetime import date
from typing import Iterator, Optional

from bs4 import BeautifulSoup, Tag

from dcgallery.dates import is_date_in_range, is_date_older, normalize_date
from dcgallery.models import PageExtraction, PostRecord

LISTING_SELECTOR = "tbody.listwrap2"
LISTING_ROW_SELECTOR = "tbody.listwrap2 tr"
NOTICE_ROW_CLASS = "ub-notice"
NOTICE_ICON_SELECTOR = "em.icon_img.icon_notice"
UNKNOWN_NICKNAME = "Unknown"


# -------------------------
# Extractors (run against the rendered listing DOM)
# -------------------------

def extract_posts(html: str) -> PageExtraction:
    """Every listing row with an identifiable author."""
    posts = []
    for row in _listing_rows(html):
        writer = row.select_one("td.gall_writer")
        if writer is None:
            continue
        post = _post_from_writer(writer)
        if post is not None:
            posts.append(post)
    return PageExtraction(posts=tuple(posts))


def extract_posts_in_range(
    html: str,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    today: Optional[date] = None,
) -> PageExtraction:
    """
    Listing rows whose date falls inside [start_date, end_date].

    found_older_than_start is set when any row on the page predates
    start_date, including rows dropped from the result.
    """
    posts = []
    found_older = False

    for row in _listing_rows(html):
        date_cell = row.select_one("td.gall_date")
        writer = row.select_one("td.gall_writer")
        if date_cell is None or writer is None:
            continue

        # The title attribute carries the full timestamp, the text only "HH:MM" or "MM.DD".
        raw_date = date_cell.get("title") or date_cell.get_text(strip=True)
        date_key = normalize_date(raw_date, today)
        if not date_key:
            continue

        if is_date_older(date_key, start_date, today):
            found_older = True
        if not is_date_in_range(date_key, start_date, end_date, today):
            continue

        post = _post_from_writer(writer, date_key=date_key)
        if post is not None:
            posts.append(post)

    return PageExtraction(posts=tuple(posts), found_older_than_start=found_older)


# -------------------------
# Helpers
# -------------------------

def _listing_rows(html: str) -> Iterator[Tag]:
    soup = BeautifulSoup(html, "lxml")
    for row in soup.select(LISTING_ROW_SELECTOR):
        if NOTICE_ROW_CLASS in (row.get("class") or []):
            continue
        if row.select_one(NOTICE_ICON_SELECTOR) is not None:
            continue
        yield row


def _post_from_writer(writer: Tag, date_key: Optional[str] = None) -> Optional[PostRecord]:
    user_id = (writer.get("data-uid") or "").strip()
    if not user_id:
        return None

    return PostRecord(
        user_id=user_id,
        display_name=_text_of(writer, ".nickname") or _text_of(writer, ".nick_comm") or UNKNOWN_NICKNAME,
        origin_ip=_text_of(writer, ".ip"),
        date_key=date_key,
    )


def _text_of(parent: Tag, selector: str) -> str:
    el = parent.select_one(selector)
    return el.get_text(strip=True) if el is not None else ""
