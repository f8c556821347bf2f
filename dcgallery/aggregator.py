from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Mapping

from dcgallery.models import CrawlOutcome, PostRecord, UserAggregate


def merge_posts(
    aggregates: Mapping[str, UserAggregate],
    posts: Iterable[PostRecord],
) -> dict[str, UserAggregate]:
    """
    Fold posts into a per-user tally and return the new mapping.

    The first post seen for a user fixes its display name and ip; later
    posts only bump the count. Insertion order is first appearance.
    """
    out = dict(aggregates)
    for post in posts:
        current = out.get(post.user_id)
        if current is None:
            out[post.user_id] = UserAggregate(
                user_id=post.user_id,
                display_name=post.display_name,
                origin_ip=post.origin_ip,
                count=1,
            )
        else:
            out[post.user_id] = replace(current, count=current.count + 1)
    return out


def merge_aggregates(
    left: Mapping[str, UserAggregate],
    right: Mapping[str, UserAggregate],
) -> dict[str, UserAggregate]:
    out = dict(left)
    for user_id, agg in right.items():
        current = out.get(user_id)
        out[user_id] = agg if current is None else replace(current, count=current.count + agg.count)
    return out


def add_page(outcome: CrawlOutcome, posts: Iterable[PostRecord]) -> CrawlOutcome:
    posts = tuple(posts)
    return replace(
        outcome,
        user_aggregates=merge_posts(outcome.user_aggregates, posts),
        total_posts=outcome.total_posts + len(posts),
        pages_scraped=outcome.pages_scraped + 1,
    )


def add_failed_page(outcome: CrawlOutcome) -> CrawlOutcome:
    return replace(
        outcome,
        pages_scraped=outcome.pages_scraped + 1,
        pages_failed=outcome.pages_failed + 1,
    )
