from __future__ import annotations

from dcgallery.aggregator import add_failed_page, add_page, merge_aggregates, merge_posts
from dcgallery.models import CrawlOutcome, PostRecord


def _post(uid: str, nick: str = "nick") -> PostRecord:
    return PostRecord(user_id=uid, display_name=nick, origin_ip="")


def _counts(aggregates) -> dict[str, int]:
    return {uid: a.count for uid, a in aggregates.items()}


def test_two_pages_from_same_user_aggregate_to_count_two():
    outcome = add_page(CrawlOutcome(), [_post("u1")])
    outcome = add_page(outcome, [_post("u1")])

    assert _counts(outcome.user_aggregates) == {"u1": 2}
    assert len(outcome.user_aggregates) == 1
    assert outcome.total_posts == 2
    assert outcome.pages_scraped == 2


def test_first_sighting_fixes_display_name_and_order():
    agg = merge_posts({}, [_post("u2", "first"), _post("u1", "x"), _post("u2", "second")])
    assert list(agg) == ["u2", "u1"]
    assert agg["u2"].display_name == "first"
    assert agg["u2"].count == 2


def test_merge_posts_does_not_mutate_input():
    base = merge_posts({}, [_post("u1")])
    merge_posts(base, [_post("u1")])
    assert base["u1"].count == 1


def test_aggregation_is_independent_of_page_grouping():
    a = [_post("u1"), _post("u2")]
    b = [_post("u2"), _post("u3")]
    c = [_post("u1"), _post("u1")]

    ab_then_c = merge_posts(merge_posts(merge_posts({}, a), b), c)
    c_then_ab = merge_posts(merge_posts(merge_posts({}, c), a), b)
    partitioned = merge_aggregates(merge_posts(merge_posts({}, a), b), merge_posts({}, c))

    assert _counts(ab_then_c) == _counts(c_then_ab) == _counts(partitioned) == {"u1": 3, "u2": 2, "u3": 1}


def test_failed_page_counts_as_visited_but_adds_no_posts():
    outcome = add_failed_page(add_page(CrawlOutcome(), [_post("u1")]))
    assert outcome.pages_scraped == 2
    assert outcome.pages_failed == 1
    assert outcome.total_posts == 1
