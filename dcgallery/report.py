from __future__ import annotations

from typing import Any, Optional

from dcgallery.models import CrawlOutcome, GalleryDescriptor, ScrapeReport, UserAggregate


def sort_user_stats(outcome: CrawlOutcome) -> tuple[UserAggregate, ...]:
    # sorted() is stable with reverse=True: ties keep first-appearance order.
    return tuple(sorted(outcome.user_aggregates.values(), key=lambda a: a.count, reverse=True))


def build_report(
    descriptor: GalleryDescriptor,
    outcome: CrawlOutcome,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> ScrapeReport:
    """
    Assemble the final report.

    - Does not mutate the outcome
    - user_stats ordered by post count, highest first
    """
    user_stats = sort_user_stats(outcome)
    return ScrapeReport(
        gallery_id=descriptor.gallery_id or "",
        gallery_type=descriptor.variant,
        url=descriptor.source_url,
        pages_scraped=outcome.pages_scraped,
        start_date=start_date or None,
        end_date=end_date or None,
        total_posts=outcome.total_posts,
        unique_users=len(user_stats),
        user_stats=user_stats,
        pages_failed=outcome.pages_failed,
        cancelled=outcome.cancelled,
    )


def report_to_payload(report: ScrapeReport) -> dict[str, Any]:
    """JSON-ready representation used for stdout and Kafka."""
    return {
        "success": True,
        "type": "dcgallery",
        "gallery_id": report.gallery_id,
        "gallery_type": report.gallery_type.value,
        "url": report.url,
        "pages_scraped": report.pages_scraped,
        "pages_failed": report.pages_failed,
        "cancelled": report.cancelled,
        "start_date": report.start_date,
        "end_date": report.end_date,
        "total_posts": report.total_posts,
        "unique_users": report.unique_users,
        "user_stats": [
            {
                "uid": u.user_id,
                "nickname": u.display_name,
                "ip": u.origin_ip,
                "count": u.count,
            }
            for u in report.user_stats
        ],
    }
