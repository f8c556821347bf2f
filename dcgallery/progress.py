from __future__ import annotations

import logging
from typing import Any, Literal, Mapping, Protocol

logger = logging.getLogger(__name__)

ProgressEvent = Literal["start", "progress", "pageComplete", "warning", "info", "error", "complete"]


class ProgressSink(Protocol):
    def send(self, event: ProgressEvent, payload: Mapping[str, Any]) -> None: ...


class NullProgressSink:
    def send(self, event: ProgressEvent, payload: Mapping[str, Any]) -> None:
        pass


class LoggingProgressSink:
    """Writes progress events to the log. `complete` is summarized, not dumped."""

    def send(self, event: ProgressEvent, payload: Mapping[str, Any]) -> None:
        if event == "complete":
            logger.info(
                "complete: pages=%s posts=%s users=%s",
                payload.get("pages_scraped"),
                payload.get("total_posts"),
                payload.get("unique_users"),
            )
        elif event in ("warning", "error"):
            logger.warning("%s: %s", event, payload.get("message"))
        elif event == "progress":
            logger.debug("%s: %s", event, dict(payload))
        else:
            logger.info("%s: %s", event, dict(payload))
