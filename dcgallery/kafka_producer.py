from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from kafka import KafkaProducer
from kafka.errors import KafkaError

from dcgallery.models import ScrapeReport
from dcgallery.progress import ProgressEvent
from dcgallery.report import report_to_payload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KafkaProducerConfig:
    """
    Kafka settings for publishing scrape reports and progress events.

    Environment variables:
      - KAFKA_BOOTSTRAP_SERVERS: "host1:9092,host2:9092"
      - KAFKA_TOPIC: "dcgallery.user-stats"
      - KAFKA_PROGRESS_TOPIC: optional, defaults to KAFKA_TOPIC
      - KAFKA_CLIENT_ID: optional
      - KAFKA_ACKS: "all" | "1" | "0" (default: "all")
      - KAFKA_COMPRESSION_TYPE: "gzip" | "snappy" | "lz4" | "zstd" | "" (default: "gzip")
      - KAFKA_SECURITY_PROTOCOL, KAFKA_SASL_MECHANISM, KAFKA_SASL_USERNAME, KAFKA_SASL_PASSWORD
    """

    bootstrap_servers: str
    topic: str
    progress_topic: Optional[str] = None
    client_id: str = "dcgallery-stats-producer"
    acks: str = "all"
    compression_type: Optional[str] = "gzip"

    security_protocol: str = "PLAINTEXT"
    sasl_mechanism: Optional[str] = None
    sasl_plain_username: Optional[str] = None
    sasl_plain_password: Optional[str] = None

    @staticmethod
    def from_env() -> "KafkaProducerConfig":
        bootstrap = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "").strip()
        topic = os.getenv("KAFKA_TOPIC", "").strip()
        if not bootstrap or not topic:
            raise ValueError(
                "Missing Kafka env vars. Required: KAFKA_BOOTSTRAP_SERVERS, KAFKA_TOPIC"
            )

        return KafkaProducerConfig(
            bootstrap_servers=bootstrap,
            topic=topic,
            progress_topic=os.getenv("KAFKA_PROGRESS_TOPIC", "").strip() or None,
            client_id=os.getenv("KAFKA_CLIENT_ID", "").strip() or "dcgallery-stats-producer",
            acks=os.getenv("KAFKA_ACKS", "all").strip() or "all",
            compression_type=os.getenv("KAFKA_COMPRESSION_TYPE", "gzip").strip() or None,
            security_protocol=os.getenv("KAFKA_SECURITY_PROTOCOL", "PLAINTEXT").strip() or "PLAINTEXT",
            sasl_mechanism=os.getenv("KAFKA_SASL_MECHANISM", "").strip() or None,
            sasl_plain_username=os.getenv("KAFKA_SASL_USERNAME", "").strip() or None,
            sasl_plain_password=os.getenv("KAFKA_SASL_PASSWORD", "").strip() or None,
        )


class GalleryKafkaProducer:
    """
    kafka-python producer for gallery statistics.

    - Report key: "dcgallery:<gallery_id>" so reruns for a gallery land on one partition
    - Value: JSON (UTF-8)
    """

    def __init__(self, cfg: KafkaProducerConfig, producer: Optional[KafkaProducer] = None):
        self.cfg = cfg
        self._producer = producer or self._build_producer(cfg)

    def close(self) -> None:
        try:
            self._producer.flush(timeout=30)
        finally:
            self._producer.close(timeout=30)

    def send_report(self, report: ScrapeReport) -> None:
        """Publish a report and wait for the broker ack. Delivery errors raise."""
        key = f"dcgallery:{report.gallery_id}"
        payload = report_to_payload(report)
        payload["published_at"] = datetime.now(timezone.utc).isoformat()

        future = self._producer.send(self.cfg.topic, key=key.encode("utf-8"), value=payload)
        try:
            metadata = future.get(timeout=30)
        except KafkaError as e:
            logger.error("Kafka produce failed: key=%s err=%s", key, e)
            raise
        logger.info(
            "Produced report: topic=%s partition=%s offset=%s key=%s",
            metadata.topic, metadata.partition, metadata.offset, key
        )

    def send_event(self, gallery_id: Optional[str], event: str, payload: Mapping[str, Any]) -> None:
        # Fire and forget; flushed on close().
        topic = self.cfg.progress_topic or self.cfg.topic
        key = f"dcgallery:{gallery_id or '-'}:progress"
        self._producer.send(
            topic,
            key=key.encode("utf-8"),
            value={"event": event, "data": dict(payload)},
        )

    def _build_producer(self, cfg: KafkaProducerConfig) -> KafkaProducer:
        kwargs: dict[str, Any] = {
            "bootstrap_servers": [s.strip() for s in cfg.bootstrap_servers.split(",") if s.strip()],
            "client_id": cfg.client_id,
            "acks": cfg.acks,
            "compression_type": cfg.compression_type,
            "key_serializer": lambda k: k,  # already bytes
            "value_serializer": lambda v: json.dumps(v, ensure_ascii=False).encode("utf-8"),
        }

        sec = cfg.security_protocol.upper()
        kwargs["security_protocol"] = sec
        if sec in ("SASL_PLAINTEXT", "SASL_SSL"):
            if not (cfg.sasl_mechanism and cfg.sasl_plain_username and cfg.sasl_plain_password):
                raise ValueError(
                    "SASL selected but missing one of: KAFKA_SASL_MECHANISM, KAFKA_SASL_USERNAME, KAFKA_SASL_PASSWORD"
                )
            kwargs["sasl_mechanism"] = cfg.sasl_mechanism
            kwargs["sasl_plain_username"] = cfg.sasl_plain_username
            kwargs["sasl_plain_password"] = cfg.sasl_plain_password

        logger.info(
            "Kafka producer ready: bootstrap=%s topic=%s security=%s client_id=%s",
            cfg.bootstrap_servers, cfg.topic, sec, cfg.client_id
        )
        return KafkaProducer(**kwargs)


class KafkaProgressSink:
    """Progress sink forwarding crawl events to Kafka. `complete` is left to send_report()."""

    def __init__(self, producer: GalleryKafkaProducer):
        self._producer = producer
        self._gallery_id: Optional[str] = None

    def send(self, event: ProgressEvent, payload: Mapping[str, Any]) -> None:
        if event == "start":
            self._gallery_id = payload.get("gallery_id")
        if event == "complete":
            return
        try:
            self._producer.send_event(self._gallery_id, event, payload)
        except KafkaError as e:
            # Progress is best effort; the final report is what must arrive.
            logger.warning("Dropping progress event: event=%s err=%s", event, e)
