"""
Ingestion pipeline: validate, classify, route and write log events.

Each ``ingest`` call makes at most one storage write and never retries;
retry policy belongs to the caller. Batches always produce one result per
input event, in input order.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .classifier import EventClassifier, event_type_of
from .errors import (
    InactivePlan, InvalidEvent, InvalidTimestamp, LogVaultError, NotFound,
    PartialBatchFailure, UnknownTenant,
)
from .routing import RouteResolver
from .services.prometheus_metrics import prometheus_metrics
from .storage.base import StorageBackend
from .storage.filters import format_timestamp

logger = logging.getLogger("logvault.pipeline")

TIMESTAMP_KEYS = ("@timestamp", "timestamp", "ts", "time")
LEVELS = {"debug", "info", "warn", "error", "fatal"}
LEVEL_ALIASES = {"warning": "warn", "critical": "fatal", "err": "error", "trace": "debug"}
MAX_MESSAGE_LENGTH = 32 * 1024


@dataclass(frozen=True)
class IngestResult:
    accepted: bool
    tenant_id: str
    bucket: Optional[str] = None
    target: Optional[str] = None
    document_id: Optional[str] = None
    error: Optional[str] = None
    detail: Optional[str] = None
    retryable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        if self.accepted:
            return {"status": "accepted", "bucket": self.bucket, "target": self.target,
                    "id": self.document_id}
        return {"status": "rejected", "error": self.error, "detail": self.detail,
                "retryable": self.retryable}


@dataclass
class BatchResult:
    results: List[IngestResult] = field(default_factory=list)

    @property
    def accepted(self) -> int:
        return sum(1 for r in self.results if r.accepted)

    @property
    def rejected(self) -> int:
        return len(self.results) - self.accepted

    @property
    def partial_failure(self) -> bool:
        return self.rejected > 0

    def failures(self) -> List[Tuple[int, IngestResult]]:
        return [(i, r) for i, r in enumerate(self.results) if not r.accepted]

    def raise_for_failures(self) -> None:
        failures = self.failures()
        if failures:
            raise PartialBatchFailure(failures, len(self.results))


def parse_event_time(value: Any) -> datetime:
    """Parse an event timestamp into an aware UTC datetime.

    Accepts ISO-8601 strings, datetimes, and epoch seconds or milliseconds.
    """
    if value is None:
        raise InvalidTimestamp("event timestamp is missing")
    if isinstance(value, bool):
        raise InvalidTimestamp("event timestamp must not be a boolean")
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        seconds = float(value)
        if seconds > 1e11:  # epoch milliseconds
            seconds /= 1000.0
        try:
            dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise InvalidTimestamp(f"event timestamp out of range: {value!r}")
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise InvalidTimestamp(f"unparseable event timestamp: {value!r}")
    else:
        raise InvalidTimestamp(f"unsupported timestamp type: {type(value).__name__}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _event_time_value(raw: Mapping[str, Any]) -> Any:
    for key in TIMESTAMP_KEYS:
        if key in raw:
            return raw[key]
    return None


def _normalize_level(value: Any) -> str:
    if value is None:
        return "info"
    if not isinstance(value, str):
        raise InvalidEvent("level must be a string")
    level = value.strip().lower()
    level = LEVEL_ALIASES.get(level, level)
    if level not in LEVELS:
        raise InvalidEvent(f"unknown severity level: {value!r}")
    return level


class IngestionPipeline:

    def __init__(
        self,
        directory,
        classifier: EventClassifier,
        resolver: RouteResolver,
        storage: StorageBackend,
        max_future_skew: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        write_timeout: Optional[float] = None,
        batch_workers: int = 4,
    ):
        self.directory = directory
        self.classifier = classifier
        self.resolver = resolver
        self.storage = storage
        self.max_future_skew = max_future_skew
        self.clock = clock
        self.write_timeout = write_timeout
        self.batch_workers = max(1, batch_workers)

    def ingest(self, tenant_id: str, raw_event: Mapping[str, Any]) -> IngestResult:
        try:
            result = self._ingest(tenant_id, raw_event)
        except LogVaultError as e:
            prometheus_metrics.increment_events_rejected(e.code)
            logger.warning("Event rejected", extra={
                "component": "pipeline",
                "event": "reject",
                "tenant_id": tenant_id,
                "reason": e.code,
                "detail": e.detail
            })
            return IngestResult(accepted=False, tenant_id=tenant_id, error=e.code,
                                detail=e.detail, retryable=e.retryable)
        except Exception as e:
            prometheus_metrics.increment_events_rejected("internal_error")
            logger.exception("Unexpected error ingesting event", extra={
                "component": "pipeline",
                "event": "error",
                "tenant_id": tenant_id,
                "error": str(e)
            })
            return IngestResult(accepted=False, tenant_id=tenant_id, error="internal_error",
                                detail="internal error")
        prometheus_metrics.increment_events_accepted(result.target)
        return result

    def _ingest(self, tenant_id: str, raw_event: Mapping[str, Any]) -> IngestResult:
        if not tenant_id:
            raise UnknownTenant("tenant id is required")
        try:
            tenant = self.directory.lookup_tenant(tenant_id)
        except NotFound:
            raise UnknownTenant(f"tenant {tenant_id} not found", tenant_id=tenant_id)
        if not tenant.is_active:
            raise InactivePlan(f"plan {tenant.plan_tier} is not active", tenant_id=tenant_id)

        if not isinstance(raw_event, Mapping):
            raise InvalidEvent("event must be a JSON object")

        now = self.clock()
        event_time = parse_event_time(_event_time_value(raw_event))
        if event_time > now + self.max_future_skew:
            raise InvalidTimestamp(f"event timestamp {event_time.isoformat()} is too far in the future")

        level = _normalize_level(raw_event.get("level"))
        message = raw_event.get("message", "")
        if not isinstance(message, str):
            raise InvalidEvent("message must be a string")
        if len(message) > MAX_MESSAGE_LENGTH:
            raise InvalidEvent("message too long")
        metadata = raw_event.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            raise InvalidEvent("metadata must be an object")

        # classify on the level that is stored, not the raw spelling
        bucket = self.classifier.classify({**raw_event, "level": level}, tenant.buckets, tenant.default_bucket)
        target = self.resolver.resolve(tenant.region, tenant.plan_tier)
        if not tenant.route_pinned:
            self.directory.pin_route(tenant_id)

        document = {
            "@timestamp": format_timestamp(event_time),
            "ingestedAt": format_timestamp(now),
            "level": level,
            "message": message,
            "type": event_type_of(raw_event),
            "metadata": dict(metadata),
            "tenantId": tenant.tenant_id,
            "bucket": bucket,
        }
        data = raw_event.get("data")
        if isinstance(data, Mapping):
            document["data"] = dict(data)

        start = time.time()
        try:
            ack = self.storage.write(target.name, document, timeout=self.write_timeout)
        finally:
            prometheus_metrics.observe_storage_write_seconds(time.time() - start)

        return IngestResult(accepted=True, tenant_id=tenant.tenant_id, bucket=bucket,
                            target=target.name, document_id=ack.document_id)

    def ingest_batch(self, items: Sequence[Tuple[str, Mapping[str, Any]]]) -> BatchResult:
        """Ingest ``(tenant_id, event)`` pairs, possibly for many tenants."""
        prometheus_metrics.observe_batch_size(len(items))
        if len(items) <= 1 or self.batch_workers == 1:
            return BatchResult(results=[self.ingest(t, e) for t, e in items])

        # map() preserves input order
        with ThreadPoolExecutor(max_workers=min(self.batch_workers, len(items))) as pool:
            results = list(pool.map(lambda item: self.ingest(item[0], item[1]), items))

        batch = BatchResult(results=results)
        if batch.partial_failure:
            logger.info("Batch completed with rejections", extra={
                "component": "pipeline",
                "event": "partial_batch",
                "accepted": batch.accepted,
                "rejected": batch.rejected
            })
        return batch

    def ingest_for_tenant(self, tenant_id: str, events: Sequence[Mapping[str, Any]]) -> BatchResult:
        return self.ingest_batch([(tenant_id, e) for e in events])
