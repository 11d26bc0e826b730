"""
Prometheus metrics for LogVault
"""

from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST
import os

# Build info
BUILD_INFO = Gauge(
    'logvault_build_info',
    'Build information',
    ['version', 'image', 'image_tag']
)

# Request counters
REQUESTS_TOTAL = Counter(
    'logvault_requests_total',
    'Total number of requests',
    ['status_class']
)

# Ingestion
EVENTS_ACCEPTED_TOTAL = Counter(
    'logvault_events_accepted_total',
    'Total number of events written to storage',
    ['target']
)

EVENTS_REJECTED_TOTAL = Counter(
    'logvault_events_rejected_total',
    'Total number of events rejected by the pipeline',
    ['reason']
)

INGEST_BATCH_SIZE = Histogram(
    'logvault_ingest_batch_size',
    'Events per ingest batch',
    buckets=[1, 10, 50, 100, 500, 1000, 5000, 10000]
)

INGEST_REQUESTS_REJECTED_TOTAL = Counter(
    'logvault_ingest_requests_rejected_total',
    'Ingest requests rejected before processing',
    ['reason']
)

STORAGE_WRITE_SECONDS = Histogram(
    'logvault_storage_write_seconds',
    'Storage write latency in seconds',
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10]
)

# Lifecycle
RETENTION_DELETED_TOTAL = Counter(
    'logvault_retention_deleted_total',
    'Events deleted by retention enforcement'
)

RETENTION_RUNS_TOTAL = Counter(
    'logvault_retention_runs_total',
    'Retention enforcement runs',
    ['outcome']
)

PURGE_RUNS_TOTAL = Counter(
    'logvault_purge_runs_total',
    'Tenant purge runs',
    ['outcome']
)

PURGE_DELETED_TOTAL = Counter(
    'logvault_purge_deleted_total',
    'Events deleted by tenant purges'
)

LIFECYCLE_LOCK_WAIT_SECONDS = Histogram(
    'logvault_lifecycle_lock_wait_seconds',
    'Time spent waiting for the per-tenant lifecycle lock',
    buckets=[0.001, 0.01, 0.1, 0.5, 1, 5, 10, 30]
)


class PrometheusMetrics:
    """Service for managing Prometheus metrics."""

    def __init__(self):
        self._setup_build_info()

    def _setup_build_info(self):
        """Set up build information gauge."""
        version = os.getenv("APP_VERSION", "0.1.0")
        image = os.getenv("IMAGE", "logvault")
        image_tag = os.getenv("IMAGE_TAG", "latest")

        BUILD_INFO.labels(
            version=version,
            image=image,
            image_tag=image_tag
        ).set(1)

    def increment_requests(self, status_code: int):
        """Increment request counter."""
        if 200 <= status_code < 300:
            status_class = "2xx"
        elif 400 <= status_code < 500:
            status_class = "4xx"
        elif 500 <= status_code < 600:
            status_class = "5xx"
        else:
            status_class = "other"
        REQUESTS_TOTAL.labels(status_class=status_class).inc()

    def increment_events_accepted(self, target: str, count: int = 1):
        EVENTS_ACCEPTED_TOTAL.labels(target=target or "unknown").inc(count)

    def increment_events_rejected(self, reason: str, count: int = 1):
        EVENTS_REJECTED_TOTAL.labels(reason=reason).inc(count)

    def increment_ingest_request_reject(self, reason: str, count: int = 1):
        INGEST_REQUESTS_REJECTED_TOTAL.labels(reason=reason).inc(count)

    def observe_batch_size(self, count: int):
        INGEST_BATCH_SIZE.observe(count)

    def observe_storage_write_seconds(self, seconds: float):
        STORAGE_WRITE_SECONDS.observe(seconds)

    def record_retention_run(self, outcome: str, deleted: int = 0):
        RETENTION_RUNS_TOTAL.labels(outcome=outcome).inc()
        if deleted:
            RETENTION_DELETED_TOTAL.inc(deleted)

    def record_purge_run(self, outcome: str, deleted: int = 0):
        PURGE_RUNS_TOTAL.labels(outcome=outcome).inc()
        if deleted:
            PURGE_DELETED_TOTAL.inc(deleted)

    def observe_lock_wait(self, seconds: float):
        LIFECYCLE_LOCK_WAIT_SECONDS.observe(seconds)

    def get_metrics(self) -> bytes:
        """Get Prometheus metrics in text format."""
        return generate_latest()

    def get_content_type(self) -> str:
        """Get the content type for Prometheus metrics."""
        return CONTENT_TYPE_LATEST


# Global metrics instance
prometheus_metrics = PrometheusMetrics()
