from .base import DeleteResult, HealthStatus, StorageBackend, WriteAck
from .filters import TenantScopedFilter
from .memory import InMemoryBackend
from .elastic import ElasticsearchBackend
from .. import config


def build_storage_backend(kind: str = None) -> StorageBackend:
    """Construct the configured backend. The caller owns it and must close it."""
    kind = (kind or config.STORAGE_BACKEND).lower()
    if kind == "memory":
        return InMemoryBackend()
    if kind == "elasticsearch":
        return ElasticsearchBackend(
            url=config.ELASTICSEARCH_URL,
            username=config.ELASTICSEARCH_USERNAME or None,
            password=config.ELASTICSEARCH_PASSWORD or None,
            api_key=config.ELASTICSEARCH_API_KEY or None,
            verify_tls=config.ELASTICSEARCH_VERIFY_TLS,
            timeout=config.STORAGE_TIMEOUT_SEC,
            delete_deadline=config.DELETE_DEADLINE_SEC,
            poll_interval=config.DELETE_POLL_INTERVAL_SEC,
            install_template=config.ELASTICSEARCH_INSTALL_TEMPLATE,
        )
    raise ValueError(f"unknown storage backend: {kind}")


__all__ = [
    "DeleteResult", "HealthStatus", "StorageBackend", "WriteAck", "TenantScopedFilter",
    "InMemoryBackend", "ElasticsearchBackend", "build_storage_backend",
]
