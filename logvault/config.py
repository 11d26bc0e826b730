"""
Configuration module for LogVault
"""

# Application configuration
import os
import secrets
from pathlib import Path


def env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable"""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


def env_list(key: str, default: str) -> list:
    """Get a comma-separated list from an environment variable"""
    return [p.strip() for p in os.getenv(key, default).split(",") if p.strip()]


def _read_version_from_repo(default: str = "dev") -> str:
    try:
        # repo root: logvault/.. (two parents up)
        version_file = Path(__file__).resolve().parents[1] / "VERSION"
        v = version_file.read_text(encoding="utf-8").strip()
        if v:
            return v
    except OSError:
        pass
    return os.getenv("APP_VERSION", default)


API_VERSION = _read_version_from_repo()
API_PREFIX = "/v1"

# Catalog database
sqlite_path = os.getenv("SQLITE_PATH", "./logvault.db")
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{sqlite_path}")
SEED_CATALOG = env_bool("SEED_CATALOG", True)

# Storage backend
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "elasticsearch").lower()
ELASTICSEARCH_HOST = os.getenv("ELASTICSEARCH_HOST", "localhost")
ELASTICSEARCH_PORT = os.getenv("ELASTICSEARCH_PORT", "9200")
ELASTICSEARCH_URL = os.getenv("ELASTICSEARCH_URL", f"http://{ELASTICSEARCH_HOST}:{ELASTICSEARCH_PORT}")
ELASTICSEARCH_USERNAME = os.getenv("ELASTICSEARCH_USERNAME", "")
ELASTICSEARCH_PASSWORD = os.getenv("ELASTICSEARCH_PASSWORD", "")
ELASTICSEARCH_API_KEY = os.getenv("ELASTICSEARCH_API_KEY", "")
ELASTICSEARCH_VERIFY_TLS = env_bool("ELASTICSEARCH_VERIFY_TLS", True)
ELASTICSEARCH_INSTALL_TEMPLATE = env_bool("ELASTICSEARCH_INSTALL_TEMPLATE", True)
STORAGE_TIMEOUT_SEC = float(os.getenv("STORAGE_TIMEOUT_SEC", "10"))
DELETE_DEADLINE_SEC = float(os.getenv("DELETE_DEADLINE_SEC", "60"))
DELETE_POLL_INTERVAL_SEC = float(os.getenv("DELETE_POLL_INTERVAL_SEC", "0.5"))

# Routing
KNOWN_REGIONS = env_list("KNOWN_REGIONS", "eu1,us1")
KNOWN_TIERS = env_list("KNOWN_TIERS", "free,pro,enterprise")

# Ingestion
MAX_FUTURE_SKEW_SEC = int(os.getenv("MAX_FUTURE_SKEW_SEC", "300"))
MAX_RECORDS_PER_BATCH = int(os.getenv("MAX_RECORDS_PER_BATCH", "10000"))
MAX_COMPRESSED_SIZE_BYTES = int(os.getenv("MAX_COMPRESSED_SIZE_BYTES", str(5 * 1024 * 1024)))
INGEST_BATCH_WORKERS = int(os.getenv("INGEST_BATCH_WORKERS", "4"))

# Classification
CLASSIFIER_RULES_FILE = os.getenv("CLASSIFIER_RULES_FILE", "")
DEFAULT_BUCKET = os.getenv("DEFAULT_BUCKET", "General")
IMPLICIT_BUCKET = os.getenv("IMPLICIT_BUCKET", "default")

# Metadata cache
METADATA_CACHE_TTL_SEC = int(os.getenv("METADATA_CACHE_TTL_SEC", "30"))
REDIS_URL = os.getenv("REDIS_URL")

# Lifecycle
PURGE_TOKEN_SECRET = os.getenv("PURGE_TOKEN_SECRET") or secrets.token_hex(32)
PURGE_TOKEN_TTL_SEC = int(os.getenv("PURGE_TOKEN_TTL_SEC", "300"))
LIFECYCLE_LOCK_TIMEOUT_SEC = float(os.getenv("LIFECYCLE_LOCK_TIMEOUT_SEC", "30"))

# Logging configuration
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json")
HTTP_LOG_SAMPLE_RATE = float(os.getenv("HTTP_LOG_SAMPLE_RATE", "1.0"))
HTTP_LOG_EXCLUDE_PATHS = set(env_list("HTTP_LOG_EXCLUDE_PATHS", "/v1/health,/v1/metrics/prometheus"))
