"""
Engine assembly: wires the catalog, directory, classifier, resolver, storage
client and lifecycle services together.

Nothing here is module-global; the HTTP app and the CLI each build their own
``Engine`` and close it when done.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import sessionmaker

from . import config
from .classifier import EventClassifier, load_rules
from .db import create_session_factory, init_db
from .directory import CachedTenantDirectory, SqlTenantDirectory
from .lifecycle import PurgeExecutor, PurgeTokenIssuer, RetentionEnforcer, TenantLocks
from .pipeline import IngestionPipeline
from .routing import RouteResolver
from .services.cache import MetadataCache
from .services.catalog import CatalogService
from .storage import StorageBackend, build_storage_backend

logger = logging.getLogger("logvault")


@dataclass
class Engine:
    session_factory: sessionmaker
    catalog: CatalogService
    directory: CachedTenantDirectory
    classifier: EventClassifier
    resolver: RouteResolver
    storage: StorageBackend
    pipeline: IngestionPipeline
    enforcer: RetentionEnforcer
    purger: PurgeExecutor

    def close(self) -> None:
        self.storage.close()
        engine = self.session_factory.kw.get("bind")
        if engine is not None:
            engine.dispose()
        logger.info("Engine closed", extra={"component": "engine"})


def build_engine(
    database_url: Optional[str] = None,
    storage: Optional[StorageBackend] = None,
    seed: Optional[bool] = None,
    cache_ttl: Optional[int] = None,
    redis_url: Optional[str] = None,
    purge_secret: Optional[str] = None,
) -> Engine:
    """Build an engine from ``config``; keyword arguments override it."""
    session_factory = create_session_factory(database_url or config.DATABASE_URL)
    init_db(session_factory)

    resolver = RouteResolver(config.KNOWN_REGIONS, config.KNOWN_TIERS)
    catalog = CatalogService(session_factory, resolver=resolver)
    if config.SEED_CATALOG if seed is None else seed:
        catalog.seed_defaults()

    cache = MetadataCache(
        ttl=config.METADATA_CACHE_TTL_SEC if cache_ttl is None else cache_ttl,
        redis_url=redis_url if redis_url is not None else config.REDIS_URL,
    )
    directory = CachedTenantDirectory(SqlTenantDirectory(session_factory), cache)

    rules = load_rules(config.CLASSIFIER_RULES_FILE) if config.CLASSIFIER_RULES_FILE else None
    classifier = EventClassifier(rules=rules, global_default=config.DEFAULT_BUCKET or None,
                                 implicit_bucket=config.IMPLICIT_BUCKET)

    storage = storage if storage is not None else build_storage_backend()

    pipeline = IngestionPipeline(
        directory=directory,
        classifier=classifier,
        resolver=resolver,
        storage=storage,
        max_future_skew=timedelta(seconds=config.MAX_FUTURE_SKEW_SEC),
        write_timeout=config.STORAGE_TIMEOUT_SEC,
        batch_workers=config.INGEST_BATCH_WORKERS,
    )

    locks = TenantLocks(timeout=config.LIFECYCLE_LOCK_TIMEOUT_SEC)
    enforcer = RetentionEnforcer(directory, resolver, storage, locks,
                                 delete_deadline=config.DELETE_DEADLINE_SEC)
    tokens = PurgeTokenIssuer(purge_secret or config.PURGE_TOKEN_SECRET, ttl_seconds=config.PURGE_TOKEN_TTL_SEC)
    purger = PurgeExecutor(directory, resolver, storage, locks, tokens,
                           delete_deadline=config.DELETE_DEADLINE_SEC)

    logger.info("Engine ready", extra={
        "component": "engine",
        "storage": type(storage).__name__,
        "regions": list(resolver.regions),
        "tiers": list(resolver.tiers),
        "custom_rules": rules is not None
    })
    return Engine(
        session_factory=session_factory,
        catalog=catalog,
        directory=directory,
        classifier=classifier,
        resolver=resolver,
        storage=storage,
        pipeline=pipeline,
        enforcer=enforcer,
        purger=purger,
    )
