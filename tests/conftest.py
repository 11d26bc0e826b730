# tests/conftest.py
from datetime import datetime, timedelta, timezone

import pytest

from logvault.db import create_session_factory, init_db
from logvault.engine import build_engine
from logvault.routing import RouteResolver
from logvault.services.catalog import CatalogService
from logvault.storage.memory import InMemoryBackend

REGIONS = ["eu1", "us1"]
TIERS = ["free", "pro", "enterprise"]


def days_ago(days: float) -> str:
    ts = datetime.now(timezone.utc) - timedelta(days=days)
    return ts.isoformat().replace("+00:00", "Z")


@pytest.fixture
def resolver():
    return RouteResolver(REGIONS, TIERS)


@pytest.fixture
def session_factory(tmp_path):
    factory = create_session_factory(f"sqlite:///{tmp_path / 'catalog.db'}")
    init_db(factory)
    yield factory
    factory.kw["bind"].dispose()


@pytest.fixture
def catalog(session_factory, resolver):
    service = CatalogService(session_factory, resolver=resolver)
    service.seed_defaults()
    return service


@pytest.fixture
def storage():
    return InMemoryBackend()


@pytest.fixture
def engine(tmp_path, storage):
    """Fully wired engine on a temp SQLite catalog and in-memory storage, cache disabled."""
    eng = build_engine(
        database_url=f"sqlite:///{tmp_path / 'engine.db'}",
        storage=storage,
        seed=True,
        cache_ttl=0,
        redis_url="",
        purge_secret="test-purge-secret",
    )
    yield eng
    eng.close()


@pytest.fixture
def t1(engine):
    """Tenant t1 in eu1 on the pro plan (30 day retention) with the default buckets."""
    return engine.catalog.create_tenant("Tenant One", plan="pro", region="eu1", tenant_id="t1")


@pytest.fixture
def t2(engine):
    return engine.catalog.create_tenant("Tenant Two", plan="pro", region="eu1", tenant_id="t2")


@pytest.fixture
def app(engine):
    from logvault.main import create_app
    application = create_app()
    application.state.engine = engine
    return application


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_headers(engine, t1):
    key = engine.catalog.create_api_key(t1, ["admin"], name="admin")
    return {"Authorization": f"Bearer {key.api_key}"}


@pytest.fixture
def writer_headers(engine, t1):
    key = engine.catalog.create_api_key(t1, ["logs:write"], name="writer")
    return {"X-API-Key": key.api_key}
