"""
Tests for the catalog service and the tenant directory
"""
import pytest

from logvault.directory import CachedTenantDirectory, SqlTenantDirectory, TenantRecord
from logvault.errors import NotFound, RouteLocked
from logvault.services.cache import MetadataCache
from logvault.services.catalog import DEFAULT_BUCKET_TEMPLATES


class TestSeedAndTenants:

    def test_seed_is_idempotent(self, catalog):
        again = catalog.seed_defaults()
        assert again == {"plans": 0, "hosts": 0, "bucket_templates": 0}

    def test_create_tenant_copies_bucket_templates(self, catalog, session_factory):
        tid = catalog.create_tenant("Server", plan="pro", region="eu1")
        assert tid.startswith("srv_")

        record = SqlTenantDirectory(session_factory).lookup_tenant(tid)
        assert record.region == "eu1"
        assert record.plan_tier == "pro"
        assert record.retention_days == 30
        assert record.is_active
        assert list(record.bucket_names) == [b["name"] for b in DEFAULT_BUCKET_TEMPLATES]

    def test_economy_template_accepts_transactions(self, catalog, session_factory):
        tid = catalog.create_tenant("Server", plan="pro", region="eu1")
        record = SqlTenantDirectory(session_factory).lookup_tenant(tid)
        economy = next(b for b in record.buckets if b.name == "Economy")
        assert economy.accepts == frozenset({"transaction"})

    def test_explicit_buckets_with_accepts(self, catalog, session_factory):
        tid = catalog.create_tenant("Shop", plan="free", region="us1",
                                    buckets=["General", {"name": "Payments", "accepts": ["transaction"]}])
        record = SqlTenantDirectory(session_factory).lookup_tenant(tid)
        assert record.bucket_names == ("General", "Payments")
        assert record.buckets[1].accepts == frozenset({"transaction"})

    def test_unknown_plan_or_region(self, catalog):
        with pytest.raises(NotFound):
            catalog.create_tenant("X", plan="platinum", region="eu1")
        with pytest.raises(NotFound):
            catalog.create_tenant("X", plan="pro", region="ap9")

    def test_active_plan_needs_window(self, catalog):
        with pytest.raises(ValueError):
            catalog.create_plan("broken", retention_days=0)

    def test_list_tenants_reports_storage_target(self, catalog):
        catalog.create_tenant("A", plan="pro", region="eu1", tenant_id="a")
        catalog.create_tenant("B", plan="enterprise", region="us1", tenant_id="b")
        listing = {t.tenant_id: t for t in catalog.list_tenants()}
        assert listing["a"].storage_target == "eu1-logs-pro"
        assert listing["b"].storage_target == "us1-logs-enterprise"
        assert listing["b"].retention_days == 90
        assert catalog.tenant_ids() == ["a", "b"]

    def test_list_tenants_with_unroutable_plan(self, catalog):
        catalog.create_plan("custom", retention_days=14)
        catalog.create_tenant("C", plan="custom", region="eu1", tenant_id="c")
        listing = {t.tenant_id: t for t in catalog.list_tenants()}
        assert listing["c"].storage_target is None


class TestRoutePinning:

    def test_unpinned_tenant_can_change_plan(self, catalog, session_factory):
        tid = catalog.create_tenant("A", plan="pro", region="eu1")
        catalog.change_plan(tid, "enterprise")
        assert SqlTenantDirectory(session_factory).lookup_tenant(tid).plan_tier == "enterprise"

    def test_pinned_tenant_needs_migration(self, catalog, session_factory):
        directory = SqlTenantDirectory(session_factory)
        tid = catalog.create_tenant("A", plan="pro", region="eu1")
        directory.pin_route(tid)

        with pytest.raises(RouteLocked):
            catalog.change_plan(tid, "enterprise")
        with pytest.raises(RouteLocked):
            catalog.change_region(tid, "us1")

        catalog.change_region(tid, "us1", migrate=True)
        record = directory.lookup_tenant(tid)
        assert record.region == "us1"
        assert not record.route_pinned


class TestApiKeys:

    def test_only_hash_is_stored(self, catalog, session_factory):
        from logvault.db import session_scope
        from logvault.models import ApiKey

        tid = catalog.create_tenant("A", plan="pro", region="eu1")
        issued = catalog.create_api_key(tid, ["logs:write", "logs:read"])
        assert issued.api_key.startswith("vk_")

        with session_scope(session_factory) as db:
            row = db.get(ApiKey, issued.key_id)
            assert row.hash != issued.api_key

        principal = catalog.authenticate_key(issued.api_key)
        assert principal.tenant_id == tid
        assert principal.scopes == ["logs:read", "logs:write"]

    def test_disabled_key(self, catalog):
        tid = catalog.create_tenant("A", plan="pro", region="eu1")
        issued = catalog.create_api_key(tid, ["admin"])
        catalog.disable_api_key(issued.key_id)
        assert catalog.authenticate_key(issued.api_key) is None

    def test_invalid_scope(self, catalog):
        tid = catalog.create_tenant("A", plan="pro", region="eu1")
        with pytest.raises(ValueError):
            catalog.create_api_key(tid, ["everything"])

    def test_unknown_token(self, catalog):
        assert catalog.authenticate_key("vk_nope") is None
        assert catalog.authenticate_key("") is None


class TestCachedDirectory:

    def test_cached_lookup_is_served_until_ttl(self, catalog, session_factory):
        tid = catalog.create_tenant("A", plan="pro", region="eu1")
        directory = CachedTenantDirectory(SqlTenantDirectory(session_factory), MetadataCache(ttl=300))

        assert directory.lookup_tenant(tid).retention_days == 30
        catalog.set_plan_retention("pro", 10)

        assert directory.lookup_tenant(tid).retention_days == 30
        assert directory.lookup_tenant(tid, fresh=True).retention_days == 10

    def test_pin_route_invalidates(self, catalog, session_factory):
        tid = catalog.create_tenant("A", plan="pro", region="eu1")
        directory = CachedTenantDirectory(SqlTenantDirectory(session_factory), MetadataCache(ttl=300))
        assert not directory.lookup_tenant(tid).route_pinned
        directory.pin_route(tid)
        assert directory.lookup_tenant(tid).route_pinned

    def test_missing_tenant(self, session_factory):
        directory = CachedTenantDirectory(SqlTenantDirectory(session_factory), MetadataCache(ttl=300))
        with pytest.raises(NotFound):
            directory.lookup_tenant("ghost")

    def test_record_round_trips_through_cache_format(self, catalog, session_factory):
        tid = catalog.create_tenant("A", plan="pro", region="eu1",
                                    buckets=[{"name": "Payments", "accepts": ["transaction"]}])
        record = SqlTenantDirectory(session_factory).lookup_tenant(tid)
        assert TenantRecord.from_dict(record.to_dict()) == record


def test_disabled_cache_always_misses():
    cache = MetadataCache(ttl=0)
    cache.set("t1", {"x": 1})
    assert cache.get("t1") is None
