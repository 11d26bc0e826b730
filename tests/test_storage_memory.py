"""
Tests for deletion filters and the in-memory storage backend
"""
from datetime import datetime, timedelta, timezone

import pytest

from logvault.errors import StorageRejected, StorageUnavailable
from logvault.storage import InMemoryBackend, TenantScopedFilter
from logvault.storage.filters import format_timestamp

CUTOFF = datetime(2025, 6, 1, tzinfo=timezone.utc)


def _doc(tenant, age_days, bucket="General"):
    return {"tenantId": tenant, "bucket": bucket,
            "@timestamp": format_timestamp(CUTOFF - timedelta(days=age_days))}


class TestTenantScopedFilter:

    @pytest.mark.parametrize("tenant_id", ["", "   ", None, 5])
    def test_requires_tenant_id(self, tenant_id):
        with pytest.raises(ValueError):
            TenantScopedFilter(tenant_id)

    def test_requires_aware_cutoff(self):
        with pytest.raises(ValueError):
            TenantScopedFilter("t1").older_than(datetime(2025, 1, 1))

    def test_query_always_carries_tenant_term(self):
        for flt in (TenantScopedFilter("t1"),
                    TenantScopedFilter("t1").older_than(CUTOFF),
                    TenantScopedFilter("t1").in_bucket("Admin").older_than(CUTOFF)):
            assert {"term": {"tenantId": "t1"}} in flt.to_query()["bool"]["filter"]

    def test_query_shape(self):
        query = TenantScopedFilter("t1").in_bucket("Admin").older_than(CUTOFF).to_query()
        assert query == {"bool": {"filter": [
            {"term": {"tenantId": "t1"}},
            {"term": {"bucket": "Admin"}},
            {"range": {"@timestamp": {"lt": "2025-06-01T00:00:00.000Z"}}},
        ]}}

    def test_matches_strictly_older(self):
        flt = TenantScopedFilter("t1").older_than(CUTOFF)
        assert flt.matches(_doc("t1", 1))
        assert not flt.matches(_doc("t1", 0))
        assert not flt.matches(_doc("t1", -1))
        assert not flt.matches(_doc("t2", 1))

    def test_unparseable_timestamp_never_matches_a_cutoff(self):
        flt = TenantScopedFilter("t1").older_than(CUTOFF)
        assert not flt.matches({"tenantId": "t1", "@timestamp": "garbage"})
        assert TenantScopedFilter("t1").matches({"tenantId": "t1", "@timestamp": "garbage"})


class TestInMemoryBackend:

    def test_write_and_delete(self):
        backend = InMemoryBackend()
        for doc in (_doc("t1", 10), _doc("t1", 1), _doc("t2", 10)):
            backend.write("eu1-logs-pro", doc)

        result = backend.delete_where("eu1-logs-pro", TenantScopedFilter("t1").older_than(CUTOFF - timedelta(days=5)))

        assert result.deleted_count == 1
        assert result.complete
        assert backend.count("eu1-logs-pro") == 2
        assert backend.count("eu1-logs-pro", tenant_id="t2") == 1

    def test_delete_on_missing_target(self):
        result = InMemoryBackend().delete_where("nowhere", TenantScopedFilter("t1"))
        assert result.deleted_count == 0
        assert result.complete

    def test_rejects_raw_filters(self):
        with pytest.raises(StorageRejected):
            InMemoryBackend().delete_where("eu1-logs-pro", {"term": {"tenantId": "t1"}})

    def test_rejects_non_object_documents(self):
        with pytest.raises(StorageRejected):
            InMemoryBackend().write("eu1-logs-pro", ["not", "a", "doc"])

    def test_unavailable(self):
        backend = InMemoryBackend()
        backend.available = False
        with pytest.raises(StorageUnavailable):
            backend.write("eu1-logs-pro", _doc("t1", 1))
        with pytest.raises(StorageUnavailable):
            backend.delete_where("eu1-logs-pro", TenantScopedFilter("t1"))
        assert not backend.health().reachable

    def test_stored_documents_are_copies(self):
        backend = InMemoryBackend()
        doc = _doc("t1", 1)
        backend.write("eu1-logs-pro", doc)
        doc["tenantId"] = "t2"
        assert backend.count("eu1-logs-pro", tenant_id="t1") == 1
