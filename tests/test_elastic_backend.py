"""
Tests for the Elasticsearch backend against a mocked transport
"""
import json

import httpx
import pytest

from logvault.errors import StorageRejected, StorageUnavailable
from logvault.storage.elastic import ElasticsearchBackend
from logvault.storage.filters import TenantScopedFilter


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


def make_backend(handler, **kwargs):
    clock = FakeClock()

    def route(request):
        if request.url.path.startswith("/_index_template/"):
            return httpx.Response(200, json={"acknowledged": True})
        return handler(request)

    backend = ElasticsearchBackend(
        "http://es.test:9200",
        transport=httpx.MockTransport(route),
        sleep=clock.sleep,
        clock=clock,
        **kwargs,
    )
    return backend, clock


class TestWrite:

    def test_write_uses_create_op_type(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"_index": ".ds-eu1-logs-pro-000001", "_id": "abc"})

        backend, _ = make_backend(handler)
        ack = backend.write("eu1-logs-pro", {"tenantId": "t1", "message": "hi"})

        assert seen["method"] == "POST"
        assert seen["path"] == "/eu1-logs-pro/_doc"
        assert seen["params"] == {"op_type": "create"}
        assert seen["body"]["tenantId"] == "t1"
        assert ack.document_id == "abc"

    @pytest.mark.parametrize("status", [429, 500, 503])
    def test_transient_statuses(self, status):
        backend, _ = make_backend(lambda r: httpx.Response(status))
        with pytest.raises(StorageUnavailable):
            backend.write("eu1-logs-pro", {})

    def test_bad_request_is_rejected(self):
        body = {"error": {"type": "mapper_parsing_exception", "reason": "failed to parse field [level]"}}
        backend, _ = make_backend(lambda r: httpx.Response(400, json=body))
        with pytest.raises(StorageRejected) as exc:
            backend.write("eu1-logs-pro", {})
        assert "failed to parse" in exc.value.detail

    def test_connection_refused(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        backend, _ = make_backend(handler)
        with pytest.raises(StorageUnavailable) as exc:
            backend.write("eu1-logs-pro", {})
        assert exc.value.retryable

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        backend, _ = make_backend(handler)
        with pytest.raises(StorageUnavailable):
            backend.write("eu1-logs-pro", {})


class TestDeleteWhere:

    def test_sends_tenant_scoped_query_and_polls_task(self):
        calls = []

        def handler(request):
            calls.append((request.method, request.url.path, dict(request.url.params)))
            if request.url.path.endswith("/_delete_by_query"):
                body = json.loads(request.content)
                assert {"term": {"tenantId": "t1"}} in body["query"]["bool"]["filter"]
                return httpx.Response(200, json={"task": "node:1"})
            if len(calls) < 4:
                return httpx.Response(200, json={"completed": False, "task": {"status": {"deleted": 3}}})
            return httpx.Response(200, json={"completed": True, "response": {"deleted": 7, "failures": []}})

        backend, _ = make_backend(handler, poll_interval=0.1)
        result = backend.delete_where("eu1-logs-pro", TenantScopedFilter("t1"), deadline=10)

        assert result.deleted_count == 7
        assert result.complete
        assert result.task_id == "node:1"
        assert calls[0][2] == {"wait_for_completion": "false", "conflicts": "proceed", "refresh": "true"}
        assert calls[1][1] == "/_tasks/node:1"

    def test_deadline_without_confirmation_is_incomplete(self):
        def handler(request):
            if request.url.path.endswith("/_delete_by_query"):
                return httpx.Response(200, json={"task": "node:2"})
            return httpx.Response(200, json={"completed": False, "task": {"status": {"deleted": 5}}})

        backend, clock = make_backend(handler, poll_interval=0.5)
        result = backend.delete_where("eu1-logs-pro", TenantScopedFilter("t1"), deadline=2)

        assert not result.complete
        assert result.deleted_count == 5
        assert clock.now >= 2

    def test_missing_target_is_nothing_to_delete(self):
        backend, _ = make_backend(lambda r: httpx.Response(404, json={"error": "index_not_found_exception"}))
        result = backend.delete_where("eu1-logs-free", TenantScopedFilter("t1"))
        assert result.deleted_count == 0
        assert result.complete

    def test_version_conflicts_are_incomplete(self):
        def handler(request):
            if request.url.path.endswith("/_delete_by_query"):
                return httpx.Response(200, json={"task": "node:3"})
            return httpx.Response(200, json={"completed": True,
                                             "response": {"deleted": 2, "failures": [{"cause": "x"}]}})

        backend, _ = make_backend(handler)
        result = backend.delete_where("eu1-logs-pro", TenantScopedFilter("t1"), deadline=5)
        assert result.deleted_count == 2
        assert not result.complete

    def test_poll_errors_keep_polling(self):
        polls = []

        def handler(request):
            if request.url.path.endswith("/_delete_by_query"):
                return httpx.Response(200, json={"task": "node:4"})
            polls.append(1)
            if len(polls) == 1:
                return httpx.Response(503)
            return httpx.Response(200, json={"completed": True, "response": {"deleted": 1}})

        backend, _ = make_backend(handler)
        result = backend.delete_where("eu1-logs-pro", TenantScopedFilter("t1"), deadline=5)
        assert result.complete
        assert len(polls) == 2

    def test_requires_tenant_scoped_filter(self):
        backend, _ = make_backend(lambda r: httpx.Response(200, json={}))
        with pytest.raises(StorageRejected):
            backend.delete_where("eu1-logs-pro", {"match_all": {}})


class TestHealth:

    def test_green(self):
        backend, _ = make_backend(lambda r: httpx.Response(200, json={"status": "green"}))
        status = backend.health()
        assert status.reachable
        assert status.status == "green"

    def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        backend, _ = make_backend(handler)
        status = backend.health()
        assert not status.reachable
        assert status.status == "unreachable"


class TestIndexTemplate:

    def _recording_backend(self, template_status=200, **kwargs):
        calls = []

        def handler(request):
            body = json.loads(request.content) if request.content else None
            calls.append((request.method, request.url.path, body))
            if request.url.path.startswith("/_index_template/"):
                return httpx.Response(template_status, json={"acknowledged": template_status == 200})
            return httpx.Response(201, json={"_index": "eu1-logs-pro", "_id": str(len(calls))})

        backend = ElasticsearchBackend("http://es.test:9200", transport=httpx.MockTransport(handler), **kwargs)
        return backend, calls

    def test_template_maps_tenant_and_bucket_as_keyword_before_first_write(self):
        backend, calls = self._recording_backend()
        backend.write("eu1-logs-pro", {"tenantId": "Acme-Prod"})
        backend.write("eu1-logs-pro", {"tenantId": "Acme-Prod"})

        assert [(m, p) for m, p, _ in calls] == [
            ("PUT", "/_index_template/logvault-logs"),
            ("POST", "/eu1-logs-pro/_doc"),
            ("POST", "/eu1-logs-pro/_doc"),
        ]
        template = calls[0][2]
        assert template["index_patterns"] == ["*-logs-*"]
        properties = template["template"]["mappings"]["properties"]
        assert properties["tenantId"] == {"type": "keyword"}
        assert properties["bucket"] == {"type": "keyword"}
        assert properties["@timestamp"] == {"type": "date"}

    def test_failed_template_install_is_retried(self):
        backend, calls = self._recording_backend(template_status=503)
        with pytest.raises(StorageUnavailable):
            backend.write("eu1-logs-pro", {"tenantId": "t1"})
        assert [p for _, p, _ in calls] == ["/_index_template/logvault-logs"]

        with pytest.raises(StorageUnavailable):
            backend.write("eu1-logs-pro", {"tenantId": "t1"})
        assert len(calls) == 2

    def test_template_install_can_be_disabled(self):
        backend, calls = self._recording_backend(install_template=False)
        backend.write("eu1-logs-pro", {"tenantId": "t1"})
        assert [p for _, p, _ in calls] == ["/eu1-logs-pro/_doc"]

    def test_deletion_filter_is_an_exact_term_on_the_keyword_field(self):
        query = TenantScopedFilter("Acme-Prod").in_bucket("Economy").to_query()
        assert {"term": {"tenantId": "Acme-Prod"}} in query["bool"]["filter"]
        assert {"term": {"bucket": "Economy"}} in query["bool"]["filter"]
