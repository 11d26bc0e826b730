"""
Elasticsearch storage backend over the REST API (httpx).
"""
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

import httpx

from ..errors import StorageRejected, StorageUnavailable
from .base import DeleteResult, HealthStatus, WriteAck
from .filters import TenantScopedFilter

logger = logging.getLogger("logvault.storage")

TEMPLATE_NAME = "logvault-logs"


def index_template(pattern: str = "*-logs-*") -> Dict[str, Any]:
    """Index template for the storage targets.

    ``tenantId`` and ``bucket`` must be ``keyword`` so deletion filters match
    them exactly; dynamic mapping would make them analyzed text.
    """
    return {
        "index_patterns": [pattern],
        "priority": 200,
        "template": {
            "mappings": {
                "properties": {
                    "@timestamp": {"type": "date"},
                    "ingestedAt": {"type": "date"},
                    "tenantId": {"type": "keyword"},
                    "bucket": {"type": "keyword"},
                    "level": {"type": "keyword"},
                    "type": {"type": "keyword"},
                    "message": {"type": "text"},
                }
            }
        },
    }


class ElasticsearchBackend:

    def __init__(
        self,
        url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        api_key: Optional[str] = None,
        verify_tls: bool = True,
        timeout: float = 10.0,
        delete_deadline: float = 60.0,
        poll_interval: float = 0.5,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        install_template: bool = True,
        template_pattern: str = "*-logs-*",
    ):
        auth = None
        if username and password:
            auth = (username, password)

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"ApiKey {api_key}"

        self.url = url.rstrip("/")
        self.timeout = timeout
        self.delete_deadline = delete_deadline
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock
        self._template_body = index_template(template_pattern) if install_template else None
        self._template_ready = not install_template
        self._template_lock = threading.Lock()
        self._client = httpx.Client(
            base_url=self.url,
            auth=auth,
            headers=headers,
            verify=verify_tls,
            timeout=timeout,
            transport=transport,
        )

    def _request(self, method: str, path: str, *, allow_404: bool = False,
                 timeout: Optional[float] = None, **kwargs) -> Optional[httpx.Response]:
        try:
            r = self._client.request(method, path, timeout=timeout or self.timeout, **kwargs)
        except httpx.ConnectError:
            raise StorageUnavailable("conn_refused", path=path)
        except httpx.TimeoutException:
            raise StorageUnavailable("timeout", path=path)
        except httpx.TransportError as e:
            raise StorageUnavailable(f"transport_error: {e}", path=path)

        if r.status_code == 404 and allow_404:
            return None
        if r.status_code == 429 or r.status_code >= 500:
            raise StorageUnavailable(f"http_{r.status_code}", path=path, status=r.status_code)
        if r.status_code >= 400:
            raise StorageRejected(_error_reason(r), path=path, status=r.status_code)
        return r

    def ensure_template(self) -> None:
        """Install the index template once per backend, before the first write.

        A failed attempt is retried on the next write.
        """
        if self._template_ready:
            return
        with self._template_lock:
            if self._template_ready:
                return
            self._request("PUT", f"/_index_template/{TEMPLATE_NAME}", json=self._template_body)
            self._template_ready = True
            logger.info("Index template installed", extra={
                "component": "storage",
                "event": "template_installed",
                "template": TEMPLATE_NAME,
                "patterns": self._template_body["index_patterns"]
            })

    def write(self, target: str, document: Dict[str, Any], timeout: Optional[float] = None) -> WriteAck:
        self.ensure_template()
        # data streams only accept op_type=create
        r = self._request("POST", f"/{target}/_doc", params={"op_type": "create"},
                          json=document, timeout=timeout)
        body = _json(r)
        return WriteAck(target=body.get("_index", target), document_id=body.get("_id"))

    def delete_where(self, target: str, flt: TenantScopedFilter,
                     deadline: Optional[float] = None) -> DeleteResult:
        """Start a delete-by-query task and wait for its result until the deadline.

        A task still running when the deadline passes is reported with
        ``complete=False``; its partial count is not a confirmed result.
        """
        if not isinstance(flt, TenantScopedFilter):
            raise StorageRejected("delete_where requires a TenantScopedFilter")

        budget = self.delete_deadline if deadline is None else deadline
        started = self._clock()

        r = self._request(
            "POST",
            f"/{target}/_delete_by_query",
            params={"wait_for_completion": "false", "conflicts": "proceed", "refresh": "true"},
            json={"query": flt.to_query()},
            allow_404=True,
        )
        if r is None:
            # target was never created, nothing to delete
            return DeleteResult(deleted_count=0, complete=True)

        body = _json(r)
        task_id = body.get("task")
        if not task_id:
            return _result_from_response(body, None)

        logger.info("Delete task started", extra={
            "component": "storage",
            "event": "delete_started",
            "target": target,
            "tenant_id": flt.tenant_id,
            "task_id": task_id
        })

        last_seen = 0
        while True:
            remaining = budget - (self._clock() - started)
            if remaining <= 0:
                logger.warning("Delete task not confirmed before deadline", extra={
                    "component": "storage",
                    "event": "delete_unconfirmed",
                    "target": target,
                    "tenant_id": flt.tenant_id,
                    "task_id": task_id,
                    "deleted_so_far": last_seen
                })
                return DeleteResult(deleted_count=last_seen, complete=False, task_id=task_id)

            try:
                task = _json(self._request("GET", f"/_tasks/{task_id}",
                                           timeout=min(self.timeout, remaining)))
            except StorageUnavailable as e:
                logger.warning("Delete task poll failed", extra={
                    "component": "storage",
                    "event": "delete_poll_error",
                    "task_id": task_id,
                    "error": e.detail
                })
                task = {}

            if task.get("completed"):
                if task.get("error"):
                    status = (task.get("task") or {}).get("status") or {}
                    return DeleteResult(deleted_count=int(status.get("deleted", 0)),
                                        complete=False, task_id=task_id)
                return _result_from_response(task.get("response") or {}, task_id)

            status = (task.get("task") or {}).get("status") or {}
            last_seen = int(status.get("deleted", last_seen))
            self._sleep(min(self.poll_interval, max(remaining, 0)))

    def health(self) -> HealthStatus:
        try:
            body = _json(self._request("GET", "/_cluster/health"))
        except (StorageUnavailable, StorageRejected) as e:
            return HealthStatus(status="unreachable", reachable=False, detail=e.detail)
        return HealthStatus(status=body.get("status", "unknown"), reachable=True)

    def close(self) -> None:
        self._client.close()


def _json(r: Optional[httpx.Response]) -> Dict[str, Any]:
    if r is None:
        return {}
    try:
        body = r.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _error_reason(r: httpx.Response) -> str:
    if r.status_code == 401:
        return "unauthorized"
    if r.status_code == 403:
        return "forbidden"
    error = _json(r).get("error")
    if isinstance(error, dict):
        return error.get("reason") or error.get("type") or f"http_{r.status_code}"
    if isinstance(error, str):
        return error
    return f"http_{r.status_code}"


def _result_from_response(body: Dict[str, Any], task_id: Optional[str]) -> DeleteResult:
    complete = not body.get("timed_out", False) and not body.get("failures")
    return DeleteResult(deleted_count=int(body.get("deleted", 0)), complete=complete, task_id=task_id)
