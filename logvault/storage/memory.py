"""
In-process storage backend.

Keeps documents per target in memory. Used for local development
(``STORAGE_BACKEND=memory``) and in tests.
"""
import copy
import threading
import uuid
from collections import defaultdict
from typing import Any, Dict, List, Optional

from ..errors import StorageRejected, StorageUnavailable
from .base import DeleteResult, HealthStatus, WriteAck
from .filters import TenantScopedFilter


class InMemoryBackend:

    def __init__(self):
        self._targets: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self._lock = threading.Lock()
        self.available = True
        self.write_calls = 0
        self.delete_calls = 0

    def write(self, target: str, document: Dict[str, Any], timeout: Optional[float] = None) -> WriteAck:
        if not self.available:
            raise StorageUnavailable("storage offline")
        if not isinstance(document, dict):
            raise StorageRejected("document must be an object")
        doc_id = uuid.uuid4().hex
        with self._lock:
            self.write_calls += 1
            stored = copy.deepcopy(document)
            stored["_id"] = doc_id
            self._targets[target].append(stored)
        return WriteAck(target=target, document_id=doc_id)

    def delete_where(self, target: str, flt: TenantScopedFilter,
                     deadline: Optional[float] = None) -> DeleteResult:
        if not isinstance(flt, TenantScopedFilter):
            raise StorageRejected("delete_where requires a TenantScopedFilter")
        if not self.available:
            raise StorageUnavailable("storage offline")
        with self._lock:
            self.delete_calls += 1
            docs = self._targets.get(target, [])
            kept = [d for d in docs if not flt.matches(d)]
            deleted = len(docs) - len(kept)
            if target in self._targets:
                self._targets[target] = kept
        return DeleteResult(deleted_count=deleted, complete=True)

    def health(self) -> HealthStatus:
        if not self.available:
            return HealthStatus(status="unreachable", reachable=False)
        return HealthStatus(status="green", reachable=True)

    def close(self) -> None:
        pass

    # Inspection helpers

    def documents(self, target: str, tenant_id: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            docs = list(self._targets.get(target, []))
        if tenant_id is not None:
            docs = [d for d in docs if d.get("tenantId") == tenant_id]
        return [copy.deepcopy(d) for d in docs]

    def count(self, target: str, tenant_id: Optional[str] = None) -> int:
        return len(self.documents(target, tenant_id))
