from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from .filters import TenantScopedFilter


@dataclass(frozen=True)
class WriteAck:
    target: str
    document_id: Optional[str] = None


@dataclass(frozen=True)
class DeleteResult:
    deleted_count: int
    complete: bool
    task_id: Optional[str] = None


@dataclass(frozen=True)
class HealthStatus:
    status: str  # green | yellow | red | unreachable
    reachable: bool
    detail: Optional[str] = None


class StorageBackend(Protocol):
    """Primitives the engine needs from the search-engine store."""

    def write(self, target: str, document: Dict[str, Any], timeout: Optional[float] = None) -> WriteAck: ...

    def delete_where(self, target: str, flt: TenantScopedFilter,
                     deadline: Optional[float] = None) -> DeleteResult: ...

    def health(self) -> HealthStatus: ...

    def close(self) -> None: ...
