import json
import time
from threading import Lock
from typing import Any, Optional


class MetadataCache:
    """Bounded-freshness cache for tenant metadata.

    Backed by Redis when a URL is given, otherwise by an in-process map.
    Only catalog metadata goes through here, never log content.
    """

    def __init__(self, ttl: int, redis_url: Optional[str] = None, prefix: str = "logvault:tenant:"):
        self.ttl = ttl
        self.prefix = prefix
        self.r = None
        if redis_url:
            import redis  # type: ignore
            self.r = redis.Redis.from_url(redis_url, decode_responses=True)
        self._mem = {}
        self._lock = Lock()

    def get(self, key: str) -> Optional[Any]:
        if self.ttl <= 0:
            return None
        if self.r is not None:
            raw = self.r.get(self.prefix + key)
            return json.loads(raw) if raw else None
        with self._lock:
            entry = self._mem.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= time.monotonic():
                del self._mem[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        if self.ttl <= 0:
            return
        if self.r is not None:
            self.r.set(self.prefix + key, json.dumps(value), ex=self.ttl)
            return
        with self._lock:
            self._mem[key] = (time.monotonic() + self.ttl, value)

    def invalidate(self, key: str) -> None:
        if self.r is not None:
            self.r.delete(self.prefix + key)
            return
        with self._lock:
            self._mem.pop(key, None)
