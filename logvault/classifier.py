"""
Event classification into tenant buckets.

A rule table maps event-type tags (optionally narrowed by attribute predicates)
to a bucket name. Rules are evaluated in priority order and the first match
wins. A match whose bucket the tenant has not configured falls back to the
tenant's default bucket, then to the global default; with neither configured
the event is rejected with ``NoBucketAvailable``.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import yaml

from .errors import NoBucketAvailable

logger = logging.getLogger("logvault.classifier")

# Keys inspected, in order, for the event-type tag
EVENT_TYPE_KEYS = ("type", "action", "event_type")


@dataclass(frozen=True)
class BucketSpec:
    name: str
    accepts: frozenset = frozenset()


@dataclass(frozen=True)
class Rule:
    bucket: str
    event_types: frozenset
    priority: int = 100
    where: Mapping[str, Any] = field(default_factory=dict)

    def matches(self, event_type: Optional[str], event: Mapping[str, Any]) -> bool:
        if self.event_types and event_type not in self.event_types:
            return False
        for path, expected in self.where.items():
            actual = _lookup(event, path)
            if isinstance(expected, (list, tuple, set, frozenset)):
                if actual not in expected:
                    return False
            elif actual != expected:
                return False
        return True


def _lookup(event: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted attribute path such as ``metadata.action``."""
    current: Any = event
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


def event_type_of(event: Mapping[str, Any]) -> Optional[str]:
    for key in EVENT_TYPE_KEYS:
        value = event.get(key)
        if isinstance(value, str) and value:
            return value
    metadata = event.get("metadata")
    if isinstance(metadata, Mapping):
        value = metadata.get("action")
        if isinstance(value, str) and value:
            return value
    return None


# Built-in rule table for game-server and web-app traffic
DEFAULT_RULES: Sequence[Rule] = (
    Rule(bucket="Anticheat", event_types=frozenset({"anticheat_triggered"}), priority=10),
    Rule(bucket="Admin", event_types=frozenset({"admin_action"}), priority=20),
    Rule(bucket="Transactions", event_types=frozenset({"transaction"}), priority=30),
    Rule(bucket="Economy", event_types=frozenset({"payment_processed", "subscription_renewed"}), priority=35),
    Rule(bucket="Chat", event_types=frozenset({"chat_message", "command_executed"}), priority=40),
    Rule(bucket="Errors", event_types=frozenset({"server_error"}), priority=50),
    Rule(bucket="Errors", event_types=frozenset(), priority=60, where={"level": ["error", "fatal"]}),
    Rule(bucket="Events", event_types=frozenset({"player_connected", "player_disconnected",
                                                "player_spawned", "player_died",
                                                "vehicle_spawned", "vehicle_destroyed",
                                                "weapon_equipped"}), priority=70),
)


def load_rules(path: str) -> List[Rule]:
    """Load a rule table from YAML.

    Expected shape::

        rules:
          - bucket: Admin
            types: [admin_action]
            priority: 20
            where: {level: error}
    """
    with open(path, "r") as f:
        doc = yaml.safe_load(f) or {}
    rules = []
    for entry in doc.get("rules", []):
        rules.append(Rule(
            bucket=str(entry["bucket"]),
            event_types=frozenset(entry.get("types") or []),
            priority=int(entry.get("priority", 100)),
            where=dict(entry.get("where") or {}),
        ))
    logger.info("Loaded classifier rules", extra={
        "component": "classifier",
        "path": path,
        "rule_count": len(rules)
    })
    return rules


class EventClassifier:

    def __init__(self, rules: Optional[Iterable[Rule]] = None,
                 global_default: Optional[str] = "General",
                 implicit_bucket: str = "default"):
        # sorted() is stable, so equal priorities keep declaration order
        self.rules = sorted(rules if rules is not None else DEFAULT_RULES, key=lambda r: r.priority)
        self.global_default = global_default
        self.implicit_bucket = implicit_bucket

    def classify(self, raw_event: Mapping[str, Any], tenant_buckets: Sequence[Union[str, BucketSpec]],
                 tenant_default: Optional[str] = None) -> str:
        if not tenant_buckets:
            return self.implicit_bucket

        specs = [b if isinstance(b, BucketSpec) else BucketSpec(name=b) for b in tenant_buckets]
        # Case-insensitive membership, but always return the tenant's spelling
        configured: Dict[str, str] = {s.name.lower(): s.name for s in specs}
        event_type = event_type_of(raw_event)

        # Tags a tenant attached to its own buckets take precedence over the table
        if event_type:
            for spec in specs:
                if event_type in spec.accepts:
                    return spec.name

        for rule in self.rules:
            if not rule.matches(event_type, raw_event):
                continue
            bucket = configured.get(rule.bucket.lower())
            if bucket is not None:
                return bucket
            # First match wins; an unconfigured target drops to the defaults
            break

        for candidate in (tenant_default, self.global_default):
            if candidate and candidate.lower() in configured:
                return configured[candidate.lower()]

        raise NoBucketAvailable(
            f"no configured bucket for event type {event_type!r}",
            event_type=event_type,
        )
