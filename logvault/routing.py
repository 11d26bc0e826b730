"""
Route resolution: (region, plan tier) -> physical storage target.
"""
from dataclasses import dataclass
from typing import Iterable

from .errors import UnknownRegion, UnknownTier


@dataclass(frozen=True)
class StorageTarget:
    region: str
    tier: str

    @property
    def name(self) -> str:
        return f"{self.region}-logs-{self.tier}"

    def __str__(self) -> str:
        return self.name


class RouteResolver:
    """Pure mapping from a tenant's region and plan tier to its storage target.

    Tier names are matched case-insensitively and always rendered lowercased;
    regions are matched exactly.
    """

    def __init__(self, regions: Iterable[str], tiers: Iterable[str]):
        self.regions = frozenset(r.strip() for r in regions if r and r.strip())
        self.tiers = frozenset(t.strip().lower() for t in tiers if t and t.strip())

    def resolve(self, region: str, plan_tier: str) -> StorageTarget:
        if not region or region not in self.regions:
            raise UnknownRegion(f"unknown region: {region!r}", region=region)
        tier = (plan_tier or "").strip().lower()
        if not tier or tier not in self.tiers:
            raise UnknownTier(f"unknown plan tier: {plan_tier!r}", tier=plan_tier)
        return StorageTarget(region=region, tier=tier)
