"""
Tests for route resolution
"""
import pytest

from logvault.errors import UnknownRegion, UnknownTier
from logvault.routing import RouteResolver, StorageTarget


def test_resolve_builds_region_logs_tier(resolver):
    target = resolver.resolve("eu1", "pro")
    assert target == StorageTarget(region="eu1", tier="pro")
    assert target.name == "eu1-logs-pro"
    assert str(target) == "eu1-logs-pro"


@pytest.mark.parametrize("tier", ["Pro", "PRO", " pro "])
def test_tier_is_lowercased(resolver, tier):
    assert resolver.resolve("us1", tier).name == "us1-logs-pro"


def test_resolution_is_deterministic(resolver):
    names = {resolver.resolve("eu1", "enterprise").name for _ in range(50)}
    assert names == {"eu1-logs-enterprise"}


@pytest.mark.parametrize("region", ["", None, "ap1", "EU1"])
def test_unknown_region(resolver, region):
    with pytest.raises(UnknownRegion):
        resolver.resolve(region, "pro")


@pytest.mark.parametrize("tier", ["", None, "platinum"])
def test_unknown_tier(resolver, tier):
    with pytest.raises(UnknownTier):
        resolver.resolve("eu1", tier)


def test_configured_tiers_are_normalized():
    resolver = RouteResolver(["eu1", " "], ["Free", "", "PRO"])
    assert resolver.regions == frozenset({"eu1"})
    assert resolver.tiers == frozenset({"free", "pro"})
