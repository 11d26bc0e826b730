"""
Randomized invariants over synthetic traffic, with fixed seeds
"""
import random
from datetime import datetime, timedelta, timezone

import pytest

from logvault.pipeline import parse_event_time
from logvault.synth import FIVEM_ACTIONS, GENERIC_ACTIONS, SyntheticEventGenerator

SEEDS = [1, 7, 42, 1234, 99991]


@pytest.mark.parametrize("profile", ["generic", "fivem"])
def test_generator_is_reproducible(profile):
    clock = lambda: datetime(2025, 6, 1, tzinfo=timezone.utc)  # noqa: E731
    a = SyntheticEventGenerator(profile, rng=random.Random(3), clock=clock).generate(20)
    b = SyntheticEventGenerator(profile, rng=random.Random(3), clock=clock).generate(20)
    assert a == b


@pytest.mark.parametrize("seed", SEEDS)
def test_events_fall_inside_window(seed):
    now = datetime(2025, 6, 1, tzinfo=timezone.utc)
    gen = SyntheticEventGenerator("fivem", rng=random.Random(seed), window_days=3, clock=lambda: now)
    for event in gen.generate(100):
        ts = parse_event_time(event["@timestamp"])
        assert now - timedelta(days=3, seconds=1) <= ts <= now
        assert event["type"] in FIVEM_ACTIONS
        assert event["metadata"]["action"] == event["type"]


def test_unknown_profile():
    with pytest.raises(ValueError):
        SyntheticEventGenerator("mainframe")


@pytest.mark.parametrize("seed", SEEDS)
@pytest.mark.parametrize("profile", ["generic", "fivem"])
def test_every_accepted_event_lands_in_a_configured_bucket(engine, storage, t1, seed, profile):
    gen = SyntheticEventGenerator(profile, rng=random.Random(seed))
    batch = engine.pipeline.ingest_for_tenant(t1, gen.generate(60))

    configured = set(engine.directory.lookup_tenant(t1, fresh=True).bucket_names)
    assert batch.rejected == 0
    assert {r.bucket for r in batch.results} <= configured
    assert {r.target for r in batch.results} == {"eu1-logs-pro"}
    assert storage.count("eu1-logs-pro", tenant_id="t1") == 60


@pytest.mark.parametrize("seed", SEEDS)
def test_retention_never_touches_other_tenants(engine, storage, t1, t2, seed):
    rng = random.Random(seed)
    for tid in (t1, t2):
        gen = SyntheticEventGenerator("generic", rng=rng, window_days=60)
        engine.pipeline.ingest_for_tenant(tid, gen.generate(40))
    before_t2 = storage.documents("eu1-logs-pro", tenant_id="t2")

    report = engine.enforcer.enforce(t1)

    assert storage.documents("eu1-logs-pro", tenant_id="t2") == before_t2
    cutoff = parse_event_time(report.cutoff)
    remaining = storage.documents("eu1-logs-pro", tenant_id="t1")
    assert all(parse_event_time(d["@timestamp"]) >= cutoff for d in remaining)
    assert report.deleted_count + len(remaining) == 40


@pytest.mark.parametrize("seed", SEEDS)
def test_batch_with_random_malformed_events(engine, storage, t1, seed):
    rng = random.Random(seed)
    events = SyntheticEventGenerator("generic", rng=rng).generate(25)
    bad = set(rng.sample(range(25), 5))
    for i in bad:
        events[i] = rng.choice([{"message": "no time"}, "string", {"@timestamp": "soon"}])

    batch = engine.pipeline.ingest_for_tenant(t1, events)

    assert len(batch.results) == 25
    assert {i for i, _ in batch.failures()} == bad
    assert storage.count("eu1-logs-pro", tenant_id="t1") == 20


def test_generic_messages_come_from_catalog():
    gen = SyntheticEventGenerator("generic", rng=random.Random(0))
    for event in gen.generate(50):
        assert event["message"] == GENERIC_ACTIONS[event["type"]]
