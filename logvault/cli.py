#!/usr/bin/env python3
"""
LogVault operator CLI.

Every tenant-scoped command takes the tenant id as a required positional
argument; there is no default tenant.
"""
import argparse
import json
import os
import random
import sys
from typing import List, Optional

from .engine import Engine, build_engine
from .errors import LogVaultError
from .logging_config import setup_logging
from .synth import PROFILES, SyntheticEventGenerator


def cmd_init_db(engine: Engine, args) -> int:
    print("✓ Catalog tables ready")
    return 0


def cmd_seed_catalog(engine: Engine, args) -> int:
    created = engine.catalog.seed_defaults()
    print(f"✓ Seeded {created['plans']} plans, {created['hosts']} hosts, "
          f"{created['bucket_templates']} bucket templates")
    return 0


def cmd_list_tenants(engine: Engine, args) -> int:
    tenants = engine.catalog.list_tenants()
    if args.json:
        print(json.dumps([vars(t) for t in tenants], indent=2))
        return 0
    if not tenants:
        print("No tenants found")
        return 0
    print(f"Found {len(tenants)} tenant(s):\n")
    for t in tenants:
        print(f"  {t.name}")
        print(f"    id:        {t.tenant_id}")
        print(f"    plan:      {t.plan} ({t.retention_days} day retention)")
        print(f"    region:    {t.region}")
        print(f"    target:    {t.storage_target or '-'}\n")
    return 0


def cmd_create_tenant(engine: Engine, args) -> int:
    buckets = args.bucket if args.bucket else None
    if args.no_buckets:
        buckets = []
    tenant_id = engine.catalog.create_tenant(
        name=args.name,
        plan=args.plan,
        region=args.region,
        tenant_id=args.id,
        buckets=buckets,
        default_bucket=args.default_bucket,
        description=args.description,
    )
    print(tenant_id)
    return 0


def cmd_create_key(engine: Engine, args) -> int:
    issued = engine.catalog.create_api_key(args.tenant, args.scope or ["logs:write"], name=args.name)
    print(f"✓ Key {issued.key_id} created for {issued.tenant_id} with scopes {', '.join(issued.scopes)}")
    print("Store this key now, it is not shown again:")
    print(issued.api_key)
    return 0


def cmd_seed_logs(engine: Engine, args) -> int:
    rng = random.Random(args.seed) if args.seed is not None else None
    generator = SyntheticEventGenerator(profile=args.profile, rng=rng, window_days=args.window_days)
    batch = engine.pipeline.ingest_for_tenant(args.tenant, generator.generate(args.count))

    by_bucket = {}
    for r in batch.results:
        if r.accepted:
            by_bucket[r.bucket] = by_bucket.get(r.bucket, 0) + 1
    print(f"✓ Seeded {batch.accepted}/{args.count} {args.profile} events for {args.tenant}")
    for bucket, n in sorted(by_bucket.items()):
        print(f"    {bucket}: {n}")
    for i, r in batch.failures()[:10]:
        print(f"  ✗ event {i}: {r.error} ({r.detail})", file=sys.stderr)
    return 0 if not batch.partial_failure else 1


def cmd_enforce(engine: Engine, args) -> int:
    if args.all:
        reports = engine.enforcer.enforce_all(engine.catalog.tenant_ids())
    else:
        reports = [engine.enforcer.enforce(args.tenant)]

    for r in reports:
        if r.error:
            print(f"  ✗ {r.tenant_id}: {r.error}")
        else:
            state = "complete" if r.complete else "INCOMPLETE"
            print(f"  ✓ {r.tenant_id}: deleted {r.deleted_count} events older than {r.cutoff} "
                  f"from {r.target} ({state})")
    return 0 if all(r.complete for r in reports) else 1


def cmd_purge_token(engine: Engine, args) -> int:
    if not os.getenv("PURGE_TOKEN_SECRET"):
        print("Warning: PURGE_TOKEN_SECRET is not set; this token only works in this process",
              file=sys.stderr)
    print(engine.purger.issue_token(args.tenant))
    return 0


def cmd_purge(engine: Engine, args) -> int:
    report = engine.purger.purge(args.tenant, args.confirm)
    if report.error:
        print(f"✗ Purge of {report.tenant_id} failed: {report.error}")
        return 1
    state = "complete" if report.complete else "INCOMPLETE"
    print(f"✓ Deleted {report.deleted_count} events for {report.tenant_id} from {report.target} ({state})")
    return 0 if report.complete else 1


def cmd_health(engine: Engine, args) -> int:
    status = engine.storage.health()
    print(f"storage: {status.status} (reachable={status.reachable})")
    if status.detail:
        print(f"  {status.detail}")
    return 0 if status.reachable else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="logvault", description="LogVault operator tools")
    parser.add_argument("--database-url", help="Catalog database URL (default: DATABASE_URL)")
    parser.add_argument("--storage", choices=["elasticsearch", "memory"],
                        help="Storage backend (default: STORAGE_BACKEND)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-db", help="Create catalog tables")
    p.set_defaults(func=cmd_init_db, seed_catalog=False)

    p = sub.add_parser("seed-catalog", help="Create default plans, hosts and bucket templates")
    p.set_defaults(func=cmd_seed_catalog, seed_catalog=False)

    p = sub.add_parser("list-tenants", help="List tenants with plan, region and storage target")
    p.add_argument("--json", action="store_true", help="Print JSON")
    p.set_defaults(func=cmd_list_tenants)

    p = sub.add_parser("create-tenant", help="Create a tenant")
    p.add_argument("name")
    p.add_argument("--plan", required=True)
    p.add_argument("--region", required=True)
    p.add_argument("--id", help="Explicit tenant id (default: generated srv_...)")
    p.add_argument("--bucket", action="append", help="Bucket name (repeatable; default: templates)")
    p.add_argument("--no-buckets", action="store_true", help="Create the tenant without buckets")
    p.add_argument("--default-bucket")
    p.add_argument("--description")
    p.set_defaults(func=cmd_create_tenant)

    p = sub.add_parser("create-key", help="Issue an API key for a tenant")
    p.add_argument("tenant")
    p.add_argument("--scope", action="append", help="Scope (repeatable; default: logs:write)")
    p.add_argument("--name", default="")
    p.set_defaults(func=cmd_create_key)

    p = sub.add_parser("seed-logs", help="Ingest synthetic events for a tenant")
    p.add_argument("tenant")
    p.add_argument("--count", type=int, default=200)
    p.add_argument("--profile", choices=PROFILES, default="generic")
    p.add_argument("--window-days", type=float, default=7)
    p.add_argument("--seed", type=int, help="Random seed for reproducible output")
    p.set_defaults(func=cmd_seed_logs)

    p = sub.add_parser("enforce", help="Enforce retention for a tenant or all tenants")
    target = p.add_mutually_exclusive_group(required=True)
    target.add_argument("tenant", nargs="?")
    target.add_argument("--all", action="store_true")
    p.set_defaults(func=cmd_enforce)

    p = sub.add_parser("purge-token", help="Issue a purge confirmation token")
    p.add_argument("tenant")
    p.set_defaults(func=cmd_purge_token)

    p = sub.add_parser("purge", help="Delete every stored event of a tenant")
    p.add_argument("tenant")
    p.add_argument("--confirm", required=True, metavar="TOKEN", help="Token from purge-token")
    p.set_defaults(func=cmd_purge)

    p = sub.add_parser("health", help="Check storage health")
    p.set_defaults(func=cmd_health)

    return parser


def main(argv: Optional[List[str]] = None, engine: Optional[Engine] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    owned = engine is None
    if owned:
        setup_logging()
        storage = None
        if args.storage:
            from .storage import build_storage_backend
            storage = build_storage_backend(args.storage)
        engine = build_engine(database_url=args.database_url, storage=storage,
                              seed=getattr(args, "seed_catalog", None))
    try:
        return args.func(engine, args)
    except LogVaultError as e:
        print(f"Error: {e.code}: {e.detail}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    finally:
        if owned:
            engine.close()


if __name__ == "__main__":
    sys.exit(main())
