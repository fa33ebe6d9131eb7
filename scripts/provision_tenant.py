#!/usr/bin/env python3
"""CLI script to provision a new tenant.

Usage:
    uv run python scripts/provision_tenant.py --slug riverside-fc --name "Riverside FC"
    uv run python scripts/provision_tenant.py --migrate-existing

Connects directly to the database using DATABASE_URL from environment or .env file.
Provisions the tenant schema with the transfer tables and RLS, registers the
tenant in shared.tenants. --migrate-existing instead runs the tenant
migration branch for every active tenant.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

# Ensure project root is on sys.path so we can import src.app
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


async def provision(slug: str, name: str, kind: str) -> None:
    """Provision a tenant by calling the provisioning service directly."""
    from src.app.core.database import close_db, init_db
    from src.app.core.redis import close_redis
    from src.app.schemas.tenant import TenantKind
    from src.app.services.tenant_provisioning import provision_tenant

    await init_db()

    print(f"Provisioning tenant: slug={slug}, name={name}, kind={kind}")
    try:
        result = await provision_tenant(slug=slug, name=name, kind=TenantKind(kind))
    finally:
        await close_redis()
        await close_db()

    print("Tenant provisioned successfully:")
    print(f"  ID:     {result['id']}")
    print(f"  Slug:   {result['slug']}")
    print(f"  Name:   {result['name']}")
    print(f"  Kind:   {result['kind']}")
    print(f"  Schema: {result['schema_name']}")


def migrate_existing() -> None:
    from src.app.services.tenant_migrations import migrate_all_tenants

    migrated = migrate_all_tenants()
    print(f"Migrated {len(migrated)} tenant schema(s): {', '.join(migrated) or '-'}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Provision a new tenant")
    parser.add_argument("--slug", help="Tenant slug (e.g., riverside-fc)")
    parser.add_argument("--name", help="Tenant display name (e.g., 'Riverside FC')")
    parser.add_argument(
        "--kind",
        choices=["club", "agency", "federation"],
        default="club",
        help="Organisation type of the workspace",
    )
    parser.add_argument(
        "--migrate-existing",
        action="store_true",
        help="Upgrade every active tenant schema to the latest tenant migration",
    )
    args = parser.parse_args()

    if args.migrate_existing:
        migrate_existing()
        return

    if not args.slug or not args.name:
        parser.error("--slug and --name are required unless --migrate-existing is given")

    asyncio.run(provision(args.slug, args.name, args.kind))


if __name__ == "__main__":
    main()
