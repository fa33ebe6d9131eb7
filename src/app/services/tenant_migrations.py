"""Multi-tenant migration helpers.

Runs the ``tenant`` migration branch for one tenant schema or for every
active tenant listed in shared.tenants. Used by scripts/provision_tenant.py --migrate-existing.
"""

from __future__ import annotations

from argparse import Namespace
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, text

from src.app.config import get_settings

TENANT_BRANCH_HEAD = "tenant@head"

ALEMBIC_INI = Path(__file__).resolve().parents[3] / "alembic.ini"


def _get_alembic_config(schema_name: str) -> Config:
    """Alembic Config for alembic.ini with ``-x schema=<schema_name>`` set."""
    return Config(str(ALEMBIC_INI), cmd_opts=Namespace(x=[f"schema={schema_name}"]))


def migrate_tenant(
    schema_name: str, direction: str = "upgrade", revision: str = TENANT_BRANCH_HEAD
) -> None:
    """Run the tenant branch for a single tenant schema.

    Args:
        schema_name: The tenant schema name (e.g., "tenant_riverside_fc")
        direction: "upgrade" or "downgrade"
        revision: Target revision (default: head of the tenant branch)

    Raises:
        ValueError: Unknown direction.
    """
    config = _get_alembic_config(schema_name)

    if direction == "upgrade":
        command.upgrade(config, revision)
    elif direction == "downgrade":
        command.downgrade(config, revision)
    else:
        raise ValueError(f"Invalid direction: {direction}")


def migrate_all_tenants(
    direction: str = "upgrade", revision: str = TENANT_BRANCH_HEAD
) -> list[str]:
    """Run migrations for all active tenant schemas.

    Returns:
        List of schema names that were migrated.
    """
    settings = get_settings()
    engine = create_engine(settings.DATABASE_URL.replace("+asyncpg", ""))

    try:
        with engine.connect() as conn:
            result = conn.execute(
                text("SELECT schema_name FROM shared.tenants WHERE is_active = true")
            )
            schemas = [row[0] for row in result]
    finally:
        engine.dispose()

    migrated = []
    for schema_name in schemas:
        migrate_tenant(schema_name, direction, revision)
        migrated.append(schema_name)
    return migrated
