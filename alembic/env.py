"""Alembic environment for multi-tenant schema migrations.

Supports two migration modes via -x argument:
  alembic -x schema=shared upgrade shared@head              -- shared schema only
  alembic -x schema=tenant_riverside_fc upgrade tenant@head  -- one tenant schema

Each schema gets its own alembic_version table so migrations
are tracked independently per tenant.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool, text

from src.app.config import get_settings
from src.app.core.database import SharedBase, TenantBase

# Registers the tables on SharedBase / TenantBase metadata
import src.app.contracts.models  # noqa: F401
import src.app.models.shared  # noqa: F401
import src.app.notifications.models  # noqa: F401
import src.app.timeline.models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

cmd_kwargs = context.get_x_argument(as_dictionary=True)
target_schema = cmd_kwargs.get("schema", "shared")

if target_schema == "shared":
    target_metadata = SharedBase.metadata
else:
    target_metadata = TenantBase.metadata


def _sync_url() -> str:
    """Alembic runs synchronously; swap the asyncpg driver for psycopg2."""
    return get_settings().DATABASE_URL.replace("+asyncpg", "")


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    context.configure(
        url=_sync_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        version_table_schema=target_schema,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    connectable = create_engine(_sync_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        # The version table lives in the target schema, so it must exist first
        connection.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{target_schema}"'))
        connection.commit()

        schema_translate_map = (
            {"tenant": target_schema} if target_schema != "shared" else None
        )

        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            version_table_schema=target_schema,
            include_schemas=True,
            schema_translate_map=schema_translate_map,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
