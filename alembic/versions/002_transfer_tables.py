"""Initial tenant schema: pitches, contracts, workflow history, timeline, notifications.

Revision ID: 002_transfer_tables
Revises:
Create Date: 2026-10-19

Creates five tables in the tenant schema:
- pitches: Transfer listings published by teams
- contracts: Team/agent negotiations with a version counter for
  optimistic concurrency
- contract_workflow_steps: Append-only contract history
- timeline_events: Dated team activity (matches, transfers, achievements)
- notifications: Per-recipient inbox

All tables include RLS policies for tenant isolation and composite indexes
for common query patterns. No foreign key constraints (application-level
referential integrity via repository).

Note: Tables use the schema="tenant" placeholder, replaced via
schema_translate_map. RLS and index DDL use the actual schema from -x args.
"""

from typing import Sequence, Union

from alembic import context, op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision: str = "002_transfer_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = ("tenant",)
depends_on: Union[str, Sequence[str], None] = None

TABLES = (
    "pitches",
    "contracts",
    "contract_workflow_steps",
    "timeline_events",
    "notifications",
)


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _enable_rls(schema: str, table: str) -> None:
    op.execute(f'ALTER TABLE "{schema}".{table} ENABLE ROW LEVEL SECURITY')
    op.execute(f'ALTER TABLE "{schema}".{table} FORCE ROW LEVEL SECURITY')
    op.execute(f"""
        CREATE POLICY tenant_isolation ON "{schema}".{table}
        FOR ALL
        USING (tenant_id::text = current_setting('app.current_tenant_id', true))
        WITH CHECK (tenant_id::text = current_setting('app.current_tenant_id', true))
    """)


def upgrade() -> None:
    # Get the actual schema name from -x args
    cmd_kwargs = context.get_x_argument(as_dictionary=True)
    schema = cmd_kwargs.get("schema", "tenant")

    # ── pitches table ───────────────────────────────────────────────────

    op.create_table(
        "pitches",
        _id_column(),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False),
        sa.Column("team_id", UUID(as_uuid=True), nullable=False),
        sa.Column("player_id", UUID(as_uuid=True), nullable=True),
        sa.Column("transfer_type", sa.String(20), server_default=sa.text("'permanent'"), nullable=False),
        sa.Column("asking_price", sa.Float(), nullable=True),
        sa.Column("currency", sa.String(3), server_default=sa.text("'USD'"), nullable=False),
        sa.Column("status", sa.String(20), server_default=sa.text("'active'"), nullable=False),
        sa.Column("deal_stage", sa.String(50), server_default=sa.text("'open'"), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("contract_finalized", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("contract_finalized_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        schema="tenant",
    )
    op.execute(f'CREATE INDEX idx_pitches_tenant_team ON "{schema}".pitches(tenant_id, team_id)')

    # ── contracts table ─────────────────────────────────────────────────

    op.create_table(
        "contracts",
        _id_column(),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False),
        sa.Column("pitch_id", UUID(as_uuid=True), nullable=False),
        sa.Column("team_id", UUID(as_uuid=True), nullable=False),
        sa.Column("agent_id", UUID(as_uuid=True), nullable=True),
        sa.Column("player_id", UUID(as_uuid=True), nullable=True),
        sa.Column("contract_value", sa.Float(), nullable=True),
        sa.Column("currency", sa.String(3), server_default=sa.text("'USD'"), nullable=False),
        sa.Column("terms", sa.JSON(), server_default=sa.text("'{}'::json"), nullable=False),
        sa.Column("deal_stage", sa.String(50), server_default=sa.text("'draft'"), nullable=False),
        sa.Column("status", sa.String(20), server_default=sa.text("'draft'"), nullable=False),
        sa.Column("signatures", sa.JSON(), server_default=sa.text("'{}'::json"), nullable=False),
        sa.Column("financial_summary", sa.JSON(), server_default=sa.text("'{}'::json"), nullable=False),
        sa.Column("priority", sa.String(10), server_default=sa.text("'medium'"), nullable=False),
        sa.Column("negotiation_rounds", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("version", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column("response_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), nullable=True),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        schema="tenant",
    )
    op.execute(f'CREATE INDEX idx_contracts_tenant_stage ON "{schema}".contracts(tenant_id, deal_stage)')
    op.execute(f'CREATE INDEX idx_contracts_tenant_pitch ON "{schema}".contracts(tenant_id, pitch_id)')

    # ── contract_workflow_steps table ───────────────────────────────────

    op.create_table(
        "contract_workflow_steps",
        _id_column(),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False),
        sa.Column("contract_id", UUID(as_uuid=True), nullable=False),
        sa.Column("step_type", sa.String(30), nullable=False),
        sa.Column("from_stage", sa.String(50), nullable=True),
        sa.Column("to_stage", sa.String(50), nullable=True),
        sa.Column("actor_id", UUID(as_uuid=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        schema="tenant",
    )
    op.execute(
        f'CREATE INDEX idx_workflow_steps_contract '
        f'ON "{schema}".contract_workflow_steps(tenant_id, contract_id)'
    )

    # ── timeline_events table ───────────────────────────────────────────

    op.create_table(
        "timeline_events",
        _id_column(),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False),
        sa.Column("team_id", UUID(as_uuid=True), nullable=False),
        sa.Column("event_type", sa.String(20), nullable=False),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("event_date", sa.Date(), nullable=False),
        sa.Column("player_id", UUID(as_uuid=True), nullable=True),
        sa.Column("contract_id", UUID(as_uuid=True), nullable=True),
        sa.Column("is_pinned", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("metadata_json", sa.JSON(), server_default=sa.text("'{}'::json"), nullable=False),
        sa.Column("created_by", UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        schema="tenant",
    )
    op.execute(
        f'CREATE INDEX idx_timeline_events_team_date '
        f'ON "{schema}".timeline_events(tenant_id, team_id, event_date)'
    )

    # ── notifications table ─────────────────────────────────────────────

    op.create_table(
        "notifications",
        _id_column(),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False),
        sa.Column("recipient_id", UUID(as_uuid=True), nullable=False),
        sa.Column("kind", sa.String(50), server_default=sa.text("'system'"), nullable=False),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("data", sa.JSON(), server_default=sa.text("'{}'::json"), nullable=False),
        sa.Column("is_read", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        schema="tenant",
    )
    op.execute(
        f'CREATE INDEX idx_notifications_recipient '
        f'ON "{schema}".notifications(tenant_id, recipient_id, is_read)'
    )

    for table in TABLES:
        _enable_rls(schema, table)


def downgrade() -> None:
    cmd_kwargs = context.get_x_argument(as_dictionary=True)
    schema = cmd_kwargs.get("schema", "tenant")

    for table in reversed(TABLES):
        op.execute(f'DROP POLICY IF EXISTS tenant_isolation ON "{schema}".{table}')
        op.drop_table(table, schema="tenant")
