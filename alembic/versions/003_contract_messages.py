"""Tenant schema: contract negotiation messages.

Revision ID: 003_contract_messages
Revises: 002_transfer_tables
Create Date: 2026-10-20

- contract_messages: Per-contract thread between the creating team and the
  assigned agent, read back in chronological order

Run per tenant schema (-x schema=tenant_<slug>), like 002.
"""

from typing import Sequence, Union

from alembic import context, op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision: str = "003_contract_messages"
down_revision: Union[str, None] = "002_transfer_tables"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    cmd_kwargs = context.get_x_argument(as_dictionary=True)
    schema = cmd_kwargs.get("schema", "tenant")

    op.create_table(
        "contract_messages",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False),
        sa.Column("contract_id", UUID(as_uuid=True), nullable=False),
        sa.Column("sender_id", UUID(as_uuid=True), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("message_type", sa.String(30), server_default=sa.text("'discussion'"), nullable=False),
        sa.Column("related_field", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        schema="tenant",
    )
    op.execute(
        f'CREATE INDEX idx_contract_messages_contract '
        f'ON "{schema}".contract_messages(tenant_id, contract_id, created_at)'
    )

    op.execute(f'ALTER TABLE "{schema}".contract_messages ENABLE ROW LEVEL SECURITY')
    op.execute(f'ALTER TABLE "{schema}".contract_messages FORCE ROW LEVEL SECURITY')
    op.execute(f"""
        CREATE POLICY tenant_isolation ON "{schema}".contract_messages
        FOR ALL
        USING (tenant_id::text = current_setting('app.current_tenant_id', true))
        WITH CHECK (tenant_id::text = current_setting('app.current_tenant_id', true))
    """)


def downgrade() -> None:
    cmd_kwargs = context.get_x_argument(as_dictionary=True)
    schema = cmd_kwargs.get("schema", "tenant")

    op.execute(f'DROP POLICY IF EXISTS tenant_isolation ON "{schema}".contract_messages')
    op.drop_table("contract_messages", schema="tenant")
