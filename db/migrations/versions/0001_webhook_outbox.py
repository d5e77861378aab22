"""Webhook outbox: tenants, domain_events, webhooks, webhook_outbox.

- domain_events: append-only producer log, fanned out by the pipeline
- webhooks: tenant subscriptions (unique per tenant + url)
- webhook_outbox: one delivery job per (event, webhook)
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_webhook_outbox"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False, server_default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        *_timestamps(),
    )

    op.create_table(
        "domain_events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("type", sa.String(100), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("payload", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("metadata", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_domain_events_status_created", "domain_events", ["status", "created_at"])
    op.create_index("ix_domain_events_tenant_status", "domain_events", ["tenant_id", "status"])

    op.create_table(
        "webhooks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("url", sa.String(2048), nullable=False),
        sa.Column("secret", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("events", postgresql.JSONB(), nullable=False, server_default=sa.text("'[\"*\"]'::jsonb")),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "url", name="uq_webhooks_tenant_url"),
    )
    op.create_index("ix_webhooks_tenant_active", "webhooks", ["tenant_id", "is_active"])

    op.create_table(
        "webhook_outbox",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("webhook_id", sa.Uuid(), nullable=False),
        sa.Column("event_id", sa.Uuid(), nullable=False),
        sa.Column("type", sa.String(100), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("error_type", sa.String(20), nullable=True),
        sa.Column("last_http_status", sa.Integer(), nullable=True),
        sa.Column("last_duration_ms", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_webhook_outbox_status_created", "webhook_outbox", ["status", "created_at"])
    op.create_index("ix_webhook_outbox_tenant_status", "webhook_outbox", ["tenant_id", "status"])
    op.create_index("ix_webhook_outbox_webhook", "webhook_outbox", ["webhook_id"])


def downgrade() -> None:
    op.drop_index("ix_webhook_outbox_webhook", table_name="webhook_outbox")
    op.drop_index("ix_webhook_outbox_tenant_status", table_name="webhook_outbox")
    op.drop_index("ix_webhook_outbox_status_created", table_name="webhook_outbox")
    op.drop_table("webhook_outbox")
    op.drop_index("ix_webhooks_tenant_active", table_name="webhooks")
    op.drop_table("webhooks")
    op.drop_index("ix_domain_events_tenant_status", table_name="domain_events")
    op.drop_index("ix_domain_events_status_created", table_name="domain_events")
    op.drop_table("domain_events")
    op.drop_table("tenants")
