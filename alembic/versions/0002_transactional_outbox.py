"""Add outbox_messages and per-handler outbox_deliveries."""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from fittrack.models.types import GUID

# revision identifiers, used by Alembic.
revision: str = "0002_transactional_outbox"
down_revision: Union[str, None] = "0001_notification_messages"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    message_status_ref = sa.Enum(
        "pending",
        "processing",
        "processed",
        "failed",
        name="outbox_message_status",
        native_enum=False,
    )
    delivery_status_ref = sa.Enum(
        "pending",
        "processing",
        "delivered",
        "failed",
        name="outbox_delivery_status",
        native_enum=False,
    )

    op.create_table(
        "outbox_messages",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("correlation_id", sa.String(length=128), nullable=False),
        sa.Column("schema_version", sa.String(length=16), nullable=False, server_default="v1"),
        sa.Column("payload_json", sa.Text(), nullable=False),
        sa.Column("status", message_status_ref, nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.String(length=400), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_outbox_messages")),
        sa.UniqueConstraint("event_type", "correlation_id", name="uq_outbox_messages_correlation"),
    )
    op.create_index(
        "ix_outbox_messages_status_next_attempt",
        "outbox_messages",
        ["status", "next_attempt_at"],
        unique=False,
    )

    op.create_table(
        "outbox_deliveries",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("event_id", GUID(), nullable=False),
        sa.Column("handler_name", sa.String(length=128), nullable=False),
        sa.Column("status", delivery_status_ref, nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.String(length=400), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(
            ["event_id"],
            ["outbox_messages.id"],
            name=op.f("fk_outbox_deliveries_event_id_outbox_messages"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_outbox_deliveries")),
        sa.UniqueConstraint("event_id", "handler_name", name="uq_outbox_deliveries_event_handler"),
    )
    op.create_index(
        "ix_outbox_deliveries_status_next_attempt",
        "outbox_deliveries",
        ["status", "next_attempt_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_outbox_deliveries_status_next_attempt", table_name="outbox_deliveries")
    op.drop_table("outbox_deliveries")
    op.drop_index("ix_outbox_messages_status_next_attempt", table_name="outbox_messages")
    op.drop_table("outbox_messages")
