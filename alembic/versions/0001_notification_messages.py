"""Create notification_messages for durable email work items."""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from fittrack.models.types import GUID

# revision identifiers, used by Alembic.
revision: str = "0001_notification_messages"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the notification work-item table."""
    channel_ref = sa.Enum("email", name="notification_channel", native_enum=False)
    status_ref = sa.Enum(
        "pending",
        "processing",
        "sent",
        "failed",
        name="notification_status",
        native_enum=False,
    )

    op.create_table(
        "notification_messages",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("channel", channel_ref, nullable=False),
        sa.Column("notification_type", sa.String(length=128), nullable=False),
        sa.Column("correlation_id", sa.String(length=128), nullable=False),
        sa.Column("recipient", sa.String(length=320), nullable=False),
        sa.Column("payload_json", sa.Text(), nullable=False),
        sa.Column("status", status_ref, nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.String(length=400), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_notification_messages")),
        sa.UniqueConstraint(
            "notification_type",
            "correlation_id",
            "recipient",
            name="uq_notification_messages_correlation",
        ),
    )
    op.create_index(
        "ix_notification_messages_status_next_attempt",
        "notification_messages",
        ["status", "next_attempt_at"],
        unique=False,
    )
    op.create_index("ix_notification_messages_created_at", "notification_messages", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_notification_messages_created_at", table_name="notification_messages")
    op.drop_index("ix_notification_messages_status_next_attempt", table_name="notification_messages")
    op.drop_table("notification_messages")
