"""Add email_notification_subscriptions."""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from fittrack.models.types import GUID

# revision identifiers, used by Alembic.
revision: str = "0003_email_notification_subscriptions"
down_revision: Union[str, None] = "0002_transactional_outbox"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "email_notification_subscriptions",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("user_id", GUID(), nullable=False),
        sa.Column("notification_type", sa.String(length=128), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_email_notification_subscriptions")),
        sa.UniqueConstraint(
            "user_id",
            "notification_type",
            name="uq_email_notification_subscriptions_user_type",
        ),
    )
    op.create_index(
        "ix_email_notification_subscriptions_user_id",
        "email_notification_subscriptions",
        ["user_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_email_notification_subscriptions_user_id", table_name="email_notification_subscriptions")
    op.drop_table("email_notification_subscriptions")
