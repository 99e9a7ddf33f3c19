from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "alerts",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("asset", sa.String(length=100), nullable=False),
        sa.Column("target_price", sa.Float(), nullable=False),
        sa.Column("condition", sa.String(length=10), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_triggered", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_alerts_owner_id", "alerts", ["owner_id"])
    op.create_index("ix_alerts_asset", "alerts", ["asset"])
    op.create_index("ix_alerts_is_active", "alerts", ["is_active"])
    op.create_index("ix_alerts_is_triggered", "alerts", ["is_triggered"])
    op.create_index("ix_alerts_created_at", "alerts", ["created_at"])

    op.create_table(
        "triggered_alerts",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("alert_id", sa.String(length=64), sa.ForeignKey("alerts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("triggered_price", sa.Float(), nullable=False),
        sa.Column("triggered_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_triggered_alerts_alert_id", "triggered_alerts", ["alert_id"])
    op.create_index("ix_triggered_alerts_triggered_at", "triggered_alerts", ["triggered_at"])


def downgrade() -> None:
    op.drop_index("ix_triggered_alerts_triggered_at", table_name="triggered_alerts")
    op.drop_index("ix_triggered_alerts_alert_id", table_name="triggered_alerts")
    op.drop_table("triggered_alerts")

    op.drop_index("ix_alerts_created_at", table_name="alerts")
    op.drop_index("ix_alerts_is_triggered", table_name="alerts")
    op.drop_index("ix_alerts_is_active", table_name="alerts")
    op.drop_index("ix_alerts_asset", table_name="alerts")
    op.drop_index("ix_alerts_owner_id", table_name="alerts")
    op.drop_table("alerts")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
