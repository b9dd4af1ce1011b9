"""Create application review tables

Revision ID: 0a1c3e5f7b9d
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0a1c3e5f7b9d"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "applications",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("short_code", sa.String(6), nullable=False),
        sa.Column("guild_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolver_id", sa.BigInteger(), nullable=True),
        sa.Column("resolution_reason", sa.Text(), nullable=True),
        sa.Column("permanently_rejected", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_applications_guild_code", "applications", ["guild_id", "short_code"])
    op.create_index(
        "ix_applications_guild_user", "applications", ["guild_id", "user_id", "created_at"]
    )
    op.create_index(
        "uq_applications_open_per_user",
        "applications",
        ["guild_id", "user_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'submitted')"),
    )

    op.create_table(
        "review_claims",
        sa.Column(
            "app_id",
            sa.String(32),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("reviewer_id", sa.BigInteger(), nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "review_actions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("app_id", sa.String(32), nullable=False),
        sa.Column("actor_id", sa.BigInteger(), nullable=False),
        sa.Column("action", sa.String(40), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("meta", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_review_actions_app_time", "review_actions", ["app_id", "created_at"])
    op.create_index("ix_review_actions_actor_time", "review_actions", ["actor_id", "created_at"])

    op.create_table(
        "guild_configs",
        sa.Column("guild_id", sa.BigInteger(), primary_key=True),
        sa.Column("review_channel_id", sa.BigInteger(), nullable=True),
        sa.Column("accepted_role_id", sa.BigInteger(), nullable=True),
        sa.Column("general_channel_id", sa.BigInteger(), nullable=True),
        sa.Column("welcome_template", sa.Text(), nullable=True),
        sa.Column("reapply_cooldown_hours", sa.Integer(), nullable=False, server_default="24"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "modmail_tickets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("guild_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("app_code", sa.String(6), nullable=True),
        sa.Column("thread_id", sa.BigInteger(), nullable=True),
        sa.Column("status", sa.String(10), nullable=False, server_default="open"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("close_reason", sa.Text(), nullable=True),
    )
    op.create_index(
        "ix_modmail_tickets_guild_user_status",
        "modmail_tickets",
        ["guild_id", "user_id", "status"],
    )

    op.create_table(
        "review_cards",
        sa.Column(
            "app_id",
            sa.String(32),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("channel_id", sa.BigInteger(), nullable=False),
        sa.Column("message_id", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("review_cards")
    op.drop_index("ix_modmail_tickets_guild_user_status", table_name="modmail_tickets")
    op.drop_table("modmail_tickets")
    op.drop_table("guild_configs")
    op.drop_index("ix_review_actions_actor_time", table_name="review_actions")
    op.drop_index("ix_review_actions_app_time", table_name="review_actions")
    op.drop_table("review_actions")
    op.drop_table("review_claims")
    op.drop_index("uq_applications_open_per_user", table_name="applications")
    op.drop_index("ix_applications_guild_user", table_name="applications")
    op.drop_index("ix_applications_guild_code", table_name="applications")
    op.drop_table("applications")
