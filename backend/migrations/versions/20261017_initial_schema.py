"""Initial schema: users, sessions, magic links, settings, retailers, return items

Revision ID: 20261017_initial_schema
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261017_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("apple_user_id", sa.String(255), nullable=True),
        sa.Column("google_user_id", sa.String(255), nullable=True),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.UniqueConstraint("apple_user_id", name="uq_users_apple_user_id"),
        sa.UniqueConstraint("google_user_id", name="uq_users_google_user_id"),
    )

    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.create_index("ix_users_email", ["email"], unique=False)
        batch_op.create_index("ix_users_apple_user_id", ["apple_user_id"], unique=False)
        batch_op.create_index("ix_users_google_user_id", ["google_user_id"], unique=False)

    op.create_table(
        "sessions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("anonymous_user_id", sa.String(255), nullable=True),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token_hash", name="uq_sessions_token_hash"),
    )

    with op.batch_alter_table("sessions", schema=None) as batch_op:
        batch_op.create_index("ix_sessions_user_id", ["user_id"], unique=False)
        batch_op.create_index("ix_sessions_anonymous_user_id", ["anonymous_user_id"], unique=False)
        batch_op.create_index("ix_sessions_token_hash", ["token_hash"], unique=False)

    op.create_table(
        "magic_link_tokens",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("anonymous_user_id", sa.String(255), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token_hash", name="uq_magic_link_tokens_token_hash"),
    )

    with op.batch_alter_table("magic_link_tokens", schema=None) as batch_op:
        batch_op.create_index("ix_magic_link_tokens_email", ["email"], unique=False)
        batch_op.create_index("ix_magic_link_tokens_token_hash", ["token_hash"], unique=False)

    op.create_table(
        "user_settings",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("preferred_currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("notifications_enabled", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("email_notifications_enabled", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("push_notifications_enabled", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", name="uq_user_settings_user_id"),
    )

    with op.batch_alter_table("user_settings", schema=None) as batch_op:
        batch_op.create_index("ix_user_settings_user_id", ["user_id"], unique=False)

    op.create_table(
        "retailer_policies",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("return_window_days", sa.Integer(), nullable=False),
        sa.Column("website_url", sa.String(512), nullable=True),
        sa.Column("return_portal_url", sa.String(512), nullable=True),
        sa.Column("has_free_returns", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_custom", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_by", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_retailer_policies_name"),
    )

    with op.batch_alter_table("retailer_policies", schema=None) as batch_op:
        batch_op.create_index("ix_retailer_policies_name", ["name"], unique=False)

    op.create_table(
        "return_items",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("retailer_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=True),
        sa.Column("original_currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("price_usd", sa.Numeric(10, 2), nullable=True),
        sa.Column("currency_symbol", sa.String(8), nullable=False, server_default="$"),
        sa.Column("purchase_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("return_deadline", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_returned", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_kept", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("returned_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("kept_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["retailer_id"], ["retailer_policies.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )

    with op.batch_alter_table("return_items", schema=None) as batch_op:
        batch_op.create_index("ix_return_items_user_id", ["user_id"], unique=False)
        batch_op.create_index("ix_return_items_retailer_id", ["retailer_id"], unique=False)
        batch_op.create_index("ix_return_items_return_deadline", ["return_deadline"], unique=False)
        batch_op.create_index("ix_return_items_user_open", ["user_id", "is_returned", "is_kept"], unique=False)


def downgrade():
    op.drop_table("return_items")
    op.drop_table("retailer_policies")
    op.drop_table("user_settings")
    op.drop_table("magic_link_tokens")
    op.drop_table("sessions")
    op.drop_table("users")
