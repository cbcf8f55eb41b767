"""init

Revision ID: 0001_init
Revises: 
Create Date: 2026-10-17 09:00:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "ip_whitelist",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("ip_address", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("added_by", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    # The unique index doubles as the duplicate guard for concurrent inserts.
    op.create_index("ix_ip_whitelist_ip_address", "ip_whitelist", ["ip_address"], unique=True)

    op.create_table(
        "access_logs",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("ip_address", sa.String(), nullable=False),
        sa.Column("access_granted", sa.Boolean(), nullable=False),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("browser_name", sa.String(), nullable=True),
        sa.Column("browser_version", sa.String(), nullable=True),
        sa.Column("os_name", sa.String(), nullable=True),
        sa.Column("device_type", sa.String(), nullable=True),
        sa.Column("fingerprint", sa.String(), nullable=True),
        sa.Column("path", sa.String(), nullable=True),
        sa.Column("session_id", sa.String(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_access_logs_ip_address", "access_logs", ["ip_address"])
    op.create_index("ix_access_logs_session_id", "access_logs", ["session_id"])
    op.create_index("ix_access_logs_timestamp", "access_logs", ["timestamp"])
    op.create_index("ix_access_logs_granted_timestamp", "access_logs", ["access_granted", "timestamp"])

    op.create_table(
        "user_profiles",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_user_profiles_email", "user_profiles", ["email"])

    op.create_table(
        "chat_sessions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("ip_address", sa.String(), nullable=True),
        sa.Column("fingerprint", sa.String(), nullable=True),
        sa.Column("first_seen", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_seen", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("message_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    # ON CONFLICT (session_id) in the upsert relies on this unique index.
    op.create_index("ix_chat_sessions_session_id", "chat_sessions", ["session_id"], unique=True)
    op.create_index("ix_chat_sessions_user_id", "chat_sessions", ["user_id"])
    op.create_index("ix_chat_sessions_last_seen", "chat_sessions", ["last_seen"])

    op.create_table(
        "chat_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_chat_history_session_id", "chat_history", ["session_id"])


def downgrade() -> None:
    op.drop_index("ix_chat_history_session_id", table_name="chat_history")
    op.drop_table("chat_history")
    op.drop_index("ix_chat_sessions_last_seen", table_name="chat_sessions")
    op.drop_index("ix_chat_sessions_user_id", table_name="chat_sessions")
    op.drop_index("ix_chat_sessions_session_id", table_name="chat_sessions")
    op.drop_table("chat_sessions")
    op.drop_index("ix_user_profiles_email", table_name="user_profiles")
    op.drop_table("user_profiles")
    op.drop_index("ix_access_logs_granted_timestamp", table_name="access_logs")
    op.drop_index("ix_access_logs_timestamp", table_name="access_logs")
    op.drop_index("ix_access_logs_session_id", table_name="access_logs")
    op.drop_index("ix_access_logs_ip_address", table_name="access_logs")
    op.drop_table("access_logs")
    op.drop_index("ix_ip_whitelist_ip_address", table_name="ip_whitelist")
    op.drop_table("ip_whitelist")
