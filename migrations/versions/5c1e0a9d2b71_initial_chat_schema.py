"""initial chat schema

Revision ID: 5c1e0a9d2b71
Revises:
Create Date: 2026-10-19 09:12:44.381502

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1e0a9d2b71"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, communities, conversations, messages and files."""
    op.create_table(
        "users",
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("profile_type", sa.String(length=16), nullable=False),
        sa.Column("avatar_color", sa.String(length=16), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False),
        sa.Column("login_attempts", sa.Integer(), nullable=False),
        sa.Column("account_locked", sa.Boolean(), nullable=False),
        sa.Column("lock_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("username"),
    )
    op.create_table(
        "banned_usernames",
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("banned_by", sa.String(length=64), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("banned_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("username"),
    )
    op.create_table(
        "servers",
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("creator_username", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("member_count", sa.Integer(), nullable=False),
        sa.Column("channel_count", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("name"),
    )
    op.create_index("ix_servers_creator_username", "servers", ["creator_username"])
    op.create_table(
        "server_members",
        sa.Column("server_name", sa.String(length=64), nullable=False),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("is_online", sa.Boolean(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["server_name"], ["servers.name"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["username"], ["users.username"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("server_name", "username"),
    )
    op.create_index("ix_server_members_username", "server_members", ["username"])
    op.create_table(
        "channels",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("server_name", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["server_name"], ["servers.name"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("server_name", "name", name="uq_channels_server_name"),
    )
    op.create_index("ix_channels_server_name", "channels", ["server_name"])
    op.create_table(
        "server_bans",
        sa.Column("server_name", sa.String(length=64), nullable=False),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("banned_by", sa.String(length=64), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("banned_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["server_name"], ["servers.name"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("server_name", "username"),
    )
    op.create_table(
        "direct_messages",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("username1", sa.String(length=64), nullable=False),
        sa.Column("username2", sa.String(length=64), nullable=False),
        sa.Column("message_count", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["username1"], ["users.username"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["username2"], ["users.username"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username1", "username2", name="uq_direct_messages_users"),
    )
    op.create_index("ix_direct_messages_username1", "direct_messages", ["username1"])
    op.create_index("ix_direct_messages_username2", "direct_messages", ["username2"])
    op.create_table(
        "messages",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("channel_id", sa.String(length=36), nullable=True),
        sa.Column("dm_id", sa.String(length=36), nullable=True),
        sa.Column("sender_username", sa.String(length=64), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("filtered_content", sa.Text(), nullable=True),
        sa.Column("content_type", sa.String(length=32), nullable=False),
        sa.Column("filter_status", sa.String(length=16), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "(channel_id IS NOT NULL AND dm_id IS NULL) OR (channel_id IS NULL AND dm_id IS NOT NULL)",
            name="ck_messages_single_target",
        ),
        sa.ForeignKeyConstraint(["channel_id"], ["channels.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["dm_id"], ["direct_messages.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sender_username"], ["users.username"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_messages_channel_id", "messages", ["channel_id"])
    op.create_index("ix_messages_dm_id", "messages", ["dm_id"])
    op.create_index("ix_messages_sender_username", "messages", ["sender_username"])
    op.create_index("ix_messages_created_at", "messages", ["created_at"])
    op.create_table(
        "files",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("original_name", sa.Text(), nullable=False),
        sa.Column("file_name", sa.Text(), nullable=False),
        sa.Column("content_type", sa.String(length=128), nullable=False),
        sa.Column("size", sa.BigInteger(), nullable=False),
        sa.Column("file_hash", sa.String(length=128), nullable=False),
        sa.Column("download_count", sa.Integer(), nullable=False),
        sa.Column("uploader_username", sa.String(length=64), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column("upload_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["uploader_username"], ["users.username"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_files_uploader_username", "files", ["uploader_username"])
    op.create_table(
        "file_attachments",
        sa.Column("file_id", sa.String(length=36), nullable=False),
        sa.Column("message_id", sa.String(length=36), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["file_id"], ["files.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["message_id"], ["messages.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("file_id", "message_id"),
    )
    op.create_index("ix_file_attachments_message_id", "file_attachments", ["message_id"])


def downgrade() -> None:
    """Drop every table in reverse dependency order."""
    op.drop_index("ix_file_attachments_message_id", table_name="file_attachments")
    op.drop_table("file_attachments")
    op.drop_index("ix_files_uploader_username", table_name="files")
    op.drop_table("files")
    op.drop_index("ix_messages_created_at", table_name="messages")
    op.drop_index("ix_messages_sender_username", table_name="messages")
    op.drop_index("ix_messages_dm_id", table_name="messages")
    op.drop_index("ix_messages_channel_id", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_direct_messages_username2", table_name="direct_messages")
    op.drop_index("ix_direct_messages_username1", table_name="direct_messages")
    op.drop_table("direct_messages")
    op.drop_table("server_bans")
    op.drop_index("ix_channels_server_name", table_name="channels")
    op.drop_table("channels")
    op.drop_index("ix_server_members_username", table_name="server_members")
    op.drop_table("server_members")
    op.drop_index("ix_servers_creator_username", table_name="servers")
    op.drop_table("servers")
    op.drop_table("banned_usernames")
    op.drop_table("users")
