"""create accounts, account_settings, messages, chat_groups and group_members tables

Revision ID: 5a1e2c9d7b30
Revises:
Create Date: 2026-10-17

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "5a1e2c9d7b30"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the account directory, settings, message and group tables."""
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(length=255), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("custom_name", sa.String(length=255), nullable=True),
        sa.Column("whatsapp_name", sa.String(length=255), nullable=True),
        sa.Column(
            "last_active",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    # account_settings (one row per local account)
    op.create_table(
        "account_settings",
        sa.Column("id", sa.String(length=255), primary_key=True),
        sa.Column("encrypted_access_token", sa.LargeBinary(), nullable=True),
        sa.Column("phone_number_id", sa.String(length=64), nullable=True),
        sa.Column("business_account_id", sa.String(length=64), nullable=True),
        sa.Column("verify_token", sa.String(length=255), nullable=True),
        sa.Column("webhook_token", sa.String(length=255), nullable=True),
        sa.Column(
            "api_version",
            sa.String(length=16),
            nullable=False,
            server_default="v23.0",
        ),
        sa.Column(
            "webhook_verified",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.ForeignKeyConstraint(["id"], ["accounts.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_account_settings_phone_number_id",
        "account_settings",
        ["phone_number_id"],
        unique=False,
    )
    op.create_index(
        "ix_account_settings_business_account_id",
        "account_settings",
        ["business_account_id"],
        unique=False,
    )
    op.create_index(
        "ix_account_settings_webhook_token",
        "account_settings",
        ["webhook_token"],
        unique=True,
    )

    # messages (insert-only)
    op.create_table(
        "messages",
        sa.Column("id", sa.String(length=255), primary_key=True),
        sa.Column("counterpart_id", sa.String(length=64), nullable=False),
        sa.Column("local_party_id", sa.String(length=255), nullable=False),
        sa.Column(
            "is_sent_by_me",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "message_type", sa.String(length=32), nullable=False, server_default="text"
        ),
        sa.Column(
            "media_data", postgresql.JSONB(astext_type=sa.Text()), nullable=True
        ),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
    )
    op.create_index(
        "ix_messages_counterpart_id", "messages", ["counterpart_id"], unique=False
    )
    op.create_index(
        "ix_messages_local_party_id", "messages", ["local_party_id"], unique=False
    )
    op.create_index(
        "ix_messages_conversation",
        "messages",
        ["local_party_id", "counterpart_id", "timestamp"],
        unique=False,
    )
    op.create_index("ix_messages_timestamp", "messages", ["timestamp"], unique=False)

    # chat_groups
    op.create_table(
        "chat_groups",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("owner_id", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index(
        "ix_chat_groups_owner_id", "chat_groups", ["owner_id"], unique=False
    )

    # group_members (cascade with the group; never touches messages)
    op.create_table(
        "group_members",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("group_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("member_id", sa.String(length=64), nullable=False),
        sa.Column(
            "added_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.ForeignKeyConstraint(
            ["group_id"], ["chat_groups.id"], ondelete="CASCADE"
        ),
        sa.UniqueConstraint(
            "group_id", "member_id", name="uq_group_members_group_member"
        ),
    )
    op.create_index(
        "ix_group_members_group_id", "group_members", ["group_id"], unique=False
    )
    op.create_index(
        "ix_group_members_member_id", "group_members", ["member_id"], unique=False
    )


def downgrade() -> None:
    """Drop all tables created in upgrade()."""
    op.drop_index("ix_group_members_member_id", table_name="group_members")
    op.drop_index("ix_group_members_group_id", table_name="group_members")
    op.drop_table("group_members")
    op.drop_index("ix_chat_groups_owner_id", table_name="chat_groups")
    op.drop_table("chat_groups")
    op.drop_index("ix_messages_timestamp", table_name="messages")
    op.drop_index("ix_messages_conversation", table_name="messages")
    op.drop_index("ix_messages_local_party_id", table_name="messages")
    op.drop_index("ix_messages_counterpart_id", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_account_settings_webhook_token", table_name="account_settings")
    op.drop_index(
        "ix_account_settings_business_account_id", table_name="account_settings"
    )
    op.drop_index("ix_account_settings_phone_number_id", table_name="account_settings")
    op.drop_table("account_settings")
    op.drop_table("accounts")
