"""Create chat core tables

Revision ID: c0a1e5d2b7f4
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'c0a1e5d2b7f4'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'user_profiles',
        sa.Column('user_id', sa.String(255), primary_key=True),
        sa.Column('handle', sa.String(20), nullable=True),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.Column('avatar', sa.Text(), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('status_message', sa.String(255), nullable=True),
        sa.Column('presence', sa.String(20), nullable=False),
        sa.Column('last_seen_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_user_profiles_handle', 'user_profiles', ['handle'], unique=True)
    op.create_index('ix_user_profiles_updated_at', 'user_profiles', ['updated_at'])

    op.create_table(
        'friendships',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_low', sa.String(255), nullable=False),
        sa.Column('user_high', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_low', 'user_high', name='uq_friendship_pair'),
        sa.CheckConstraint('user_low < user_high', name='ck_friendship_low_lt_high'),
    )
    op.create_index('ix_friendships_user_low', 'friendships', ['user_low'])
    op.create_index('ix_friendships_user_high', 'friendships', ['user_high'])

    op.create_table(
        'friend_requests',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('from_user_id', sa.String(255), nullable=False),
        sa.Column('to_user_id', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_friend_requests_from_user_id', 'friend_requests', ['from_user_id'])
    op.create_index('ix_friend_requests_to_user_id', 'friend_requests', ['to_user_id'])
    op.create_index('ix_friend_requests_to_status', 'friend_requests', ['to_user_id', 'status'])

    # At most one pending request per ordered pair
    op.create_index(
        'uq_friend_requests_pending_pair',
        'friend_requests',
        ['from_user_id', 'to_user_id'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'")
    )

    op.create_table(
        'conversations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('avatar', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(255), nullable=False),
        sa.Column('archived', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_message_at', sa.DateTime(), nullable=True),
        sa.Column('last_message_preview', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_conversations_type', 'conversations', ['type'])
    op.create_index('ix_conversations_created_by', 'conversations', ['created_by'])
    op.create_index('ix_conversations_last_message_at', 'conversations', ['last_message_at'])
    op.create_index('ix_conversations_updated_at', 'conversations', ['updated_at'])

    op.create_table(
        'messages',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('conversation_id', sa.Uuid(), sa.ForeignKey('conversations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sender_id', sa.String(255), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('reply_to_id', sa.Uuid(), sa.ForeignKey('messages.id'), nullable=True),
        sa.Column('edited', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('edited_at', sa.DateTime(), nullable=True),
        sa.Column('deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('media_key', sa.Text(), nullable=True),
        sa.Column('media_metadata', sa.JSON(), nullable=True),
        sa.Column('upload_status', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_messages_sender_id', 'messages', ['sender_id'])
    op.create_index('ix_messages_reply_to_id', 'messages', ['reply_to_id'])
    op.create_index('ix_messages_conversation_created', 'messages', ['conversation_id', 'created_at'])
    op.create_index('ix_messages_conversation_updated', 'messages', ['conversation_id', 'updated_at'])

    op.create_table(
        'conversation_participants',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('conversation_id', sa.Uuid(), sa.ForeignKey('conversations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.Column('left_at', sa.DateTime(), nullable=True),
        sa.Column('last_read_message_id', sa.Uuid(), sa.ForeignKey('messages.id'), nullable=True),
        sa.Column('last_read_at', sa.DateTime(), nullable=True),
        sa.Column('muted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('pinned', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint('conversation_id', 'user_id', name='uq_participant_conversation_user'),
    )
    op.create_index('ix_conversation_participants_conversation_id', 'conversation_participants', ['conversation_id'])
    op.create_index('ix_conversation_participants_user_id', 'conversation_participants', ['user_id'])
    op.create_index('ix_participants_user_active', 'conversation_participants', ['user_id', 'left_at'])

    op.create_table(
        'read_receipts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('message_id', sa.Uuid(), sa.ForeignKey('messages.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('read_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('message_id', 'user_id', name='uq_read_receipt_message_user'),
    )
    op.create_index('ix_read_receipts_message_id', 'read_receipts', ['message_id'])
    op.create_index('ix_read_receipts_user_id', 'read_receipts', ['user_id'])


def downgrade() -> None:
    op.drop_table('read_receipts')
    op.drop_table('conversation_participants')
    op.drop_table('messages')
    op.drop_table('conversations')
    op.drop_index('uq_friend_requests_pending_pair', table_name='friend_requests')
    op.drop_table('friend_requests')
    op.drop_table('friendships')
    op.drop_table('user_profiles')
