"""initial_schema

Revision ID: 5b1c2d3e4f60
Revises:
Create Date: 2026-01-10 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5b1c2d3e4f60'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enum columns are stored as VARCHAR(32) holding the enum value
ENUM = sa.String(length=32)

MEDIA_TABLES = {
    'books': [
        sa.Column('author', sa.String(length=255), nullable=True),
        sa.Column('isbn', sa.String(length=50), nullable=True, comment='ISBN13 when known, else ISBN10'),
    ],
    'anime': [
        sa.Column('num_episodes', sa.Integer(), nullable=True),
    ],
    'manga': [
        sa.Column('num_chapters', sa.Integer(), nullable=True),
    ],
    'movies': [
        sa.Column('year', sa.Integer(), nullable=True),
    ],
    'music': [
        sa.Column('artist', sa.String(length=500), nullable=True),
        sa.Column('album', sa.String(length=500), nullable=True),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
    ],
}


def _base_columns() -> list:
    return [
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was created (UTC)'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was last updated (UTC)'),
    ]


def upgrade() -> None:
    """
    Create the Kindred schema.

    Tables:
    1. users, sources
    2. books, anime, manga, movies, music
    3. user_media (polymorphic library rows)
    4. matches
    5. collections, collection_items
    6. conversations, messages
    7. friendships, notifications
    """

    # ================================
    # Users and sources
    # ================================
    op.create_table(
        'users',
        *_base_columns(),
        sa.Column('email', sa.String(length=255), nullable=False, comment='Login email, unique per account'),
        sa.Column('username', sa.String(length=50), nullable=False, comment='Public handle used in profile URLs'),
        sa.Column('name', sa.String(length=100), nullable=True, comment='Display name'),
        sa.Column('avatar', sa.String(length=1000), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('hashed_password', sa.String(length=255), nullable=True, comment='bcrypt hash; NULL for Google-only accounts'),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_users')),
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_username'), 'users', ['username'], unique=True)

    op.create_table(
        'sources',
        *_base_columns(),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('source_name', ENUM, nullable=False),
        sa.Column('source_user_id', sa.String(length=255), nullable=True),
        sa.Column('access_token', sa.Text(), nullable=True),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_sources_user_id_users'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_sources')),
        sa.UniqueConstraint('user_id', 'source_name', name='uq_source_user_name'),
    )
    op.create_index(op.f('ix_sources_user_id'), 'sources', ['user_id'])
    op.create_index(op.f('ix_sources_source_name'), 'sources', ['source_name'])

    # ================================
    # Media tables
    # ================================
    for table, extra_columns in MEDIA_TABLES.items():
        op.create_table(
            table,
            *_base_columns(),
            sa.Column('source', sa.String(length=50), nullable=False),
            sa.Column('source_item_id', sa.String(length=255), nullable=False),
            sa.Column('title', sa.String(length=500), nullable=False),
            sa.Column('genre', sa.JSON(), nullable=False),
            sa.Column('poster_url', sa.String(length=1000), nullable=True),
            *extra_columns,
            sa.PrimaryKeyConstraint('id', name=op.f(f'pk_{table}')),
            sa.UniqueConstraint('source', 'source_item_id', name=f'uq_{table}_source_item'),
        )
        op.create_index(op.f(f'ix_{table}_source'), table, ['source'])
        op.create_index(op.f(f'ix_{table}_title'), table, ['title'])

    op.create_index(op.f('ix_books_isbn'), 'books', ['isbn'])
    op.create_index(op.f('ix_movies_year'), 'movies', ['year'])

    # ================================
    # Library
    # ================================
    op.create_table(
        'user_media',
        *_base_columns(),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('media_type', ENUM, nullable=False, comment='Which media table media_id points into'),
        sa.Column('media_id', sa.Integer(), nullable=False),
        sa.Column('rating', sa.Float(), nullable=True, comment='Personal rating on a 0-10 scale'),
        sa.Column('status', ENUM, nullable=True),
        sa.Column('progress', sa.Integer(), nullable=True),
        sa.Column('progress_total', sa.Integer(), nullable=True),
        sa.Column('is_favorite', sa.Boolean(), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('consumed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_user_media_user_id_users'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_user_media')),
        sa.UniqueConstraint('user_id', 'media_type', 'media_id', name='uq_user_media_item'),
    )
    op.create_index(op.f('ix_user_media_user_id'), 'user_media', ['user_id'])
    op.create_index(op.f('ix_user_media_media_type'), 'user_media', ['media_type'])
    op.create_index(op.f('ix_user_media_media_id'), 'user_media', ['media_id'])

    # ================================
    # Matches
    # ================================
    op.create_table(
        'matches',
        *_base_columns(),
        sa.Column('user1_id', sa.Integer(), nullable=False),
        sa.Column('user2_id', sa.Integer(), nullable=False),
        sa.Column('similarity_score', sa.Float(), nullable=False),
        sa.Column('shared_count', sa.Integer(), nullable=False),
        sa.CheckConstraint('user1_id < user2_id', name=op.f('ck_matches_ordered_pair')),
        sa.ForeignKeyConstraint(['user1_id'], ['users.id'], name=op.f('fk_matches_user1_id_users'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user2_id'], ['users.id'], name=op.f('fk_matches_user2_id_users'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_matches')),
        sa.UniqueConstraint('user1_id', 'user2_id', name='uq_match_pair'),
    )
    op.create_index(op.f('ix_matches_user1_id'), 'matches', ['user1_id'])
    op.create_index(op.f('ix_matches_user2_id'), 'matches', ['user2_id'])

    # ================================
    # Collections
    # ================================
    op.create_table(
        'collections',
        *_base_columns(),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_public', sa.Boolean(), nullable=False),
        sa.Column('is_collaborative', sa.Boolean(), nullable=False),
        sa.Column('item_count', sa.Integer(), nullable=False),
        sa.Column('follower_count', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_collections_user_id_users'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_collections')),
    )
    op.create_index(op.f('ix_collections_user_id'), 'collections', ['user_id'])

    op.create_table(
        'collection_items',
        *_base_columns(),
        sa.Column('collection_id', sa.Integer(), nullable=False),
        sa.Column('media_type', ENUM, nullable=False),
        sa.Column('media_id', sa.Integer(), nullable=False),
        sa.Column('added_by_user_id', sa.Integer(), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['collection_id'], ['collections.id'], name=op.f('fk_collection_items_collection_id_collections'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['added_by_user_id'], ['users.id'], name=op.f('fk_collection_items_added_by_user_id_users'), ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_collection_items')),
        sa.UniqueConstraint('collection_id', 'media_type', 'media_id', name='uq_collection_item_media'),
    )
    op.create_index(op.f('ix_collection_items_collection_id'), 'collection_items', ['collection_id'])
    op.create_index(op.f('ix_collection_items_added_by_user_id'), 'collection_items', ['added_by_user_id'])

    # ================================
    # Chat
    # ================================
    op.create_table(
        'conversations',
        *_base_columns(),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_conversations_user_id_users'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_conversations')),
    )
    op.create_index(op.f('ix_conversations_user_id'), 'conversations', ['user_id'])

    op.create_table(
        'messages',
        *_base_columns(),
        sa.Column('conversation_id', sa.Integer(), nullable=False),
        sa.Column('role', ENUM, nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(['conversation_id'], ['conversations.id'], name=op.f('fk_messages_conversation_id_conversations'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_messages')),
    )
    op.create_index(op.f('ix_messages_conversation_id'), 'messages', ['conversation_id'])

    # ================================
    # Social
    # ================================
    op.create_table(
        'friendships',
        *_base_columns(),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('friend_id', sa.Integer(), nullable=False),
        sa.Column('status', ENUM, nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_friendships_user_id_users'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['friend_id'], ['users.id'], name=op.f('fk_friendships_friend_id_users'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_friendships')),
        sa.UniqueConstraint('user_id', 'friend_id', name='uq_friendship_pair'),
    )
    op.create_index(op.f('ix_friendships_user_id'), 'friendships', ['user_id'])
    op.create_index(op.f('ix_friendships_friend_id'), 'friendships', ['friend_id'])
    op.create_index(op.f('ix_friendships_status'), 'friendships', ['status'])

    op.create_table(
        'notifications',
        *_base_columns(),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('link', sa.String(length=1000), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_notifications_user_id_users'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['actor_id'], ['users.id'], name=op.f('fk_notifications_actor_id_users'), ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_notifications')),
    )
    op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'])
    op.create_index(op.f('ix_notifications_is_read'), 'notifications', ['is_read'])


def downgrade() -> None:
    """Drop every table, children before parents."""
    op.drop_table('notifications')
    op.drop_table('friendships')
    op.drop_table('messages')
    op.drop_table('conversations')
    op.drop_table('collection_items')
    op.drop_table('collections')
    op.drop_table('matches')
    op.drop_table('user_media')
    for table in reversed(list(MEDIA_TABLES)):
        op.drop_table(table)
    op.drop_table('sources')
    op.drop_table('users')
