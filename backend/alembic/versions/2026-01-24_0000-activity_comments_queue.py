"""activity_comments_queue

Revision ID: 7d2e3f4a5b61
Revises: 5b1c2d3e4f60
Create Date: 2026-01-24 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '7d2e3f4a5b61'
down_revision: Union[str, None] = '5b1c2d3e4f60'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENUM = sa.String(length=32)


def _base_columns() -> list:
    return [
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was created (UTC)'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was last updated (UTC)'),
    ]


def upgrade() -> None:
    """
    Tables:
    1. activity_feed
    2. media_comments, comment_likes
    3. queue_items, queue_votes
    """

    op.create_table(
        'activity_feed',
        *_base_columns(),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('activity_type', sa.String(length=50), nullable=False, comment='Free-form kind, e.g. rated, completed, added_to_queue'),
        sa.Column('content', sa.JSON(), nullable=False),
        sa.Column('is_public', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_activity_feed_user_id_users'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_activity_feed')),
    )
    op.create_index(op.f('ix_activity_feed_user_id'), 'activity_feed', ['user_id'])
    op.create_index(op.f('ix_activity_feed_is_public'), 'activity_feed', ['is_public'])

    # ================================
    # Comments
    # ================================
    op.create_table(
        'media_comments',
        *_base_columns(),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('media_type', ENUM, nullable=False),
        sa.Column('media_id', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('rating', sa.Float(), nullable=True),
        sa.Column('is_spoiler', sa.Boolean(), nullable=False),
        sa.Column('likes_count', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_media_comments_user_id_users'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_media_comments')),
        sa.UniqueConstraint('user_id', 'media_type', 'media_id', name='uq_media_comment_author'),
    )
    op.create_index(op.f('ix_media_comments_user_id'), 'media_comments', ['user_id'])

    op.create_table(
        'comment_likes',
        *_base_columns(),
        sa.Column('comment_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['comment_id'], ['media_comments.id'], name=op.f('fk_comment_likes_comment_id_media_comments'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_comment_likes_user_id_users'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_comment_likes')),
        sa.UniqueConstraint('comment_id', 'user_id', name='uq_comment_like'),
    )
    op.create_index(op.f('ix_comment_likes_comment_id'), 'comment_likes', ['comment_id'])
    op.create_index(op.f('ix_comment_likes_user_id'), 'comment_likes', ['user_id'])

    # ================================
    # Queue
    # ================================
    op.create_table(
        'queue_items',
        *_base_columns(),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='Owner'),
        sa.Column('media_type', ENUM, nullable=False),
        sa.Column('media_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('priority', ENUM, nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_queue_items_user_id_users'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_queue_items')),
        sa.UniqueConstraint('user_id', 'media_type', 'media_id', name='uq_queue_item_media'),
    )
    op.create_index(op.f('ix_queue_items_user_id'), 'queue_items', ['user_id'])

    op.create_table(
        'queue_votes',
        *_base_columns(),
        sa.Column('queue_item_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='Voter'),
        sa.ForeignKeyConstraint(['queue_item_id'], ['queue_items.id'], name=op.f('fk_queue_votes_queue_item_id_queue_items'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_queue_votes_user_id_users'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_queue_votes')),
        sa.UniqueConstraint('queue_item_id', 'user_id', name='uq_queue_vote'),
    )
    op.create_index(op.f('ix_queue_votes_queue_item_id'), 'queue_votes', ['queue_item_id'])
    op.create_index(op.f('ix_queue_votes_user_id'), 'queue_votes', ['user_id'])


def downgrade() -> None:
    op.drop_table('queue_votes')
    op.drop_table('queue_items')
    op.drop_table('comment_likes')
    op.drop_table('media_comments')
    op.drop_table('activity_feed')
