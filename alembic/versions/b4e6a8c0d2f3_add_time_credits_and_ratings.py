"""add time credits and ratings

Revision ID: b4e6a8c0d2f3
Revises: a1c3e5f7b9d2
Create Date: 2026-10-20 10:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'b4e6a8c0d2f3'
down_revision: Union[str, None] = 'a1c3e5f7b9d2'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Minute ledger written when a request is accepted
    op.create_table('time_credits',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('user_id', sa.Uuid(), nullable=False),
    sa.Column('session_id', sa.Uuid(), nullable=False),
    sa.Column('delta_minutes', sa.Integer(), nullable=False),
    sa.Column('reason', sa.String(length=32), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint('delta_minutes <> 0', name='ck_time_credits_delta_nonzero'),
    sa.CheckConstraint("reason IN ('SESSION_TAUGHT', 'SESSION_TAKEN')", name='ck_time_credits_reason'),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='RESTRICT'),
    sa.ForeignKeyConstraint(['session_id'], ['sessions.id'], ondelete='RESTRICT'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('session_id', 'user_id', name='uq_time_credits_session_user')
    )

    op.create_table('ratings',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('rater_id', sa.Uuid(), nullable=False),
    sa.Column('rated_id', sa.Uuid(), nullable=False),
    sa.Column('session_id', sa.Uuid(), nullable=False),
    sa.Column('rating', sa.Integer(), nullable=False),
    sa.Column('review', sa.Text(), nullable=True),
    sa.Column('category', sa.String(length=10), nullable=False, server_default='course'),
    sa.Column('skill_or_course', sa.String(length=100), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint('rating >= 1 AND rating <= 5', name='ck_ratings_range'),
    sa.CheckConstraint('rater_id <> rated_id', name='ck_ratings_not_self'),
    sa.CheckConstraint("category IN ('skill', 'course')", name='ck_ratings_category'),
    sa.ForeignKeyConstraint(['rater_id'], ['users.id'], ondelete='RESTRICT'),
    sa.ForeignKeyConstraint(['rated_id'], ['users.id'], ondelete='RESTRICT'),
    sa.ForeignKeyConstraint(['session_id'], ['sessions.id'], ondelete='RESTRICT'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('session_id', 'rater_id', name='uq_ratings_session_rater')
    )

    op.create_index('idx_time_credits_user_created', 'time_credits', ['user_id', 'created_at'], unique=False)
    op.create_index('idx_ratings_rated_category', 'ratings', ['rated_id', 'category'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_ratings_rated_category', table_name='ratings')
    op.drop_index('idx_time_credits_user_created', table_name='time_credits')
    op.drop_table('ratings')
    op.drop_table('time_credits')
