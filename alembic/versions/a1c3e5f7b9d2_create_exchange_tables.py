"""create exchange tables

Revision ID: a1c3e5f7b9d2
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a1c3e5f7b9d2'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('users',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('email', sa.String(length=320), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=True),
    sa.Column('university', sa.String(length=200), nullable=True),
    sa.Column('timezone', sa.String(length=64), nullable=True),
    sa.Column('image', sa.String(length=1000), nullable=True),
    sa.Column('token_balance', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint('token_balance >= 0', name='ck_users_token_balance_nonnegative'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('email')
    )

    op.create_table('sessions',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('teacher_id', sa.Uuid(), nullable=False),
    sa.Column('learner_id', sa.Uuid(), nullable=False),
    sa.Column('course_code', sa.String(length=100), nullable=False),
    sa.Column('minutes', sa.Integer(), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False, server_default='scheduled'),
    sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
    sa.Column('start_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('end_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint('minutes > 0', name='ck_sessions_minutes_positive'),
    sa.CheckConstraint("status IN ('scheduled', 'done')", name='ck_sessions_status'),
    sa.ForeignKeyConstraint(['teacher_id'], ['users.id'], ondelete='RESTRICT'),
    sa.ForeignKeyConstraint(['learner_id'], ['users.id'], ondelete='RESTRICT'),
    sa.PrimaryKeyConstraint('id')
    )

    op.create_table('requests',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('from_user_id', sa.Uuid(), nullable=False),
    sa.Column('to_user_id', sa.Uuid(), nullable=False),
    sa.Column('course_code', sa.String(length=100), nullable=False),
    sa.Column('minutes', sa.Integer(), nullable=False, server_default='60'),
    sa.Column('note', sa.Text(), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=False, server_default='PENDING'),
    sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
    sa.Column('session_id', sa.Uuid(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
    sa.CheckConstraint('from_user_id <> to_user_id', name='ck_requests_not_self'),
    sa.CheckConstraint('minutes > 0', name='ck_requests_minutes_positive'),
    sa.CheckConstraint(
        "status IN ('PENDING', 'ACCEPTED', 'DECLINED', 'CANCELLED', 'EXPIRED')",
        name='ck_requests_status'
    ),
    sa.ForeignKeyConstraint(['from_user_id'], ['users.id'], ondelete='RESTRICT'),
    sa.ForeignKeyConstraint(['to_user_id'], ['users.id'], ondelete='RESTRICT'),
    sa.ForeignKeyConstraint(['session_id'], ['sessions.id'], ondelete='SET NULL'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('session_id')
    )

    op.create_table('token_ledger',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('user_id', sa.Uuid(), nullable=False),
    sa.Column('delta', sa.Integer(), nullable=False),
    sa.Column('reason', sa.String(length=32), nullable=False),
    sa.Column('request_id', sa.Uuid(), nullable=True),
    sa.Column('session_id', sa.Uuid(), nullable=True),
    sa.Column('note', sa.String(length=500), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint('delta <> 0', name='ck_token_ledger_delta_nonzero'),
    sa.CheckConstraint(
        "reason IN ('INITIAL_GRANT', 'REQUEST_SENT', 'REQUEST_REFUNDED', 'SESSION_TAUGHT', 'ADMIN_ADJUST')",
        name='ck_token_ledger_reason'
    ),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='RESTRICT'),
    sa.ForeignKeyConstraint(['request_id'], ['requests.id'], ondelete='SET NULL'),
    sa.ForeignKeyConstraint(['session_id'], ['sessions.id'], ondelete='SET NULL'),
    sa.PrimaryKeyConstraint('id')
    )

    # Create indexes for performance
    op.create_index('idx_sessions_teacher', 'sessions', ['teacher_id'], unique=False)
    op.create_index('idx_sessions_learner', 'sessions', ['learner_id'], unique=False)
    op.create_index('idx_sessions_start', 'sessions', ['start_at'], unique=False)
    op.create_index('idx_requests_to_status', 'requests', ['to_user_id', 'status'], unique=False)
    op.create_index('idx_requests_from_status', 'requests', ['from_user_id', 'status'], unique=False)
    op.create_index('idx_requests_status_created', 'requests', ['status', 'created_at'], unique=False)
    op.create_index('idx_token_ledger_user_created', 'token_ledger', ['user_id', 'created_at'], unique=False)
    op.create_index('idx_token_ledger_request', 'token_ledger', ['request_id'], unique=False)
    op.create_index('idx_token_ledger_session', 'token_ledger', ['session_id'], unique=False)


def downgrade() -> None:
    # Drop indexes
    op.drop_index('idx_token_ledger_session', table_name='token_ledger')
    op.drop_index('idx_token_ledger_request', table_name='token_ledger')
    op.drop_index('idx_token_ledger_user_created', table_name='token_ledger')
    op.drop_index('idx_requests_status_created', table_name='requests')
    op.drop_index('idx_requests_from_status', table_name='requests')
    op.drop_index('idx_requests_to_status', table_name='requests')
    op.drop_index('idx_sessions_start', table_name='sessions')
    op.drop_index('idx_sessions_learner', table_name='sessions')
    op.drop_index('idx_sessions_teacher', table_name='sessions')

    # Drop tables
    op.drop_table('token_ledger')
    op.drop_table('requests')
    op.drop_table('sessions')
    op.drop_table('users')
