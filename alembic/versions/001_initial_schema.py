"""Initial scholarship schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create users, periods, registration, interview, scoring and notification tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=30), nullable=True),
        sa.Column('role', sa.String(length=50), nullable=False, server_default='Guest'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'user_sessions',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('session_token', sa.String(length=128), nullable=False),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=500), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_token', name='uq_user_sessions_token'),
    )
    op.create_index('ix_user_sessions_user_id', 'user_sessions', ['user_id'])

    op.create_table(
        'students',
        sa.Column('id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('nim', sa.String(length=20), nullable=False),
        sa.Column('faculty', sa.String(length=255), nullable=False),
        sa.Column('major', sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('nim', name='uq_students_nim'),
    )

    op.create_table(
        'periods',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('period', sa.String(length=100), nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_current', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_open', sa.Boolean(), nullable=False, server_default='false'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_period_current', 'periods', ['is_current'])

    op.create_table(
        'statuses',
        sa.Column('student_id', sa.BigInteger(), sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('period_id', sa.BigInteger(), sa.ForeignKey('periods.id', ondelete='CASCADE'), nullable=False),
        sa.Column('pass_ditmawa', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('pass_iom', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('pass_interview', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('amount', sa.Numeric(14, 2), nullable=True),
        sa.PrimaryKeyConstraint('student_id', 'period_id'),
    )
    op.create_index('idx_status_period', 'statuses', ['period_id'])

    op.create_table(
        'files',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('student_id', sa.BigInteger(), sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('file_type', sa.String(length=50), nullable=False),
        sa.Column('file_key', sa.String(length=512), nullable=False),
        sa.Column('original_name', sa.String(length=255), nullable=True),
        sa.Column('content_type', sa.String(length=255), nullable=True),
        sa.Column('size', sa.BigInteger(), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'file_type', name='uq_file_student_type'),
    )
    op.create_index('ix_files_student_id', 'files', ['student_id'])

    op.create_table(
        'interviews',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('period_id', sa.BigInteger(), sa.ForeignKey('periods.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('max_students', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_interviews_period_id', 'interviews', ['period_id'])
    op.create_index('ix_interviews_user_id', 'interviews', ['user_id'])

    op.create_table(
        'interview_slots',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('interview_id', sa.BigInteger(), sa.ForeignKey('interviews.id', ondelete='CASCADE'), nullable=True),
        sa.Column('period_id', sa.BigInteger(), sa.ForeignKey('periods.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('slot_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('student_id', sa.BigInteger(), sa.ForeignKey('students.id', ondelete='SET NULL'), nullable=True),
        sa.Column('booked_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('period_id', 'student_id', name='uq_slot_period_student'),
        sa.UniqueConstraint('interview_id', 'slot_number', name='uq_slot_interview_number'),
    )
    op.create_index('ix_interview_slots_user_id', 'interview_slots', ['user_id'])
    op.create_index('idx_slot_period_start', 'interview_slots', ['period_id', 'start_time'])

    op.create_table(
        'interview_participants',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('slot_id', sa.BigInteger(), sa.ForeignKey('interview_slots.id', ondelete='CASCADE'), nullable=False),
        sa.Column('interview_id', sa.BigInteger(), sa.ForeignKey('interviews.id', ondelete='CASCADE'), nullable=True),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slot_id', 'user_id', name='uq_participant_slot_user'),
    )
    op.create_index('ix_interview_participants_interview_id', 'interview_participants', ['interview_id'])
    op.create_index('ix_interview_participants_user_id', 'interview_participants', ['user_id'])

    op.create_table(
        'interview_notes',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('slot_id', sa.BigInteger(), sa.ForeignKey('interview_slots.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_id', sa.BigInteger(), sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('text', sa.Text(), nullable=False, server_default=''),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slot_id', name='uq_interview_notes_slot'),
    )
    op.create_index('ix_interview_notes_student_id', 'interview_notes', ['student_id'])

    op.create_table(
        'questions',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('question', sa.String(length=1000), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'score_matrix',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('student_id', sa.BigInteger(), sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('period_id', sa.BigInteger(), sa.ForeignKey('periods.id', ondelete='CASCADE'), nullable=False),
        sa.Column('question_id', sa.BigInteger(), sa.ForeignKey('questions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('score_category', sa.String(length=20), nullable=False),
        sa.Column('comment', sa.Text(), nullable=False, server_default=''),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'period_id', 'question_id', name='uq_score_student_period_question'),
    )

    op.create_table(
        'notifications',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('header', sa.String(length=255), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('url', sa.String(length=1000), nullable=True),
        sa.Column('has_read', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_notification_user_created', 'notifications', ['user_id', 'created_at'])

    op.create_table(
        'notification_endpoints',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('endpoint', sa.String(length=1000), nullable=False),
        sa.Column('keys', sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'endpoint', name='uq_endpoint_user_endpoint'),
    )
    op.create_index('ix_notification_endpoints_user_id', 'notification_endpoints', ['user_id'])


def downgrade() -> None:
    """Drop every table in reverse dependency order."""
    op.drop_table('notification_endpoints')
    op.drop_table('notifications')
    op.drop_table('score_matrix')
    op.drop_table('questions')
    op.drop_table('interview_notes')
    op.drop_table('interview_participants')
    op.drop_table('interview_slots')
    op.drop_table('interviews')
    op.drop_table('files')
    op.drop_table('statuses')
    op.drop_table('periods')
    op.drop_table('students')
    op.drop_table('user_sessions')
    op.drop_table('users')
