"""Keep the assigned interviewers on the interview

Revision ID: 002_interview_participant_ids
Revises: 001_initial_schema
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '002_interview_participant_ids'
down_revision = '001_initial_schema'
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Add interviews.participant_ids and fill it from existing slot participants."""
    op.add_column(
        'interviews',
        sa.Column('participant_ids', sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
    )
    op.execute(
        """
        UPDATE interviews AS i
        SET participant_ids = COALESCE(
            (SELECT json_agg(DISTINCT p.user_id)
             FROM interview_participants AS p
             WHERE p.interview_id = i.id),
            '[]'::json
        )
        """
    )


def downgrade() -> None:
    op.drop_column('interviews', 'participant_ids')
