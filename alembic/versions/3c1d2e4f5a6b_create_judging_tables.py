"""create coding problems, test cases and submissions

Revision ID: 3c1d2e4f5a6b
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1d2e4f5a6b'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'coding_problems',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('kind', sa.String(32), nullable=False, server_default='coding'),
        sa.Column('statement', sa.Text(), nullable=True),
        sa.Column('time_limit_s', sa.Integer(), nullable=True),
        sa.Column('memory_limit_kb', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        'problem_test_cases',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('problem_id', sa.String(36), sa.ForeignKey('coding_problems.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('input', sa.Text(), nullable=False, server_default=''),
        sa.Column('expected_output', sa.Text(), nullable=False, server_default=''),
        sa.Column('is_hidden', sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index('ix_problem_test_cases_problem_id', 'problem_test_cases', ['problem_id'])

    op.create_table(
        'submissions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('problem_id', sa.String(36), nullable=False),
        sa.Column('source_code', sa.Text(), nullable=False),
        sa.Column('language', sa.String(32), nullable=False),
        sa.Column('status', sa.String(32), nullable=False, server_default='pending'),
        sa.Column('judge_handle', sa.String(255), nullable=True),
        sa.Column('total_test_cases', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('passed_test_cases', sa.Integer(), nullable=True),
        sa.Column('score', sa.Integer(), nullable=True),
        sa.Column('execution_time_ms', sa.Float(), nullable=True),
        sa.Column('memory_used_kb', sa.Integer(), nullable=True),
        sa.Column('test_case_results', sa.JSON(), nullable=False),
        sa.Column('compilation_error', sa.Text(), nullable=True),
        sa.Column('runtime_error', sa.Text(), nullable=True),
        sa.Column('judge_message', sa.Text(), nullable=True),
        sa.Column('terminal_reason', sa.String(32), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending','running','accepted','wrong_answer','time_limit_exceeded',"
            "'memory_limit_exceeded','runtime_error','compilation_error','infrastructure_error')",
            name='ck_submissions_status',
        ),
    )
    op.create_index('ix_submissions_user_id', 'submissions', ['user_id'])
    op.create_index('ix_submissions_problem_id', 'submissions', ['problem_id'])
    op.create_index('ix_submissions_status', 'submissions', ['status'])
    op.create_index('ix_submissions_judge_handle', 'submissions', ['judge_handle'])
    op.create_index('ix_submissions_user_problem', 'submissions', ['user_id', 'problem_id'])
    op.create_index('ix_submissions_problem_status', 'submissions', ['problem_id', 'status'])


def downgrade() -> None:
    op.drop_table('submissions')
    op.drop_index('ix_problem_test_cases_problem_id', table_name='problem_test_cases')
    op.drop_table('problem_test_cases')
    op.drop_table('coding_problems')
