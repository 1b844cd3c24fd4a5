"""create lesson runner tables

Revision ID: 7c2e91a4d5b0
Revises:
Create Date: 2026-10-17 09:12:40.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '7c2e91a4d5b0'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('lesson_plans',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('capstone_statement', sa.Text(), nullable=True),
        sa.Column('difficulty', sa.String(), nullable=True),
        sa.Column('daily_minutes', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('current_subskill_index', sa.Integer(), nullable=True),
        sa.Column('progress', sa.Float(), nullable=False),
        sa.Column('sessions_completed', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_lesson_plans_id'), 'lesson_plans', ['id'], unique=False)
    op.create_index(op.f('ix_lesson_plans_user_id'), 'lesson_plans', ['user_id'], unique=False)

    op.create_table('plan_subskills',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('plan_id', sa.Integer(), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('route', sa.String(length=20), nullable=False),
        sa.Column('route_status', sa.String(length=20), nullable=False),
        sa.Column('complexity', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('sessions_completed', sa.Integer(), nullable=False),
        sa.Column('estimated_sessions', sa.Integer(), nullable=False),
        sa.Column('last_session_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('assessment_score', sa.Integer(), nullable=True),
        sa.Column('assessment_data', sa.JSON(), nullable=True),
        sa.Column('assessed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('mastered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['plan_id'], ['lesson_plans.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('plan_id', 'order', name='uq_plan_subskills_plan_order')
    )
    op.create_index(op.f('ix_plan_subskills_id'), 'plan_subskills', ['id'], unique=False)

    op.create_table('subskill_assessments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('subskill_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('questions', sa.JSON(), nullable=False),
        sa.Column('answers', sa.JSON(), nullable=True),
        sa.Column('score', sa.Integer(), nullable=True),
        sa.Column('area_results', sa.JSON(), nullable=True),
        sa.Column('gaps', sa.JSON(), nullable=True),
        sa.Column('strengths', sa.JSON(), nullable=True),
        sa.Column('recommendation', sa.String(length=20), nullable=True),
        sa.Column('outcome', sa.JSON(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['subskill_id'], ['plan_subskills.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_subskill_assessments_id'), 'subskill_assessments', ['id'], unique=False)
    op.create_index(op.f('ix_subskill_assessments_user_id'), 'subskill_assessments', ['user_id'], unique=False)
    # At most one open assessment per subskill/learner
    op.create_index(
        'uq_subskill_assessments_open', 'subskill_assessments', ['subskill_id', 'user_id'],
        unique=True,
        postgresql_where=sa.text('completed_at IS NULL'),
        sqlite_where=sa.text('completed_at IS NULL')
    )

    op.create_table('knowledge_checks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('subskill_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('attempt_number', sa.Integer(), nullable=False),
        sa.Column('questions', sa.JSON(), nullable=False),
        sa.Column('answers', sa.JSON(), nullable=True),
        sa.Column('score', sa.Integer(), nullable=True),
        sa.Column('passed', sa.Boolean(), nullable=True),
        sa.Column('missed_questions', sa.JSON(), nullable=True),
        sa.Column('feedback', sa.JSON(), nullable=True),
        sa.Column('outcome', sa.JSON(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['subskill_id'], ['plan_subskills.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_knowledge_checks_id'), 'knowledge_checks', ['id'], unique=False)
    op.create_index(op.f('ix_knowledge_checks_user_id'), 'knowledge_checks', ['user_id'], unique=False)
    op.create_index(
        'uq_knowledge_checks_open', 'knowledge_checks', ['subskill_id', 'user_id'],
        unique=True,
        postgresql_where=sa.text('completed_at IS NULL'),
        sqlite_where=sa.text('completed_at IS NULL')
    )

    op.create_table('session_summaries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('subskill_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('daily_lesson_id', sa.String(), nullable=True),
        sa.Column('session_number', sa.Integer(), nullable=False),
        sa.Column('summary', sa.Text(), nullable=False),
        sa.Column('key_concepts', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['subskill_id'], ['plan_subskills.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_session_summaries_id'), 'session_summaries', ['id'], unique=False)
    op.create_index(op.f('ix_session_summaries_user_id'), 'session_summaries', ['user_id'], unique=False)

    op.create_table('subskill_lesson_plans',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('subskill_id', sa.Integer(), nullable=False),
        sa.Column('plan_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('is_remediation', sa.Boolean(), nullable=False),
        sa.Column('assessment_id', sa.Integer(), nullable=True),
        sa.Column('gaps', sa.JSON(), nullable=True),
        sa.Column('learning_objectives', sa.JSON(), nullable=False),
        sa.Column('session_outline', sa.JSON(), nullable=False),
        sa.Column('generated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['subskill_id'], ['plan_subskills.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['plan_id'], ['lesson_plans.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['assessment_id'], ['subskill_assessments.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_subskill_lesson_plans_id'), 'subskill_lesson_plans', ['id'], unique=False)
    op.create_index(op.f('ix_subskill_lesson_plans_user_id'), 'subskill_lesson_plans', ['user_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    # Child tables first
    op.drop_index(op.f('ix_subskill_lesson_plans_user_id'), table_name='subskill_lesson_plans')
    op.drop_index(op.f('ix_subskill_lesson_plans_id'), table_name='subskill_lesson_plans')
    op.drop_table('subskill_lesson_plans')

    op.drop_index(op.f('ix_session_summaries_user_id'), table_name='session_summaries')
    op.drop_index(op.f('ix_session_summaries_id'), table_name='session_summaries')
    op.drop_table('session_summaries')

    op.drop_index('uq_knowledge_checks_open', table_name='knowledge_checks')
    op.drop_index(op.f('ix_knowledge_checks_user_id'), table_name='knowledge_checks')
    op.drop_index(op.f('ix_knowledge_checks_id'), table_name='knowledge_checks')
    op.drop_table('knowledge_checks')

    op.drop_index('uq_subskill_assessments_open', table_name='subskill_assessments')
    op.drop_index(op.f('ix_subskill_assessments_user_id'), table_name='subskill_assessments')
    op.drop_index(op.f('ix_subskill_assessments_id'), table_name='subskill_assessments')
    op.drop_table('subskill_assessments')

    op.drop_index(op.f('ix_plan_subskills_id'), table_name='plan_subskills')
    op.drop_table('plan_subskills')

    op.drop_index(op.f('ix_lesson_plans_user_id'), table_name='lesson_plans')
    op.drop_index(op.f('ix_lesson_plans_id'), table_name='lesson_plans')
    op.drop_table('lesson_plans')
