"""Initial assessment schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 09:12:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Content tables, written by the authoring tool
    op.create_table(
        'practice_tests',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('type', sa.String(20), nullable=False, server_default='exam'),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('branch', sa.String(20), nullable=True),
        sa.Column('time_limit_minutes', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_practice_tests')
    )

    op.create_table(
        'test_sections',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('test_id', sa.String(36), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('instructions', sa.Text(), nullable=True),
        sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('branch', sa.String(20), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_test_sections'),
        sa.ForeignKeyConstraint(['test_id'], ['practice_tests.id'], ondelete='CASCADE',
                                name='fk_test_sections_test_id_practice_tests')
    )
    op.create_index('ix_test_sections_test_id', 'test_sections', ['test_id'])

    op.create_table(
        'questions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('section_id', sa.String(36), nullable=False),
        sa.Column('type', sa.String(30), nullable=False),
        sa.Column('question_text', sa.Text(), nullable=False),
        sa.Column('scenario_context', sa.Text(), nullable=True),
        sa.Column('scenario_image_url', sa.Text(), nullable=True),
        sa.Column('video_url', sa.Text(), nullable=True),
        sa.Column('explanation', sa.Text(), nullable=True),
        sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('correct_order', sa.JSON(), nullable=True),
        sa.Column('scale_min', sa.Float(), nullable=True),
        sa.Column('scale_max', sa.Float(), nullable=True),
        sa.Column('branch', sa.String(20), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_questions'),
        sa.ForeignKeyConstraint(['section_id'], ['test_sections.id'], ondelete='CASCADE',
                                name='fk_questions_section_id_test_sections')
    )
    op.create_index('ix_questions_section_id', 'questions', ['section_id'])

    op.create_table(
        'question_options',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('question_id', sa.String(36), nullable=False),
        sa.Column('label', sa.Text(), nullable=False, server_default=''),
        sa.Column('value', sa.String(255), nullable=True),
        sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id', name='pk_question_options'),
        sa.ForeignKeyConstraint(['question_id'], ['questions.id'], ondelete='CASCADE',
                                name='fk_question_options_question_id_questions')
    )
    op.create_index('ix_question_options_question_id', 'question_options', ['question_id'])

    op.create_table(
        'answer_keys',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('question_id', sa.String(36), nullable=False),
        sa.Column('question_option_id', sa.String(36), nullable=True),
        sa.Column('correct_answer', sa.String(255), nullable=True),
        sa.Column('points', sa.Float(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id', name='pk_answer_keys'),
        sa.ForeignKeyConstraint(['question_id'], ['questions.id'], ondelete='CASCADE',
                                name='fk_answer_keys_question_id_questions'),
        sa.ForeignKeyConstraint(['question_option_id'], ['question_options.id'], ondelete='CASCADE',
                                name='fk_answer_keys_question_option_id_question_options')
    )
    op.create_index('ix_answer_keys_question_id', 'answer_keys', ['question_id'])

    # Session tables, written by the engine
    op.create_table(
        'user_test_sessions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('test_id', sa.String(36), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='in_progress'),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('score', sa.Integer(), nullable=True),
        sa.Column('earned_points', sa.Float(), nullable=True),
        sa.Column('possible_points', sa.Float(), nullable=True),
        sa.Column('reflection_score', sa.Integer(), nullable=True),
        sa.Column('legacy_payload', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_user_test_sessions'),
        sa.ForeignKeyConstraint(['test_id'], ['practice_tests.id'],
                                name='fk_user_test_sessions_test_id_practice_tests')
    )
    op.create_index('ix_user_test_sessions_user_id', 'user_test_sessions', ['user_id'])
    op.create_index('idx_user_test_sessions_user_status', 'user_test_sessions', ['user_id', 'status'])

    op.create_table(
        'user_responses',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('session_id', sa.String(36), nullable=False),
        sa.Column('question_id', sa.String(36), nullable=False),
        sa.Column('question_option_id', sa.String(36), nullable=True),
        sa.Column('response_value', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_user_responses'),
        sa.ForeignKeyConstraint(['session_id'], ['user_test_sessions.id'], ondelete='CASCADE',
                                name='fk_user_responses_session_id_user_test_sessions')
    )
    op.create_index('ix_user_responses_session_id', 'user_responses', ['session_id'])


def downgrade():
    op.drop_table('user_responses')
    op.drop_table('user_test_sessions')
    op.drop_table('answer_keys')
    op.drop_table('question_options')
    op.drop_table('questions')
    op.drop_table('test_sections')
    op.drop_table('practice_tests')
