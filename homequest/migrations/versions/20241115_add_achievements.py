"""Add achievements: definitions, per-user progress counters and earned rows

Revision ID: 20241115_achievements
Revises: 20241001_initial
Create Date: 2024-11-15

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20241115_achievements'
down_revision = '20241001_initial'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'achievement_definitions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('dimension', sa.String(length=20), nullable=False),
        sa.Column('level', sa.String(length=16), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('icon', sa.String(length=64), nullable=True),
        sa.Column('condition_type', sa.String(length=32), nullable=False),
        sa.Column('requirement', sa.Integer(), nullable=False),
        sa.Column('requirement_detail', sa.JSON(), nullable=False),
        sa.Column('points_reward', sa.Integer(), nullable=False),
        sa.Column('is_hidden', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
        sa.CheckConstraint("dimension IN ('accumulation', 'behavior', 'surprise')",
                           name='check_achievement_dimension'),
        sa.CheckConstraint("level IN ('bronze', 'silver', 'gold', 'legendary')", name='check_achievement_level'),
        sa.CheckConstraint(
            "condition_type IN ('total_tasks', 'total_points', 'task_type_count', 'consecutive_days', "
            "'early_completion', 'specific_time', 'resubmit_quick')",
            name='check_achievement_condition'
        )
    )
    with op.batch_alter_table('achievement_definitions', schema=None) as batch_op:
        batch_op.create_index('idx_achievements_active_order', ['is_active', 'sort_order'], unique=False)

    op.create_table(
        'user_achievement_progress',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('total_tasks_completed', sa.Integer(), nullable=False),
        sa.Column('total_points_earned', sa.Integer(), nullable=False),
        sa.Column('task_type_counts', sa.JSON(), nullable=False),
        sa.Column('early_completion_count', sa.Integer(), nullable=False),
        sa.Column('resubmit_quick_count', sa.Integer(), nullable=False),
        sa.Column('last_completion_at', sa.DateTime(), nullable=True),
        sa.Column('last_resubmit_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )

    op.create_table(
        'user_achievements',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('achievement_id', sa.Integer(), nullable=False),
        sa.Column('earned_at', sa.DateTime(), nullable=False),
        sa.Column('progress', sa.Integer(), nullable=False),
        sa.Column('is_new', sa.Boolean(), nullable=False),
        sa.Column('viewed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['achievement_id'], ['achievement_definitions.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'achievement_id', name='unique_user_achievement')
    )
    with op.batch_alter_table('user_achievements', schema=None) as batch_op:
        batch_op.create_index('idx_user_achievements_user_new', ['user_id', 'is_new'], unique=False)


def downgrade():
    op.drop_table('user_achievements')
    op.drop_table('user_achievement_progress')
    op.drop_table('achievement_definitions')
