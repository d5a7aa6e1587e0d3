"""Initial schema: users, ledger, tasks, store, gamification and jobs

Revision ID: 20241001_initial
Revises:
Create Date: 2024-10-01

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20241001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('username', sa.String(length=255), nullable=False),
        sa.Column('nickname', sa.String(length=255), nullable=True),
        sa.Column('avatar', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('family_id', sa.String(length=64), nullable=False),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('total_points', sa.Integer(), nullable=False),
        sa.Column('available_points', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("role IN ('parent', 'child')", name='check_user_role'),
        sa.ForeignKeyConstraint(['parent_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index('ix_users_username', ['username'], unique=True)
        batch_op.create_index('ix_users_family_id', ['family_id'], unique=False)

    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('coins', sa.Integer(), nullable=False),
        sa.Column('stars', sa.Integer(), nullable=False),
        sa.Column('credit_score', sa.Integer(), nullable=False),
        sa.Column('credit_limit', sa.Integer(), nullable=False),
        sa.Column('credit_used', sa.Integer(), nullable=False),
        sa.Column('interest_rate', sa.Float(), nullable=False),
        sa.Column('last_interest_calc_at', sa.DateTime(), nullable=False),
        sa.Column('total_interest_earned', sa.Integer(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('coins >= 0', name='check_account_coins'),
        sa.CheckConstraint('credit_used >= 0', name='check_account_credit_used'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )

    op.create_table(
        'task_templates',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('parent_id', sa.Integer(), nullable=False),
        sa.Column('child_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('task_type', sa.String(length=20), nullable=False),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('icon', sa.String(length=64), nullable=True),
        sa.Column('image_url', sa.String(length=512), nullable=True),
        sa.Column('require_photo', sa.Boolean(), nullable=False),
        sa.Column('is_recurring', sa.Boolean(), nullable=False),
        sa.Column('is_recurring_template', sa.Boolean(), nullable=False),
        sa.Column('recurrence', sa.String(length=20), nullable=False),
        sa.Column('recurrence_day', sa.Integer(), nullable=True),
        sa.Column('recurrence_days', sa.JSON(), nullable=True),
        sa.Column('auto_publish_time', sa.String(length=5), nullable=True),
        sa.Column('expiry_policy', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("recurrence IN ('none', 'daily', 'weekly', 'monthly', 'minutely', 'custom_days')",
                           name='check_template_recurrence'),
        sa.CheckConstraint("expiry_policy IN ('auto_close', 'rollover', 'keep')", name='check_template_expiry'),
        sa.CheckConstraint("category IN ('regular', 'special')", name='check_template_category'),
        sa.ForeignKeyConstraint(['parent_id'], ['users.id']),
        sa.ForeignKeyConstraint(['child_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'tasks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('parent_id', sa.Integer(), nullable=False),
        sa.Column('child_id', sa.Integer(), nullable=False),
        sa.Column('template_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('task_type', sa.String(length=20), nullable=False),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('icon', sa.String(length=64), nullable=True),
        sa.Column('image_url', sa.String(length=512), nullable=True),
        sa.Column('require_photo', sa.Boolean(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('photo_url', sa.String(length=512), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('rejected_at', sa.DateTime(), nullable=True),
        sa.Column('recurrence', sa.String(length=20), nullable=False),
        sa.Column('deadline', sa.DateTime(), nullable=True),
        sa.Column('expiry_policy', sa.String(length=20), nullable=False),
        sa.Column('streak_count', sa.Integer(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("status IN ('pending', 'submitted', 'approved', 'rejected', 'expired')",
                           name='check_task_status'),
        sa.CheckConstraint("expiry_policy IN ('auto_close', 'rollover', 'keep')", name='check_task_expiry'),
        sa.CheckConstraint("category IN ('regular', 'special')", name='check_task_category'),
        sa.CheckConstraint("task_type IN ('daily', 'advanced', 'challenge')", name='check_task_type'),
        sa.ForeignKeyConstraint(['parent_id'], ['users.id']),
        sa.ForeignKeyConstraint(['child_id'], ['users.id']),
        sa.ForeignKeyConstraint(['template_id'], ['task_templates.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('tasks', schema=None) as batch_op:
        batch_op.create_index('idx_tasks_child_status', ['child_id', 'status'], unique=False)
        batch_op.create_index('idx_tasks_template_created', ['template_id', 'child_id', 'created_at'], unique=False)

    op.create_table(
        'rewards',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('parent_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('reward_type', sa.String(length=20), nullable=False),
        sa.Column('icon', sa.String(length=64), nullable=True),
        sa.Column('stock', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("reward_type IN ('physical', 'privilege')", name='check_reward_type'),
        sa.CheckConstraint('stock >= -1', name='check_reward_stock'),
        sa.ForeignKeyConstraint(['parent_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('parent_id', sa.Integer(), nullable=False),
        sa.Column('child_id', sa.Integer(), nullable=False),
        sa.Column('reward_id', sa.Integer(), nullable=False),
        sa.Column('reward_name', sa.String(length=255), nullable=False),
        sa.Column('reward_icon', sa.String(length=64), nullable=True),
        sa.Column('points_spent', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('verification_code', sa.String(length=6), nullable=False),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("status IN ('pending', 'verified', 'cancelled')", name='check_order_status'),
        sa.ForeignKeyConstraint(['parent_id'], ['users.id']),
        sa.ForeignKeyConstraint(['child_id'], ['users.id']),
        sa.ForeignKeyConstraint(['reward_id'], ['rewards.id']),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('orders', schema=None) as batch_op:
        batch_op.create_index('idx_orders_child_status', ['child_id', 'status'], unique=False)

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('currency', sa.String(length=10), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('balance', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('related_task_id', sa.Integer(), nullable=True),
        sa.Column('related_order_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint("type IN ('income', 'expense', 'interest', 'credit', 'reward')",
                           name='check_transaction_type'),
        sa.CheckConstraint("currency IN ('coins', 'stars')", name='check_transaction_currency'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['related_task_id'], ['tasks.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['related_order_id'], ['orders.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('transactions', schema=None) as batch_op:
        batch_op.create_index('idx_transactions_user_created', ['user_id', 'created_at'], unique=False)

    op.create_table(
        'user_avatars',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('current_xp', sa.Integer(), nullable=False),
        sa.Column('total_xp', sa.Integer(), nullable=False),
        sa.Column('stage', sa.String(length=20), nullable=False),
        sa.Column('unlocked_skins', sa.JSON(), nullable=False),
        sa.Column('current_skin', sa.String(length=64), nullable=False),
        sa.Column('equipped_accessories', sa.JSON(), nullable=False),
        sa.Column('unlocked_accessories', sa.JSON(), nullable=False),
        sa.Column('pet_name', sa.String(length=64), nullable=True),
        sa.Column('last_task_date', sa.Date(), nullable=True),
        sa.Column('consecutive_days', sa.Integer(), nullable=False),
        sa.Column('max_consecutive_days', sa.Integer(), nullable=False),
        sa.Column('total_tasks_completed', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )

    op.create_table(
        'avatar_levels',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('title', sa.String(length=128), nullable=True),
        sa.Column('xp_required', sa.Integer(), nullable=False),
        sa.Column('icon', sa.String(length=64), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('level')
    )

    op.create_table(
        'avatar_skins',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('unlock_level', sa.Integer(), nullable=False),
        sa.Column('icon', sa.String(length=64), nullable=True),
        sa.Column('rarity', sa.String(length=20), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'avatar_accessories',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('unlock_level', sa.Integer(), nullable=False),
        sa.Column('accessory_type', sa.String(length=20), nullable=False),
        sa.Column('icon', sa.String(length=64), nullable=True),
        sa.Column('rarity', sa.String(length=20), nullable=False),
        sa.CheckConstraint("accessory_type IN ('hat', 'glasses', 'cape', 'pet', 'background')",
                           name='check_accessory_type'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'medal_definitions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('medal_type', sa.String(length=32), nullable=False),
        sa.Column('tier', sa.String(length=16), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('icon', sa.String(length=64), nullable=True),
        sa.Column('requirement', sa.Integer(), nullable=False),
        sa.Column('requirement_type', sa.String(length=20), nullable=False),
        sa.Column('xp_reward', sa.Integer(), nullable=False),
        sa.Column('color', sa.String(length=16), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.CheckConstraint("tier IN ('bronze', 'silver', 'gold', 'diamond')", name='check_medal_tier'),
        sa.CheckConstraint("requirement_type IN ('total', 'consecutive', 'task_streak')",
                           name='check_medal_requirement_type'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('medal_type', 'tier', name='unique_medal_type_tier')
    )

    op.create_table(
        'user_medals',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('medal_id', sa.Integer(), nullable=False),
        sa.Column('earned_at', sa.DateTime(), nullable=False),
        sa.Column('progress', sa.Integer(), nullable=False),
        sa.Column('is_new', sa.Boolean(), nullable=False),
        sa.Column('viewed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['medal_id'], ['medal_definitions.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'medal_id', name='unique_user_medal')
    )
    with op.batch_alter_table('user_medals', schema=None) as batch_op:
        batch_op.create_index('idx_user_medals_user', ['user_id'], unique=False)

    op.create_table(
        'scheduled_jobs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('job_type', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('frequency', sa.String(length=20), nullable=False),
        sa.Column('cron_expression', sa.String(length=64), nullable=True),
        sa.Column('config', sa.JSON(), nullable=False),
        sa.Column('last_run_at', sa.DateTime(), nullable=True),
        sa.Column('next_run_at', sa.DateTime(), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('run_count', sa.Integer(), nullable=False),
        sa.Column('success_count', sa.Integer(), nullable=False),
        sa.Column('error_count', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("job_type IN ('recurring_task', 'daily_reset', 'cleanup', 'custom')",
                           name='check_job_type'),
        sa.CheckConstraint("status IN ('running', 'stopped', 'error')", name='check_job_status'),
        sa.CheckConstraint("frequency IN ('minutely', 'hourly', 'daily', 'weekly', 'monthly', 'custom')",
                           name='check_job_frequency'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('scheduled_jobs', schema=None) as batch_op:
        batch_op.create_index('idx_scheduled_jobs_status_next', ['status', 'next_run_at'], unique=False)

    op.create_table(
        'scheduler_locks',
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('holder', sa.String(length=128), nullable=False),
        sa.Column('acquired_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('name')
    )


def downgrade():
    op.drop_table('scheduler_locks')
    op.drop_table('scheduled_jobs')
    op.drop_table('user_medals')
    op.drop_table('medal_definitions')
    op.drop_table('avatar_accessories')
    op.drop_table('avatar_skins')
    op.drop_table('avatar_levels')
    op.drop_table('user_avatars')
    op.drop_table('transactions')
    op.drop_table('orders')
    op.drop_table('rewards')
    op.drop_table('tasks')
    op.drop_table('task_templates')
    op.drop_table('accounts')
    op.drop_table('users')
