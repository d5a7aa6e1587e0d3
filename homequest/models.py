"""
SQLAlchemy models for HomeQuest.

This module defines the database models for chores, the allowance ledger,
rewards and orders, gamification progress and scheduled jobs.
Uses Flask-SQLAlchemy for ORM integration with Flask.

Datetimes are naive UTC. ``Task``, ``Account`` and ``Reward`` carry a
version column used by SQLAlchemy as an optimistic lock: every ORM update
is issued as ``UPDATE ... WHERE version = :expected``.
"""

from typing import Optional

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import CheckConstraint, UniqueConstraint, Index
from sqlalchemy.orm import relationship

from homequest.utils.timezone import utc_naive_now

db = SQLAlchemy()


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


class User(db.Model):
    """User model representing both parents and children."""

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    username = db.Column(db.String(255), unique=True, nullable=False, index=True)
    nickname = db.Column(db.String(255))
    avatar = db.Column(db.String(255))
    role = db.Column(db.String(20), nullable=False)
    family_id = db.Column(db.String(64), nullable=False, index=True)
    parent_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    total_points = db.Column(db.Integer, default=0, nullable=False)  # Lifetime task earnings
    available_points = db.Column(db.Integer, default=0, nullable=False)  # Mirrors Account.coins
    created_at = db.Column(db.DateTime, default=utc_naive_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=utc_naive_now, onupdate=utc_naive_now, nullable=False)

    account = relationship('Account', back_populates='user', uselist=False, cascade='all, delete-orphan')
    avatar_progress = relationship('UserAvatar', back_populates='user', uselist=False, cascade='all, delete-orphan')

    __table_args__ = (
        CheckConstraint("role IN ('parent', 'child')", name='check_user_role'),
    )

    def __repr__(self):
        return f'<User {self.username} ({self.role})>'

    @property
    def is_parent(self) -> bool:
        return self.role == 'parent'

    def to_dict(self) -> dict:
        """Serialize User to dictionary for JSON/webhook responses."""
        return {
            'id': self.id,
            'username': self.username,
            'nickname': self.nickname,
            'avatar': self.avatar,
            'role': self.role,
            'family_id': self.family_id,
            'parent_id': self.parent_id,
            'total_points': self.total_points,
            'available_points': self.available_points,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class Account(db.Model):
    """Live balances of a user's allowance account."""

    __tablename__ = 'accounts'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), unique=True, nullable=False)
    coins = db.Column(db.Integer, default=0, nullable=False)
    stars = db.Column(db.Integer, default=0, nullable=False)
    credit_score = db.Column(db.Integer, default=80, nullable=False)
    credit_limit = db.Column(db.Integer, default=100, nullable=False)
    credit_used = db.Column(db.Integer, default=0, nullable=False)
    interest_rate = db.Column(db.Float, default=0.001, nullable=False)
    last_interest_calc_at = db.Column(db.DateTime, default=utc_naive_now, nullable=False)
    total_interest_earned = db.Column(db.Integer, default=0, nullable=False)
    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=utc_naive_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=utc_naive_now, onupdate=utc_naive_now, nullable=False)

    user = relationship('User', back_populates='account')

    __table_args__ = (
        CheckConstraint('coins >= 0', name='check_account_coins'),
        CheckConstraint('credit_used >= 0', name='check_account_credit_used'),
    )
    __mapper_args__ = {'version_id_col': version}

    def __repr__(self):
        return f'<Account user_id={self.user_id} coins={self.coins} stars={self.stars}>'

    @property
    def credit_available(self) -> int:
        return self.credit_limit - self.credit_used

    def balance_of(self, currency: str) -> int:
        return self.stars if currency == 'stars' else self.coins

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'coins': self.coins,
            'stars': self.stars,
            'credit_score': self.credit_score,
            'credit_limit': self.credit_limit,
            'credit_used': self.credit_used,
            'credit_available': self.credit_available,
            'interest_rate': self.interest_rate,
            'last_interest_calc_at': _iso(self.last_interest_calc_at),
            'total_interest_earned': self.total_interest_earned,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class Transaction(db.Model):
    """Append-only ledger entry. One row per balance mutation."""

    __tablename__ = 'transactions'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    type = db.Column(db.String(20), nullable=False)
    currency = db.Column(db.String(10), default='coins', nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    balance = db.Column(db.Integer, nullable=False)  # Balance snapshot after this entry
    description = db.Column(db.Text, nullable=False)
    related_task_id = db.Column(db.Integer, db.ForeignKey('tasks.id', ondelete='SET NULL'), nullable=True)
    related_order_id = db.Column(db.Integer, db.ForeignKey('orders.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime, default=utc_naive_now, nullable=False)

    user = relationship('User')

    __table_args__ = (
        CheckConstraint("type IN ('income', 'expense', 'interest', 'credit', 'reward')",
                        name='check_transaction_type'),
        CheckConstraint("currency IN ('coins', 'stars')", name='check_transaction_currency'),
        Index('idx_transactions_user_created', 'user_id', 'created_at'),
    )

    def __repr__(self):
        return f'<Transaction user_id={self.user_id} {self.type} {self.amount:+d} {self.currency}>'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'type': self.type,
            'currency': self.currency,
            'amount': self.amount,
            'balance': self.balance,
            'description': self.description,
            'related_task_id': self.related_task_id,
            'related_order_id': self.related_order_id,
            'created_at': _iso(self.created_at)
        }


class TaskTemplate(db.Model):
    """Reusable task definition. Recurring templates spawn Task instances."""

    __tablename__ = 'task_templates'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    parent_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    child_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    points = db.Column(db.Integer, default=0, nullable=False)
    task_type = db.Column(db.String(20), default='daily', nullable=False)
    category = db.Column(db.String(20), default='regular', nullable=False)
    icon = db.Column(db.String(64))
    image_url = db.Column(db.String(512))
    require_photo = db.Column(db.Boolean, default=False, nullable=False)

    # Recurrence
    is_recurring = db.Column(db.Boolean, default=False, nullable=False)
    is_recurring_template = db.Column(db.Boolean, default=False, nullable=False)
    recurrence = db.Column(db.String(20), default='none', nullable=False)
    recurrence_day = db.Column(db.Integer)  # weekly: 0-6 Sunday first, monthly: 1-31
    recurrence_days = db.Column(db.JSON)  # custom_days: list of weekdays
    auto_publish_time = db.Column(db.String(5))  # "HH:MM"
    expiry_policy = db.Column(db.String(20), default='auto_close', nullable=False)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utc_naive_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=utc_naive_now, onupdate=utc_naive_now, nullable=False)

    instances = relationship('Task', back_populates='template', passive_deletes=True)

    __table_args__ = (
        CheckConstraint("recurrence IN ('none', 'daily', 'weekly', 'monthly', 'minutely', 'custom_days')",
                        name='check_template_recurrence'),
        CheckConstraint("expiry_policy IN ('auto_close', 'rollover', 'keep')", name='check_template_expiry'),
        CheckConstraint("category IN ('regular', 'special')", name='check_template_category'),
    )

    def __repr__(self):
        return f'<TaskTemplate {self.name} ({self.recurrence})>'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'parent_id': self.parent_id,
            'child_id': self.child_id,
            'name': self.name,
            'description': self.description,
            'points': self.points,
            'task_type': self.task_type,
            'category': self.category,
            'icon': self.icon,
            'image_url': self.image_url,
            'require_photo': self.require_photo,
            'is_recurring': self.is_recurring,
            'is_recurring_template': self.is_recurring_template,
            'recurrence': self.recurrence,
            'recurrence_day': self.recurrence_day,
            'recurrence_days': self.recurrence_days or [],
            'auto_publish_time': self.auto_publish_time,
            'expiry_policy': self.expiry_policy,
            'is_active': self.is_active,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class Task(db.Model):
    """A chore assigned to one child by their parent."""

    __tablename__ = 'tasks'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    parent_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    child_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    template_id = db.Column(db.Integer, db.ForeignKey('task_templates.id', ondelete='SET NULL'), nullable=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    points = db.Column(db.Integer, default=0, nullable=False)
    task_type = db.Column(db.String(20), default='daily', nullable=False)
    category = db.Column(db.String(20), default='regular', nullable=False)
    icon = db.Column(db.String(64))
    image_url = db.Column(db.String(512))
    require_photo = db.Column(db.Boolean, default=False, nullable=False)

    # Workflow
    status = db.Column(db.String(20), default='pending', nullable=False)
    photo_url = db.Column(db.String(512))
    rejection_reason = db.Column(db.Text)
    submitted_at = db.Column(db.DateTime)
    approved_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)
    rejected_at = db.Column(db.DateTime)

    recurrence = db.Column(db.String(20), default='none', nullable=False)
    deadline = db.Column(db.DateTime)
    expiry_policy = db.Column(db.String(20), default='keep', nullable=False)
    streak_count = db.Column(db.Integer, default=0, nullable=False)

    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=utc_naive_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=utc_naive_now, onupdate=utc_naive_now, nullable=False)

    parent = relationship('User', foreign_keys=[parent_id])
    child = relationship('User', foreign_keys=[child_id])
    template = relationship('TaskTemplate', back_populates='instances')

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'submitted', 'approved', 'rejected', 'expired')",
                        name='check_task_status'),
        CheckConstraint("expiry_policy IN ('auto_close', 'rollover', 'keep')", name='check_task_expiry'),
        CheckConstraint("category IN ('regular', 'special')", name='check_task_category'),
        CheckConstraint("task_type IN ('daily', 'advanced', 'challenge')", name='check_task_type'),
        Index('idx_tasks_child_status', 'child_id', 'status'),
        Index('idx_tasks_template_created', 'template_id', 'child_id', 'created_at'),
    )
    __mapper_args__ = {'version_id_col': version}

    def __repr__(self):
        return f'<Task {self.id} {self.name} ({self.status})>'

    def clear_submission(self) -> None:
        """Drop evidence and decision fields so the task can be done again."""
        self.photo_url = None
        self.submitted_at = None
        self.approved_at = None
        self.completed_at = None
        self.rejected_at = None
        self.rejection_reason = None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'parent_id': self.parent_id,
            'child_id': self.child_id,
            'template_id': self.template_id,
            'name': self.name,
            'description': self.description,
            'points': self.points,
            'task_type': self.task_type,
            'category': self.category,
            'icon': self.icon,
            'image_url': self.image_url,
            'require_photo': self.require_photo,
            'status': self.status,
            'photo_url': self.photo_url,
            'rejection_reason': self.rejection_reason,
            'submitted_at': _iso(self.submitted_at),
            'approved_at': _iso(self.approved_at),
            'completed_at': _iso(self.completed_at),
            'rejected_at': _iso(self.rejected_at),
            'recurrence': self.recurrence,
            'deadline': _iso(self.deadline),
            'expiry_policy': self.expiry_policy,
            'streak_count': self.streak_count,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class Reward(db.Model):
    """Redeemable item in a family's store."""

    __tablename__ = 'rewards'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    parent_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    points = db.Column(db.Integer, nullable=False)
    reward_type = db.Column(db.String(20), default='physical', nullable=False)
    icon = db.Column(db.String(64))
    stock = db.Column(db.Integer, default=-1, nullable=False)  # -1 means unlimited
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=utc_naive_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=utc_naive_now, onupdate=utc_naive_now, nullable=False)

    parent = relationship('User')

    __table_args__ = (
        CheckConstraint("reward_type IN ('physical', 'privilege')", name='check_reward_type'),
        CheckConstraint('stock >= -1', name='check_reward_stock'),
    )
    __mapper_args__ = {'version_id_col': version}

    def __repr__(self):
        return f'<Reward {self.name} ({self.points} pts)>'

    @property
    def has_unlimited_stock(self) -> bool:
        return self.stock == -1

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'parent_id': self.parent_id,
            'name': self.name,
            'description': self.description,
            'points': self.points,
            'reward_type': self.reward_type,
            'icon': self.icon,
            'stock': self.stock,
            'is_active': self.is_active,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class Order(db.Model):
    """A child's reward redemption awaiting parent verification."""

    __tablename__ = 'orders'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    parent_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    child_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    reward_id = db.Column(db.Integer, db.ForeignKey('rewards.id'), nullable=False)
    reward_name = db.Column(db.String(255), nullable=False)
    reward_icon = db.Column(db.String(64))
    points_spent = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), default='pending', nullable=False)
    verification_code = db.Column(db.String(6), nullable=False)
    verified_at = db.Column(db.DateTime)
    cancelled_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utc_naive_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=utc_naive_now, onupdate=utc_naive_now, nullable=False)

    reward = relationship('Reward')
    child = relationship('User', foreign_keys=[child_id])

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'verified', 'cancelled')", name='check_order_status'),
        Index('idx_orders_child_status', 'child_id', 'status'),
    )

    def __repr__(self):
        return f'<Order {self.id} {self.reward_name} ({self.status})>'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'parent_id': self.parent_id,
            'child_id': self.child_id,
            'child_name': self.child.nickname or self.child.username if self.child else None,
            'reward_id': self.reward_id,
            'reward_name': self.reward_name,
            'reward_icon': self.reward_icon,
            'points_spent': self.points_spent,
            'status': self.status,
            'verification_code': self.verification_code,
            'verified_at': _iso(self.verified_at),
            'cancelled_at': _iso(self.cancelled_at),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class UserAvatar(db.Model):
    """Per-user gamification progress."""

    __tablename__ = 'user_avatars'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), unique=True, nullable=False)
    level = db.Column(db.Integer, default=1, nullable=False)
    current_xp = db.Column(db.Integer, default=0, nullable=False)  # XP since current level start
    total_xp = db.Column(db.Integer, default=0, nullable=False)
    stage = db.Column(db.String(20), default='egg', nullable=False)

    # JSON lists are reassigned, never mutated in place, so changes are tracked
    unlocked_skins = db.Column(db.JSON, default=lambda: ['default'], nullable=False)
    current_skin = db.Column(db.String(64), default='default', nullable=False)
    equipped_accessories = db.Column(db.JSON, default=list, nullable=False)
    unlocked_accessories = db.Column(db.JSON, default=list, nullable=False)
    pet_name = db.Column(db.String(64))

    last_task_date = db.Column(db.Date)  # Local calendar date
    consecutive_days = db.Column(db.Integer, default=0, nullable=False)
    max_consecutive_days = db.Column(db.Integer, default=0, nullable=False)
    total_tasks_completed = db.Column(db.Integer, default=0, nullable=False)

    created_at = db.Column(db.DateTime, default=utc_naive_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=utc_naive_now, onupdate=utc_naive_now, nullable=False)

    user = relationship('User', back_populates='avatar_progress')

    def __repr__(self):
        return f'<UserAvatar user_id={self.user_id} level={self.level} xp={self.current_xp}>'

    def to_dict(self) -> dict:
        return {
            'user_id': self.user_id,
            'level': self.level,
            'current_xp': self.current_xp,
            'total_xp': self.total_xp,
            'stage': self.stage,
            'unlocked_skins': list(self.unlocked_skins or []),
            'current_skin': self.current_skin,
            'equipped_accessories': list(self.equipped_accessories or []),
            'unlocked_accessories': list(self.unlocked_accessories or []),
            'pet_name': self.pet_name,
            'last_task_date': _iso(self.last_task_date),
            'consecutive_days': self.consecutive_days,
            'max_consecutive_days': self.max_consecutive_days,
            'total_tasks_completed': self.total_tasks_completed
        }


class AvatarLevel(db.Model):
    """Level threshold configuration. ``xp_required`` is cumulative."""

    __tablename__ = 'avatar_levels'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    level = db.Column(db.Integer, unique=True, nullable=False)
    name = db.Column(db.String(64), nullable=False)
    title = db.Column(db.String(128))
    xp_required = db.Column(db.Integer, nullable=False)
    icon = db.Column(db.String(64))
    description = db.Column(db.Text)

    def __repr__(self):
        return f'<AvatarLevel {self.level} ({self.xp_required} xp)>'

    def to_dict(self) -> dict:
        return {
            'level': self.level,
            'name': self.name,
            'title': self.title,
            'xp_required': self.xp_required,
            'icon': self.icon,
            'description': self.description
        }


class AvatarSkin(db.Model):
    __tablename__ = 'avatar_skins'

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    description = db.Column(db.Text)
    unlock_level = db.Column(db.Integer, default=1, nullable=False)
    icon = db.Column(db.String(64))
    rarity = db.Column(db.String(20), default='common', nullable=False)

    def __repr__(self):
        return f'<AvatarSkin {self.id} (level {self.unlock_level})>'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'unlock_level': self.unlock_level,
            'icon': self.icon,
            'rarity': self.rarity
        }


class AvatarAccessory(db.Model):
    __tablename__ = 'avatar_accessories'

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    description = db.Column(db.Text)
    unlock_level = db.Column(db.Integer, default=1, nullable=False)
    accessory_type = db.Column(db.String(20), nullable=False)
    icon = db.Column(db.String(64))
    rarity = db.Column(db.String(20), default='common', nullable=False)

    __table_args__ = (
        CheckConstraint("accessory_type IN ('hat', 'glasses', 'cape', 'pet', 'background')",
                        name='check_accessory_type'),
    )

    def __repr__(self):
        return f'<AvatarAccessory {self.id} (level {self.unlock_level})>'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'unlock_level': self.unlock_level,
            'accessory_type': self.accessory_type,
            'icon': self.icon,
            'rarity': self.rarity
        }


class MedalDefinition(db.Model):
    """An achievement that can be earned once per user."""

    __tablename__ = 'medal_definitions'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    medal_type = db.Column(db.String(32), nullable=False)
    tier = db.Column(db.String(16), nullable=False)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text)
    icon = db.Column(db.String(64))
    requirement = db.Column(db.Integer, nullable=False)
    requirement_type = db.Column(db.String(20), nullable=False)
    xp_reward = db.Column(db.Integer, default=0, nullable=False)
    color = db.Column(db.String(16))
    sort_order = db.Column(db.Integer, default=0, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint('medal_type', 'tier', name='unique_medal_type_tier'),
        CheckConstraint("tier IN ('bronze', 'silver', 'gold', 'diamond')", name='check_medal_tier'),
        CheckConstraint("requirement_type IN ('total', 'consecutive', 'task_streak')",
                        name='check_medal_requirement_type'),
    )

    def __repr__(self):
        return f'<MedalDefinition {self.medal_type}/{self.tier}>'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'medal_type': self.medal_type,
            'tier': self.tier,
            'name': self.name,
            'description': self.description,
            'icon': self.icon,
            'requirement': self.requirement,
            'requirement_type': self.requirement_type,
            'xp_reward': self.xp_reward,
            'color': self.color,
            'sort_order': self.sort_order
        }


class UserMedal(db.Model):
    """Medal earned by a user. At most one row per (user, medal)."""

    __tablename__ = 'user_medals'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    medal_id = db.Column(db.Integer, db.ForeignKey('medal_definitions.id'), nullable=False)
    earned_at = db.Column(db.DateTime, default=utc_naive_now, nullable=False)
    progress = db.Column(db.Integer, default=0, nullable=False)
    is_new = db.Column(db.Boolean, default=True, nullable=False)
    viewed_at = db.Column(db.DateTime)

    medal = relationship('MedalDefinition')

    __table_args__ = (
        UniqueConstraint('user_id', 'medal_id', name='unique_user_medal'),
        Index('idx_user_medals_user', 'user_id'),
    )

    def __repr__(self):
        return f'<UserMedal user_id={self.user_id} medal_id={self.medal_id}>'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'medal_id': self.medal_id,
            'medal': self.medal.to_dict() if self.medal else None,
            'earned_at': _iso(self.earned_at),
            'progress': self.progress,
            'is_new': self.is_new,
            'viewed_at': _iso(self.viewed_at)
        }


class AchievementDefinition(db.Model):
    """
    A one-off achievement, grouped by dimension.

    Unlike medals, which follow the avatar's counters, achievements track
    how tasks are done: points earned, kinds of task, early completions
    and quick fixes after a rejection.
    """

    __tablename__ = 'achievement_definitions'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    code = db.Column(db.String(64), unique=True, nullable=False)
    dimension = db.Column(db.String(20), nullable=False)
    level = db.Column(db.String(16), nullable=False)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text)
    icon = db.Column(db.String(64))
    condition_type = db.Column(db.String(32), nullable=False)
    requirement = db.Column(db.Integer, nullable=False)
    requirement_detail = db.Column(db.JSON, default=dict, nullable=False)  # {'task_type': ...} or {'hour': ...}
    points_reward = db.Column(db.Integer, default=0, nullable=False)  # Bonus XP
    is_hidden = db.Column(db.Boolean, default=False, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    sort_order = db.Column(db.Integer, default=0, nullable=False)

    __table_args__ = (
        CheckConstraint("dimension IN ('accumulation', 'behavior', 'surprise')",
                        name='check_achievement_dimension'),
        CheckConstraint("level IN ('bronze', 'silver', 'gold', 'legendary')", name='check_achievement_level'),
        CheckConstraint(
            "condition_type IN ('total_tasks', 'total_points', 'task_type_count', 'consecutive_days', "
            "'early_completion', 'specific_time', 'resubmit_quick')",
            name='check_achievement_condition'
        ),
        Index('idx_achievements_active_order', 'is_active', 'sort_order'),
    )

    def __repr__(self):
        return f'<AchievementDefinition {self.code}>'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'code': self.code,
            'dimension': self.dimension,
            'level': self.level,
            'name': self.name,
            'description': self.description,
            'icon': self.icon,
            'condition_type': self.condition_type,
            'requirement': self.requirement,
            'requirement_detail': self.requirement_detail or {},
            'points_reward': self.points_reward,
            'is_hidden': self.is_hidden,
            'sort_order': self.sort_order
        }


class UserAchievementProgress(db.Model):
    """Per-user counters the achievement conditions are evaluated against."""

    __tablename__ = 'user_achievement_progress'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), unique=True, nullable=False)
    total_tasks_completed = db.Column(db.Integer, default=0, nullable=False)
    total_points_earned = db.Column(db.Integer, default=0, nullable=False)
    # Reassigned, never mutated in place
    task_type_counts = db.Column(db.JSON, default=dict, nullable=False)
    early_completion_count = db.Column(db.Integer, default=0, nullable=False)
    resubmit_quick_count = db.Column(db.Integer, default=0, nullable=False)
    last_completion_at = db.Column(db.DateTime)
    last_resubmit_at = db.Column(db.DateTime)
    updated_at = db.Column(db.DateTime, default=utc_naive_now, onupdate=utc_naive_now, nullable=False)

    def __repr__(self):
        return f'<UserAchievementProgress user_id={self.user_id} tasks={self.total_tasks_completed}>'

    def to_dict(self) -> dict:
        return {
            'total_tasks_completed': self.total_tasks_completed,
            'total_points_earned': self.total_points_earned,
            'task_type_counts': dict(self.task_type_counts or {}),
            'early_completion_count': self.early_completion_count,
            'resubmit_quick_count': self.resubmit_quick_count,
            'last_completion_at': _iso(self.last_completion_at)
        }


class UserAchievement(db.Model):
    """Achievement earned by a user. At most one row per (user, achievement)."""

    __tablename__ = 'user_achievements'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    achievement_id = db.Column(db.Integer, db.ForeignKey('achievement_definitions.id'), nullable=False)
    earned_at = db.Column(db.DateTime, default=utc_naive_now, nullable=False)
    progress = db.Column(db.Integer, default=0, nullable=False)
    is_new = db.Column(db.Boolean, default=True, nullable=False)
    viewed_at = db.Column(db.DateTime)

    achievement = relationship('AchievementDefinition')

    __table_args__ = (
        UniqueConstraint('user_id', 'achievement_id', name='unique_user_achievement'),
        Index('idx_user_achievements_user_new', 'user_id', 'is_new'),
    )

    def __repr__(self):
        return f'<UserAchievement user_id={self.user_id} achievement_id={self.achievement_id}>'


class ScheduledJob(db.Model):
    """A user-defined background job with run statistics."""

    __tablename__ = 'scheduled_jobs'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    job_type = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), default='stopped', nullable=False)
    frequency = db.Column(db.String(20), default='daily', nullable=False)
    cron_expression = db.Column(db.String(64))
    config = db.Column(db.JSON, default=dict, nullable=False)

    last_run_at = db.Column(db.DateTime)
    next_run_at = db.Column(db.DateTime)
    last_error = db.Column(db.Text)
    run_count = db.Column(db.Integer, default=0, nullable=False)
    success_count = db.Column(db.Integer, default=0, nullable=False)
    error_count = db.Column(db.Integer, default=0, nullable=False)

    created_at = db.Column(db.DateTime, default=utc_naive_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=utc_naive_now, onupdate=utc_naive_now, nullable=False)

    __table_args__ = (
        CheckConstraint("job_type IN ('recurring_task', 'daily_reset', 'cleanup', 'custom')",
                        name='check_job_type'),
        CheckConstraint("status IN ('running', 'stopped', 'error')", name='check_job_status'),
        CheckConstraint("frequency IN ('minutely', 'hourly', 'daily', 'weekly', 'monthly', 'custom')",
                        name='check_job_frequency'),
        Index('idx_scheduled_jobs_status_next', 'status', 'next_run_at'),
    )

    def __repr__(self):
        return f'<ScheduledJob {self.name} ({self.job_type}, {self.status})>'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'description': self.description,
            'job_type': self.job_type,
            'status': self.status,
            'frequency': self.frequency,
            'cron_expression': self.cron_expression,
            'config': dict(self.config or {}),
            'last_run_at': _iso(self.last_run_at),
            'next_run_at': _iso(self.next_run_at),
            'last_error': self.last_error,
            'run_count': self.run_count,
            'success_count': self.success_count,
            'error_count': self.error_count,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class SchedulerLock(db.Model):
    """Named lease used to keep background runs single-flight across processes."""

    __tablename__ = 'scheduler_locks'

    name = db.Column(db.String(64), primary_key=True)
    holder = db.Column(db.String(128), nullable=False)
    acquired_at = db.Column(db.DateTime, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)

    def __repr__(self):
        return f'<SchedulerLock {self.name} held by {self.holder}>'


def latest_balance_snapshot(user_id: int, currency: str) -> Optional[int]:
    """Balance recorded by the most recent transaction for a currency."""
    row = db.session.query(Transaction.balance).filter(
        Transaction.user_id == user_id,
        Transaction.currency == currency
    ).order_by(Transaction.id.desc()).first()
    return row[0] if row else None
