"""Achievement service.

Achievements are earned once, like medals, but are evaluated against a
separate set of counters describing how tasks get done:
- Points earned and tasks completed
- Completions per task type
- Early completions (submitted before 08:00 local time)
- Quick fixes (resubmitted within 30 minutes of a rejection)
- The avatar's current daily streak

Counters are updated by ``record_completion`` as part of the gamification
pass that follows a task approval.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from homequest.models import (
    db, AchievementDefinition, Task, UserAchievement, UserAchievementProgress, UserAvatar
)
from homequest.utils.timezone import as_local, to_naive_utc, utc_naive_now

logger = logging.getLogger(__name__)

EARLY_COMPLETION_HOUR = 8
QUICK_RESUBMIT_WINDOW = timedelta(minutes=30)

DIMENSIONS = ('accumulation', 'behavior', 'surprise')


def is_quick_resubmit(task: Task) -> bool:
    """True when the task was resubmitted within the window after its last rejection."""
    if task.rejected_at is None or task.submitted_at is None:
        return False
    elapsed = task.submitted_at - task.rejected_at
    return timedelta(0) <= elapsed <= QUICK_RESUBMIT_WINDOW


def progress_value(definition: AchievementDefinition, progress: UserAchievementProgress,
                   streak: int, done_at: Optional[datetime] = None) -> int:
    """
    Raw counter a definition is measured by.

    ``specific_time`` has no counter: it is 1 when the completion at
    ``done_at`` falls at or before the configured hour, else 0.
    """
    detail = definition.requirement_detail or {}
    condition = definition.condition_type

    if condition == 'total_tasks':
        return progress.total_tasks_completed
    if condition == 'total_points':
        return progress.total_points_earned
    if condition == 'task_type_count':
        return (progress.task_type_counts or {}).get(detail.get('task_type'), 0)
    if condition == 'consecutive_days':
        return streak
    if condition == 'early_completion':
        return progress.early_completion_count
    if condition == 'resubmit_quick':
        return progress.resubmit_quick_count
    if condition == 'specific_time':
        if done_at is None or detail.get('hour') is None:
            return 0
        return 1 if done_at.hour <= detail['hour'] else 0
    return 0


class AchievementService:
    """Service for achievement counters, awards and the achievement list."""

    @staticmethod
    def get_or_create_progress(user_id: int) -> UserAchievementProgress:
        progress = UserAchievementProgress.query.filter_by(user_id=user_id).first()
        if progress:
            return progress

        progress = UserAchievementProgress(
            user_id=user_id,
            total_tasks_completed=0,
            total_points_earned=0,
            task_type_counts={},
            early_completion_count=0,
            resubmit_quick_count=0
        )
        db.session.add(progress)
        db.session.flush()
        return progress

    @staticmethod
    def award(user_id: int, definition: AchievementDefinition, progress: int,
              earned_at: Optional[datetime] = None) -> Optional[UserAchievement]:
        """Insert a UserAchievement in a savepoint unless the user already holds it."""
        if UserAchievement.query.filter_by(user_id=user_id, achievement_id=definition.id).first():
            return None

        earned = UserAchievement(
            user_id=user_id,
            achievement_id=definition.id,
            progress=progress,
            earned_at=earned_at or utc_naive_now(),
            is_new=True
        )
        try:
            with db.session.begin_nested():
                db.session.add(earned)
                db.session.flush()
        except IntegrityError:
            logger.info(f"User {user_id} already holds achievement {definition.code}, skipping")
            return None

        logger.info(f"User {user_id} earned achievement {definition.code}")
        return earned

    @staticmethod
    def record_completion(avatar: UserAvatar, task_points: int, now: datetime,
                          task: Optional[Task] = None) -> List[AchievementDefinition]:
        """
        Count one approved task and award every achievement it completes.

        The completion time is the child's submission time when the task is
        known, else ``now``. Nothing is committed here.

        Args:
            avatar: Avatar of the child, already updated for this completion
            task_points: Points of the task
            now: Approval time, local
            task: The approved task, when there is one

        Returns:
            list: Definitions newly earned, in display order
        """
        progress = AchievementService.get_or_create_progress(avatar.user_id)
        done_at = as_local(task.submitted_at) if task is not None and task.submitted_at else now

        progress.total_tasks_completed += 1
        progress.total_points_earned += max(task_points, 0)
        if task is not None:
            counts = dict(progress.task_type_counts or {})
            counts[task.task_type] = counts.get(task.task_type, 0) + 1
            progress.task_type_counts = counts
            if is_quick_resubmit(task):
                progress.resubmit_quick_count += 1
                progress.last_resubmit_at = task.submitted_at
        if done_at.hour < EARLY_COMPLETION_HOUR:
            progress.early_completion_count += 1
        progress.last_completion_at = to_naive_utc(done_at)

        earned_ids = {
            row.achievement_id for row in UserAchievement.query.filter_by(user_id=avatar.user_id).all()
        }
        definitions = AchievementDefinition.query.filter_by(is_active=True).order_by(
            AchievementDefinition.sort_order, AchievementDefinition.id
        ).all()

        awarded = []
        for definition in definitions:
            if definition.id in earned_ids:
                continue
            value = progress_value(definition, progress, avatar.consecutive_days, done_at)
            if value < definition.requirement:
                continue
            if AchievementService.award(avatar.user_id, definition, value, to_naive_utc(now)):
                awarded.append(definition)
        return awarded

    @staticmethod
    def get_achievements(user_id: int) -> dict:
        """
        Every active achievement with this user's earned state and progress,
        plus totals per dimension.

        Unearned hidden achievements are listed without their description.
        """
        progress = AchievementService.get_or_create_progress(user_id)
        avatar = UserAvatar.query.filter_by(user_id=user_id).first()
        db.session.commit()

        best_streak = max(avatar.consecutive_days, avatar.max_consecutive_days) if avatar else 0
        earned = {row.achievement_id: row for row in UserAchievement.query.filter_by(user_id=user_id).all()}

        achievements = []
        total_by_dimension: Dict[str, int] = {dimension: 0 for dimension in DIMENSIONS}
        earned_by_dimension: Dict[str, int] = {dimension: 0 for dimension in DIMENSIONS}

        definitions = AchievementDefinition.query.filter_by(is_active=True).order_by(
            AchievementDefinition.sort_order, AchievementDefinition.id
        ).all()
        for definition in definitions:
            held = earned.get(definition.id)
            if held:
                value = definition.requirement
            elif definition.condition_type == 'specific_time':
                value = 0
            else:
                value = min(progress_value(definition, progress, best_streak), definition.requirement)

            data = definition.to_dict()
            if definition.is_hidden and not held:
                data['description'] = None
            data.update({
                'earned': held is not None,
                'earned_at': held.earned_at.isoformat() if held else None,
                'is_new': held.is_new if held else False,
                'progress': value,
                'progress_percent': min(100, int(value * 100 / definition.requirement))
                if definition.requirement else 100
            })
            achievements.append(data)

            total_by_dimension[definition.dimension] = total_by_dimension.get(definition.dimension, 0) + 1
            if held:
                earned_by_dimension[definition.dimension] = earned_by_dimension.get(definition.dimension, 0) + 1

        earned_count = sum(1 for a in achievements if a['earned'])
        return {
            'achievements': achievements,
            'progress': progress.to_dict(),
            'stats': {
                'total': len(achievements),
                'earned': earned_count,
                'new': sum(1 for a in achievements if a['is_new']),
                'completion_rate': round(earned_count * 100 / len(achievements)) if achievements else 0,
                'earned_by_dimension': earned_by_dimension,
                'total_by_dimension': total_by_dimension
            }
        }

    @staticmethod
    def mark_viewed(user_id: int, achievement_ids: Optional[List[int]] = None) -> int:
        """Clear the ``is_new`` flag. Returns the number of achievements updated."""
        query = UserAchievement.query.filter_by(user_id=user_id, is_new=True)
        if achievement_ids:
            query = query.filter(UserAchievement.achievement_id.in_(achievement_ids))

        updated = query.update({'is_new': False, 'viewed_at': utc_naive_now()}, synchronize_session=False)
        db.session.commit()
        return updated
