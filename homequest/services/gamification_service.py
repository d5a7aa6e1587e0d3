"""Gamification service.

Handles everything that happens to a child's avatar when a task is
approved:
- Calendar-day streak tracking
- XP gain with streak bonuses
- Level-up resolution against the AvatarLevel thresholds
- Skin and accessory unlocks
- Medal and achievement awarding

Also serves the read models behind the progress, avatar and medal wall
endpoints.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from homequest.models import (
    db, AvatarAccessory, AvatarLevel, AvatarSkin, MedalDefinition, Task, User, UserAvatar, UserMedal
)
from homequest.services.achievement_service import AchievementService
from homequest.services.errors import InvalidInputError, NotFoundError
from homequest.utils.timezone import resolve_now, to_naive_utc, utc_naive_now

logger = logging.getLogger(__name__)

# (minimum level, stage), checked top down
STAGES = (
    (10, 'legend'),
    (7, 'hero'),
    (5, 'adventurer'),
    (3, 'explorer'),
    (2, 'hatchling'),
)

# (minimum streak, bonus XP); every satisfied entry applies
STREAK_BONUSES = (
    (7, 5),
    (21, 10),
)

COMPLETION_REQUIREMENTS = ('total', 'consecutive')


def stage_for_level(level: int) -> str:
    for min_level, stage in STAGES:
        if level >= min_level:
            return stage
    return 'egg'


def streak_bonus(streak: int) -> int:
    return sum(bonus for min_streak, bonus in STREAK_BONUSES if streak >= min_streak)


def next_streak(last_task_date: Optional[date], current_streak: int, today: date) -> int:
    """
    Streak length after a completion on ``today``.

    Days are compared as calendar dates: a completion late yesterday and
    one early today are consecutive, two on the same day count once.
    """
    if last_task_date is None:
        return 1
    if last_task_date == today:
        return max(current_streak, 1)
    if last_task_date == today - timedelta(days=1):
        return current_streak + 1
    return 1


class GamificationService:
    """Service for avatar progress, unlocks and medals."""

    @staticmethod
    def get_or_create_avatar(user_id: int) -> UserAvatar:
        avatar = UserAvatar.query.filter_by(user_id=user_id).first()
        if avatar:
            return avatar

        if not db.session.get(User, user_id):
            raise NotFoundError(f'User {user_id} not found')

        avatar = UserAvatar(
            user_id=user_id,
            level=1,
            current_xp=0,
            total_xp=0,
            stage='egg',
            unlocked_skins=['default'],
            current_skin='default',
            equipped_accessories=[],
            unlocked_accessories=[],
            consecutive_days=0,
            max_consecutive_days=0,
            total_tasks_completed=0
        )
        db.session.add(avatar)
        db.session.flush()
        return avatar

    @staticmethod
    def level_thresholds() -> Dict[int, int]:
        """Map of level number to cumulative XP required."""
        return {row.level: row.xp_required for row in AvatarLevel.query.all()}

    @staticmethod
    def apply_level_ups(avatar: UserAvatar, thresholds: Dict[int, int]) -> int:
        """
        Consume ``current_xp`` into levels while it covers the next delta.

        Stops at the highest configured level or when XP runs short.

        Returns:
            int: Number of levels gained
        """
        gained = 0
        while True:
            next_required = thresholds.get(avatar.level + 1)
            if next_required is None:
                break
            needed = next_required - thresholds.get(avatar.level, 0)
            if avatar.current_xp < needed:
                break
            avatar.current_xp -= needed
            avatar.level += 1
            gained += 1
        return gained

    @staticmethod
    def refresh_unlocks(avatar: UserAvatar) -> Dict[str, List[str]]:
        """
        Union every skin and accessory available at the avatar's level into
        its unlocked sets.

        Returns:
            dict: Newly unlocked ``skins`` and ``accessories`` ids
        """
        skins = list(avatar.unlocked_skins or [])
        accessories = list(avatar.unlocked_accessories or [])

        new_skins = [
            skin.id for skin in AvatarSkin.query.filter(AvatarSkin.unlock_level <= avatar.level)
            .order_by(AvatarSkin.unlock_level).all()
            if skin.id not in skins
        ]
        new_accessories = [
            acc.id for acc in AvatarAccessory.query.filter(AvatarAccessory.unlock_level <= avatar.level)
            .order_by(AvatarAccessory.unlock_level).all()
            if acc.id not in accessories
        ]

        if new_skins:
            avatar.unlocked_skins = skins + new_skins
        if new_accessories:
            avatar.unlocked_accessories = accessories + new_accessories

        return {'skins': new_skins, 'accessories': new_accessories}

    @staticmethod
    def award_medal(user_id: int, medal: MedalDefinition, progress: int,
                    earned_at: Optional[datetime] = None) -> Optional[UserMedal]:
        """
        Insert a UserMedal unless the user already holds it.

        The insert runs in a savepoint so a concurrent award that wins the
        unique key only discards this row.

        Returns:
            The new UserMedal, or None if it was already held
        """
        if UserMedal.query.filter_by(user_id=user_id, medal_id=medal.id).first():
            return None

        user_medal = UserMedal(
            user_id=user_id,
            medal_id=medal.id,
            progress=progress,
            earned_at=earned_at or utc_naive_now(),
            is_new=True
        )
        try:
            with db.session.begin_nested():
                db.session.add(user_medal)
                db.session.flush()
        except IntegrityError:
            logger.info(f"User {user_id} already holds medal {medal.id}, skipping")
            return None

        logger.info(f"User {user_id} earned medal {medal.medal_type}/{medal.tier}")
        return user_medal

    @staticmethod
    def _check_completion_medals(avatar: UserAvatar, earned_at: datetime) -> List[MedalDefinition]:
        earned_ids = {
            row.medal_id for row in UserMedal.query.filter_by(user_id=avatar.user_id).all()
        }
        medals = MedalDefinition.query.filter(
            MedalDefinition.is_active.is_(True),
            MedalDefinition.requirement_type.in_(COMPLETION_REQUIREMENTS)
        ).order_by(MedalDefinition.sort_order).all()

        awarded = []
        for medal in medals:
            if medal.id in earned_ids:
                continue
            if medal.requirement_type == 'total':
                progress = avatar.total_tasks_completed
            else:
                progress = avatar.max_consecutive_days
            if progress < medal.requirement:
                continue
            if GamificationService.award_medal(avatar.user_id, medal, progress, earned_at):
                awarded.append(medal)
        return awarded

    @staticmethod
    def award_task_completion(user_id: int, task_points: int, now: Optional[datetime] = None,
                              task: Optional[Task] = None) -> dict:
        """
        Apply one approved task to the user's avatar and commit.

        Medal and achievement XP is applied after those checks and goes
        through the level-up loop again, so it can raise the level in the
        same pass.

        Args:
            user_id: Child who completed the task
            task_points: Points of the task, used as base XP
            now: Completion time (defaults to the current local time)
            task: The approved task; feeds the per-type, early completion
                and quick resubmit achievement counters

        Returns:
            dict with success, xp_gained, level_up, new_level, new_medals,
            new_achievements, unlocked_rewards, consecutive_days and stage
        """
        now_local = resolve_now(now)
        today = now_local.date()

        avatar = GamificationService.get_or_create_avatar(user_id)
        start_level = avatar.level

        streak = next_streak(avatar.last_task_date, avatar.consecutive_days, today)
        avatar.consecutive_days = streak
        avatar.max_consecutive_days = max(avatar.max_consecutive_days, streak)
        avatar.total_tasks_completed += 1

        xp_gained = max(task_points, 0) + streak_bonus(streak)
        avatar.current_xp += xp_gained
        avatar.total_xp += xp_gained

        thresholds = GamificationService.level_thresholds()
        GamificationService.apply_level_ups(avatar, thresholds)
        unlocked = GamificationService.refresh_unlocks(avatar)

        new_medals = GamificationService._check_completion_medals(avatar, to_naive_utc(now_local))
        new_achievements = AchievementService.record_completion(avatar, task_points, now_local, task)
        bonus_xp = (sum(medal.xp_reward for medal in new_medals)
                    + sum(achievement.points_reward for achievement in new_achievements))
        if bonus_xp:
            avatar.current_xp += bonus_xp
            avatar.total_xp += bonus_xp
            xp_gained += bonus_xp
            if GamificationService.apply_level_ups(avatar, thresholds):
                more = GamificationService.refresh_unlocks(avatar)
                unlocked['skins'].extend(more['skins'])
                unlocked['accessories'].extend(more['accessories'])

        avatar.stage = stage_for_level(avatar.level)
        avatar.last_task_date = today
        db.session.commit()

        level_up = avatar.level > start_level
        if level_up:
            logger.info(f"User {user_id} leveled up from {start_level} to {avatar.level}")

        return {
            'success': True,
            'xp_gained': xp_gained,
            'level_up': level_up,
            'new_level': avatar.level if level_up else None,
            'new_medals': [medal.to_dict() for medal in new_medals],
            'new_achievements': [achievement.to_dict() for achievement in new_achievements],
            'unlocked_rewards': unlocked,
            'consecutive_days': avatar.consecutive_days,
            'stage': avatar.stage
        }

    @staticmethod
    def best_task_streak(user_id: int) -> int:
        """Longest ``streak_count`` among the user's regular tasks."""
        best = db.session.query(func.max(Task.streak_count)).filter(
            Task.child_id == user_id,
            Task.category == 'regular'
        ).scalar()
        return best or 0

    @staticmethod
    def level_progress(avatar: UserAvatar) -> dict:
        """Progress of ``avatar`` through its current level."""
        levels = {row.level: row for row in AvatarLevel.query.all()}
        current = levels.get(avatar.level)
        upcoming = levels.get(avatar.level + 1)

        info = {
            'level': avatar.level,
            'level_name': current.name if current else None,
            'level_title': current.title if current else None,
            'level_icon': current.icon if current else None,
            'current_xp': avatar.current_xp,
            'total_xp': avatar.total_xp,
        }

        if upcoming is None:
            info.update({'xp_for_level': None, 'xp_to_next_level': 0, 'progress_percent': 100,
                         'is_max_level': True})
            return info

        needed = upcoming.xp_required - (current.xp_required if current else 0)
        percent = min(100, int(avatar.current_xp * 100 / needed)) if needed > 0 else 100
        info.update({
            'xp_for_level': needed,
            'xp_to_next_level': max(needed - avatar.current_xp, 0),
            'progress_percent': percent,
            'is_max_level': False,
            'next_level_name': upcoming.name
        })
        return info

    @staticmethod
    def get_stats(user_id: int) -> dict:
        avatar = GamificationService.get_or_create_avatar(user_id)
        medal_count = UserMedal.query.filter_by(user_id=user_id).count()
        db.session.commit()

        stats = GamificationService.level_progress(avatar)
        stats.update({
            'stage': avatar.stage,
            'consecutive_days': avatar.consecutive_days,
            'max_consecutive_days': avatar.max_consecutive_days,
            'total_tasks_completed': avatar.total_tasks_completed,
            'medal_count': medal_count,
            'current_skin': avatar.current_skin,
            'pet_name': avatar.pet_name
        })
        return stats

    @staticmethod
    def get_avatar_view(user_id: int) -> dict:
        """Avatar with the full skin and accessory catalog flagged for this user."""
        avatar = GamificationService.get_or_create_avatar(user_id)
        db.session.commit()

        unlocked_skins = set(avatar.unlocked_skins or [])
        unlocked_accessories = set(avatar.unlocked_accessories or [])
        equipped = set(avatar.equipped_accessories or [])

        skins = []
        for skin in AvatarSkin.query.order_by(AvatarSkin.unlock_level, AvatarSkin.id).all():
            data = skin.to_dict()
            data['is_unlocked'] = skin.id in unlocked_skins
            data['is_equipped'] = skin.id == avatar.current_skin
            skins.append(data)

        accessories = []
        for acc in AvatarAccessory.query.order_by(AvatarAccessory.unlock_level, AvatarAccessory.id).all():
            data = acc.to_dict()
            data['is_unlocked'] = acc.id in unlocked_accessories
            data['is_equipped'] = acc.id in equipped
            accessories.append(data)

        return {
            'avatar': avatar.to_dict(),
            'level_info': GamificationService.level_progress(avatar),
            'skins': skins,
            'accessories': accessories
        }

    @staticmethod
    def update_avatar(user_id: int, current_skin: Optional[str] = None,
                      equipped_accessories: Optional[List[str]] = None,
                      pet_name: Optional[str] = None, clear_pet_name: bool = False) -> UserAvatar:
        """
        Change the avatar's look. Only unlocked items can be used.

        Raises:
            InvalidInputError: A skin or accessory is not unlocked
        """
        avatar = GamificationService.get_or_create_avatar(user_id)

        if current_skin is not None:
            if current_skin not in (avatar.unlocked_skins or []):
                raise InvalidInputError(f'Skin "{current_skin}" is not unlocked')
            avatar.current_skin = current_skin

        if equipped_accessories is not None:
            locked = [a for a in equipped_accessories if a not in (avatar.unlocked_accessories or [])]
            if locked:
                raise InvalidInputError(f'Accessories not unlocked: {", ".join(locked)}')
            avatar.equipped_accessories = list(equipped_accessories)

        if pet_name is not None:
            avatar.pet_name = pet_name.strip() or None
        elif clear_pet_name:
            avatar.pet_name = None

        db.session.commit()
        return avatar

    @staticmethod
    def get_medal_wall(user_id: int) -> dict:
        """All active medals with this user's earned state and progress."""
        avatar = GamificationService.get_or_create_avatar(user_id)
        db.session.commit()

        earned = {row.medal_id: row for row in UserMedal.query.filter_by(user_id=user_id).all()}
        progress_by_type = {
            'total': avatar.total_tasks_completed,
            'consecutive': avatar.max_consecutive_days,
            'task_streak': GamificationService.best_task_streak(user_id),
        }

        medals = []
        for medal in MedalDefinition.query.filter_by(is_active=True).order_by(MedalDefinition.sort_order).all():
            held = earned.get(medal.id)
            progress = progress_by_type.get(medal.requirement_type, 0)
            data = medal.to_dict()
            data.update({
                'earned': held is not None,
                'earned_at': held.earned_at.isoformat() if held else None,
                'is_new': held.is_new if held else False,
                'progress': min(progress, medal.requirement),
                'progress_percent': min(100, int(progress * 100 / medal.requirement)) if medal.requirement else 100
            })
            medals.append(data)

        return {
            'medals': medals,
            'stats': {
                'total': len(medals),
                'earned': sum(1 for m in medals if m['earned']),
                'new': sum(1 for m in medals if m['is_new'])
            }
        }

    @staticmethod
    def mark_medals_viewed(user_id: int, medal_ids: Optional[List[int]] = None) -> int:
        """Clear the ``is_new`` flag. Returns the number of medals updated."""
        query = UserMedal.query.filter_by(user_id=user_id, is_new=True)
        if medal_ids:
            query = query.filter(UserMedal.medal_id.in_(medal_ids))

        updated = query.update({'is_new': False, 'viewed_at': utc_naive_now()}, synchronize_session=False)
        db.session.commit()
        return updated
