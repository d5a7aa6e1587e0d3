"""Tests for the gamification engine."""

from datetime import date, datetime

import pytest

from homequest.models import AvatarSkin, MedalDefinition, UserAvatar, UserMedal
from homequest.services.errors import InvalidInputError
from homequest.services.gamification_service import (
    GamificationService, next_streak, stage_for_level, streak_bonus
)
from homequest.utils.timezone import UTC


def at(day: int, hour: int = 18) -> datetime:
    return datetime(2024, 5, day, hour, 0, tzinfo=UTC)


class TestPureRules:

    @pytest.mark.parametrize('level, stage', [
        (1, 'egg'), (2, 'hatchling'), (3, 'explorer'), (4, 'explorer'), (5, 'adventurer'),
        (6, 'adventurer'), (7, 'hero'), (9, 'hero'), (10, 'legend'), (12, 'legend'),
    ])
    def test_stage_for_level(self, level, stage):
        assert stage_for_level(level) == stage

    def test_streak_bonus_is_cumulative(self):
        assert streak_bonus(6) == 0
        assert streak_bonus(7) == 5
        assert streak_bonus(20) == 5
        assert streak_bonus(21) == 15

    def test_next_streak(self):
        today = date(2024, 5, 10)
        assert next_streak(None, 0, today) == 1
        assert next_streak(date(2024, 5, 9), 3, today) == 4
        assert next_streak(today, 4, today) == 4
        assert next_streak(date(2024, 5, 7), 4, today) == 1


class TestStreaks:
    """Calendar-day streak tracking through task completions."""

    def test_consecutive_same_day_and_gap(self, db_session, child_user, three_levels):
        avatar = GamificationService.get_or_create_avatar(child_user.id)
        avatar.last_task_date = date(2024, 5, 9)
        avatar.consecutive_days = 3
        avatar.max_consecutive_days = 3
        db_session.commit()

        result = GamificationService.award_task_completion(child_user.id, 1, now=at(10, 0))
        assert result['consecutive_days'] == 4

        result = GamificationService.award_task_completion(child_user.id, 1, now=at(10, 23))
        assert result['consecutive_days'] == 4

        result = GamificationService.award_task_completion(child_user.id, 1, now=at(13))
        assert result['consecutive_days'] == 1

        avatar = UserAvatar.query.filter_by(user_id=child_user.id).one()
        assert avatar.max_consecutive_days == 4
        assert avatar.total_tasks_completed == 3
        assert avatar.last_task_date == date(2024, 5, 13)

    def test_streak_bonus_added_to_xp(self, db_session, child_user, three_levels):
        avatar = GamificationService.get_or_create_avatar(child_user.id)
        avatar.last_task_date = date(2024, 5, 9)
        avatar.consecutive_days = 6
        db_session.commit()

        result = GamificationService.award_task_completion(child_user.id, 10, now=at(10))

        assert result['consecutive_days'] == 7
        assert result['xp_gained'] == 15


class TestLevelUp:
    """Thresholds 0, 100, 300 for levels 1-3."""

    def test_partial_level(self, db_session, child_user, three_levels):
        result = GamificationService.award_task_completion(child_user.id, 150, now=at(10))

        avatar = UserAvatar.query.filter_by(user_id=child_user.id).one()
        assert result['level_up'] is True
        assert result['new_level'] == 2
        assert avatar.level == 2
        assert avatar.current_xp == 50
        assert avatar.total_xp == 150
        assert avatar.stage == 'hatchling'

    def test_exact_two_levels(self, db_session, child_user, three_levels):
        GamificationService.award_task_completion(child_user.id, 300, now=at(10))

        avatar = UserAvatar.query.filter_by(user_id=child_user.id).one()
        assert avatar.level == 3
        assert avatar.current_xp == 0
        assert avatar.stage == 'explorer'

    def test_max_level_keeps_xp(self, db_session, child_user, three_levels):
        GamificationService.award_task_completion(child_user.id, 450, now=at(10))

        avatar = UserAvatar.query.filter_by(user_id=child_user.id).one()
        assert avatar.level == 3
        assert avatar.current_xp == 150

        progress = GamificationService.level_progress(avatar)
        assert progress['is_max_level'] is True
        assert progress['xp_to_next_level'] == 0

    def test_no_level_up(self, db_session, child_user, three_levels):
        result = GamificationService.award_task_completion(child_user.id, 40, now=at(10))

        assert result['level_up'] is False
        assert result['new_level'] is None
        assert result['stage'] == 'egg'

    def test_unlocks_follow_level(self, db_session, child_user, three_levels):
        db_session.add(AvatarSkin(id='default', name='Default', unlock_level=1))
        db_session.add(AvatarSkin(id='camo', name='Camo', unlock_level=2))
        db_session.add(AvatarSkin(id='gold', name='Gold', unlock_level=3))
        db_session.commit()

        result = GamificationService.award_task_completion(child_user.id, 120, now=at(10))

        avatar = UserAvatar.query.filter_by(user_id=child_user.id).one()
        assert result['unlocked_rewards']['skins'] == ['camo']
        assert avatar.unlocked_skins == ['default', 'camo']


class TestMedals:

    @pytest.fixture
    def first_task_medal(self, db_session):
        medal = MedalDefinition(medal_type='task_master', tier='bronze', name='First task',
                                requirement=1, requirement_type='total', xp_reward=60, sort_order=1)
        db_session.add(medal)
        db_session.commit()
        return medal

    def test_medal_awarded_once(self, db_session, child_user, three_levels, first_task_medal):
        first = GamificationService.award_task_completion(child_user.id, 1, now=at(10))
        second = GamificationService.award_task_completion(child_user.id, 1, now=at(11))

        assert len(first['new_medals']) == 1
        assert second['new_medals'] == []
        assert UserMedal.query.filter_by(user_id=child_user.id).count() == 1

    def test_award_medal_is_idempotent(self, db_session, child_user, first_task_medal):
        assert GamificationService.award_medal(child_user.id, first_task_medal, 1) is not None
        assert GamificationService.award_medal(child_user.id, first_task_medal, 1) is None
        db_session.commit()
        assert UserMedal.query.filter_by(user_id=child_user.id).count() == 1

    def test_medal_xp_can_level_up(self, db_session, child_user, three_levels, first_task_medal):
        result = GamificationService.award_task_completion(child_user.id, 50, now=at(10))

        avatar = UserAvatar.query.filter_by(user_id=child_user.id).one()
        assert result['xp_gained'] == 110
        assert avatar.level == 2
        assert avatar.current_xp == 10
        assert avatar.total_xp == 110

    def test_mark_medals_viewed(self, db_session, child_user, three_levels, first_task_medal):
        GamificationService.award_task_completion(child_user.id, 1, now=at(10))

        assert GamificationService.mark_medals_viewed(child_user.id) == 1
        assert GamificationService.mark_medals_viewed(child_user.id) == 0

        wall = GamificationService.get_medal_wall(child_user.id)
        assert wall['stats'] == {'total': 1, 'earned': 1, 'new': 0}


class TestAvatarCustomisation:

    def test_only_unlocked_items(self, db_session, child_user):
        GamificationService.get_or_create_avatar(child_user.id)
        db_session.commit()

        with pytest.raises(InvalidInputError):
            GamificationService.update_avatar(child_user.id, current_skin='legend')

        with pytest.raises(InvalidInputError):
            GamificationService.update_avatar(child_user.id, equipped_accessories=['cape'])

        avatar = GamificationService.update_avatar(child_user.id, current_skin='default', pet_name='  Rex ')
        assert avatar.pet_name == 'Rex'

        avatar = GamificationService.update_avatar(child_user.id, clear_pet_name=True)
        assert avatar.pet_name is None


class TestSeededConfiguration:

    def test_seed_is_idempotent(self, db_session, seeded):
        from homequest.seed import seed_gamification_defaults

        assert seeded['levels'] == 10
        assert seeded['medals'] == 12
        assert seeded['achievements'] == 14
        assert seed_gamification_defaults() == {
            'levels': 0, 'skins': 0, 'accessories': 0, 'medals': 0, 'achievements': 0
        }

    def test_progress_with_defaults(self, db_session, child_user, seeded):
        result = GamificationService.award_task_completion(child_user.id, 120, now=at(10))

        # 120 task XP, plus 10 for First Quest and 20 for Point Collector
        assert [a['code'] for a in result['new_achievements']] == ['first_quest', 'point_collector']
        assert result['xp_gained'] == 150

        stats = GamificationService.get_stats(child_user.id)
        assert stats['level'] == 2
        assert stats['level_name'] == 'Hatchling'
        assert stats['current_xp'] == 50
        assert stats['xp_to_next_level'] == 150
        assert stats['progress_percent'] == 25
        assert stats['medal_count'] == 0
