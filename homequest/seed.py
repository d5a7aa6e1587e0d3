"""
Default gamification configuration.

Seeds levels, skins, accessories, medals and achievements. Each table
is seeded only when it is empty, so running this again never duplicates
or overwrites rows a family has customised.
"""

import logging

from homequest.models import db, AchievementDefinition, AvatarAccessory, AvatarLevel, AvatarSkin, MedalDefinition

logger = logging.getLogger(__name__)

DEFAULT_LEVELS = [
    {'level': 1, 'name': 'Little Egg', 'title': 'Waiting to Hatch', 'xp_required': 0, 'icon': '🥚',
     'description': 'An egg full of potential, waiting to crack open'},
    {'level': 2, 'name': 'Hatchling', 'title': 'Newborn Explorer', 'xp_required': 100, 'icon': '🐣',
     'description': 'Out of the shell and ready to look around'},
    {'level': 3, 'name': 'Trainee Explorer', 'title': 'Brave Beginner', 'xp_required': 300, 'icon': '🐥',
     'description': 'Taking the first curious steps'},
    {'level': 4, 'name': 'Junior Explorer', 'title': 'Growing Hero', 'xp_required': 600, 'icon': '🦆',
     'description': 'Getting the hang of exploring'},
    {'level': 5, 'name': 'Explorer', 'title': 'Seasoned Traveller', 'xp_required': 1000, 'icon': '🐤',
     'description': 'Has been on many adventures'},
    {'level': 6, 'name': 'Senior Explorer', 'title': 'Skilled Adventurer', 'xp_required': 1500, 'icon': '🦅',
     'description': 'Ready for any challenge'},
    {'level': 7, 'name': 'Expedition Leader', 'title': 'Leader of the Pack', 'xp_required': 2200, 'icon': '🦉',
     'description': 'Leads friends on adventures'},
    {'level': 8, 'name': 'Adventure Master', 'title': 'Legendary Adventurer', 'xp_required': 3000, 'icon': '🦚',
     'description': 'A legend among adventurers'},
    {'level': 9, 'name': 'Hero', 'title': 'Admired by All', 'xp_required': 4000, 'icon': '🦄',
     'description': 'Works wonders with courage and wit'},
    {'level': 10, 'name': 'Legend', 'title': 'Eternal Legend', 'xp_required': 5500, 'icon': '🐉',
     'description': 'A name that will be remembered forever'},
]

DEFAULT_SKINS = [
    {'id': 'default', 'name': 'Classic Look', 'description': 'The classic explorer outfit',
     'unlock_level': 1, 'icon': '🧒', 'rarity': 'common'},
    {'id': 'explorer_camo', 'name': 'Camo Explorer', 'description': 'Blends right into the wild',
     'unlock_level': 3, 'icon': '🧑‍🌾', 'rarity': 'common'},
    {'id': 'scholar', 'name': 'Little Scholar', 'description': 'A bookish, clever look',
     'unlock_level': 5, 'icon': '🧑‍🎓', 'rarity': 'rare'},
    {'id': 'superhero', 'name': 'Little Hero', 'description': 'Suited up to protect the day',
     'unlock_level': 7, 'icon': '🦸', 'rarity': 'epic'},
    {'id': 'legend', 'name': 'Legendary Form', 'description': 'Glowing with legendary light',
     'unlock_level': 10, 'icon': '🧙', 'rarity': 'legendary'},
]

DEFAULT_ACCESSORIES = [
    {'id': 'baseball_cap', 'name': 'Explorer Cap', 'description': 'Keeps the sun out, looks cool',
     'unlock_level': 2, 'accessory_type': 'hat', 'icon': '🧢', 'rarity': 'common'},
    {'id': 'glasses', 'name': 'Scholar Glasses', 'description': 'Makes you look even smarter',
     'unlock_level': 3, 'accessory_type': 'glasses', 'icon': '👓', 'rarity': 'common'},
    {'id': 'backpack', 'name': 'Adventure Backpack', 'description': 'Packed with adventure essentials',
     'unlock_level': 4, 'accessory_type': 'cape', 'icon': '🎒', 'rarity': 'common'},
    {'id': 'sunglasses', 'name': 'Cool Shades', 'description': 'Maximum style',
     'unlock_level': 5, 'accessory_type': 'glasses', 'icon': '🕶️', 'rarity': 'rare'},
    {'id': 'dog', 'name': 'Puppy Pal', 'description': 'A loyal adventure buddy',
     'unlock_level': 6, 'accessory_type': 'pet', 'icon': '🐕', 'rarity': 'rare'},
    {'id': 'cat', 'name': 'Kitty Pal', 'description': 'An elegant, mysterious companion',
     'unlock_level': 6, 'accessory_type': 'pet', 'icon': '🐈', 'rarity': 'rare'},
    {'id': 'cape', 'name': 'Hero Cape', 'description': 'Flutters in the wind',
     'unlock_level': 7, 'accessory_type': 'cape', 'icon': '🦸‍♂️', 'rarity': 'epic'},
    {'id': 'forest_bg', 'name': 'Forest Backdrop', 'description': 'A lively green forest',
     'unlock_level': 8, 'accessory_type': 'background', 'icon': '🌲', 'rarity': 'epic'},
]

DEFAULT_MEDALS = [
    # Task master series
    {'medal_type': 'task_master', 'tier': 'bronze', 'name': 'First Steps',
     'description': 'Complete 3 tasks in total', 'icon': '🥉',
     'requirement': 3, 'requirement_type': 'total', 'xp_reward': 50, 'color': '#CD7F32', 'sort_order': 1},
    {'medal_type': 'task_master', 'tier': 'silver', 'name': 'Rising Adventurer',
     'description': 'Complete 10 tasks in total', 'icon': '🥈',
     'requirement': 10, 'requirement_type': 'total', 'xp_reward': 150, 'color': '#C0C0C0', 'sort_order': 2},
    {'medal_type': 'task_master', 'tier': 'gold', 'name': 'Steady Warrior',
     'description': 'Complete tasks 21 days in a row', 'icon': '🥇',
     'requirement': 21, 'requirement_type': 'consecutive', 'xp_reward': 500, 'color': '#FFD700', 'sort_order': 3},
    {'medal_type': 'task_master', 'tier': 'diamond', 'name': 'Grand Master',
     'description': 'Complete 100 tasks in total', 'icon': '💎',
     'requirement': 100, 'requirement_type': 'total', 'xp_reward': 2000, 'color': '#B9F2FF', 'sort_order': 4},
    # Persistence series
    {'medal_type': 'persistence', 'tier': 'bronze', 'name': 'Little Flame',
     'description': 'Keep going 3 days in a row', 'icon': '🔥',
     'requirement': 3, 'requirement_type': 'consecutive', 'xp_reward': 30, 'color': '#FF6B35', 'sort_order': 5},
    {'medal_type': 'persistence', 'tier': 'silver', 'name': 'Keeper',
     'description': 'Keep going 7 days in a row', 'icon': '📅',
     'requirement': 7, 'requirement_type': 'consecutive', 'xp_reward': 100, 'color': '#4ECDC4', 'sort_order': 6},
    {'medal_type': 'persistence', 'tier': 'gold', 'name': 'Habit Builder',
     'description': 'Keep going 30 days in a row', 'icon': '✨',
     'requirement': 30, 'requirement_type': 'consecutive', 'xp_reward': 800, 'color': '#FFE66D', 'sort_order': 7},
    {'medal_type': 'persistence', 'tier': 'diamond', 'name': 'Iron Will',
     'description': 'Keep going 100 days in a row', 'icon': '👑',
     'requirement': 100, 'requirement_type': 'consecutive', 'xp_reward': 3000, 'color': '#9B59B6', 'sort_order': 8},
    # Streaks on a single daily chore, awarded by the daily reset
    {'medal_type': 'task_streak', 'tier': 'bronze', 'name': 'One Week Strong',
     'description': 'Keep one daily chore going for 7 days', 'icon': '🏅',
     'requirement': 7, 'requirement_type': 'task_streak', 'xp_reward': 0, 'color': '#CD7F32', 'sort_order': 9},
    {'medal_type': 'task_streak', 'tier': 'silver', 'name': 'One Month Strong',
     'description': 'Keep one daily chore going for 30 days', 'icon': '🎖️',
     'requirement': 30, 'requirement_type': 'task_streak', 'xp_reward': 0, 'color': '#C0C0C0', 'sort_order': 10},
    {'medal_type': 'task_streak', 'tier': 'gold', 'name': 'Season Strong',
     'description': 'Keep one daily chore going for 90 days', 'icon': '🏆',
     'requirement': 90, 'requirement_type': 'task_streak', 'xp_reward': 0, 'color': '#FFD700', 'sort_order': 11},
    {'medal_type': 'task_streak', 'tier': 'diamond', 'name': 'Year Strong',
     'description': 'Keep one daily chore going for 365 days', 'icon': '🌟',
     'requirement': 365, 'requirement_type': 'task_streak', 'xp_reward': 0, 'color': '#B9F2FF', 'sort_order': 12},
]

DEFAULT_ACHIEVEMENTS = [
    # Accumulation
    {'code': 'first_quest', 'dimension': 'accumulation', 'level': 'bronze', 'name': 'First Quest',
     'description': 'Get your first task approved', 'icon': '🌱',
     'condition_type': 'total_tasks', 'requirement': 1, 'points_reward': 10, 'sort_order': 1},
    {'code': 'busy_bee', 'dimension': 'accumulation', 'level': 'silver', 'name': 'Busy Bee',
     'description': 'Get 25 tasks approved', 'icon': '🐝',
     'condition_type': 'total_tasks', 'requirement': 25, 'points_reward': 50, 'sort_order': 2},
    {'code': 'chore_champion', 'dimension': 'accumulation', 'level': 'gold', 'name': 'Chore Champion',
     'description': 'Get 200 tasks approved', 'icon': '🏆',
     'condition_type': 'total_tasks', 'requirement': 200, 'points_reward': 300, 'sort_order': 3},
    {'code': 'point_collector', 'dimension': 'accumulation', 'level': 'bronze', 'name': 'Point Collector',
     'description': 'Earn 100 points from tasks', 'icon': '🪙',
     'condition_type': 'total_points', 'requirement': 100, 'points_reward': 20, 'sort_order': 4},
    {'code': 'treasure_keeper', 'dimension': 'accumulation', 'level': 'silver', 'name': 'Treasure Keeper',
     'description': 'Earn 1000 points from tasks', 'icon': '💰',
     'condition_type': 'total_points', 'requirement': 1000, 'points_reward': 100, 'sort_order': 5},
    {'code': 'point_tycoon', 'dimension': 'accumulation', 'level': 'legendary', 'name': 'Point Tycoon',
     'description': 'Earn 10000 points from tasks', 'icon': '👑',
     'condition_type': 'total_points', 'requirement': 10000, 'points_reward': 1000, 'sort_order': 6},
    {'code': 'daily_regular', 'dimension': 'accumulation', 'level': 'silver', 'name': 'Daily Regular',
     'description': 'Complete 30 daily tasks', 'icon': '📆',
     'condition_type': 'task_type_count', 'requirement': 30, 'requirement_detail': {'task_type': 'daily'},
     'points_reward': 60, 'sort_order': 7},
    {'code': 'challenge_seeker', 'dimension': 'accumulation', 'level': 'gold', 'name': 'Challenge Seeker',
     'description': 'Complete 10 challenge tasks', 'icon': '⛰️',
     'condition_type': 'task_type_count', 'requirement': 10, 'requirement_detail': {'task_type': 'challenge'},
     'points_reward': 150, 'sort_order': 8},
    # Behaviour
    {'code': 'early_bird', 'dimension': 'behavior', 'level': 'bronze', 'name': 'Early Bird',
     'description': 'Finish 5 tasks before 8 in the morning', 'icon': '🐦',
     'condition_type': 'early_completion', 'requirement': 5, 'points_reward': 30, 'sort_order': 9},
    {'code': 'dawn_patrol', 'dimension': 'behavior', 'level': 'gold', 'name': 'Dawn Patrol',
     'description': 'Finish 30 tasks before 8 in the morning', 'icon': '🌅',
     'condition_type': 'early_completion', 'requirement': 30, 'points_reward': 200, 'sort_order': 10},
    {'code': 'on_a_roll', 'dimension': 'behavior', 'level': 'silver', 'name': 'On a Roll',
     'description': 'Complete tasks 5 days in a row', 'icon': '🎳',
     'condition_type': 'consecutive_days', 'requirement': 5, 'points_reward': 40, 'sort_order': 11},
    {'code': 'comeback_kid', 'dimension': 'behavior', 'level': 'bronze', 'name': 'Comeback Kid',
     'description': 'Fix a rejected task within 30 minutes', 'icon': '🔁',
     'condition_type': 'resubmit_quick', 'requirement': 1, 'points_reward': 20, 'sort_order': 12},
    {'code': 'quick_fixer', 'dimension': 'behavior', 'level': 'silver', 'name': 'Quick Fixer',
     'description': 'Fix 10 rejected tasks within 30 minutes', 'icon': '🛠️',
     'condition_type': 'resubmit_quick', 'requirement': 10, 'points_reward': 80, 'sort_order': 13},
    # Surprise
    {'code': 'sunrise_surprise', 'dimension': 'surprise', 'level': 'legendary', 'name': 'Sunrise Surprise',
     'description': 'Finish a task before 7 in the morning', 'icon': '🌄',
     'condition_type': 'specific_time', 'requirement': 1, 'requirement_detail': {'hour': 6},
     'points_reward': 50, 'is_hidden': True, 'sort_order': 14},
]


def _seed_table(model, rows) -> int:
    if db.session.query(model).first() is not None:
        return 0
    for row in rows:
        db.session.add(model(**row))
    return len(rows)


def seed_gamification_defaults() -> dict:
    """
    Insert the default gamification configuration into empty tables.

    Returns:
        dict: Rows inserted per table
    """
    counts = {
        'levels': _seed_table(AvatarLevel, DEFAULT_LEVELS),
        'skins': _seed_table(AvatarSkin, DEFAULT_SKINS),
        'accessories': _seed_table(AvatarAccessory, DEFAULT_ACCESSORIES),
        'medals': _seed_table(MedalDefinition, DEFAULT_MEDALS),
        'achievements': _seed_table(AchievementDefinition, DEFAULT_ACHIEVEMENTS),
    }
    db.session.commit()

    if any(counts.values()):
        logger.info(f"Seeded gamification defaults: {counts}")
    return counts
