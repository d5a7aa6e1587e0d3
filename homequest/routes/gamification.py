"""Gamification API endpoints: progress, avatar, medal wall and achievements."""

import logging

from flask import Blueprint, jsonify, request

from homequest.auth import auth_required, parent_required, get_current_user
from homequest.schemas import (
    ACHIEVEMENTS_VIEWED_SCHEMA, AVATAR_UPDATE_SCHEMA, MEDALS_VIEWED_SCHEMA, validate_payload
)
from homequest.seed import seed_gamification_defaults
from homequest.services.achievement_service import AchievementService
from homequest.services.gamification_service import GamificationService
from homequest.services.errors import ForbiddenError
from homequest.routes.economy import resolve_target

gamification_bp = Blueprint('gamification', __name__, url_prefix='/api/gamification')
logger = logging.getLogger(__name__)


def _target_user():
    return resolve_target(get_current_user(), request.args.get('child_id', type=int))


@gamification_bp.route('/progress', methods=['GET'])
@auth_required
def get_progress():
    target = _target_user()
    return jsonify({'success': True, 'data': GamificationService.get_stats(target.id)})


@gamification_bp.route('/avatar', methods=['GET'])
@auth_required
def get_avatar():
    target = _target_user()
    return jsonify({'success': True, 'data': GamificationService.get_avatar_view(target.id)})


@gamification_bp.route('/avatar', methods=['PUT'])
@auth_required
def update_avatar():
    """Change skin, equipped accessories or pet name. Only the owner may dress up."""
    user = get_current_user()
    if user.is_parent:
        raise ForbiddenError('Only children can customise their avatar')

    data = validate_payload(AVATAR_UPDATE_SCHEMA, request.get_json(silent=True))
    avatar = GamificationService.update_avatar(
        user.id,
        current_skin=data.get('current_skin'),
        equipped_accessories=data.get('equipped_accessories'),
        pet_name=data.get('pet_name'),
        clear_pet_name='pet_name' in data and data['pet_name'] is None
    )
    return jsonify({'success': True, 'data': avatar.to_dict(), 'message': 'Avatar updated'})


@gamification_bp.route('/medals', methods=['GET'])
@auth_required
def get_medals():
    target = _target_user()
    return jsonify({'success': True, 'data': GamificationService.get_medal_wall(target.id)})


@gamification_bp.route('/medals/viewed', methods=['PUT'])
@auth_required
def mark_medals_viewed():
    data = validate_payload(MEDALS_VIEWED_SCHEMA, request.get_json(silent=True))
    updated = GamificationService.mark_medals_viewed(get_current_user().id, data.get('medal_ids'))
    return jsonify({'success': True, 'data': {'updated': updated}})


@gamification_bp.route('/achievements', methods=['GET'])
@auth_required
def get_achievements():
    target = _target_user()
    return jsonify({'success': True, 'data': AchievementService.get_achievements(target.id)})


@gamification_bp.route('/achievements/viewed', methods=['PUT'])
@auth_required
def mark_achievements_viewed():
    data = validate_payload(ACHIEVEMENTS_VIEWED_SCHEMA, request.get_json(silent=True))
    updated = AchievementService.mark_viewed(get_current_user().id, data.get('achievement_ids'))
    return jsonify({'success': True, 'data': {'updated': updated}})


@gamification_bp.route('/init', methods=['POST'])
@auth_required
@parent_required
def init_gamification():
    """Seed the default levels, skins, accessories, medals and achievements where missing."""
    counts = seed_gamification_defaults()
    return jsonify({'success': True, 'data': counts, 'message': 'Gamification configuration initialized'})
