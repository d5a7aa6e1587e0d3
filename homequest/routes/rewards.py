"""Rewards API endpoints for HomeQuest."""

from flask import Blueprint, jsonify, request

from homequest.auth import auth_required, parent_required, get_current_user
from homequest.schemas import REWARD_CREATE_SCHEMA, REWARD_UPDATE_SCHEMA, validate_payload
from homequest.services.order_service import RewardService

rewards_bp = Blueprint('rewards', __name__, url_prefix='/api/rewards')


@rewards_bp.route('', methods=['GET'])
@auth_required
def list_rewards():
    """List the family's rewards. Children only see active ones."""
    active_filter = request.args.get('active')
    active_only = active_filter is not None and active_filter.lower() in ('true', '1', 'yes')

    rewards = RewardService.list_rewards(get_current_user(), active_only=active_only)
    return jsonify({
        'success': True,
        'data': [reward.to_dict() for reward in rewards],
        'message': f'Found {len(rewards)} rewards'
    })


@rewards_bp.route('', methods=['POST'])
@auth_required
@parent_required
def create_reward():
    data = validate_payload(REWARD_CREATE_SCHEMA, request.get_json(silent=True))
    reward = RewardService.create_reward(get_current_user(), data)
    return jsonify({
        'success': True,
        'data': reward.to_dict(),
        'message': 'Reward created successfully'
    }), 201


@rewards_bp.route('/<int:reward_id>', methods=['GET'])
@auth_required
def get_reward(reward_id):
    reward = RewardService.get_reward(reward_id, get_current_user())
    return jsonify({'success': True, 'data': reward.to_dict()})


@rewards_bp.route('/<int:reward_id>', methods=['PUT'])
@auth_required
@parent_required
def update_reward(reward_id):
    data = validate_payload(REWARD_UPDATE_SCHEMA, request.get_json(silent=True))
    reward = RewardService.update_reward(reward_id, get_current_user(), data)
    return jsonify({
        'success': True,
        'data': reward.to_dict(),
        'message': 'Reward updated successfully'
    })
