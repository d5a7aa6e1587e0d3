"""Statistics API endpoints."""

import logging

from flask import Blueprint, jsonify, request

from homequest.auth import auth_required, get_current_user
from homequest.services.stats_service import StatsService

stats_bp = Blueprint('stats', __name__, url_prefix='/api/stats')
logger = logging.getLogger(__name__)


@stats_bp.route('', methods=['GET'])
@auth_required
def get_overview():
    """Family activity over the last week or month (``?period=week|month``)."""
    data = StatsService.overview(
        get_current_user(),
        period=request.args.get('period', 'week'),
        child_id=request.args.get('child_id', type=int)
    )
    return jsonify({'success': True, 'data': data})


@stats_bp.route('/tasks', methods=['GET'])
@auth_required
def get_task_summary():
    data = StatsService.task_summary(get_current_user(), child_id=request.args.get('child_id', type=int))
    return jsonify({'success': True, 'data': data})
