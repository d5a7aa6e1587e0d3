"""Task workflow API routes.

This module implements the chore task workflow:
- Listing and viewing tasks
- Submitting tasks (child marks as done, optionally with a photo)
- Approving tasks (parent credits points and avatar progress)
- Rejecting tasks (parent rejects with reason, allows resubmission)

State machine: pending → submitted → approved/rejected
After rejection: rejected → submitted (can resubmit)
"""

import logging

from flask import Blueprint, jsonify, request

from homequest.auth import auth_required, parent_required, get_current_user
from homequest.schemas import (
    TASK_CREATE_SCHEMA, TASK_REJECT_SCHEMA, TASK_SUBMIT_SCHEMA, validate_payload
)
from homequest.services.task_service import TaskService

tasks_bp = Blueprint('tasks', __name__, url_prefix='/api/tasks')
logger = logging.getLogger(__name__)


@tasks_bp.route('', methods=['GET'])
@auth_required
def list_tasks():
    """
    List tasks visible to the caller.

    Query params: child_id (parents), status, category, limit, offset.
    """
    user = get_current_user()
    limit = min(request.args.get('limit', 50, type=int), 200)
    offset = max(request.args.get('offset', 0, type=int), 0)

    tasks, total = TaskService.list_tasks(
        user,
        child_id=request.args.get('child_id', type=int),
        status=request.args.get('status'),
        category=request.args.get('category'),
        limit=limit,
        offset=offset
    )

    return jsonify({
        'success': True,
        'data': [task.to_dict() for task in tasks],
        'pagination': {'total': total, 'limit': limit, 'offset': offset}
    })


@tasks_bp.route('', methods=['POST'])
@auth_required
@parent_required
def create_task():
    data = validate_payload(TASK_CREATE_SCHEMA, request.get_json(silent=True))
    task = TaskService.create_task(get_current_user(), data)
    return jsonify({
        'success': True,
        'data': task.to_dict(),
        'message': 'Task created successfully'
    }), 201


@tasks_bp.route('/<int:task_id>', methods=['GET'])
@auth_required
def get_task(task_id):
    task = TaskService.get_task(task_id)
    TaskService.check_access(task, get_current_user())
    return jsonify({'success': True, 'data': task.to_dict()})


@tasks_bp.route('/<int:task_id>/submit', methods=['POST'])
@auth_required
def submit_task(task_id):
    """Child submits a pending or rejected task for approval."""
    data = validate_payload(TASK_SUBMIT_SCHEMA, request.get_json(silent=True))
    task = TaskService.submit(task_id, get_current_user(), photo_url=data.get('photo_url'))
    return jsonify({
        'success': True,
        'data': task.to_dict(),
        'message': 'Task submitted for approval'
    })


@tasks_bp.route('/<int:task_id>/approve', methods=['POST'])
@auth_required
@parent_required
def approve_task(task_id):
    """Parent approves a submitted task, crediting its points."""
    task, progress = TaskService.approve(task_id, get_current_user())
    return jsonify({
        'success': True,
        'data': {
            'task': task.to_dict(),
            'gamification': progress
        },
        'message': f'Task approved, {task.points} points awarded'
    })


@tasks_bp.route('/<int:task_id>/reject', methods=['POST'])
@auth_required
@parent_required
def reject_task(task_id):
    data = validate_payload(TASK_REJECT_SCHEMA, request.get_json(silent=True))
    task = TaskService.reject(task_id, get_current_user(), reason=data.get('reason'))
    return jsonify({
        'success': True,
        'data': task.to_dict(),
        'message': 'Task rejected'
    })


@tasks_bp.route('/<int:task_id>', methods=['DELETE'])
@auth_required
@parent_required
def delete_task(task_id):
    TaskService.delete_task(task_id, get_current_user())
    return jsonify({'success': True, 'message': f'Task {task_id} deleted'})
