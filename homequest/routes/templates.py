"""Task template API endpoints (parent only)."""

import logging

from flask import Blueprint, jsonify, request

from homequest.auth import auth_required, parent_required, get_current_user
from homequest.models import db, Task, TaskTemplate
from homequest.schemas import TEMPLATE_CREATE_SCHEMA, TEMPLATE_UPDATE_SCHEMA, validate_payload
from homequest.services.errors import InvalidInputError, NotFoundError
from homequest.services.task_service import TaskService
from homequest.utils.recurrence import validate_recurrence

templates_bp = Blueprint('templates', __name__, url_prefix='/api/task-templates')
logger = logging.getLogger(__name__)

TEMPLATE_FIELDS = (
    'name', 'description', 'points', 'task_type', 'category', 'icon', 'image_url',
    'require_photo', 'child_id', 'is_recurring', 'is_recurring_template', 'recurrence',
    'recurrence_day', 'recurrence_days', 'auto_publish_time', 'expiry_policy', 'is_active'
)


def _get_template(template_id: int, parent) -> TaskTemplate:
    template = db.session.get(TaskTemplate, template_id)
    if not template or template.parent_id != parent.id:
        raise NotFoundError(f'Task template {template_id} not found')
    return template


def _apply_fields(template: TaskTemplate, parent, data: dict) -> None:
    if data.get('child_id') is not None:
        TaskService.get_family_child(parent, data['child_id'])

    for field in TEMPLATE_FIELDS:
        if field in data:
            setattr(template, field, data[field])

    is_valid, error = validate_recurrence(template.recurrence, template.recurrence_day,
                                          template.recurrence_days)
    if not is_valid:
        raise InvalidInputError(error)


@templates_bp.route('', methods=['GET'])
@auth_required
@parent_required
def list_templates():
    parent = get_current_user()
    templates = TaskTemplate.query.filter_by(parent_id=parent.id).order_by(TaskTemplate.id).all()
    return jsonify({
        'success': True,
        'data': [template.to_dict() for template in templates]
    })


@templates_bp.route('', methods=['POST'])
@auth_required
@parent_required
def create_template():
    parent = get_current_user()
    data = validate_payload(TEMPLATE_CREATE_SCHEMA, request.get_json(silent=True))

    template = TaskTemplate(parent_id=parent.id)
    _apply_fields(template, parent, data)
    db.session.add(template)
    db.session.commit()

    logger.info(f"Parent {parent.id} created template {template.id} ({template.name}, {template.recurrence})")
    return jsonify({
        'success': True,
        'data': template.to_dict(),
        'message': 'Task template created successfully'
    }), 201


@templates_bp.route('/<int:template_id>', methods=['GET'])
@auth_required
@parent_required
def get_template(template_id):
    template = _get_template(template_id, get_current_user())
    return jsonify({'success': True, 'data': template.to_dict()})


@templates_bp.route('/<int:template_id>', methods=['PUT'])
@auth_required
@parent_required
def update_template(template_id):
    parent = get_current_user()
    data = validate_payload(TEMPLATE_UPDATE_SCHEMA, request.get_json(silent=True))

    template = _get_template(template_id, parent)
    _apply_fields(template, parent, data)
    db.session.commit()

    return jsonify({
        'success': True,
        'data': template.to_dict(),
        'message': 'Task template updated successfully'
    })


@templates_bp.route('/<int:template_id>', methods=['DELETE'])
@auth_required
@parent_required
def delete_template(template_id):
    """Delete a template. Tasks generated from it are kept and unlinked."""
    template = _get_template(template_id, get_current_user())

    unlinked = Task.query.filter_by(template_id=template.id).update(
        {'template_id': None, 'version': Task.version + 1}, synchronize_session=False
    )
    db.session.delete(template)
    db.session.commit()

    logger.info(f"Deleted template {template_id}, unlinked {unlinked} task(s)")
    return jsonify({'success': True, 'message': f'Task template {template_id} deleted'})
