"""User and family API endpoints."""

import logging

from flask import Blueprint, jsonify, request
from sqlalchemy.exc import IntegrityError

from homequest.auth import auth_required, parent_required, get_current_user
from homequest.models import db, User
from homequest.schemas import USER_CREATE_SCHEMA, validate_payload
from homequest.services.errors import ConflictError

users_bp = Blueprint('users', __name__, url_prefix='/api/users')
logger = logging.getLogger(__name__)


@users_bp.route('/me', methods=['GET'])
@auth_required
def get_me():
    """The authenticated user."""
    return jsonify({'success': True, 'data': get_current_user().to_dict()})


@users_bp.route('/family', methods=['GET'])
@auth_required
def list_family():
    """Members of the caller's family, parents first."""
    user = get_current_user()
    members = User.query.filter_by(family_id=user.family_id).order_by(User.role.desc(), User.id).all()
    return jsonify({
        'success': True,
        'data': [member.to_dict() for member in members]
    })


@users_bp.route('', methods=['POST'])
@auth_required
@parent_required
def create_child():
    """Create a child account in the parent's family."""
    parent = get_current_user()
    data = validate_payload(USER_CREATE_SCHEMA, request.get_json(silent=True))

    if User.query.filter_by(username=data['username']).first():
        raise ConflictError(f"Username '{data['username']}' already exists")

    child = User(
        username=data['username'],
        nickname=data.get('nickname') or data['username'],
        avatar=data.get('avatar'),
        role='child',
        family_id=parent.family_id,
        parent_id=parent.id
    )
    db.session.add(child)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Username '{data['username']}' already exists")

    logger.info(f"Parent {parent.id} created child {child.id} ({child.username})")
    return jsonify({
        'success': True,
        'data': child.to_dict(),
        'message': 'Child created successfully'
    }), 201
