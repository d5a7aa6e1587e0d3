"""Authentication utilities for HomeQuest.

Requests carry ``Authorization: Bearer <jwt>``. The token payload
``{userId, role, familyId, username}`` is trusted as issued; this module
only decodes it and resolves the user. Issuing tokens to people (login,
refresh) is handled outside this service.
"""

import logging
import secrets
from datetime import timedelta
from functools import wraps
from typing import Optional

import jwt
from flask import current_app, g, jsonify, request

from homequest.utils.timezone import utc_now

logger = logging.getLogger(__name__)


def create_access_token(user, expires_in: Optional[int] = None) -> str:
    """Issue a signed token for a known user (tooling and tests)."""
    now = utc_now()
    lifetime = expires_in or current_app.config.get('JWT_ACCESS_TOKEN_EXPIRES', 86400)
    payload = {
        'userId': user.id,
        'username': user.username,
        'role': user.role,
        'familyId': user.family_id,
        'iat': now,
        'exp': now + timedelta(seconds=lifetime)
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET_KEY'],
                      algorithm=current_app.config.get('JWT_ALGORITHM', 'HS256'))


def decode_access_token(token: str) -> Optional[dict]:
    """Decode a bearer token, returning None when it is invalid or expired."""
    try:
        payload = jwt.decode(token, current_app.config['JWT_SECRET_KEY'],
                             algorithms=[current_app.config.get('JWT_ALGORITHM', 'HS256')])
    except jwt.PyJWTError as e:
        logger.debug(f"Rejected bearer token: {e}")
        return None

    if 'userId' not in payload:
        return None
    return payload


def bearer_token() -> Optional[str]:
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header[7:].strip() or None
    return None


def load_auth_payload():
    """Populate ``g.auth`` from the request's bearer token."""
    token = bearer_token()
    g.auth = decode_access_token(token) if token else None


def get_current_user():
    """
    Get the current authenticated user from the database.

    Returns:
        User: Current user object or None if not authenticated
    """
    from homequest.models import db, User

    payload = getattr(g, 'auth', None)
    if not payload:
        return None

    # Cache the user lookup in g to avoid repeated DB queries within the same request
    if getattr(g, 'cached_user_id', None) != payload['userId']:
        g.current_user = db.session.get(User, payload['userId'])
        g.cached_user_id = payload['userId']

    return g.current_user


def _unauthorized(message='Authentication required'):
    return jsonify({'success': False, 'error': 'Unauthorized', 'message': message}), 401


def auth_required(f):
    """Decorator to ensure the request carries a valid token for an existing user."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if getattr(g, 'auth', None) is None:
            return _unauthorized()

        if get_current_user() is None:
            return _unauthorized('User not found')

        return f(*args, **kwargs)
    return decorated_function


def parent_required(f):
    """Decorator to ensure user is a parent."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = get_current_user()
        if user is None:
            return _unauthorized()

        if user.role != 'parent':
            return jsonify({
                'success': False,
                'error': 'Forbidden',
                'message': 'Parent privileges required'
            }), 403

        return f(*args, **kwargs)
    return decorated_function


def cron_key_required(f):
    """Decorator for endpoints called by the external cron poller."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get('CRON_API_KEY')
        token = bearer_token()
        if not expected or not token or not secrets.compare_digest(token, expected):
            return _unauthorized('Invalid cron API key')
        return f(*args, **kwargs)
    return decorated_function
