"""
Outbound notification webhooks.

Family events (a chore waiting for review, points credited, a reward
ordered, a level reached) are POSTed as JSON to WEBHOOK_URL when it is
configured, so a household dashboard or chat bot can announce them.
Delivery is best effort: failures are logged and never interrupt the
caller.
"""

import logging
from typing import Any, Callable, Dict, Optional

import requests

from homequest.utils.timezone import utc_now

logger = logging.getLogger(__name__)

WEBHOOK_TIMEOUT_SECONDS = 5


def _task_summary(task) -> dict:
    return {
        'task_id': task.id,
        'child_id': task.child_id,
        'name': task.name,
        'points': task.points,
        'status': task.status,
        'photo_url': task.photo_url,
    }


def _order_summary(order) -> dict:
    return {
        'order_id': order.id,
        'child_id': order.child_id,
        'reward_name': order.reward_name,
        'points_spent': order.points_spent,
        'verification_code': order.verification_code,
    }


def _level_summary(progress: dict) -> dict:
    return {'child_id': progress['user_id'], 'new_level': progress['new_level']}


# event name -> builder of the event's ``data`` block
EVENT_BUILDERS: Dict[str, Callable[[Any], dict]] = {
    'task_submitted': _task_summary,
    'task_approved': _task_summary,
    'order_created': _order_summary,
    'level_up': _level_summary,
}


def get_webhook_url() -> Optional[str]:
    from flask import current_app
    return current_app.config.get('WEBHOOK_URL')


def _family_of(child_id: Optional[int]) -> Optional[str]:
    from homequest.models import db, User

    if child_id is None:
        return None
    child = db.session.get(User, child_id)
    return child.family_id if child else None


def build_payload(event_name: str, obj: Any) -> dict:
    """
    Build the webhook body for a known event.

    Raises:
        ValueError: Unknown event name
    """
    builder = EVENT_BUILDERS.get(event_name)
    if builder is None:
        raise ValueError(f'Unknown webhook event: {event_name}')

    data = builder(obj)
    return {
        'event': event_name,
        'family_id': _family_of(data.get('child_id')),
        'timestamp': utc_now().isoformat(),
        'data': data
    }


def fire_webhook(event_name: str, obj: Any) -> bool:
    """
    Deliver a family event.

    Returns:
        True if delivered, False if skipped or failed
    """
    webhook_url = get_webhook_url()
    if not webhook_url:
        logger.debug(f"No WEBHOOK_URL, not sending {event_name}")
        return False

    payload = build_payload(event_name, obj)

    try:
        response = requests.post(webhook_url, json=payload, timeout=WEBHOOK_TIMEOUT_SECONDS)
        response.raise_for_status()
    except requests.exceptions.Timeout:
        logger.error(f"Webhook {event_name} timed out after {WEBHOOK_TIMEOUT_SECONDS}s")
        return False
    except requests.exceptions.RequestException as e:
        logger.error(f"Webhook {event_name} for family {payload['family_id']} failed: {e}")
        return False

    logger.info(f"Sent {event_name} webhook for family {payload['family_id']}")
    return True
