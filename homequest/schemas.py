"""
JSON schemas for request bodies.

Every mutating endpoint validates its payload here before any service is
called. Economy requests are a tagged variant keyed by ``action``.
"""

from typing import Any, Dict, Optional

import jsonschema
from jsonschema.exceptions import best_match

from homequest.services.errors import InvalidInputError, UnimplementedError

HHMM_PATTERN = "^([0-1][0-9]|2[0-3]):[0-5][0-9]$"

TASK_TYPES = ["daily", "advanced", "challenge"]
CATEGORIES = ["regular", "special"]
EXPIRY_POLICIES = ["auto_close", "rollover", "keep"]
RECURRENCES = ["none", "daily", "weekly", "monthly", "minutely", "custom_days"]

_positive_int = {"type": "integer", "minimum": 1}
_non_negative_int = {"type": "integer", "minimum": 0}
_optional_text = {"type": ["string", "null"]}

TASK_CREATE_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1, "maxLength": 255},
        "description": _optional_text,
        "child_id": {"type": "integer"},
        "points": _non_negative_int,
        "task_type": {"type": "string", "enum": TASK_TYPES},
        "category": {"type": "string", "enum": CATEGORIES},
        "icon": _optional_text,
        "image_url": _optional_text,
        "require_photo": {"type": "boolean"},
        "deadline": _optional_text,
        "expiry_policy": {"type": "string", "enum": EXPIRY_POLICIES}
    },
    "required": ["name", "child_id", "points"],
    "additionalProperties": False
}

TASK_SUBMIT_SCHEMA = {
    "type": "object",
    "properties": {
        "photo_url": _optional_text
    },
    "additionalProperties": False
}

TASK_REJECT_SCHEMA = {
    "type": "object",
    "properties": {
        "reason": _optional_text
    },
    "additionalProperties": False
}

_template_properties = {
    "name": {"type": "string", "minLength": 1, "maxLength": 255},
    "description": _optional_text,
    "child_id": {"type": ["integer", "null"]},
    "points": _non_negative_int,
    "task_type": {"type": "string", "enum": TASK_TYPES},
    "category": {"type": "string", "enum": CATEGORIES},
    "icon": _optional_text,
    "image_url": _optional_text,
    "require_photo": {"type": "boolean"},
    "is_recurring": {"type": "boolean"},
    "is_recurring_template": {"type": "boolean"},
    "recurrence": {"type": "string", "enum": RECURRENCES},
    "recurrence_day": {"type": ["integer", "null"], "minimum": 0, "maximum": 31},
    "recurrence_days": {
        "type": ["array", "null"],
        "items": {"type": "integer", "minimum": 0, "maximum": 6},
        "uniqueItems": True
    },
    "auto_publish_time": {"type": ["string", "null"], "pattern": HHMM_PATTERN},
    "expiry_policy": {"type": "string", "enum": EXPIRY_POLICIES},
    "is_active": {"type": "boolean"}
}

TEMPLATE_CREATE_SCHEMA = {
    "type": "object",
    "properties": _template_properties,
    "required": ["name", "points"],
    "additionalProperties": False
}

TEMPLATE_UPDATE_SCHEMA = {
    "type": "object",
    "properties": _template_properties,
    "additionalProperties": False
}

_reward_properties = {
    "name": {"type": "string", "minLength": 1, "maxLength": 255},
    "description": _optional_text,
    "points": _non_negative_int,
    "reward_type": {"type": "string", "enum": ["physical", "privilege"]},
    "icon": _optional_text,
    "stock": {"type": "integer", "minimum": -1},
    "is_active": {"type": "boolean"}
}

REWARD_CREATE_SCHEMA = {
    "type": "object",
    "properties": _reward_properties,
    "required": ["name", "points"],
    "additionalProperties": False
}

REWARD_UPDATE_SCHEMA = {
    "type": "object",
    "properties": _reward_properties,
    "additionalProperties": False
}

ORDER_CREATE_SCHEMA = {
    "type": "object",
    "properties": {
        "reward_id": {"type": "integer"}
    },
    "required": ["reward_id"],
    "additionalProperties": False
}

USER_CREATE_SCHEMA = {
    "type": "object",
    "properties": {
        "username": {"type": "string", "minLength": 1, "maxLength": 255},
        "nickname": _optional_text,
        "avatar": _optional_text
    },
    "required": ["username"],
    "additionalProperties": False
}

AVATAR_UPDATE_SCHEMA = {
    "type": "object",
    "properties": {
        "current_skin": {"type": "string", "minLength": 1},
        "equipped_accessories": {
            "type": "array",
            "items": {"type": "string"},
            "uniqueItems": True
        },
        "pet_name": {"type": ["string", "null"], "maxLength": 32}
    },
    "additionalProperties": False
}

MEDALS_VIEWED_SCHEMA = {
    "type": "object",
    "properties": {
        "medal_ids": {"type": "array", "items": {"type": "integer"}}
    },
    "additionalProperties": False
}

ACHIEVEMENTS_VIEWED_SCHEMA = {
    "type": "object",
    "properties": {
        "achievement_ids": {"type": "array", "items": {"type": "integer"}}
    },
    "additionalProperties": False
}

JOB_CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "task_template_id": {"type": "integer"},
        "selected_children": {"type": "array", "items": {"type": "integer"}, "uniqueItems": True},
        "expiry_policy": {"type": "string", "enum": EXPIRY_POLICIES},
        "publish_time": {"type": "string", "pattern": HHMM_PATTERN},
        "recurrence_day": {"type": "integer", "minimum": 0, "maximum": 31},
        "auto_create_enabled": {"type": "boolean"}
    },
    "additionalProperties": False
}

JOB_CREATE_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1, "maxLength": 255},
        "description": _optional_text,
        "job_type": {"type": "string", "enum": ["recurring_task", "daily_reset", "cleanup", "custom"]},
        "frequency": {"type": "string",
                      "enum": ["minutely", "hourly", "daily", "weekly", "monthly", "custom"]},
        "cron_expression": _optional_text,
        "config": JOB_CONFIG_SCHEMA
    },
    "required": ["name", "job_type", "frequency"],
    "additionalProperties": False,
    "if": {"properties": {"job_type": {"const": "recurring_task"}}},
    "then": {
        "required": ["config"],
        "properties": {"config": {"required": ["task_template_id"]}}
    }
}

# Economy actions, keyed by the ``action`` tag
ECONOMY_ACTION_SCHEMAS = {
    "deposit": {
        "type": "object",
        "properties": {
            "action": {"const": "deposit"},
            "child_id": {"type": "integer"},
            "amount": _positive_int,
            "description": {"type": "string", "minLength": 1}
        },
        "required": ["action", "child_id", "amount"],
        "additionalProperties": False
    },
    "spend": {
        "type": "object",
        "properties": {
            "action": {"const": "spend"},
            "amount": _positive_int,
            "description": {"type": "string", "minLength": 1}
        },
        "required": ["action", "amount"],
        "additionalProperties": False
    },
    "rewardStars": {
        "type": "object",
        "properties": {
            "action": {"const": "rewardStars"},
            "child_id": {"type": "integer"},
            "amount": _positive_int,
            "description": {"type": "string", "minLength": 1}
        },
        "required": ["action", "child_id", "amount"],
        "additionalProperties": False
    },
    "calculateInterest": {
        "type": "object",
        "properties": {
            "action": {"const": "calculateInterest"},
            "child_id": {"type": "integer"}
        },
        "required": ["action"],
        "additionalProperties": False
    },
    "adjustCredit": {
        "type": "object",
        "properties": {
            "action": {"const": "adjustCredit"},
            "child_id": {"type": "integer"},
            "credit_limit": _non_negative_int
        },
        "required": ["action", "child_id", "credit_limit"],
        "additionalProperties": False
    }
}


def validate_payload(schema: Dict[str, Any], data: Optional[Any]) -> Dict[str, Any]:
    """
    Validate a request body against a schema.

    Args:
        schema: JSON schema to apply
        data: Parsed JSON body (None is treated as an empty object)

    Returns:
        The validated payload

    Raises:
        InvalidInputError: The payload does not satisfy the schema
    """
    if data is None:
        data = {}

    validator = jsonschema.Draft7Validator(schema)
    error = best_match(validator.iter_errors(data))
    if error is not None:
        location = '.'.join(str(p) for p in error.absolute_path)
        message = f"{location}: {error.message}" if location else error.message
        raise InvalidInputError(f"Invalid request: {message}")

    return data


def validate_economy_action(data: Optional[Any]) -> Dict[str, Any]:
    """Resolve the economy action variant and validate its payload."""
    if not isinstance(data, dict) or not data.get('action'):
        raise InvalidInputError("Invalid request: 'action' is a required property")

    action = data['action']
    if not isinstance(action, str):
        raise InvalidInputError("Invalid request: 'action' must be a string")
    schema = ECONOMY_ACTION_SCHEMAS.get(action)
    if schema is None:
        raise UnimplementedError(f"Unknown economy action: {action}")

    return validate_payload(schema, data)
