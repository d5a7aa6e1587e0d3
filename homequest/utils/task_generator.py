"""
Task instance generation from recurring templates.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from homequest.models import db, Task, TaskTemplate
from homequest.utils.recurrence import (
    RECURRENCE_RULES, instance_deadline, matches_rule, publish_time_reached, window_start
)
from homequest.utils.timezone import resolve_now, to_naive_utc

logger = logging.getLogger(__name__)


def should_create(template: TaskTemplate, now: datetime) -> bool:
    """Check whether ``template`` is due for an instance at local time ``now``."""
    if not template.is_active:
        return False

    if not matches_rule(template.recurrence, now, template.recurrence_day, template.recurrence_days):
        return False

    if template.recurrence != 'minutely' and not publish_time_reached(template.auto_publish_time, now):
        return False

    return True


def check_duplicate_instance(template_id: int, child_id: int, since: datetime) -> bool:
    """
    Check if an instance of the template already exists for this window.

    Args:
        template_id: Template ID
        child_id: Assigned child
        since: Naive UTC start of the window

    Returns:
        True if duplicate exists, False otherwise
    """
    existing = Task.query.filter(
        Task.template_id == template_id,
        Task.child_id == child_id,
        Task.created_at >= since
    ).first()

    return existing is not None


def build_instance(template: TaskTemplate, child_id: int, now: datetime,
                   expiry_policy: Optional[str] = None) -> Task:
    """Materialize a pending Task from a template."""
    return Task(
        parent_id=template.parent_id,
        child_id=child_id,
        template_id=template.id,
        name=template.name,
        description=template.description,
        points=template.points,
        task_type=template.task_type,
        category=template.category,
        icon=template.icon,
        image_url=template.image_url,
        require_photo=template.require_photo,
        status='pending',
        recurrence='none',
        deadline=to_naive_utc(instance_deadline(template.recurrence, now, template.auto_publish_time)),
        expiry_policy=expiry_policy or template.expiry_policy or 'auto_close',
        created_at=to_naive_utc(now)
    )


def generate_for_template(template: TaskTemplate, now: Optional[datetime] = None,
                          child_ids: Optional[Iterable[int]] = None,
                          expiry_policy: Optional[str] = None,
                          check_rule: bool = True) -> List[Task]:
    """
    Generate the instances a template owes for the current window.

    Args:
        template: Template to generate from
        now: Generation time (defaults to the current local time)
        child_ids: Children to generate for (default: the template's child)
        expiry_policy: Override for the instances' expiry policy
        check_rule: Skip generation when the recurrence rule does not fire now.
            Scheduled jobs pass False because their own frequency decides.

    Returns:
        List of newly created tasks (added to the session, not committed)
    """
    now = resolve_now(now)

    if not template.is_active:
        logger.info(f"Template {template.id} is inactive, skipping generation")
        return []

    if check_rule and not should_create(template, now):
        return []

    children = list(child_ids) if child_ids else ([template.child_id] if template.child_id else [])
    if not children:
        logger.warning(f"Template {template.id} has no assigned child, skipping generation")
        return []

    since = to_naive_utc(window_start(template.recurrence, now))
    created = []

    for child_id in children:
        if check_duplicate_instance(template.id, child_id, since):
            logger.debug(f"Instance of template {template.id} for child {child_id} already exists")
            continue

        task = build_instance(template, child_id, now, expiry_policy)
        db.session.add(task)
        # Flush so a repeated child id in the same call sees this instance
        db.session.flush()
        created.append(task)

    if created:
        logger.info(f"Generated {len(created)} instance(s) of template {template.id} ({template.name})")

    return created


def generate_recurring_tasks(now: Optional[datetime] = None) -> int:
    """
    Run generation for every active recurring template.

    Each template is committed on its own; a failing template is logged,
    rolled back, and does not stop the others.

    Returns:
        int: Number of tasks created
    """
    now = resolve_now(now)

    templates = TaskTemplate.query.filter(
        TaskTemplate.is_recurring.is_(True),
        TaskTemplate.is_recurring_template.is_(True),
        TaskTemplate.is_active.is_(True),
        TaskTemplate.recurrence.in_(RECURRENCE_RULES)
    ).all()

    total_created = 0
    for template in templates:
        try:
            created = generate_for_template(template, now)
            db.session.commit()
            total_created += len(created)
        except Exception as e:
            logger.error(f"Error generating instances for template {template.id}: {e}")
            db.session.rollback()

    return total_created
