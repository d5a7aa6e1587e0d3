"""
Recurring task generation job.
"""

import logging

logger = logging.getLogger(__name__)


def generate_recurring_instances(now=None) -> int:
    """
    Generate task instances for all recurring templates.

    Runs on every poller tick, as step 4 of the daily reset and from
    POST /api/cron/recurring-tasks. Safe to call repeatedly: each template
    yields at most one instance per child and window.
    """
    logger.info("Starting recurring task generation")

    # Import inside function to avoid circular imports and to get app context
    from homequest.utils.task_generator import generate_recurring_tasks

    created = generate_recurring_tasks(now)
    logger.info(f"Recurring task generation complete: {created} task(s) created")
    return created
