"""
Poller tick: recurring generation plus due scheduled jobs.
"""

import logging

logger = logging.getLogger(__name__)


def run_due_scheduled_jobs(now=None) -> list:
    """
    Run one poller tick.

    Generates the instances recurring templates owe for the current
    window (minutely templates every minute, publish-time templates once
    their time has passed), then executes every running ScheduledJob
    whose next run time has passed.

    Triggered by the in-process scheduler every CRON_INTERVAL_SECONDS and
    by POST /api/cron/scheduled-jobs.

    Returns:
        list: One result dict per executed scheduled job
    """
    logger.debug("Checking for due recurring instances and scheduled jobs")

    # Import inside function to avoid circular imports and to get app context
    from homequest.jobs.recurring_tasks import generate_recurring_instances
    from homequest.services.scheduled_job_service import ScheduledJobService

    generate_recurring_instances(now)
    return ScheduledJobService.run_due_jobs(now)
