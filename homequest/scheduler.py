"""
Background job scheduler using APScheduler.

``create_app`` builds one ``JobScheduler`` per application and stores it
in ``app.extensions['homequest.scheduler']``. Each job runs inside the app
context, at most once at a time per process (``max_instances=1``), and
only while holding a lease row in ``scheduler_locks`` so that several
processes sharing a database never run the same job concurrently.
"""

import atexit
import logging
import os
import socket
import uuid
from datetime import timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'homequest.scheduler'


def acquire_lock(name: str, holder: str, ttl_seconds: int) -> bool:
    """
    Take the named lease if it is free, expired, or already ours.

    The takeover is a single conditional UPDATE, so two processes racing
    for an expired lease cannot both win.
    """
    from homequest.models import db, SchedulerLock
    from homequest.utils.timezone import utc_naive_now

    now = utc_naive_now()
    expires = now + timedelta(seconds=ttl_seconds)

    if db.session.get(SchedulerLock, name) is None:
        db.session.add(SchedulerLock(name=name, holder=holder, acquired_at=now, expires_at=expires))
        try:
            db.session.commit()
            return True
        except IntegrityError:
            db.session.rollback()

    taken = SchedulerLock.query.filter(
        SchedulerLock.name == name,
        (SchedulerLock.holder == holder) | (SchedulerLock.expires_at < now)
    ).update({'holder': holder, 'acquired_at': now, 'expires_at': expires}, synchronize_session=False)
    db.session.commit()
    return taken == 1


def release_lock(name: str, holder: str) -> None:
    from homequest.models import db, SchedulerLock
    from homequest.utils.timezone import utc_naive_now

    SchedulerLock.query.filter_by(name=name, holder=holder).update(
        {'expires_at': utc_naive_now()}, synchronize_session=False
    )
    db.session.commit()


class JobScheduler:
    """Owns the APScheduler instance and the jobs registered on it."""

    def __init__(self, app=None):
        self.app = None
        self.scheduler = None
        self.holder = f'{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}'
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.app = app
        app.extensions[EXTENSION_KEY] = self

    def exclusive(self, lock_name, func):
        """Wrap a job so it runs in the app context while holding its lease."""
        app = self.app
        ttl = app.config.get('SCHEDULER_LOCK_TTL_SECONDS', 300)

        def wrapper():
            with app.app_context():
                from homequest.models import db
                if not acquire_lock(lock_name, self.holder, ttl):
                    logger.debug(f"Skipping {lock_name}: lease held by another process")
                    return None
                try:
                    return func()
                finally:
                    db.session.rollback()
                    release_lock(lock_name, self.holder)

        wrapper.__name__ = func.__name__
        return wrapper

    def start(self):
        """
        Register the jobs and start the scheduler.

        Does nothing when SCHEDULER_ENABLED is false or in testing mode.
        """
        app = self.app
        if not app.config.get('SCHEDULER_ENABLED', True):
            logger.info("Background scheduler disabled via configuration")
            return False

        if app.config.get('TESTING', False):
            logger.info("Background scheduler disabled in testing mode")
            return False

        from homequest.jobs.daily_reset import reset_daily_tasks
        from homequest.jobs.points_audit import audit_account_balances
        from homequest.jobs.scheduled_jobs import run_due_scheduled_jobs

        timezone = app.config.get('SCHEDULER_TIMEZONE', 'UTC')
        interval = app.config.get('CRON_INTERVAL_SECONDS', 60)

        self.scheduler = BackgroundScheduler(
            timezone=timezone,
            job_defaults={'max_instances': 1, 'coalesce': True, 'misfire_grace_time': interval}
        )

        self.scheduler.add_job(
            self.exclusive('scheduled_jobs', run_due_scheduled_jobs),
            trigger=IntervalTrigger(seconds=interval),
            id='run_due_scheduled_jobs',
            name='Generate recurring tasks and run due scheduled jobs',
            replace_existing=True
        )

        self.scheduler.add_job(
            self.exclusive('daily_reset', reset_daily_tasks),
            trigger=CronTrigger(hour=0, minute=0, timezone=timezone),
            id='daily_reset',
            name='Daily task reset',
            replace_existing=True
        )

        self.scheduler.add_job(
            self.exclusive('points_audit', audit_account_balances),
            trigger=CronTrigger(hour=2, minute=0, timezone=timezone),
            id='audit_account_balances',
            name='Audit account balances',
            replace_existing=True
        )

        self.scheduler.start()
        logger.info("Background scheduler started with %d jobs", len(self.scheduler.get_jobs()))

        atexit.register(self.shutdown)
        return True

    @property
    def running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    def shutdown(self):
        """Shutdown the background scheduler gracefully."""
        if self.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Background scheduler stopped")

    def run_job_now(self, job_id: str) -> bool:
        """
        Run a registered job immediately.

        Returns:
            bool: True if the job was found and triggered
        """
        if self.scheduler is None:
            return False
        job = self.scheduler.get_job(job_id)
        if job:
            job.func()
            return True
        return False

    def get_job_status(self) -> list:
        """Status of all registered jobs."""
        if self.scheduler is None:
            return []
        return [
            {
                'id': job.id,
                'name': job.name,
                'next_run': job.next_run_time.isoformat() if job.next_run_time else None,
                'trigger': str(job.trigger)
            }
            for job in self.scheduler.get_jobs()
        ]


def get_scheduler(app) -> JobScheduler:
    """The JobScheduler registered on ``app``."""
    return app.extensions[EXTENSION_KEY]
