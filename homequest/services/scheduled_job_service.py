"""Scheduled job service.

Parents define jobs (recurring task generation, daily reset) that the
background scheduler or the cron endpoint executes when due. Every
execution updates the job's run statistics whatever its outcome.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_

from homequest.models import db, ScheduledJob, TaskTemplate, User
from homequest.services.errors import (
    ForbiddenError, InvalidInputError, NotFoundError, UnimplementedError
)
from homequest.utils.recurrence import build_cron_expression, calculate_next_run
from homequest.utils.timezone import resolve_now, to_naive_utc

logger = logging.getLogger(__name__)

JOB_ACTIONS = ('start', 'stop', 'run')


def _run_recurring_task(job: ScheduledJob, now: datetime) -> dict:
    from homequest.utils.task_generator import generate_for_template

    config = job.config or {}
    template = db.session.get(TaskTemplate, config.get('task_template_id'))
    if not template:
        raise NotFoundError(f"Task template {config.get('task_template_id')} not found")

    created = generate_for_template(
        template, now,
        child_ids=config.get('selected_children') or None,
        expiry_policy=config.get('expiry_policy', 'auto_close'),
        check_rule=False
    )
    db.session.commit()
    return {'created_count': len(created), 'task_ids': [task.id for task in created]}


def _run_daily_reset(job: ScheduledJob, now: datetime) -> dict:
    from homequest.jobs.daily_reset import reset_daily_tasks
    return reset_daily_tasks(now)


EXECUTORS = {
    'recurring_task': _run_recurring_task,
    'daily_reset': _run_daily_reset,
}


class ScheduledJobService:
    """Service for scheduled job definitions and their execution."""

    @staticmethod
    def get_job(job_id: int, user: Optional[User] = None) -> ScheduledJob:
        job = db.session.get(ScheduledJob, job_id)
        if not job:
            raise NotFoundError(f'Scheduled job {job_id} not found')
        if user is not None and job.user_id != user.id:
            raise ForbiddenError('This job belongs to another user')
        return job

    @staticmethod
    def list_jobs(user: User) -> List[ScheduledJob]:
        return ScheduledJob.query.filter_by(user_id=user.id).order_by(ScheduledJob.created_at.desc()).all()

    @staticmethod
    def create_job(user: User, data: dict) -> ScheduledJob:
        config = dict(data.get('config') or {})

        if data['job_type'] == 'recurring_task':
            template = db.session.get(TaskTemplate, config['task_template_id'])
            if not template or template.parent_id != user.id:
                raise NotFoundError(f"Task template {config['task_template_id']} not found")
            config.setdefault('expiry_policy', 'auto_close')

        if data['frequency'] == 'custom' and not data.get('cron_expression'):
            raise InvalidInputError('Custom frequency requires a cron_expression')

        job = ScheduledJob(
            user_id=user.id,
            name=data['name'],
            description=data.get('description'),
            job_type=data['job_type'],
            frequency=data['frequency'],
            cron_expression=build_cron_expression(
                data['frequency'],
                publish_time=config.get('publish_time'),
                recurrence_day=config.get('recurrence_day'),
                custom_expression=data.get('cron_expression')
            ),
            config=config,
            status='stopped'
        )
        db.session.add(job)
        db.session.commit()

        logger.info(f"User {user.id} created scheduled job {job.id} ({job.name}, {job.job_type})")
        return job

    @staticmethod
    def start(job: ScheduledJob, now: Optional[datetime] = None) -> ScheduledJob:
        now_local = resolve_now(now)
        job.status = 'running'
        job.next_run_at = to_naive_utc(calculate_next_run(job.frequency, now_local))
        db.session.commit()
        logger.info(f"Started scheduled job {job.id}, next run {job.next_run_at}")
        return job

    @staticmethod
    def stop(job: ScheduledJob) -> ScheduledJob:
        job.status = 'stopped'
        job.next_run_at = None
        db.session.commit()
        logger.info(f"Stopped scheduled job {job.id}")
        return job

    @staticmethod
    def perform_action(job_id: int, user: User, action: str, now: Optional[datetime] = None) -> dict:
        """
        Apply a start/stop/run action to one of the user's jobs.

        Raises:
            UnimplementedError: Unknown action
        """
        if action not in JOB_ACTIONS:
            raise UnimplementedError(f'Unknown job action: {action}')

        job = ScheduledJobService.get_job(job_id, user)

        if action == 'start':
            return {'job': ScheduledJobService.start(job, now).to_dict()}
        if action == 'stop':
            return {'job': ScheduledJobService.stop(job).to_dict()}

        result = ScheduledJobService.execute(job, now)
        return {'job': job.to_dict(), 'result': result}

    @staticmethod
    def execute(job: ScheduledJob, now: Optional[datetime] = None) -> dict:
        """
        Execute a job now and record the outcome on it.

        On failure the error is stored on the job (last_error, error_count,
        status=error) and then re-raised.
        """
        now_local = resolve_now(now)
        now_utc = to_naive_utc(now_local)
        job_id = job.id

        logger.info(f"Executing scheduled job {job_id} ({job.job_type})")

        try:
            executor = EXECUTORS.get(job.job_type)
            if executor is None:
                raise UnimplementedError(f'Job type "{job.job_type}" is not supported')
            result = executor(job, now_local)
        except Exception as e:
            db.session.rollback()
            job = db.session.get(ScheduledJob, job_id)
            job.last_error = str(e)
            job.error_count += 1
            job.run_count += 1
            job.last_run_at = now_utc
            job.status = 'error'
            db.session.commit()
            logger.error(f"Scheduled job {job_id} failed: {e}")
            raise

        job = db.session.get(ScheduledJob, job_id)
        job.run_count += 1
        job.success_count += 1
        job.last_run_at = now_utc
        job.last_error = None
        if job.status == 'running':
            job.next_run_at = to_naive_utc(calculate_next_run(job.frequency, now_local))
        db.session.commit()

        logger.info(f"Scheduled job {job_id} completed: {result}")
        return result

    @staticmethod
    def run_due_jobs(now: Optional[datetime] = None) -> List[dict]:
        """
        Execute every running job whose next run is due or unset.

        A failing job does not stop the others; its failure is already
        recorded on the job and is reported in the returned list.
        """
        now_local = resolve_now(now)
        now_utc = to_naive_utc(now_local)

        due_ids = [
            job.id for job in ScheduledJob.query.filter(
                ScheduledJob.status == 'running',
                or_(ScheduledJob.next_run_at.is_(None), ScheduledJob.next_run_at <= now_utc)
            ).order_by(ScheduledJob.id).all()
        ]

        results = []
        for job_id in due_ids:
            job = db.session.get(ScheduledJob, job_id)
            try:
                result = ScheduledJobService.execute(job, now_local)
                results.append({'job_id': job_id, 'success': True, 'result': result})
            except Exception as e:
                results.append({'job_id': job_id, 'success': False, 'error': str(e)})

        logger.info(f"Ran {len(results)} due scheduled job(s)")
        return results

    @staticmethod
    def delete_job(job_id: int, user: User) -> None:
        job = ScheduledJobService.get_job(job_id, user)
        db.session.delete(job)
        db.session.commit()
        logger.info(f"Deleted scheduled job {job_id}")
