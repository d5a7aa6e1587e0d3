"""Cron API endpoints.

External pollers may drive the jobs over HTTP instead of (or alongside)
the in-process scheduler. Requests authenticate with the CRON_API_KEY.
"""

import logging

from flask import Blueprint, current_app, jsonify

from homequest.auth import cron_key_required
from homequest.jobs.daily_reset import reset_daily_tasks
from homequest.jobs.recurring_tasks import generate_recurring_instances
from homequest.jobs.scheduled_jobs import run_due_scheduled_jobs
from homequest.scheduler import get_scheduler
from homequest.services.errors import NotFoundError

cron_bp = Blueprint('cron', __name__, url_prefix='/api/cron')
logger = logging.getLogger(__name__)


@cron_bp.route('/scheduled-jobs', methods=['POST'])
@cron_key_required
def run_scheduled_jobs():
    """Run one poller tick: recurring generation, then every due scheduled job."""
    results = run_due_scheduled_jobs()
    failed = sum(1 for r in results if not r['success'])
    return jsonify({
        'success': True,
        'data': results,
        'message': f'Executed {len(results)} job(s), {failed} failed'
    })


@cron_bp.route('/recurring-tasks', methods=['POST'])
@cron_key_required
def run_recurring_generation():
    created = generate_recurring_instances()
    return jsonify({
        'success': True,
        'data': {'created_count': created},
        'message': f'Generated {created} task(s)'
    })


@cron_bp.route('/daily-reset', methods=['POST'])
@cron_key_required
def run_daily_reset():
    summary = reset_daily_tasks()
    return jsonify({'success': True, 'data': summary, 'message': 'Daily reset complete'})


@cron_bp.route('/jobs/<job_id>/run', methods=['POST'])
@cron_key_required
def run_registered_job(job_id):
    """Trigger one of the in-process scheduler's jobs immediately."""
    if not get_scheduler(current_app).run_job_now(job_id):
        raise NotFoundError(f'Scheduler job {job_id} not found')
    logger.info(f"Scheduler job {job_id} triggered over the cron API")
    return jsonify({'success': True, 'message': f'Job {job_id} triggered'})


@cron_bp.route('/status', methods=['GET'])
@cron_key_required
def scheduler_status():
    """Report the in-process scheduler and its registered jobs."""
    scheduler = get_scheduler(current_app)
    return jsonify({
        'success': True,
        'data': {
            'running': scheduler.running,
            'jobs': scheduler.get_job_status()
        }
    })
