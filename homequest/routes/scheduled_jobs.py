"""Scheduled job API endpoints."""

import logging

from flask import Blueprint, jsonify, request

from homequest.auth import auth_required, parent_required, get_current_user
from homequest.schemas import JOB_CREATE_SCHEMA, validate_payload
from homequest.services.scheduled_job_service import ScheduledJobService

scheduled_jobs_bp = Blueprint('scheduled_jobs', __name__, url_prefix='/api/scheduled-jobs')
logger = logging.getLogger(__name__)


@scheduled_jobs_bp.route('', methods=['GET'])
@auth_required
@parent_required
def list_jobs():
    jobs = ScheduledJobService.list_jobs(get_current_user())
    return jsonify({'success': True, 'data': [job.to_dict() for job in jobs]})


@scheduled_jobs_bp.route('', methods=['POST'])
@auth_required
@parent_required
def create_job():
    data = validate_payload(JOB_CREATE_SCHEMA, request.get_json(silent=True))
    job = ScheduledJobService.create_job(get_current_user(), data)
    return jsonify({
        'success': True,
        'data': job.to_dict(),
        'message': 'Scheduled job created successfully'
    }), 201


@scheduled_jobs_bp.route('/<int:job_id>/<action>', methods=['POST'])
@auth_required
@parent_required
def job_action(job_id, action):
    """Apply ``start``, ``stop`` or ``run`` to a job."""
    result = ScheduledJobService.perform_action(job_id, get_current_user(), action)
    return jsonify({'success': True, 'data': result})


@scheduled_jobs_bp.route('/<int:job_id>', methods=['DELETE'])
@auth_required
@parent_required
def delete_job(job_id):
    ScheduledJobService.delete_job(job_id, get_current_user())
    return jsonify({'success': True, 'message': f'Scheduled job {job_id} deleted'})
