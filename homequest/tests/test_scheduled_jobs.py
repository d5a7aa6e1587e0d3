"""Tests for scheduled job definitions and execution."""

from datetime import datetime

import pytest

from homequest.models import db, ScheduledJob, Task, TaskTemplate
from homequest.services.errors import NotFoundError, UnimplementedError
from homequest.services.scheduled_job_service import ScheduledJobService
from homequest.utils.recurrence import build_cron_expression, calculate_next_run
from homequest.utils.timezone import UTC

NOW = datetime(2024, 5, 1, 10, 30, 45, tzinfo=UTC)


class TestCronExpressions:

    @pytest.mark.parametrize('frequency, kwargs, expected', [
        ('minutely', {}, '* * * * *'),
        ('hourly', {}, '0 * * * *'),
        ('daily', {'publish_time': '07:30'}, '30 7 * * *'),
        ('daily', {}, '0 0 * * *'),
        ('weekly', {'publish_time': '18:05', 'recurrence_day': 3}, '5 18 * * 3'),
        ('monthly', {'publish_time': '06:00', 'recurrence_day': 15}, '0 6 15 * *'),
        ('custom', {'custom_expression': '*/5 * * * *'}, '*/5 * * * *'),
    ])
    def test_build_cron_expression(self, frequency, kwargs, expected):
        assert build_cron_expression(frequency, **kwargs) == expected

    def test_unknown_frequency(self):
        with pytest.raises(ValueError):
            build_cron_expression('yearly')


class TestNextRun:

    @pytest.mark.parametrize('frequency, expected', [
        ('minutely', datetime(2024, 5, 1, 10, 31, tzinfo=UTC)),
        ('hourly', datetime(2024, 5, 1, 11, 0, tzinfo=UTC)),
        ('daily', datetime(2024, 5, 2, 0, 0, tzinfo=UTC)),
        ('weekly', datetime(2024, 5, 8, 0, 0, tzinfo=UTC)),
        ('monthly', datetime(2024, 6, 1, 0, 0, tzinfo=UTC)),
        ('custom', datetime(2024, 5, 2, 0, 0, tzinfo=UTC)),
    ])
    def test_calculate_next_run(self, frequency, expected):
        assert calculate_next_run(frequency, NOW) == expected

    def test_monthly_end_of_month(self):
        assert calculate_next_run('monthly', datetime(2024, 1, 31, 9, 0, tzinfo=UTC)) == \
            datetime(2024, 2, 29, 0, 0, tzinfo=UTC)


@pytest.fixture
def template(db_session, parent_user, child_user):
    template = TaskTemplate(parent_id=parent_user.id, child_id=child_user.id, name='Practice piano',
                            points=15, is_recurring=True, is_recurring_template=True, recurrence='daily')
    db_session.add(template)
    db_session.commit()
    return template


class TestJobLifecycle:

    def test_create_recurring_job(self, db_session, parent_user, template):
        job = ScheduledJobService.create_job(parent_user, {
            'name': 'Piano every morning',
            'job_type': 'recurring_task',
            'frequency': 'daily',
            'config': {'task_template_id': template.id, 'publish_time': '07:30'}
        })

        assert job.status == 'stopped'
        assert job.cron_expression == '30 7 * * *'
        assert job.config['expiry_policy'] == 'auto_close'
        assert job.next_run_at is None

    def test_create_rejects_foreign_template(self, db_session, other_parent, template):
        with pytest.raises(NotFoundError):
            ScheduledJobService.create_job(other_parent, {
                'name': 'Steal', 'job_type': 'recurring_task', 'frequency': 'daily',
                'config': {'task_template_id': template.id}
            })

    def test_start_and_stop(self, db_session, parent_user):
        job = ScheduledJobService.create_job(parent_user, {
            'name': 'Reset', 'job_type': 'daily_reset', 'frequency': 'daily'
        })

        result = ScheduledJobService.perform_action(job.id, parent_user, 'start', now=NOW)
        assert result['job']['status'] == 'running'
        assert job.next_run_at == datetime(2024, 5, 2, 0, 0)

        result = ScheduledJobService.perform_action(job.id, parent_user, 'stop', now=NOW)
        assert result['job']['status'] == 'stopped'
        assert job.next_run_at is None

    def test_unknown_action(self, db_session, parent_user):
        job = ScheduledJobService.create_job(parent_user, {
            'name': 'Reset', 'job_type': 'daily_reset', 'frequency': 'daily'
        })

        with pytest.raises(UnimplementedError):
            ScheduledJobService.perform_action(job.id, parent_user, 'pause', now=NOW)


class TestExecution:

    def test_run_recurring_job(self, db_session, parent_user, child_user, child_user_2, template):
        job = ScheduledJobService.create_job(parent_user, {
            'name': 'Piano', 'job_type': 'recurring_task', 'frequency': 'daily',
            'config': {'task_template_id': template.id, 'selected_children': [child_user.id, child_user_2.id]}
        })

        result = ScheduledJobService.perform_action(job.id, parent_user, 'run', now=NOW)

        assert result['result']['created_count'] == 2
        assert Task.query.filter_by(template_id=template.id).count() == 2

        job = db.session.get(ScheduledJob, job.id)
        assert job.run_count == 1
        assert job.success_count == 1
        assert job.error_count == 0
        assert job.last_run_at == datetime(2024, 5, 1, 10, 30, 45)

        ScheduledJobService.execute(job, NOW)
        assert Task.query.filter_by(template_id=template.id).count() == 2

    def test_failure_is_recorded(self, db_session, parent_user):
        job = ScheduledJobService.create_job(parent_user, {
            'name': 'Cleanup', 'job_type': 'cleanup', 'frequency': 'daily'
        })
        ScheduledJobService.start(job, NOW)

        with pytest.raises(UnimplementedError):
            ScheduledJobService.execute(job, NOW)

        job = db.session.get(ScheduledJob, job.id)
        assert job.status == 'error'
        assert job.run_count == 1
        assert job.error_count == 1
        assert job.success_count == 0
        assert 'not supported' in job.last_error

    def test_run_due_jobs_isolates_failures(self, db_session, parent_user):
        broken = ScheduledJobService.create_job(parent_user, {
            'name': 'Cleanup', 'job_type': 'cleanup', 'frequency': 'daily'
        })
        healthy = ScheduledJobService.create_job(parent_user, {
            'name': 'Reset', 'job_type': 'daily_reset', 'frequency': 'daily'
        })
        idle = ScheduledJobService.create_job(parent_user, {
            'name': 'Idle', 'job_type': 'daily_reset', 'frequency': 'daily'
        })
        for job in (broken, healthy):
            ScheduledJobService.start(job, datetime(2024, 4, 30, 9, 0, tzinfo=UTC))

        results = ScheduledJobService.run_due_jobs(NOW)

        outcome = {r['job_id']: r['success'] for r in results}
        assert outcome == {broken.id: False, healthy.id: True}
        assert db.session.get(ScheduledJob, healthy.id).next_run_at == datetime(2024, 5, 2, 0, 0)
        assert db.session.get(ScheduledJob, idle.id).run_count == 0

    def test_not_yet_due(self, db_session, parent_user):
        job = ScheduledJobService.create_job(parent_user, {
            'name': 'Reset', 'job_type': 'daily_reset', 'frequency': 'daily'
        })
        ScheduledJobService.start(job, NOW)

        assert ScheduledJobService.run_due_jobs(NOW) == []


class TestScheduledJobApi:

    def test_recurring_job_requires_template(self, client, parent_headers):
        response = client.post('/api/scheduled-jobs', json={
            'name': 'Broken', 'job_type': 'recurring_task', 'frequency': 'daily'
        }, headers=parent_headers)

        assert response.status_code == 400
        assert response.get_json()['error'] == 'InvalidInputError'

    def test_unknown_action_is_unimplemented(self, client, parent_headers):
        response = client.post('/api/scheduled-jobs', json={
            'name': 'Reset', 'job_type': 'daily_reset', 'frequency': 'daily'
        }, headers=parent_headers)
        job_id = response.get_json()['data']['id']

        response = client.post(f'/api/scheduled-jobs/{job_id}/explode', headers=parent_headers)

        assert response.status_code == 400
        assert response.get_json()['error'] == 'UnimplementedError'

    def test_children_cannot_manage_jobs(self, client, child_headers):
        response = client.get('/api/scheduled-jobs', headers=child_headers)
        assert response.status_code == 403
