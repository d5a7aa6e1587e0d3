"""Tests for the background scheduler and its lease lock."""

from datetime import timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from homequest.models import SchedulerLock
from homequest.scheduler import JobScheduler, acquire_lock, get_scheduler, release_lock
from homequest.utils.timezone import utc_naive_now


class TestLeaseLock:
    """Only one holder may run a named job at a time."""

    def test_first_holder_wins(self, db_session):
        assert acquire_lock('daily_reset', 'host-a', 300) is True
        assert acquire_lock('daily_reset', 'host-b', 300) is False

    def test_holder_can_renew(self, db_session):
        assert acquire_lock('daily_reset', 'host-a', 300) is True
        assert acquire_lock('daily_reset', 'host-a', 300) is True

    def test_expired_lease_can_be_taken(self, db_session):
        acquire_lock('daily_reset', 'host-a', 300)
        lock = db_session.get(SchedulerLock, 'daily_reset')
        lock.expires_at = utc_naive_now() - timedelta(seconds=1)
        db_session.commit()

        assert acquire_lock('daily_reset', 'host-b', 300) is True
        db_session.expire_all()
        assert db_session.get(SchedulerLock, 'daily_reset').holder == 'host-b'

    def test_release_frees_lease(self, db_session):
        acquire_lock('points_audit', 'host-a', 300)
        release_lock('points_audit', 'host-a')

        assert acquire_lock('points_audit', 'host-b', 300) is True


class TestJobScheduler:

    def test_registered_on_app(self, app):
        scheduler = get_scheduler(app)

        assert isinstance(scheduler, JobScheduler)
        assert scheduler.running is False
        assert scheduler.get_job_status() == []
        assert scheduler.run_job_now('daily_reset') is False

    def test_not_started_in_testing(self, app):
        assert get_scheduler(app).start() is False

    def test_exclusive_runs_with_lease(self, app):
        scheduler = get_scheduler(app)
        calls = []

        wrapped = scheduler.exclusive('unit_test', lambda: calls.append(1) or 'done')

        assert wrapped() == 'done'
        assert wrapped() == 'done'
        assert calls == [1, 1]

    def test_run_job_now_triggers_registered_job(self, app, client, cron_headers):
        scheduler = get_scheduler(app)
        calls = []
        scheduler.scheduler = BackgroundScheduler()
        scheduler.scheduler.add_job(scheduler.exclusive('unit_test', lambda: calls.append(1)),
                                    trigger=IntervalTrigger(minutes=1), id='unit_test')

        assert scheduler.run_job_now('unit_test') is True
        assert scheduler.run_job_now('missing') is False

        response = client.post('/api/cron/jobs/unit_test/run', headers=cron_headers)
        assert response.status_code == 200
        assert calls == [1, 1]

    def test_exclusive_skips_when_lease_held(self, app):
        scheduler = get_scheduler(app)
        with app.app_context():
            acquire_lock('unit_test', 'another-process', 300)

        calls = []
        wrapped = scheduler.exclusive('unit_test', lambda: calls.append(1))

        assert wrapped() is None
        assert calls == []
