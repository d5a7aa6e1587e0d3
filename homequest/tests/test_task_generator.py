"""Tests for recurring task generation."""

from datetime import datetime

import pytest

from homequest.jobs.daily_reset import reset_daily_tasks
from homequest.jobs.scheduled_jobs import run_due_scheduled_jobs
from homequest.models import Task, TaskTemplate
from homequest.utils.recurrence import (
    instance_deadline, matches_rule, publish_time_reached, validate_recurrence
)
from homequest.utils.task_generator import generate_for_template, generate_recurring_tasks
from homequest.utils.timezone import UTC


def make_template(db_session, parent, child, **kwargs):
    fields = {
        'parent_id': parent.id,
        'child_id': child.id,
        'name': 'Brush teeth',
        'points': 5,
        'is_recurring': True,
        'is_recurring_template': True,
        'recurrence': 'daily',
        'require_photo': True,
        'icon': '🪥',
    }
    fields.update(kwargs)
    template = TaskTemplate(**fields)
    db_session.add(template)
    db_session.commit()
    return template


class TestMatchesRule:
    """Recurrence rule matching on local dates (2024-01-07 is a Sunday)."""

    def test_daily_always_matches(self):
        assert matches_rule('daily', datetime(2024, 1, 7, tzinfo=UTC))

    def test_weekly_uses_sunday_first_weekday(self):
        assert matches_rule('weekly', datetime(2024, 1, 7, tzinfo=UTC), recurrence_day=0)
        assert not matches_rule('weekly', datetime(2024, 1, 8, tzinfo=UTC), recurrence_day=0)
        assert matches_rule('weekly', datetime(2024, 1, 13, tzinfo=UTC), recurrence_day=6)

    def test_monthly_clamps_to_last_day(self):
        assert matches_rule('monthly', datetime(2024, 2, 29, tzinfo=UTC), recurrence_day=31)
        assert not matches_rule('monthly', datetime(2024, 2, 28, tzinfo=UTC), recurrence_day=31)
        assert matches_rule('monthly', datetime(2024, 3, 15, tzinfo=UTC), recurrence_day=15)

    def test_custom_days(self):
        assert matches_rule('custom_days', datetime(2024, 1, 8, tzinfo=UTC), recurrence_days=[1, 3])
        assert not matches_rule('custom_days', datetime(2024, 1, 9, tzinfo=UTC), recurrence_days=[1, 3])

    def test_none_never_matches(self):
        assert not matches_rule('none', datetime(2024, 1, 7, tzinfo=UTC))


class TestRecurrenceValidation:

    @pytest.mark.parametrize('recurrence, day, days, valid', [
        ('none', None, None, True),
        ('daily', None, None, True),
        ('weekly', 3, None, True),
        ('weekly', None, None, False),
        ('weekly', 7, None, False),
        ('monthly', 31, None, True),
        ('monthly', 0, None, False),
        ('custom_days', None, [0, 6], True),
        ('custom_days', None, [], False),
        ('yearly', None, None, False),
    ])
    def test_validate_recurrence(self, recurrence, day, days, valid):
        is_valid, error = validate_recurrence(recurrence, day, days)
        assert is_valid is valid
        assert (error is None) is valid


class TestDeadlines:

    def test_end_of_day_by_default(self):
        now = datetime(2024, 1, 7, 9, 30, tzinfo=UTC)
        assert instance_deadline('daily', now) == datetime(2024, 1, 7, 23, 59, 59, 999999, tzinfo=UTC)

    def test_minutely_one_minute(self):
        now = datetime(2024, 1, 7, 9, 30, 15, tzinfo=UTC)
        assert instance_deadline('minutely', now) == datetime(2024, 1, 7, 9, 31, 15, tzinfo=UTC)

    def test_publish_time_runs_one_cycle(self):
        now = datetime(2024, 1, 7, 9, 30, tzinfo=UTC)
        assert instance_deadline('daily', now, '08:00') == datetime(2024, 1, 8, 8, 0, tzinfo=UTC)

    def test_publish_time_reached(self):
        assert publish_time_reached(None, datetime(2024, 1, 7, 0, 0, tzinfo=UTC))
        assert not publish_time_reached('08:00', datetime(2024, 1, 7, 7, 59, tzinfo=UTC))
        assert publish_time_reached('08:00', datetime(2024, 1, 7, 8, 0, tzinfo=UTC))


class TestGeneration:
    """At most one instance per template, child and window."""

    def test_daily_generation_is_idempotent(self, db_session, parent_user, child_user):
        template = make_template(db_session, parent_user, child_user)
        now = datetime(2024, 1, 7, 6, 0, tzinfo=UTC)

        assert generate_recurring_tasks(now) == 1
        assert generate_recurring_tasks(now) == 0
        assert generate_recurring_tasks(datetime(2024, 1, 7, 22, 0, tzinfo=UTC)) == 0
        assert generate_recurring_tasks(datetime(2024, 1, 8, 0, 1, tzinfo=UTC)) == 1

        tasks = Task.query.filter_by(template_id=template.id).all()
        assert len(tasks) == 2

    def test_instance_copies_template(self, db_session, parent_user, child_user):
        template = make_template(db_session, parent_user, child_user)
        now = datetime(2024, 1, 7, 6, 0, tzinfo=UTC)

        (task,) = generate_for_template(template, now)

        assert task.name == 'Brush teeth'
        assert task.points == 5
        assert task.icon == '🪥'
        assert task.require_photo is True
        assert task.status == 'pending'
        assert task.recurrence == 'none'
        assert task.template_id == template.id
        assert task.expiry_policy == 'auto_close'
        assert task.deadline == datetime(2024, 1, 7, 23, 59, 59, 999999)

    def test_weekly_only_on_matching_day(self, db_session, parent_user, child_user):
        make_template(db_session, parent_user, child_user, recurrence='weekly', recurrence_day=0)

        assert generate_recurring_tasks(datetime(2024, 1, 8, 6, 0, tzinfo=UTC)) == 0
        assert generate_recurring_tasks(datetime(2024, 1, 7, 6, 0, tzinfo=UTC)) == 1

    def test_minutely_window(self, db_session, parent_user, child_user):
        template = make_template(db_session, parent_user, child_user, recurrence='minutely')

        assert generate_recurring_tasks(datetime(2024, 1, 7, 10, 0, 10, tzinfo=UTC)) == 1
        assert generate_recurring_tasks(datetime(2024, 1, 7, 10, 0, 50, tzinfo=UTC)) == 0
        assert generate_recurring_tasks(datetime(2024, 1, 7, 10, 1, 5, tzinfo=UTC)) == 1

        first = Task.query.filter_by(template_id=template.id).order_by(Task.id).first()
        assert first.deadline == datetime(2024, 1, 7, 10, 1, 10)

    def test_publish_time_gates_generation(self, db_session, parent_user, child_user):
        template = make_template(db_session, parent_user, child_user, auto_publish_time='08:00')

        assert generate_recurring_tasks(datetime(2024, 1, 7, 7, 0, tzinfo=UTC)) == 0
        assert generate_recurring_tasks(datetime(2024, 1, 7, 9, 0, tzinfo=UTC)) == 1

        task = Task.query.filter_by(template_id=template.id).one()
        assert task.deadline == datetime(2024, 1, 8, 8, 0)

    def test_inactive_and_non_recurring_templates_skipped(self, db_session, parent_user, child_user):
        make_template(db_session, parent_user, child_user, is_active=False)
        make_template(db_session, parent_user, child_user, is_recurring_template=False)

        assert generate_recurring_tasks(datetime(2024, 1, 7, 6, 0, tzinfo=UTC)) == 0

    def test_selected_children_override(self, db_session, parent_user, child_user, child_user_2):
        template = make_template(db_session, parent_user, child_user)
        now = datetime(2024, 1, 7, 6, 0, tzinfo=UTC)

        created = generate_for_template(template, now, child_ids=[child_user.id, child_user_2.id,
                                                                  child_user.id])

        assert sorted(t.child_id for t in created) == sorted([child_user.id, child_user_2.id])


class TestPollerTick:
    """Every poller tick generates what recurring templates owe, not only the midnight reset."""

    def test_publish_time_template_generated_after_midnight(self, db_session, parent_user, child_user):
        template = make_template(db_session, parent_user, child_user, auto_publish_time='08:00')

        reset_daily_tasks(datetime(2024, 3, 5, 0, 0, 30, tzinfo=UTC))
        assert Task.query.filter_by(template_id=template.id).count() == 0

        run_due_scheduled_jobs(datetime(2024, 3, 5, 7, 59, tzinfo=UTC))
        assert Task.query.filter_by(template_id=template.id).count() == 0

        run_due_scheduled_jobs(datetime(2024, 3, 5, 9, 0, tzinfo=UTC))
        run_due_scheduled_jobs(datetime(2024, 3, 5, 9, 1, tzinfo=UTC))

        task = Task.query.filter_by(template_id=template.id).one()
        assert task.deadline == datetime(2024, 3, 6, 8, 0)

    def test_minutely_template_generated_every_minute(self, db_session, parent_user, child_user):
        template = make_template(db_session, parent_user, child_user, recurrence='minutely')

        reset_daily_tasks(datetime(2024, 3, 5, 0, 0, 30, tzinfo=UTC))
        for minute in range(1, 6):
            run_due_scheduled_jobs(datetime(2024, 3, 5, 0, minute, 5, tzinfo=UTC))

        assert Task.query.filter_by(template_id=template.id).count() == 6

    def test_tick_still_runs_due_jobs(self, db_session, parent_user):
        from homequest.models import ScheduledJob

        job = ScheduledJob(user_id=parent_user.id, name='Reset', job_type='daily_reset', frequency='daily',
                           status='running', next_run_at=datetime(2024, 3, 5, 0, 0))
        db_session.add(job)
        db_session.commit()

        results = run_due_scheduled_jobs(datetime(2024, 3, 5, 0, 1, tzinfo=UTC))

        assert [r['job_id'] for r in results] == [job.id]
