"""Tests for family statistics."""

from datetime import datetime

import pytest

from homequest.models import Order, Task, User
from homequest.services.errors import ForbiddenError, InvalidInputError, NotFoundError
from homequest.services.stats_service import StatsService
from homequest.utils.timezone import UTC, utc_naive_now

NOW = datetime(2024, 6, 10, 18, 0, tzinfo=UTC)


def add_task(db_session, parent, child, status, points, task_type='daily', created_at=None,
             completed_at=None, deadline=None):
    task = Task(parent_id=parent.id, child_id=child.id, name=f'{task_type} chore', points=points,
                task_type=task_type, status=status, created_at=created_at or datetime(2024, 6, 8, 8, 0),
                completed_at=completed_at, deadline=deadline)
    db_session.add(task)
    db_session.commit()
    return task


@pytest.fixture
def family_activity(db_session, parent_user, child_user):
    add_task(db_session, parent_user, child_user, 'approved', 20, completed_at=datetime(2024, 6, 9, 10, 0))
    add_task(db_session, parent_user, child_user, 'approved', 30, task_type='challenge',
             completed_at=datetime(2024, 6, 10, 9, 0))
    add_task(db_session, parent_user, child_user, 'pending', 5)
    add_task(db_session, parent_user, child_user, 'rejected', 7)
    # Outside the week, inside the month
    add_task(db_session, parent_user, child_user, 'approved', 40, created_at=datetime(2024, 5, 20, 8, 0),
             completed_at=datetime(2024, 5, 20, 19, 0))


class TestOverview:

    def test_status_counts_and_points(self, db_session, parent_user, family_activity):
        stats = StatsService.overview(parent_user, now=NOW)

        assert stats['period'] == 'week'
        assert stats['tasks'] == {
            'pending': 1, 'submitted': 0, 'approved': 2, 'rejected': 1, 'expired': 0,
            'total': 4, 'total_points': 62
        }

    def test_month_includes_older_tasks(self, db_session, parent_user, family_activity):
        stats = StatsService.overview(parent_user, period='month', now=NOW)

        assert stats['tasks']['total'] == 5
        assert stats['tasks']['approved'] == 3
        assert stats['date_range'] == {'start': '2024-05-10T18:00:00', 'end': '2024-06-10T18:00:00'}

    def test_type_breakdown(self, db_session, parent_user, family_activity):
        stats = StatsService.overview(parent_user, now=NOW)

        assert stats['type_breakdown'] == [
            {'task_type': 'challenge', 'status': 'approved', 'count': 1},
            {'task_type': 'daily', 'status': 'approved', 'count': 1},
            {'task_type': 'daily', 'status': 'pending', 'count': 1},
            {'task_type': 'daily', 'status': 'rejected', 'count': 1},
        ]

    def test_daily_trend_and_domains(self, db_session, parent_user, family_activity):
        stats = StatsService.overview(parent_user, now=NOW)

        assert stats['daily_trend'] == [
            {'date': '2024-06-09', 'count': 1, 'points': 20},
            {'date': '2024-06-10', 'count': 1, 'points': 30},
        ]
        assert stats['domains'] == [
            {'task_type': 'challenge', 'count': 1, 'points': 30},
            {'task_type': 'daily', 'count': 1, 'points': 20},
        ]

    def test_daily_trend_uses_local_dates(self, db_session, parent_user, child_user, monkeypatch):
        monkeypatch.setenv('TZ', 'America/New_York')
        # 02:00 UTC on the 9th is still the evening of the 8th in New York
        add_task(db_session, parent_user, child_user, 'approved', 10, completed_at=datetime(2024, 6, 9, 2, 0))

        stats = StatsService.overview(parent_user, now=NOW)

        assert [day['date'] for day in stats['daily_trend']] == ['2024-06-08']

    def test_child_rankings(self, db_session, parent_user, child_user, child_user_2, family_activity):
        add_task(db_session, parent_user, child_user_2, 'approved', 80, completed_at=datetime(2024, 6, 9, 12, 0))
        outsider = User(username='stranger', role='child', family_id='family-2')
        db_session.add(outsider)
        db_session.commit()
        add_task(db_session, parent_user, outsider, 'approved', 500, completed_at=datetime(2024, 6, 9, 12, 0))

        rankings = StatsService.overview(parent_user, now=NOW)['child_rankings']

        assert [(r['child_name'], r['completed_tasks'], r['total_points']) for r in rankings] == [
            ('Kid Two', 1, 80),
            ('Kid', 2, 50),
        ]

    def test_parent_can_focus_on_one_child(self, db_session, parent_user, child_user, child_user_2,
                                           family_activity):
        add_task(db_session, parent_user, child_user_2, 'pending', 3)

        stats = StatsService.overview(parent_user, child_id=child_user_2.id, now=NOW)

        assert stats['tasks']['total'] == 1

    def test_child_sees_only_own_activity(self, db_session, parent_user, child_user, child_user_2,
                                          family_activity):
        add_task(db_session, parent_user, child_user_2, 'pending', 3)

        stats = StatsService.overview(child_user, now=NOW)

        assert stats['tasks']['total'] == 4
        assert stats['child_rankings'] == []

        with pytest.raises(ForbiddenError):
            StatsService.overview(child_user, child_id=child_user_2.id, now=NOW)

    def test_foreign_child_not_found(self, db_session, other_parent, child_user):
        with pytest.raises(NotFoundError):
            StatsService.overview(other_parent, child_id=child_user.id, now=NOW)

    def test_unknown_period(self, db_session, parent_user):
        with pytest.raises(InvalidInputError):
            StatsService.overview(parent_user, period='year', now=NOW)

    def test_order_summary(self, db_session, parent_user, child_user, reward):
        for status, points in (('pending', 50), ('verified', 30), ('cancelled', 20)):
            db_session.add(Order(parent_id=parent_user.id, child_id=child_user.id, reward_id=reward.id,
                                 reward_name=reward.name, points_spent=points, status=status,
                                 verification_code='123456', created_at=datetime(2024, 6, 9, 9, 0)))
        db_session.commit()

        orders = StatsService.overview(parent_user, now=NOW)['orders']

        assert orders == {'pending': 1, 'verified': 1, 'cancelled': 1, 'total': 3, 'total_points': 80}


class TestTaskSummary:

    def test_today_on_time_and_overdue(self, db_session, parent_user, child_user):
        completed = datetime(2024, 6, 10, 12, 0)
        add_task(db_session, parent_user, child_user, 'approved', 5, completed_at=completed,
                 deadline=datetime(2024, 6, 10, 23, 59))
        add_task(db_session, parent_user, child_user, 'approved', 5, completed_at=completed,
                 deadline=datetime(2024, 6, 10, 8, 0))
        add_task(db_session, parent_user, child_user, 'approved', 5, task_type='advanced', completed_at=completed)
        add_task(db_session, parent_user, child_user, 'approved', 5, completed_at=datetime(2024, 6, 9, 12, 0))
        add_task(db_session, parent_user, child_user, 'submitted', 5)
        add_task(db_session, parent_user, child_user, 'pending', 5)
        add_task(db_session, parent_user, child_user, 'rejected', 5)

        summary = StatsService.task_summary(parent_user, now=NOW)

        assert summary['completed'] == 4
        assert summary['pending'] == 2
        assert summary['rejected'] == 1
        assert summary['today_completed'] == 3
        assert summary['today_on_time'] == 2
        assert summary['today_overdue'] == 1
        assert summary['type_distribution'] == [
            {'task_type': 'daily', 'count': 3},
            {'task_type': 'advanced', 'count': 1},
            {'task_type': 'challenge', 'count': 0},
        ]


class TestStatsApi:

    def test_overview(self, client, db_session, parent_headers, parent_user, child_user):
        add_task(db_session, parent_user, child_user, 'approved', 15, created_at=utc_naive_now(),
                 completed_at=utc_naive_now())

        response = client.get('/api/stats?period=month', headers=parent_headers)

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['tasks']['approved'] == 1
        assert data['child_rankings'][0]['total_points'] == 15

    def test_bad_period(self, client, parent_headers):
        response = client.get('/api/stats?period=year', headers=parent_headers)

        assert response.status_code == 400

    def test_child_cannot_read_sibling(self, client, child_headers, child_user_2):
        response = client.get(f'/api/stats/tasks?child_id={child_user_2.id}', headers=child_headers)

        assert response.status_code == 403

    def test_requires_auth(self, client):
        assert client.get('/api/stats/tasks').status_code == 401
