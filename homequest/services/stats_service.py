"""Family statistics.

Aggregates over tasks and orders for the dashboard: status counts with
point sums, per-type breakdowns, the daily trend of approved tasks and
child rankings. Parents see their whole family or one child; children
only themselves.
"""

import logging
from collections import OrderedDict
from datetime import datetime
from typing import List, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import func, or_

from homequest.models import db, Order, Task, User
from homequest.services.errors import ForbiddenError, InvalidInputError
from homequest.services.task_service import TaskService
from homequest.utils.timezone import as_local, end_of_day, resolve_now, start_of_day, to_naive_utc

logger = logging.getLogger(__name__)

PERIODS = {
    'week': relativedelta(days=7),
    'month': relativedelta(months=1),
}

TASK_STATUSES = ('pending', 'submitted', 'approved', 'rejected', 'expired')
TASK_TYPES = ('daily', 'advanced', 'challenge')
ORDER_STATUSES = ('pending', 'verified', 'cancelled')


def period_window(period: str, now: datetime):
    """
    Naive UTC ``(start, end)`` of the period ending at ``now``.

    Raises:
        InvalidInputError: Unknown period
    """
    if period not in PERIODS:
        raise InvalidInputError(f'period must be one of: {", ".join(PERIODS)}')
    return to_naive_utc(now - PERIODS[period]), to_naive_utc(now)


def child_scope(user: User, child_id: Optional[int] = None) -> List[int]:
    """
    Ids of the children whose activity ``user`` may aggregate.

    Raises:
        ForbiddenError: A child asked for someone else
        NotFoundError: Parent asked for a child outside the family
    """
    if not user.is_parent:
        if child_id is not None and child_id != user.id:
            raise ForbiddenError('Children can only see their own statistics')
        return [user.id]

    if child_id is not None:
        return [TaskService.get_family_child(user, child_id).id]

    return [row.id for row in db.session.query(User.id).filter(
        User.family_id == user.family_id, User.role == 'child'
    ).all()]


class StatsService:
    """Read-only aggregates for the statistics endpoints."""

    @staticmethod
    def overview(user: User, period: str = 'week', child_id: Optional[int] = None,
                 now: Optional[datetime] = None) -> dict:
        """
        Activity of the tasks and orders created within the period.

        Returns:
            dict with period, date_range, tasks, type_breakdown, daily_trend,
            domains, child_rankings (empty for children) and orders
        """
        now_local = resolve_now(now)
        start, end = period_window(period, now_local)
        child_ids = child_scope(user, child_id)

        in_window = (Task.child_id.in_(child_ids), Task.created_at >= start, Task.created_at <= end)
        approved = in_window + (Task.status == 'approved',)

        status_rows = db.session.query(
            Task.status, func.count(Task.id), func.coalesce(func.sum(Task.points), 0)
        ).filter(*in_window).group_by(Task.status).all()
        by_status = {status: (count, points) for status, count, points in status_rows}

        tasks = {status: by_status.get(status, (0, 0))[0] for status in TASK_STATUSES}
        tasks['total'] = sum(count for count, _ in by_status.values())
        tasks['total_points'] = sum(points for _, points in by_status.values())

        type_breakdown = [
            {'task_type': task_type, 'status': status, 'count': count}
            for task_type, status, count in db.session.query(
                Task.task_type, Task.status, func.count(Task.id)
            ).filter(*in_window).group_by(Task.task_type, Task.status)
            .order_by(Task.task_type, Task.status).all()
        ]

        total_points = func.coalesce(func.sum(Task.points), 0).label('total_points')
        domains = [
            {'task_type': task_type, 'count': count, 'points': points}
            for task_type, count, points in db.session.query(
                Task.task_type, func.count(Task.id), total_points
            ).filter(*approved).group_by(Task.task_type)
            .order_by(total_points.desc(), Task.task_type).all()
        ]

        rankings = []
        if user.is_parent:
            rows = db.session.query(
                User.id, User.username, User.nickname, User.avatar,
                func.count(Task.id).label('completed_tasks'), total_points
            ).join(Task, Task.child_id == User.id).filter(*approved).group_by(
                User.id, User.username, User.nickname, User.avatar
            ).order_by(total_points.desc(), User.id).all()
            rankings = [
                {
                    'child_id': row.id,
                    'child_name': row.nickname or row.username,
                    'avatar': row.avatar,
                    'completed_tasks': row.completed_tasks,
                    'total_points': row.total_points
                }
                for row in rows
            ]

        return {
            'period': period,
            'date_range': {'start': start.isoformat(), 'end': end.isoformat()},
            'tasks': tasks,
            'type_breakdown': type_breakdown,
            'daily_trend': StatsService.daily_trend(approved),
            'domains': domains,
            'child_rankings': rankings,
            'orders': StatsService.order_summary(child_ids, start, end)
        }

    @staticmethod
    def daily_trend(criteria) -> List[dict]:
        """
        Approved tasks and points per local completion date, oldest first.

        Days are bucketed in the configured timezone, so the grouping is done
        here rather than with the database's UTC date functions.
        """
        buckets = OrderedDict()
        rows = db.session.query(Task.completed_at, Task.points).filter(
            *criteria, Task.completed_at.isnot(None)
        ).order_by(Task.completed_at).all()

        for completed_at, points in rows:
            day = as_local(completed_at).date().isoformat()
            bucket = buckets.setdefault(day, {'date': day, 'count': 0, 'points': 0})
            bucket['count'] += 1
            bucket['points'] += points

        return list(buckets.values())

    @staticmethod
    def order_summary(child_ids: List[int], start: datetime, end: datetime) -> dict:
        """Orders placed in the window. Cancelled orders were refunded and add no points."""
        rows = db.session.query(
            Order.status, func.count(Order.id), func.coalesce(func.sum(Order.points_spent), 0)
        ).filter(
            Order.child_id.in_(child_ids), Order.created_at >= start, Order.created_at <= end
        ).group_by(Order.status).all()
        by_status = {status: (count, points) for status, count, points in rows}

        summary = {status: by_status.get(status, (0, 0))[0] for status in ORDER_STATUSES}
        summary['total'] = sum(count for count, _ in by_status.values())
        summary['total_points'] = sum(
            points for status, (_, points) in by_status.items() if status != 'cancelled'
        )
        return summary

    @staticmethod
    def task_summary(user: User, child_id: Optional[int] = None, now: Optional[datetime] = None) -> dict:
        """
        All-time task counts plus today's approvals.

        An approval is on time when the task has no deadline or was
        completed by it.
        """
        today = resolve_now(now).date()
        child_ids = child_scope(user, child_id)
        scope = Task.child_id.in_(child_ids)

        counts = dict(db.session.query(Task.status, func.count(Task.id)).filter(scope)
                      .group_by(Task.status).all())

        approved_today = (
            scope,
            Task.status == 'approved',
            Task.completed_at >= start_of_day(today),
            Task.completed_at <= end_of_day(today),
        )
        today_completed = db.session.query(func.count(Task.id)).filter(*approved_today).scalar()
        today_on_time = db.session.query(func.count(Task.id)).filter(
            *approved_today, or_(Task.deadline.is_(None), Task.completed_at <= Task.deadline)
        ).scalar()
        today_overdue = db.session.query(func.count(Task.id)).filter(
            *approved_today, Task.deadline.isnot(None), Task.completed_at > Task.deadline
        ).scalar()

        by_type = dict(db.session.query(Task.task_type, func.count(Task.id)).filter(
            scope, Task.status == 'approved'
        ).group_by(Task.task_type).all())

        return {
            'completed': counts.get('approved', 0),
            'pending': counts.get('pending', 0) + counts.get('submitted', 0),
            'rejected': counts.get('rejected', 0),
            'expired': counts.get('expired', 0),
            'today_completed': today_completed,
            'today_on_time': today_on_time,
            'today_overdue': today_overdue,
            'type_distribution': [
                {'task_type': task_type, 'count': by_type.get(task_type, 0)} for task_type in TASK_TYPES
            ]
        }
