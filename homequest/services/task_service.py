"""Task workflow service.

This module contains the business logic for chore tasks:
- Creating tasks for a child
- Submitting completion evidence
- Approving tasks (point credit plus avatar progress)
- Rejecting tasks

State changes are compare-and-swap updates on the task's version column:
two parents approving the same submission cannot both credit points.

Routes should delegate to this service and handle HTTP responses.
"""

import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.orm.exc import StaleDataError

from homequest.models import db, Task, User
from homequest.services.errors import (
    ForbiddenError, InvalidInputError, InvalidTransitionError, NotFoundError
)
from homequest.services.gamification_service import GamificationService
from homequest.services.ledger_service import LedgerService
from homequest.utils.timezone import resolve_now, to_naive_utc
from homequest.utils.webhooks import fire_webhook

logger = logging.getLogger(__name__)

SUBMITTABLE_STATUSES = ('pending', 'rejected')


class TaskService:
    """Service for managing the task lifecycle."""

    @staticmethod
    def get_task(task_id: int) -> Task:
        """Get a task by ID or raise NotFoundError."""
        task = db.session.get(Task, task_id)
        if not task:
            raise NotFoundError(f'Task {task_id} not found')
        return task

    @staticmethod
    def get_family_child(parent: User, child_id: int) -> User:
        """Resolve a child of the parent's family or raise."""
        child = db.session.get(User, child_id)
        if not child or child.role != 'child' or child.family_id != parent.family_id:
            raise NotFoundError(f'Child {child_id} not found in your family')
        return child

    @staticmethod
    def check_access(task: Task, user: User) -> None:
        """Parents may act on their family's tasks, children only on their own."""
        if user.is_parent:
            if task.child is None or task.child.family_id != user.family_id:
                raise ForbiddenError('This task belongs to another family')
        elif task.child_id != user.id:
            raise ForbiddenError('This task is assigned to someone else')

    @staticmethod
    def _save_transition(task: Task) -> None:
        try:
            db.session.flush()
        except StaleDataError:
            db.session.rollback()
            raise InvalidTransitionError(f'Task {task.id} was changed by someone else, reload and retry')

    @staticmethod
    def list_tasks(user: User, child_id: Optional[int] = None, status: Optional[str] = None,
                   category: Optional[str] = None, limit: int = 50, offset: int = 0) -> Tuple[list, int]:
        query = Task.query
        if user.is_parent:
            family_children = db.session.query(User.id).filter(
                User.family_id == user.family_id, User.role == 'child'
            )
            query = query.filter(Task.child_id.in_(family_children))
            if child_id:
                query = query.filter(Task.child_id == child_id)
        else:
            query = query.filter(Task.child_id == user.id)

        if status:
            query = query.filter(Task.status == status)
        if category:
            query = query.filter(Task.category == category)

        total = query.count()
        tasks = query.order_by(Task.created_at.desc(), Task.id.desc()).limit(limit).offset(offset).all()
        return tasks, total

    @staticmethod
    def create_task(parent: User, data: dict) -> Task:
        """Create a one-off task for a child of the parent's family."""
        child = TaskService.get_family_child(parent, data['child_id'])

        deadline = None
        if data.get('deadline'):
            try:
                deadline = to_naive_utc(datetime.fromisoformat(data['deadline']))
            except ValueError:
                raise InvalidInputError('deadline must be an ISO 8601 datetime')

        task = Task(
            parent_id=parent.id,
            child_id=child.id,
            name=data['name'],
            description=data.get('description'),
            points=data['points'],
            task_type=data.get('task_type', 'daily'),
            category=data.get('category', 'regular'),
            icon=data.get('icon'),
            image_url=data.get('image_url'),
            require_photo=data.get('require_photo', False),
            deadline=deadline,
            expiry_policy=data.get('expiry_policy', 'keep'),
            status='pending'
        )
        db.session.add(task)
        db.session.commit()

        logger.info(f"Parent {parent.id} created task {task.id} ({task.name}) for child {child.id}")
        return task

    @staticmethod
    def submit(task_id: int, child: User, photo_url: Optional[str] = None,
               now: Optional[datetime] = None) -> Task:
        """
        Submit a task for approval.

        Raises:
            NotFoundError: Task not found
            ForbiddenError: Task belongs to another child
            InvalidTransitionError: Task is not pending or rejected
            InvalidInputError: Photo evidence required but missing
        """
        task = TaskService.get_task(task_id)
        if task.child_id != child.id:
            raise ForbiddenError('This task is assigned to someone else')

        logger.info(f"Submit request: task={task_id}, child={child.id}, status={task.status}")

        if task.status not in SUBMITTABLE_STATUSES:
            raise InvalidTransitionError(
                f'Cannot submit task with status "{task.status}". '
                'Only pending or rejected tasks can be submitted.'
            )

        if task.require_photo and not photo_url:
            raise InvalidInputError('A photo is required to submit this task')

        task.status = 'submitted'
        task.photo_url = photo_url
        task.submitted_at = to_naive_utc(resolve_now(now))
        task.rejection_reason = None
        TaskService._save_transition(task)
        db.session.commit()

        fire_webhook('task_submitted', task)
        return task

    @staticmethod
    def approve(task_id: int, parent: User, now: Optional[datetime] = None) -> Tuple[Task, Optional[dict]]:
        """
        Approve a submitted task.

        The status change, point credit and ledger entry are committed
        together. Avatar progress is applied afterwards in its own
        transaction; if that fails the approval stands and the failure is
        logged.

        Returns:
            tuple: (task, gamification result or None)

        Raises:
            InvalidTransitionError: Task is not submitted, or was approved concurrently
        """
        task = TaskService.get_task(task_id)
        TaskService.check_access(task, parent)

        logger.info(f"Approve request: task={task_id}, parent={parent.id}, status={task.status}")

        if task.status != 'submitted':
            raise InvalidTransitionError(
                f'Cannot approve task with status "{task.status}". Only submitted tasks can be approved.'
            )

        now_local = resolve_now(now)
        stamp = to_naive_utc(now_local)
        task.status = 'approved'
        task.approved_at = stamp
        task.completed_at = stamp
        TaskService._save_transition(task)

        child = db.session.get(User, task.child_id)
        child.total_points += task.points
        if task.points > 0:
            LedgerService.deposit(
                child.id, task.points, f'Completed task: {task.name}',
                related_task_id=task.id, commit=False
            )
        db.session.commit()
        logger.info(f"Approved task {task_id}, credited {task.points} points to child {child.id}")

        progress = None
        try:
            progress = GamificationService.award_task_completion(
                child.id, task.points, now=now_local, task=task
            )
        except Exception as e:
            db.session.rollback()
            logger.error(f"Avatar progress update failed for task {task_id}: {e}", exc_info=True)

        fire_webhook('task_approved', task)
        if progress and progress['level_up']:
            fire_webhook('level_up', {'user_id': child.id, 'new_level': progress['new_level']})

        return task, progress

    @staticmethod
    def reject(task_id: int, parent: User, reason: Optional[str] = None,
               now: Optional[datetime] = None) -> Task:
        """Reject a submitted task. The child may resubmit it."""
        task = TaskService.get_task(task_id)
        TaskService.check_access(task, parent)

        if task.status != 'submitted':
            raise InvalidTransitionError(
                f'Cannot reject task with status "{task.status}". Only submitted tasks can be rejected.'
            )

        task.status = 'rejected'
        task.rejected_at = to_naive_utc(resolve_now(now))
        task.rejection_reason = reason
        TaskService._save_transition(task)
        db.session.commit()

        logger.info(f"Rejected task {task_id}: {reason or 'no reason given'}")
        return task

    @staticmethod
    def delete_task(task_id: int, parent: User) -> None:
        task = TaskService.get_task(task_id)
        TaskService.check_access(task, parent)
        db.session.delete(task)
        db.session.commit()
        logger.info(f"Deleted task {task_id}")
