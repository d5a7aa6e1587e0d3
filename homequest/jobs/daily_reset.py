"""
Daily reset job.

Runs once per day, shortly after local midnight. Steps, in order:

1. Apply the expiry policy of every pending/submitted task created before today
2. Reset hand-made regular tasks that were approved or rejected, extending streaks
3. Expire special tasks whose deadline has passed
4. Generate instances of recurring templates
5. Award streak medals

Each step commits on its own. A failing step is logged and the job raises,
leaving the effects of earlier steps in place.
"""

import logging
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)

OPEN_STATUSES = ('pending', 'submitted')


def apply_expiry_policies(start_of_today: datetime, now_utc: datetime, end_of_today: datetime) -> dict:
    """Step 1. Returns counts of expired and rolled over tasks."""
    from homequest.models import db, Task

    stale = Task.query.filter(
        Task.status.in_(OPEN_STATUSES),
        Task.created_at < start_of_today
    ).all()

    expired = 0
    rolled_over = 0
    for task in stale:
        if task.expiry_policy == 'auto_close':
            task.status = 'expired'
            expired += 1
            logger.debug(f"Expired task {task.id} (auto_close)")
        elif task.expiry_policy == 'rollover':
            task.status = 'pending'
            task.created_at = now_utc
            task.clear_submission()
            if task.deadline and task.deadline < now_utc:
                task.deadline = end_of_today
            rolled_over += 1
            logger.debug(f"Rolled over task {task.id}")

    db.session.commit()
    return {'expired': expired, 'rolled_over': rolled_over}


def reset_regular_tasks(start_of_today: datetime) -> dict:
    """Step 2. Returns counts of reset tasks and extended streaks."""
    from homequest.models import db, Task

    finished = Task.query.filter(
        Task.category == 'regular',
        Task.template_id.is_(None),
        Task.status.in_(('approved', 'rejected'))
    ).all()

    streaks = 0
    for task in finished:
        if task.status == 'approved' and task.completed_at and task.completed_at < start_of_today:
            task.streak_count += 1
            streaks += 1
        task.status = 'pending'
        task.clear_submission()

    db.session.commit()
    return {'reset': len(finished), 'streaks': streaks}


def expire_overdue_special_tasks(now_utc: datetime) -> int:
    """Step 3."""
    from homequest.models import db, Task

    expired = Task.query.filter(
        Task.category == 'special',
        Task.status.in_(OPEN_STATUSES),
        Task.deadline.isnot(None),
        Task.deadline < now_utc
    ).update({'status': 'expired', 'version': Task.version + 1}, synchronize_session=False)

    db.session.commit()
    return expired


def award_streak_medals(now_utc: datetime) -> int:
    """Step 5. Returns the number of medals awarded."""
    from homequest.models import db, MedalDefinition, User
    from homequest.services.gamification_service import GamificationService

    medals = MedalDefinition.query.filter_by(requirement_type='task_streak', is_active=True) \
        .order_by(MedalDefinition.requirement).all()
    if not medals:
        return 0

    awarded = 0
    for child in User.query.filter_by(role='child').all():
        best = GamificationService.best_task_streak(child.id)
        for medal in medals:
            if best < medal.requirement:
                break
            if GamificationService.award_medal(child.id, medal, best, earned_at=now_utc):
                awarded += 1

    db.session.commit()
    return awarded


def reset_daily_tasks(now: Optional[datetime] = None) -> dict:
    """
    Run the daily reset.

    Args:
        now: Reset time (defaults to the current local time)

    Returns:
        dict: reset_count, streak_updated_count, expired_count,
        rolled_over_count, generated_count, medals_awarded
    """
    logger.info("Starting daily reset")

    # Import inside function to avoid circular imports and to get app context
    from homequest.models import db
    from homequest.jobs.recurring_tasks import generate_recurring_instances
    from homequest.utils.timezone import end_of_day, resolve_now, start_of_day, to_naive_utc

    now_local = resolve_now(now)
    now_utc = to_naive_utc(now_local)
    start_of_today = start_of_day(now_local.date())
    end_of_today = end_of_day(now_local.date())

    summary = {}
    step = None
    try:
        step = 'expiry policies'
        policies = apply_expiry_policies(start_of_today, now_utc, end_of_today)
        summary['rolled_over_count'] = policies['rolled_over']

        step = 'regular task reset'
        reset = reset_regular_tasks(start_of_today)
        summary['reset_count'] = reset['reset']
        summary['streak_updated_count'] = reset['streaks']

        step = 'special task expiry'
        summary['expired_count'] = policies['expired'] + expire_overdue_special_tasks(now_utc)

        step = 'recurring generation'
        summary['generated_count'] = generate_recurring_instances(now_local)

        step = 'streak medals'
        summary['medals_awarded'] = award_streak_medals(now_utc)

    except Exception as e:
        logger.error(f"Daily reset failed during {step}: {e}")
        db.session.rollback()
        raise

    logger.info(f"Daily reset complete: {summary}")
    return summary
