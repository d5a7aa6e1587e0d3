"""Routes package for HomeQuest API endpoints."""

# Import blueprints
from .users import users_bp
from .tasks import tasks_bp
from .templates import templates_bp
from .economy import economy_bp
from .rewards import rewards_bp
from .orders import orders_bp
from .gamification import gamification_bp
from .scheduled_jobs import scheduled_jobs_bp
from .stats import stats_bp
from .cron import cron_bp

# Export all blueprints
__all__ = [
    'users_bp', 'tasks_bp', 'templates_bp', 'economy_bp', 'rewards_bp',
    'orders_bp', 'gamification_bp', 'scheduled_jobs_bp', 'stats_bp', 'cron_bp'
]
