"""HomeQuest Flask application - Main entry point."""

import os
import sys
import logging
from pathlib import Path
from flask import Flask, jsonify, g
from flask_migrate import Migrate
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

# Configure logging for the entire application
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stdout
)

from homequest.models import db
from homequest.services.errors import ServiceError

logger = logging.getLogger(__name__)

# Initialize Flask-Migrate against the bundled migrations directory
MIGRATIONS_DIR = Path(__file__).parent / 'migrations'
migrate = Migrate()


def create_app(config_name=None):
    """Application factory pattern for Flask app creation."""
    app = Flask(__name__)

    # Load configuration
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    from homequest.config import config
    app.config.from_object(config[config_name])

    # Ensure data directory exists (skip for in-memory database)
    if app.config['SQLALCHEMY_DATABASE_URI'] != "sqlite:///:memory:":
        data_dir = Path(app.config['DATA_DIR'])
        data_dir.mkdir(parents=True, exist_ok=True)

    # Initialize extensions with app
    db.init_app(app)
    migrate.init_app(app, db, directory=str(MIGRATIONS_DIR))

    # ProxyFix handles reverse proxy headers (X-Forwarded-For, etc.)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    register_middleware(app)
    register_error_handlers(app)
    register_routes(app)

    # Initialize background scheduler
    from homequest.scheduler import JobScheduler
    JobScheduler(app).start()

    # Seed gamification configuration on first run
    if not app.config.get('TESTING', False):
        with app.app_context():
            from homequest.seed import seed_gamification_defaults
            try:
                seed_gamification_defaults()
            except OperationalError as e:
                db.session.rollback()
                logger.warning(f"Skipping gamification seed, database not initialized: {e}")

    return app


def register_middleware(app):
    """Register middleware for authentication and request processing."""

    @app.before_request
    def extract_auth_payload():
        """Decode the bearer token, if any, into g.auth."""
        from homequest.auth import load_auth_payload
        load_auth_payload()


def register_error_handlers(app):
    """Translate exceptions into the JSON response envelope."""

    @app.errorhandler(ServiceError)
    def handle_service_error(e):
        db.session.rollback()
        if e.status_code >= 500:
            logger.error(f"{type(e).__name__}: {e.message}")
        return jsonify({
            'success': False,
            'error': type(e).__name__,
            'message': e.message
        }), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({'success': False, 'error': e.name.replace(' ', ''), 'message': e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        db.session.rollback()
        logger.error(f"Unhandled error: {e}", exc_info=True)
        return jsonify({'success': False, 'message': 'Internal server error'}), 500


def register_routes(app):
    """Register all application routes."""

    from homequest.routes import (
        cron_bp, economy_bp, gamification_bp, orders_bp, rewards_bp,
        scheduled_jobs_bp, stats_bp, tasks_bp, templates_bp, users_bp
    )

    app.register_blueprint(users_bp)
    app.register_blueprint(tasks_bp)
    app.register_blueprint(templates_bp)
    app.register_blueprint(economy_bp)
    app.register_blueprint(rewards_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(gamification_bp)
    app.register_blueprint(scheduled_jobs_bp)
    app.register_blueprint(stats_bp)
    app.register_blueprint(cron_bp)

    @app.route('/health')
    def health():
        """Health check endpoint for monitoring."""
        try:
            # Check database connectivity
            db.session.execute(text('SELECT 1'))
            db_status = 'healthy'
        except Exception as e:
            db.session.rollback()
            db_status = f'unhealthy: {str(e)}'

        return jsonify({
            'status': 'healthy' if db_status == 'healthy' else 'degraded',
            'database': db_status,
            'authenticated': getattr(g, 'auth', None) is not None
        })


if __name__ == '__main__':
    # Run development server
    create_app().run(host='0.0.0.0', port=8099, debug=True)
