#!/usr/bin/env python
"""
Management script for HomeQuest.

Database migrations run through the Flask-Migrate commands
(``flask --app manage db upgrade``). This script adds a few
administrative commands on top of them.
"""

import logging

import click

from homequest.app import create_app
from homequest.models import db, User
from homequest.seed import seed_gamification_defaults

logger = logging.getLogger(__name__)

# Create Flask app (Flask-Migrate is initialized in the factory)
app = create_app()


@app.cli.command('init-db')
def init_db():
    """Create missing tables and seed the gamification defaults."""
    db.create_all()
    counts = seed_gamification_defaults()
    click.echo(f"Database ready: {counts}")


@app.cli.command('create-parent')
@click.argument('username')
@click.option('--family-id', required=True, help='Family the parent belongs to')
@click.option('--nickname', default=None)
def create_parent(username, family_id, nickname):
    """Create a parent account and print a bearer token for it."""
    from homequest.auth import create_access_token

    if User.query.filter_by(username=username).first():
        raise click.ClickException(f"Username '{username}' already exists")

    parent = User(username=username, nickname=nickname or username, role='parent', family_id=family_id)
    db.session.add(parent)
    db.session.commit()
    logger.info(f"Created parent {parent.id} ({username}) in family {family_id}")

    click.echo(create_access_token(parent))


if __name__ == '__main__':
    # This allows running: python manage.py
    app.run(debug=True)
