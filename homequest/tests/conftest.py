"""Pytest configuration and fixtures for HomeQuest tests."""

import pytest

from homequest.app import create_app
from homequest.auth import create_access_token
from homequest.models import db, AvatarLevel, Reward, Task, User
from homequest.seed import seed_gamification_defaults


@pytest.fixture(autouse=True)
def utc_timezone(monkeypatch):
    """Evaluate calendar logic in UTC regardless of the host timezone."""
    monkeypatch.setenv('TZ', 'UTC')


@pytest.fixture(scope='function')
def app():
    """Create application instance for testing."""
    app = create_app('testing')

    # Create database tables
    with app.app_context():
        db.create_all()

    yield app

    # Clean up
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client for making requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create database session for tests."""
    with app.app_context():
        yield db.session


@pytest.fixture
def parent_user(db_session):
    """Create a parent user for testing."""
    user = User(username='parent', nickname='Mum', role='parent', family_id='family-1')
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def child_user(db_session, parent_user):
    """Create a child user for testing."""
    user = User(username='kid', nickname='Kid', role='child', family_id='family-1',
                parent_id=parent_user.id)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def child_user_2(db_session, parent_user):
    """Create a second child in the same family."""
    user = User(username='kid2', nickname='Kid Two', role='child', family_id='family-1',
                parent_id=parent_user.id)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def other_parent(db_session):
    """A parent from a different family."""
    user = User(username='other-parent', role='parent', family_id='family-2')
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def parent_headers(db_session, parent_user):
    return {'Authorization': f'Bearer {create_access_token(parent_user)}'}


@pytest.fixture
def child_headers(db_session, child_user):
    return {'Authorization': f'Bearer {create_access_token(child_user)}'}


@pytest.fixture
def other_parent_headers(db_session, other_parent):
    return {'Authorization': f'Bearer {create_access_token(other_parent)}'}


@pytest.fixture
def cron_headers(app):
    return {'Authorization': f"Bearer {app.config['CRON_API_KEY']}"}


@pytest.fixture
def three_levels(db_session):
    """Levels 1-3 with cumulative thresholds 0, 100, 300."""
    for level, xp in ((1, 0), (2, 100), (3, 300)):
        db_session.add(AvatarLevel(level=level, name=f'Level {level}', xp_required=xp))
    db_session.commit()


@pytest.fixture
def seeded(db_session):
    """Default gamification configuration."""
    return seed_gamification_defaults()


@pytest.fixture
def submitted_task(db_session, parent_user, child_user):
    """A 20 point task waiting for approval."""
    task = Task(parent_id=parent_user.id, child_id=child_user.id, name='Make the bed',
                points=20, status='submitted')
    db_session.add(task)
    db_session.commit()
    return task


@pytest.fixture
def reward(db_session, parent_user):
    """A 50 point reward with five in stock."""
    reward = Reward(parent_id=parent_user.id, name='Ice cream', points=50, stock=5, icon='🍦')
    db_session.add(reward)
    db_session.commit()
    return reward
