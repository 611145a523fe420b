"""
Pytest configuration and shared fixtures for the sales tracker tests.
"""
import os
import logging

import pytest

# Must be in place before the app module reads its configuration
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['SECRET_KEY'] = 'test-secret'
os.environ['DEMO_USERNAME'] = 'demo'
os.environ['DEMO_PASSWORD'] = 'demo123'
os.environ.pop('TIP_TIMEOUT', None)

from app import app as flask_app, db  # noqa: E402
import auth  # noqa: E402

logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@pytest.fixture
def app():
    """App with a fresh in-memory schema and an active app context."""
    flask_app.config.update(
        TESTING=True,
        OPENAI_API_KEY='sk-test-key',
        TIP_ENDPOINT_URL='',
        TOKEN_MAX_AGE=7200,
        ENTRY_LIMIT=100,
    )
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def token(app):
    return auth.issue_token('demo')


@pytest.fixture
def auth_client(client, token):
    """Test client whose browser session already holds a valid token."""
    with client.session_transaction() as sess:
        sess[auth.SESSION_KEY] = token
    return client


@pytest.fixture
def bearer(token):
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def sample_form():
    return {
        'date': '2024-01-01',
        'voiceLines': '10',
        'bts': '5',
        'iot': '0',
        'hsi': '0',
        'accessories': '2.50',
        'protection': '3',
        'planName': 'X',
        'mrc': '50.00',
    }
