"""
Tests for the demo login, token signing and the route gates.
"""
import pytest

import auth


class TestTokens:

    def test_round_trip(self, app):
        token = auth.issue_token('demo')

        assert auth.verify_token(token) == 'demo'

    def test_tampered_token(self, app):
        token = auth.issue_token('demo')

        with pytest.raises(auth.InvalidToken, match='signature'):
            auth.verify_token(token[:-2] + 'xx')

    def test_expired_token(self, app):
        token = auth.issue_token('demo')
        app.config['TOKEN_MAX_AGE'] = -1

        with pytest.raises(auth.InvalidToken, match='expired'):
            auth.verify_token(token)

    def test_missing_token(self, app):
        with pytest.raises(auth.InvalidToken):
            auth.verify_token(None)

    def test_token_from_other_secret_is_rejected(self, app):
        token = auth.issue_token('demo')
        app.config['SECRET_KEY'] = 'another-secret'
        try:
            with pytest.raises(auth.InvalidToken):
                auth.verify_token(token)
        finally:
            app.config['SECRET_KEY'] = 'test-secret'


class TestAuthSession:

    def test_from_header(self):
        session = auth.AuthSession.from_header('Bearer abc.def')

        assert session.token == 'abc.def'
        assert session.is_authenticated
        assert session.bearer_header() == {'Authorization': 'Bearer abc.def'}

    @pytest.mark.parametrize('header', [None, '', 'Basic Zm9vOmJhcg==', 'Bearer'])
    def test_unusable_header(self, header):
        session = auth.AuthSession.from_header(header)

        assert not session.is_authenticated
        assert session.bearer_header() == {}


class TestCredentials:

    def test_demo_account(self, app):
        assert auth.check_credentials('demo', 'demo123')

    @pytest.mark.parametrize('username,password', [
        ('demo', 'wrong'),
        ('admin', 'demo123'),
        ('', ''),
        (None, None),
        (123, 'demo123'),
    ])
    def test_mismatch(self, app, username, password):
        assert not auth.check_credentials(username, password)
        assert auth.login(username, password) is None


class TestLoginApi:

    def test_good_credentials_return_token(self, client, app):
        resp = client.post('/api/login', json={'username': 'demo', 'password': 'demo123'})

        assert resp.status_code == 200
        assert auth.verify_token(resp.get_json()['token']) == 'demo'

    def test_wrong_password_is_401(self, client):
        resp = client.post('/api/login', json={'username': 'demo', 'password': 'nope'})

        assert resp.status_code == 401
        assert resp.get_json() == {'error': 'Invalid credentials'}

    def test_missing_body_is_401(self, client):
        resp = client.post('/api/login', data='not json', content_type='text/plain')

        assert resp.status_code == 401

    def test_get_not_allowed(self, client):
        assert client.get('/api/login').status_code == 405


class TestLoginPage:

    def test_form_renders(self, client):
        resp = client.get('/login')

        assert resp.status_code == 200
        assert b'Sign In' in resp.data

    def test_successful_login_stores_token(self, client):
        resp = client.post('/login', data={'username': 'demo', 'password': 'demo123'})

        assert resp.status_code == 302
        assert resp.headers['Location'].endswith('/tracker')
        with client.session_transaction() as sess:
            assert auth.verify_token(sess[auth.SESSION_KEY]) == 'demo'

    def test_wrong_password_keeps_dashboard_locked(self, client):
        resp = client.post('/login', data={'username': 'demo', 'password': 'wrong'})

        assert resp.status_code == 401
        assert b'Invalid credentials' in resp.data
        with client.session_transaction() as sess:
            assert auth.SESSION_KEY not in sess

        resp = client.get('/tracker')
        assert resp.status_code == 302
        assert resp.headers['Location'].endswith('/login')

    def test_logout_clears_token(self, auth_client):
        resp = auth_client.get('/logout')

        assert resp.status_code == 302
        with auth_client.session_transaction() as sess:
            assert auth.SESSION_KEY not in sess


class TestGates:

    def test_root_redirects_by_token(self, client, auth_client):
        assert client.get('/').headers['Location'].endswith('/tracker')

    def test_root_without_token(self, client):
        assert client.get('/').headers['Location'].endswith('/login')

    def test_invalid_stored_token_is_dropped(self, client):
        with client.session_transaction() as sess:
            sess[auth.SESSION_KEY] = 'garbage'

        resp = client.get('/tracker')

        assert resp.headers['Location'].endswith('/login')
        with client.session_transaction() as sess:
            assert auth.SESSION_KEY not in sess

    def test_api_requires_bearer(self, client):
        resp = client.get('/api/entries')

        assert resp.status_code == 401
        assert 'Unauthorized' in resp.get_json()['error']

    def test_api_accepts_bearer(self, client, bearer):
        resp = client.get('/api/entries', headers=bearer)

        assert resp.status_code == 200
        assert resp.get_json() == []
