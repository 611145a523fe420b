"""Demo-account login and bearer tokens.

Tokens are itsdangerous timed signatures keyed by the app's SECRET_KEY, so
they expire without any server-side state. The browser keeps its token in
the Flask session; API callers send it as ``Authorization: Bearer <token>``.
"""
import hmac
import logging
from functools import wraps

from flask import current_app, g, jsonify, redirect, request, session, url_for
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

log = logging.getLogger(__name__)

SESSION_KEY = 'auth_token'
TOKEN_SALT = 'sales-tracker-auth'


class InvalidToken(Exception):
    """Raised when a token is malformed, tampered with or expired."""


def _serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=TOKEN_SALT)


def check_credentials(username, password):
    expected_user = current_app.config['DEMO_USERNAME']
    expected_pass = current_app.config['DEMO_PASSWORD']
    if not isinstance(username, str) or not isinstance(password, str):
        return False
    user_ok = hmac.compare_digest(username.encode(), expected_user.encode())
    pass_ok = hmac.compare_digest(password.encode(), expected_pass.encode())
    return user_ok and pass_ok


def issue_token(subject):
    return _serializer().dumps({'sub': subject})


def verify_token(token):
    """Return the token's subject or raise InvalidToken."""
    if not token:
        raise InvalidToken('missing token')
    try:
        payload = _serializer().loads(token, max_age=current_app.config['TOKEN_MAX_AGE'])
    except SignatureExpired:
        raise InvalidToken('token expired')
    except BadSignature:
        raise InvalidToken('bad token signature')
    return payload['sub']


def login(username, password):
    """Check the demo account and return a fresh token, or None on mismatch."""
    if not check_credentials(username, password):
        log.info("Rejected login for %r", username)
        return None
    log.info("Issued token for %r", username)
    return issue_token(username)


class AuthSession:
    """The credential a caller holds, passed explicitly to whoever needs it."""

    def __init__(self, token=None):
        self.token = token or None

    @classmethod
    def from_flask_session(cls):
        return cls(session.get(SESSION_KEY))

    @classmethod
    def from_header(cls, header):
        if header and header.startswith('Bearer '):
            return cls(header[len('Bearer '):].strip())
        return cls()

    @property
    def is_authenticated(self):
        return self.token is not None

    def bearer_header(self):
        if not self.token:
            return {}
        return {'Authorization': f'Bearer {self.token}'}

    def store(self):
        session[SESSION_KEY] = self.token

    @staticmethod
    def forget():
        session.pop(SESSION_KEY, None)


def token_required(view):
    """Gate an HTML route: no valid stored token means a trip to /login."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        auth = AuthSession.from_flask_session()
        if not auth.is_authenticated:
            return redirect(url_for('login_page'))
        try:
            verify_token(auth.token)
        except InvalidToken as e:
            log.info("Dropping stored token: %s", e)
            AuthSession.forget()
            return redirect(url_for('login_page'))
        g.auth_session = auth
        return view(*args, **kwargs)
    return wrapped


def api_token_required(view):
    """Gate a JSON route on the bearer header."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        auth = AuthSession.from_header(request.headers.get('Authorization'))
        try:
            verify_token(auth.token)
        except InvalidToken as e:
            return jsonify({'error': f'Unauthorized: {e}'}), 401
        g.auth_session = auth
        return view(*args, **kwargs)
    return wrapped
