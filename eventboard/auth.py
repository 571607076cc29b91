"""
Auth helpers for EventBoard's single shared login.
The session carries logged_in and username once the configured
credentials have been presented.
"""
import hmac
from functools import wraps
from typing import Optional

from flask import session, request, redirect, url_for, jsonify, current_app


def check_credentials(username: Optional[str], password: Optional[str], settings=None) -> bool:
    """
    Return True iff username and password match the configured pair.
    Never raises; anything else is simply False.
    """
    settings = settings or current_app.config['SETTINGS']
    if not isinstance(username, str) or not isinstance(password, str):
        return False
    user_ok = hmac.compare_digest(username.encode(), settings.login_user.encode())
    pass_ok = hmac.compare_digest(password.encode(), settings.login_password.encode())
    return user_ok and pass_ok


def is_logged_in() -> bool:
    """Return True if the current session has logged in."""
    return session.get('logged_in') is True


def current_username() -> Optional[str]:
    return session.get('username') if is_logged_in() else None


def log_in(username: str) -> None:
    session.clear()
    session.permanent = True
    session['logged_in'] = True
    session['username'] = username


def log_out() -> None:
    session.clear()


def login_required(f):
    """Require login - redirects to the login page with a return URL."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if not is_logged_in():
            return redirect(url_for('pages.login', next=request.full_path.rstrip('?')))
        return f(*args, **kwargs)
    return decorated


def login_required_json(f):
    """Require login - answers 401 JSON instead of redirecting."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if not is_logged_in():
            return jsonify({'success': False, 'error': 'Unauthorized'}), 401
        return f(*args, **kwargs)
    return decorated
