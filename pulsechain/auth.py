"""
auth.py
Session handling for the portal: sign-up, sign-in for users and the
configured administrator, sign-out, password reset and role resolution.

Every operation returns a dict with `success` and either a payload or a
human-readable `error`. Session transitions are published on the
`auth_state_changed` signal.
"""
import hmac
import logging
import time
from functools import wraps

from blinker import Namespace
from flask import current_app, g, redirect, request, session, url_for
from werkzeug.security import check_password_hash

from .identity import IdentityError, get_identity
from .toast import show_error_toast

logger = logging.getLogger(__name__)

ROLE_USER = 'user'
ROLE_ADMIN = 'admin'
ROLES = (ROLE_USER, ROLE_ADMIN)

# Session transitions
SIGN_IN = 'sign_in'
SIGN_OUT = 'sign_out'
TOKEN_REFRESH = 'token_refresh'

_signals = Namespace()
auth_state_changed = _signals.signal('auth-state-changed')

SIGN_UP_ERRORS = {
    'email-already-in-use': 'This email is already registered. Please sign in instead.',
    'invalid-email': 'Invalid email format. Please check your email address.',
    'weak-password': 'Password is too weak. Please use a stronger password.',
    'user-not-confirmed': 'Please confirm your email address, then sign in.',
}

SIGN_IN_ERRORS = {
    'invalid-credential': 'Incorrect Email or Password',
    'wrong-password': 'Incorrect Password! Please Try Again.',
    'user-not-found': 'Email Not Found! Please Sign Up',
    'invalid-email': 'Invalid Email Format!',
    'user-not-confirmed': 'Please confirm your email address, then sign in.',
}

RESET_ERRORS = {
    'user-not-found': 'No user found with this email address.',
    'invalid-email': 'Invalid email address.',
}


def _failure(error, messages):
    # Unknown provider codes keep the provider's own message
    return {'success': False, 'error': messages.get(error.code, error.message), 'code': error.code}


def _notify(event, user):
    auth_state_changed.send(current_app._get_current_object(), event=event, user=user)


def _start_session(user, tokens):
    session['user'] = user
    session['tokens'] = tokens
    g.user = user
    _notify(SIGN_IN, user)


def _admin_credentials_match(email, password):
    config = current_app.config
    if not config.get('ADMIN_EMAIL') or email != config['ADMIN_EMAIL']:
        return False
    if config.get('ADMIN_PASSWORD_HASH'):
        return check_password_hash(config['ADMIN_PASSWORD_HASH'], password)
    if config.get('ADMIN_PASSWORD'):
        return hmac.compare_digest(config['ADMIN_PASSWORD'].encode('utf-8'), password.encode('utf-8'))
    return False


def sign_up(email, password, name):
    """Create an account with a display name and sign it in when the provider allows"""
    try:
        user, tokens = get_identity().sign_up(email, password, name)
    except IdentityError as e:
        logger.info('sign-up failed for %s: %s', email, e.code)
        return _failure(e, SIGN_UP_ERRORS)
    if tokens is None:
        # Account exists but cannot sign in until the email is confirmed
        return {'success': True, 'user': user, 'confirmation_required': True}
    _start_session(user, tokens)
    return {'success': True, 'user': user, 'confirmation_required': False}


def sign_in(email, password):
    """
    Sign in a user or the administrator.
    The administrator pair is checked first and never reaches the provider.
    """
    if _admin_credentials_match(email or '', password or ''):
        session['admin_logged_in'] = True
        session['admin_email'] = email
        user = {'email': email}
        _notify(SIGN_IN, user)
        return {'success': True, 'user': user, 'is_admin': True}

    try:
        user, tokens = get_identity().sign_in(email, password)
    except IdentityError as e:
        logger.info('sign-in failed for %s: %s', email, e.code)
        return {**_failure(e, SIGN_IN_ERRORS), 'is_admin': False}
    _start_session(user, tokens)
    return {'success': True, 'user': user, 'is_admin': False}


def log_out():
    tokens = session.pop('tokens', None)
    user = session.pop('user', None)
    admin_email = session.pop('admin_email', None)
    session.pop('admin_logged_in', None)
    g.user = None

    if tokens:
        try:
            get_identity().sign_out(tokens)
        except IdentityError as e:
            # The local session is gone either way
            logger.warning('provider sign-out failed: %s', e.code)
    _notify(SIGN_OUT, user or ({'email': admin_email} if admin_email else None))
    return {'success': True}


def reset_password(email):
    try:
        get_identity().send_password_reset(email)
    except IdentityError as e:
        logger.info('password reset failed for %s: %s', email, e.code)
        return _failure(e, RESET_ERRORS)
    return {'success': True}


def update_profile(display_name):
    user = get_current_user()
    if user is None:
        return {'success': False, 'error': 'Please log in to edit your profile.'}
    display_name = (display_name or '').strip()
    if not display_name:
        return {'success': False, 'error': 'Please enter your name!'}
    try:
        get_identity().update_display_name(session['tokens'], display_name)
    except IdentityError as e:
        logger.info('profile update failed for %s: %s', user.get('email'), e.code)
        return _failure(e, {})
    user = {**user, 'display_name': display_name}
    session['user'] = user
    g.user = user
    return {'success': True, 'user': user}


def get_current_user():
    if 'user' in g:
        return g.user
    return session.get('user')


def on_auth_state_change(callback, app=None):
    """
    Call `callback(user, event)` on every session transition of `app`.
    The subscription lasts as long as the app.
    """
    sender = app or current_app._get_current_object()

    def receiver(sender, event, user):
        callback(user, event)

    auth_state_changed.connect(receiver, sender=sender, weak=False)


def is_admin():
    admin_email = current_app.config.get('ADMIN_EMAIL')
    if not admin_email:
        return False
    if session.get('admin_logged_in') and session.get('admin_email') == admin_email:
        return True
    user = get_current_user()
    return bool(user and user.get('email') == admin_email)


def current_role():
    if is_admin():
        return ROLE_ADMIN
    if get_current_user():
        return ROLE_USER
    return None


def load_session():
    """
    Resolve the session for this request before any view runs.
    Expired provider tokens are refreshed; a failed refresh ends the session.
    """
    g.user = None
    user = session.get('user')
    tokens = session.get('tokens')
    if not user or not tokens:
        return None

    if tokens.get('expires_at', 0) <= time.time():
        try:
            tokens = get_identity().refresh(tokens, user.get('uid'))
        except IdentityError as e:
            logger.info('token refresh failed for %s: %s', user.get('email'), e.code)
            session.pop('user', None)
            session.pop('tokens', None)
            _notify(SIGN_OUT, user)
            return None
        session['tokens'] = tokens
        _notify(TOKEN_REFRESH, user)

    g.user = user
    return user


def login_required(view):
    """Send visitors without a session to the login page"""
    @wraps(view)
    def decorated_function(*args, **kwargs):
        if get_current_user() is None:
            return redirect(url_for('portal.login', redirect=request.full_path.rstrip('?')))
        return view(*args, **kwargs)
    return decorated_function


def admin_required(view):
    @wraps(view)
    def decorated_function(*args, **kwargs):
        if not is_admin():
            show_error_toast('Access Denied. Please log in as an admin.')
            return redirect(url_for('portal.login'))
        return view(*args, **kwargs)
    return decorated_function
