import time
from urllib.parse import unquote

import boto3
import pytest
from botocore.stub import Stubber
from flask import session
from werkzeug.security import generate_password_hash

from pulsechain import auth, create_app
from pulsechain.auth import ROLE_ADMIN, ROLE_USER, SIGN_IN, SIGN_OUT, TOKEN_REFRESH
from pulsechain.identity import CognitoIdentity

from .conftest import ADMIN_EMAIL, ADMIN_PASSWORD


def test_sign_up_starts_session(ctx, identity):
    result = auth.sign_up('new@example.com', 'secret1', 'New User')
    assert result['success']
    assert result['user']['email'] == 'new@example.com'
    assert result['user']['display_name'] == 'New User'
    assert session['user']['email'] == 'new@example.com'
    assert 'new@example.com' in identity.users


def test_sign_up_duplicate_email(ctx):
    auth.sign_up('dup@example.com', 'secret1', 'First')
    result = auth.sign_up('dup@example.com', 'secret2', 'Second')
    assert not result['success']
    assert result['code'] == 'email-already-in-use'
    assert result['error'] == 'This email is already registered. Please sign in instead.'


def test_sign_up_invalid_email_and_weak_password(ctx):
    result = auth.sign_up('not-an-email', 'secret1', 'Someone')
    assert result['error'] == 'Invalid email format. Please check your email address.'
    result = auth.sign_up('weak@example.com', '123', 'Someone')
    assert result['error'] == 'Password is too weak. Please use a stronger password.'


def test_admin_sign_in_skips_provider(ctx, identity):
    result = auth.sign_in(ADMIN_EMAIL, ADMIN_PASSWORD)
    assert result == {'success': True, 'user': {'email': ADMIN_EMAIL}, 'is_admin': True}
    assert session['admin_logged_in'] is True
    assert ADMIN_EMAIL not in identity.users
    assert auth.is_admin()
    assert auth.current_role() == ROLE_ADMIN


def test_admin_wrong_password_goes_to_provider(ctx):
    result = auth.sign_in(ADMIN_EMAIL, 'not-the-password')
    assert not result['success']
    assert result['is_admin'] is False
    assert result['error'] == 'Email Not Found! Please Sign Up'
    assert not auth.is_admin()


def test_admin_password_hash():
    app = create_app({
        'TESTING': True,
        'DATA_BACKEND': 'memory',
        'AUTH_BACKEND': 'memory',
        'ADMIN_PASSWORD': None,
        'ADMIN_PASSWORD_HASH': generate_password_hash('hashed-secret'),
    })
    with app.test_request_context():
        assert auth.sign_in(app.config['ADMIN_EMAIL'], 'hashed-secret')['is_admin']


def test_admin_disabled_without_password():
    app = create_app({
        'TESTING': True,
        'DATA_BACKEND': 'memory',
        'AUTH_BACKEND': 'memory',
        'ADMIN_PASSWORD': None,
        'ADMIN_PASSWORD_HASH': None,
    })
    with app.test_request_context():
        result = auth.sign_in(app.config['ADMIN_EMAIL'], '')
        assert not result['success']
        assert not auth.is_admin()


def test_sign_in_errors(ctx):
    auth.sign_up('known@example.com', 'secret1', 'Known')
    auth.log_out()

    assert auth.sign_in('known@example.com', 'wrong!')['error'] == 'Incorrect Password! Please Try Again.'
    assert auth.sign_in('unknown@example.com', 'secret1')['error'] == 'Email Not Found! Please Sign Up'
    assert auth.sign_in('bad-email', 'secret1')['error'] == 'Invalid Email Format!'

    result = auth.sign_in('known@example.com', 'secret1')
    assert result['success']
    assert result['is_admin'] is False
    assert auth.current_role() == ROLE_USER


def test_log_out_clears_session(ctx, identity):
    auth.sign_up('bye@example.com', 'secret1', 'Bye')
    token = session['tokens']['access_token']
    assert auth.log_out() == {'success': True}
    assert auth.get_current_user() is None
    assert 'tokens' not in session
    assert token not in identity.access_tokens
    assert auth.current_role() is None


def test_log_out_admin(ctx):
    auth.sign_in(ADMIN_EMAIL, ADMIN_PASSWORD)
    auth.log_out()
    assert not auth.is_admin()


def test_reset_password(ctx, identity):
    auth.sign_up('reset@example.com', 'secret1', 'Reset')
    assert auth.reset_password('reset@example.com') == {'success': True}
    assert identity.password_resets == ['reset@example.com']
    assert auth.reset_password('nobody@example.com')['error'] == 'No user found with this email address.'
    assert auth.reset_password('nope')['error'] == 'Invalid email address.'


def test_update_profile(ctx, identity):
    assert not auth.update_profile('Name')['success']
    auth.sign_up('profile@example.com', 'secret1', 'Old Name')
    result = auth.update_profile('  New Name ')
    assert result['success']
    assert session['user']['display_name'] == 'New Name'
    assert identity.users['profile@example.com']['display_name'] == 'New Name'
    assert auth.update_profile('   ')['error'] == 'Please enter your name!'


def test_auth_state_change_callbacks(app):
    events = []
    auth.on_auth_state_change(lambda user, event: events.append((event, user and user.get('email'))), app=app)
    with app.test_request_context():
        auth.sign_up('watch@example.com', 'secret1', 'Watcher')
        auth.log_out()
    assert events == [(SIGN_IN, 'watch@example.com'), (SIGN_OUT, 'watch@example.com')]


def test_load_session_refreshes_expired_tokens(app, identity):
    events = []
    auth.on_auth_state_change(lambda user, event: events.append(event), app=app)
    with app.test_request_context():
        auth.sign_up('refresh@example.com', 'secret1', 'Refresh')
        old_token = session['tokens']['access_token']
        session['tokens'] = {**session['tokens'], 'expires_at': time.time() - 1}

        user = auth.load_session()
        assert user['email'] == 'refresh@example.com'
        assert session['tokens']['access_token'] != old_token
        assert session['tokens']['expires_at'] > time.time()
    assert events[-1] == TOKEN_REFRESH


def test_load_session_drops_session_when_refresh_fails(app, identity):
    with app.test_request_context():
        auth.sign_up('gone@example.com', 'secret1', 'Gone')
        identity.refresh_tokens.clear()
        session['tokens'] = {**session['tokens'], 'expires_at': 0}
        assert auth.load_session() is None
        assert auth.get_current_user() is None
        assert 'user' not in session


def test_login_required_redirects_with_target(client):
    response = client.get('/donate')
    assert response.status_code == 302
    assert '/login?redirect=/donate' in unquote(response.headers['Location'])


def test_admin_required_rejects_users(client):
    client.post('/login', data={
        'action': 'signup', 'name': 'U', 'email': 'u@example.com',
        'password': 'secret1', 'confirm_password': 'secret1'
    })
    response = client.get('/admin')
    assert response.status_code == 302
    assert response.headers['Location'].endswith('/login')


@pytest.fixture
def cognito_app(app):
    client = boto3.client(
        'cognito-idp',
        region_name='us-east-1',
        aws_access_key_id='testing',
        aws_secret_access_key='testing'
    )
    app.extensions['pulsechain.identity'] = CognitoIdentity('client-id', client=client)
    with Stubber(client) as stubber:
        yield app, stubber
        stubber.assert_no_pending_responses()


def test_sign_up_awaiting_confirmation_has_no_session(cognito_app):
    app, stubber = cognito_app
    stubber.add_response('sign_up', {'UserConfirmed': False, 'UserSub': 'uid-9'}, None)
    with app.test_request_context():
        result = auth.sign_up('pending@example.com', 'secret1', 'Pending')
        assert result['success']
        assert result['confirmation_required'] is True
        assert auth.get_current_user() is None
        assert 'tokens' not in session


def test_sign_up_page_asks_for_confirmation(cognito_app):
    app, stubber = cognito_app
    stubber.add_response('sign_up', {'UserConfirmed': False, 'UserSub': 'uid-9'}, None)
    client = app.test_client()
    response = client.post('/login', data={
        'action': 'signup', 'name': 'Pending', 'email': 'pending@example.com',
        'password': 'secret1', 'confirm_password': 'secret1'
    })
    assert response.headers['Location'].endswith('/login')
    html = client.get('/login').get_data(as_text=True)
    assert 'Please confirm your email address, then sign in.' in html


def test_sign_in_before_confirmation(cognito_app):
    app, stubber = cognito_app
    stubber.add_client_error('initiate_auth', service_error_code='UserNotConfirmedException',
                             service_message='User is not confirmed.')
    with app.test_request_context():
        result = auth.sign_in('pending@example.com', 'secret1')
    assert result['code'] == 'user-not-confirmed'
    assert result['error'] == 'Please confirm your email address, then sign in.'
