"""
identity.py
Identity providers for the portal.

CognitoIdentity talks to an AWS Cognito user pool app client; MemoryIdentity
keeps accounts in process memory for local development and tests. Both return
users as plain dicts ({uid, email, display_name, created_at}) and token sets
as dicts ({access_token, refresh_token, expires_at}), and raise IdentityError
with a provider-neutral code on failure.
"""
import base64
import hashlib
import hmac
import logging
import re
import secrets
import time
from datetime import datetime, timezone

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app
from werkzeug.security import check_password_hash, generate_password_hash

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MIN_PASSWORD_LENGTH = 6

# Cognito exception name -> provider-neutral error code
COGNITO_ERROR_CODES = {
    'UsernameExistsException': 'email-already-in-use',
    'InvalidPasswordException': 'weak-password',
    'NotAuthorizedException': 'invalid-credential',
    'UserNotFoundException': 'user-not-found',
    'UserNotConfirmedException': 'user-not-confirmed',
    'TooManyRequestsException': 'too-many-requests',
    'LimitExceededException': 'too-many-requests',
}


class IdentityError(Exception):
    def __init__(self, code, message):
        super().__init__(message)
        self.code = code
        self.message = message


def get_identity():
    """Identity provider configured for the running app"""
    return current_app.extensions['pulsechain.identity']


def _error_code(client_error):
    error = client_error.response.get('Error', {})
    code = error.get('Code', 'unknown')
    message = error.get('Message', '')
    if code == 'InvalidParameterException' and 'email' in message.lower():
        return 'invalid-email'
    return COGNITO_ERROR_CODES.get(code, code)


class CognitoIdentity:
    def __init__(self, client_id, user_pool_id=None, client_secret=None, region='us-east-1', client=None):
        self.client = client or boto3.client('cognito-idp', region_name=region)
        self.client_id = client_id
        self.user_pool_id = user_pool_id
        self.client_secret = client_secret

    def _secret_hash(self, username):
        digest = hmac.new(
            self.client_secret.encode('utf-8'),
            (username + self.client_id).encode('utf-8'),
            hashlib.sha256
        ).digest()
        return base64.b64encode(digest).decode('utf-8')

    def _call(self, operation, **params):
        try:
            return getattr(self.client, operation)(**params)
        except ClientError as e:
            message = e.response.get('Error', {}).get('Message') or str(e)
            raise IdentityError(_error_code(e), message) from e
        except BotoCoreError as e:
            logger.exception('cognito %s failed', operation)
            raise IdentityError('network-request-failed', str(e)) from e

    def _tokens(self, result, refresh_token=None):
        return {
            'access_token': result['AccessToken'],
            'refresh_token': result.get('RefreshToken', refresh_token),
            'expires_at': int(time.time()) + int(result.get('ExpiresIn', 3600))
        }

    def _load_user(self, access_token):
        resp = self._call('get_user', AccessToken=access_token)
        attrs = {a['Name']: a['Value'] for a in resp.get('UserAttributes', [])}
        created_at = None
        if self.user_pool_id:
            admin = self._call('admin_get_user', UserPoolId=self.user_pool_id, Username=resp['Username'])
            if admin.get('UserCreateDate'):
                created_at = admin['UserCreateDate'].isoformat()
        return {
            'uid': resp['Username'],
            'email': attrs.get('email'),
            'display_name': attrs.get('name'),
            'created_at': created_at
        }

    def sign_up(self, email, password, name=None):
        """
        Register and sign in. Pools that require email confirmation leave
        the new account unconfirmed; it is returned with tokens set to None.
        """
        attributes = [{'Name': 'email', 'Value': email}]
        if name:
            attributes.append({'Name': 'name', 'Value': name})
        params = {
            'ClientId': self.client_id,
            'Username': email,
            'Password': password,
            'UserAttributes': attributes
        }
        if self.client_secret:
            params['SecretHash'] = self._secret_hash(email)
        resp = self._call('sign_up', **params)
        if not resp.get('UserConfirmed'):
            logger.info('account %s created, awaiting confirmation', email)
            user = {'uid': resp['UserSub'], 'email': email, 'display_name': name or None, 'created_at': None}
            return user, None
        return self.sign_in(email, password)

    def sign_in(self, email, password):
        auth_params = {'USERNAME': email, 'PASSWORD': password}
        if self.client_secret:
            auth_params['SECRET_HASH'] = self._secret_hash(email)
        resp = self._call(
            'initiate_auth',
            AuthFlow='USER_PASSWORD_AUTH',
            ClientId=self.client_id,
            AuthParameters=auth_params
        )
        if 'AuthenticationResult' not in resp:
            raise IdentityError('challenge-required', f"Sign-in requires {resp.get('ChallengeName', 'a challenge')}")
        tokens = self._tokens(resp['AuthenticationResult'])
        return self._load_user(tokens['access_token']), tokens

    def refresh(self, tokens, uid):
        auth_params = {'REFRESH_TOKEN': tokens['refresh_token']}
        if self.client_secret:
            auth_params['SECRET_HASH'] = self._secret_hash(uid)
        resp = self._call(
            'initiate_auth',
            AuthFlow='REFRESH_TOKEN_AUTH',
            ClientId=self.client_id,
            AuthParameters=auth_params
        )
        return self._tokens(resp['AuthenticationResult'], refresh_token=tokens['refresh_token'])

    def sign_out(self, tokens):
        self._call('global_sign_out', AccessToken=tokens['access_token'])

    def send_password_reset(self, email):
        params = {'ClientId': self.client_id, 'Username': email}
        if self.client_secret:
            params['SecretHash'] = self._secret_hash(email)
        self._call('forgot_password', **params)

    def update_display_name(self, tokens, name):
        self._call(
            'update_user_attributes',
            AccessToken=tokens['access_token'],
            UserAttributes=[{'Name': 'name', 'Value': name}]
        )


class MemoryIdentity:
    TOKEN_TTL = 3600

    def __init__(self):
        self.users = {}
        self.access_tokens = {}
        self.refresh_tokens = {}
        self.password_resets = []

    def _issue_tokens(self, email):
        access_token = secrets.token_urlsafe(24)
        refresh_token = secrets.token_urlsafe(24)
        self.access_tokens[access_token] = email
        self.refresh_tokens[refresh_token] = email
        return {
            'access_token': access_token,
            'refresh_token': refresh_token,
            'expires_at': int(time.time()) + self.TOKEN_TTL
        }

    def _public(self, account):
        return {k: account[k] for k in ('uid', 'email', 'display_name', 'created_at')}

    def _account_for(self, tokens):
        email = self.access_tokens.get(tokens.get('access_token'))
        if not email or email not in self.users:
            raise IdentityError('user-token-expired', 'Session has expired. Please sign in again.')
        return self.users[email]

    def sign_up(self, email, password, name=None):
        if not EMAIL_RE.match(email or ''):
            raise IdentityError('invalid-email', 'The email address is badly formatted.')
        if len(password or '') < MIN_PASSWORD_LENGTH:
            raise IdentityError('weak-password', f'Password should be at least {MIN_PASSWORD_LENGTH} characters.')
        if email in self.users:
            raise IdentityError('email-already-in-use', 'The email address is already in use by another account.')
        self.users[email] = {
            'uid': secrets.token_hex(14),
            'email': email,
            'display_name': name or None,
            'created_at': datetime.now(timezone.utc).isoformat(),
            'password_hash': generate_password_hash(password)
        }
        return self.sign_in(email, password)

    def sign_in(self, email, password):
        if not EMAIL_RE.match(email or ''):
            raise IdentityError('invalid-email', 'The email address is badly formatted.')
        account = self.users.get(email)
        if account is None:
            raise IdentityError('user-not-found', 'There is no user record corresponding to this identifier.')
        if not check_password_hash(account['password_hash'], password or ''):
            raise IdentityError('wrong-password', 'The password is invalid.')
        return self._public(account), self._issue_tokens(email)

    def refresh(self, tokens, uid):
        email = self.refresh_tokens.get(tokens.get('refresh_token'))
        if not email or email not in self.users:
            raise IdentityError('user-token-expired', 'Session has expired. Please sign in again.')
        access_token = secrets.token_urlsafe(24)
        self.access_tokens[access_token] = email
        return {
            'access_token': access_token,
            'refresh_token': tokens['refresh_token'],
            'expires_at': int(time.time()) + self.TOKEN_TTL
        }

    def sign_out(self, tokens):
        self.access_tokens.pop(tokens.get('access_token'), None)
        self.refresh_tokens.pop(tokens.get('refresh_token'), None)

    def send_password_reset(self, email):
        if not EMAIL_RE.match(email or ''):
            raise IdentityError('invalid-email', 'The email address is badly formatted.')
        if email not in self.users:
            raise IdentityError('user-not-found', 'There is no user record corresponding to this identifier.')
        self.password_resets.append(email)
        logger.info('password reset requested for %s', email)

    def update_display_name(self, tokens, name):
        self._account_for(tokens)['display_name'] = name
