"""
Pulse Chain - blood donation coordination portal.

Flask application backed by DynamoDB for documents and Cognito for
identities; both have in-memory stand-ins for local development.
"""
import logging

from flask import Flask

from .auth import on_auth_state_change
from .cli import seed_command
from .config import Config
from .identity import CognitoIdentity, MemoryIdentity
from .store import DynamoStore, MemoryStore
from .views import bp as portal_bp


def _create_store(config):
    backend = config['DATA_BACKEND']
    if backend == 'dynamodb':
        return DynamoStore(config['TABLE_NAMES'], region=config['AWS_REGION'])
    if backend == 'memory':
        return MemoryStore(config.get('DATA_DIR'))
    raise ValueError(f'Unknown DATA_BACKEND: {backend}')


def _create_identity(config):
    backend = config['AUTH_BACKEND']
    if backend == 'cognito':
        if not config.get('COGNITO_CLIENT_ID'):
            raise ValueError('COGNITO_CLIENT_ID is required for the cognito auth backend')
        return CognitoIdentity(
            config['COGNITO_CLIENT_ID'],
            user_pool_id=config.get('COGNITO_USER_POOL_ID'),
            client_secret=config.get('COGNITO_CLIENT_SECRET'),
            region=config['AWS_REGION']
        )
    if backend == 'memory':
        return MemoryIdentity()
    raise ValueError(f'Unknown AUTH_BACKEND: {backend}')


def create_app(config=None):
    """Flask application factory"""
    app = Flask(__name__)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    level = app.config['LOG_LEVEL']
    logging.basicConfig(format='%(asctime)s [%(levelname)s] %(name)s: %(message)s')
    logging.getLogger(__name__).setLevel(level)
    app.logger.setLevel(level)

    app.extensions['pulsechain.store'] = _create_store(app.config)
    app.extensions['pulsechain.identity'] = _create_identity(app.config)

    def log_transition(user, event):
        app.logger.info('session %s: %s', event, (user or {}).get('email', 'anonymous'))

    on_auth_state_change(log_transition, app=app)

    app.register_blueprint(portal_bp)
    app.cli.add_command(seed_command)
    return app
