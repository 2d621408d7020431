"""
config.py
Settings for the Pulse Chain portal, read from the environment.

A `.env` file next to the working directory is loaded first so local
development does not need exported variables.
"""
import os

from dotenv import load_dotenv

load_dotenv()

# Collection name -> default DynamoDB table name
TABLE_NAMES = {
    'donors': 'Donors',
    'requests': 'Requests',
    'allRequests': 'AllRequests'
}


def _table_names():
    prefix = os.environ.get('TABLE_PREFIX', '')
    return {
        collection: os.environ.get(f'TABLE_{collection.upper()}', prefix + table)
        for collection, table in TABLE_NAMES.items()
    }


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'pulsechain-dev-key')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # 'dynamodb' | 'memory'
    DATA_BACKEND = os.environ.get('DATA_BACKEND', 'dynamodb')
    # 'cognito' | 'memory'
    AUTH_BACKEND = os.environ.get('AUTH_BACKEND', 'cognito')

    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')
    TABLE_NAMES = _table_names()
    # Only used by the memory backend; None keeps everything in process memory
    DATA_DIR = os.environ.get('DATA_DIR')

    COGNITO_USER_POOL_ID = os.environ.get('COGNITO_USER_POOL_ID')
    COGNITO_CLIENT_ID = os.environ.get('COGNITO_CLIENT_ID')
    COGNITO_CLIENT_SECRET = os.environ.get('COGNITO_CLIENT_SECRET')

    # Administrator sign-in is disabled unless a password (or its hash) is set
    ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL', 'admin@gmail.com')
    ADMIN_PASSWORD_HASH = os.environ.get('ADMIN_PASSWORD_HASH')
    ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD')
