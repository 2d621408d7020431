import pytest

from pulsechain import create_app

ADMIN_EMAIL = 'admin@gmail.com'
ADMIN_PASSWORD = 'admin123@'


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'DATA_BACKEND': 'memory',
        'AUTH_BACKEND': 'memory',
        'DATA_DIR': None,
        'ADMIN_EMAIL': ADMIN_EMAIL,
        'ADMIN_PASSWORD': ADMIN_PASSWORD,
        'ADMIN_PASSWORD_HASH': None,
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    """A request context, for calling session-aware functions directly"""
    with app.test_request_context():
        yield


@pytest.fixture
def identity(app):
    return app.extensions['pulsechain.identity']


@pytest.fixture
def store(app):
    return app.extensions['pulsechain.store']


def register(client, email='user@example.com', password='secret1', name='Test User'):
    return client.post('/login', data={
        'action': 'signup',
        'name': name,
        'email': email,
        'password': password,
        'confirm_password': password,
    })


def donor_data(**overrides):
    data = {
        'full_name': 'Rahul Sharma',
        'age': '28',
        'gender': 'Male',
        'blood_group': 'O+',
        'contact': '9876543210',
        'availability': 'Yes',
        'medical_note': '',
    }
    data.update(overrides)
    return data
