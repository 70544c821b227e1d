import os

os.environ.setdefault('APP_ENV', 'testing')

import pytest

from app import create_app
from clinic.config import TestingConfig
from clinic.database import db
from clinic.models import Role
from clinic.users import create_user

PASSWORD = 'correct-horse-42'


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def bearer(token):
    return {'Authorization': f'Bearer {token}'}


class Api:
    """Small helper around the test client for account setup."""

    def __init__(self, client):
        self.client = client

    def register(self, email, role='patient', full_name=None, **extra):
        body = {'full_name': full_name or email.split('@')[0], 'email': email,
                'password': PASSWORD, 'role': role}
        body.update(extra)
        resp = self.client.post('/api/auth/register', json=body)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()['data']

    def login(self, email, password=PASSWORD):
        return self.client.post('/api/auth/login', json={'email': email, 'password': password})

    def token_for(self, email, password=PASSWORD):
        resp = self.login(email, password)
        assert resp.status_code == 200, resp.get_json()
        return resp.get_json()['data']['tokens']['access_token']

    def admin(self, email='admin@clinic.org'):
        user = create_user({'full_name': 'Admin', 'email': email}, PASSWORD, Role.ADMIN)
        return user.id, self.token_for(email)

    def account(self, email, role='patient', **extra):
        data = self.register(email, role, **extra)
        return data['user']['id'], data['tokens']['access_token']


@pytest.fixture
def api(client):
    return Api(client)
