import itertools
from collections import namedtuple

import pytest

from backend import create_app
from backend.auth import IdentityService
from backend.config import TestConfig
from backend.database import db
from backend.lifecycle import RequestLifecycleManager
from backend.policy import Caller

Account = namedtuple('Account', ['user', 'caller', 'token', 'headers'])

PASSWORD = 'secret123'


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session(app):
    return db.session


@pytest.fixture
def identity(app, session):
    return IdentityService(session, app.config['SECRET_KEY'])


@pytest.fixture
def manager(session):
    return RequestLifecycleManager(session)


@pytest.fixture
def register(identity):
    counter = itertools.count(1)

    def _register(role, blood_type=None, name=None, location='Springfield', phone='555-0100'):
        n = next(counter)
        user, token = identity.register(
            name=name or f'{role.title()} {n}',
            email=f'{role}{n}@example.com',
            password=PASSWORD,
            role=role,
            blood_type=blood_type,
            phone=phone,
            location=location
        )
        return Account(user, Caller.from_user(user), token, {'Authorization': f'Bearer {token}'})

    return _register


@pytest.fixture
def donor(register):
    return register('donor', blood_type='O-')


@pytest.fixture
def requester(register):
    return register('requester')


@pytest.fixture
def admin(register):
    return register('admin')


@pytest.fixture
def pending_request(manager, requester):
    return manager.create_request(
        requester.caller, 'O-', 2, 'emergency', 'City Hospital', 'Surgery tomorrow'
    )
