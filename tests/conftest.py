"""
Pytest configuration and shared fixtures.

The Mongo collections are replaced by a small in-memory double that
understands the handful of query/update operators the repositories use.
"""
import copy
import os

import bson
import pytest

os.environ.setdefault('APP_ENV', 'development')
os.environ.setdefault('JWT_SECRET', 'test-secret')

from config.settings import Config
Config.reload()

from dm_server.security.authentication import AuthSecurity  # noqa: E402


# =============================================================================
# In-memory Mongo double
# =============================================================================

class _InsertResult:
    def __init__(self, inserted_id):
        self.inserted_id = inserted_id


class _UpdateResult:
    def __init__(self, matched_count, modified_count):
        self.matched_count = matched_count
        self.modified_count = modified_count


def _matches_value(actual, condition):
    if isinstance(condition, dict) and condition and all(k.startswith('$') for k in condition):
        for op, expected in condition.items():
            if op == '$in' and actual not in expected:
                return False
            if op == '$nin' and actual in expected:
                return False
            if op == '$ne' and actual == expected:
                return False
        return True
    return actual == condition


def _matches(doc, query):
    for key, condition in (query or {}).items():
        if key == '$or':
            if not any(_matches(doc, sub) for sub in condition):
                return False
        elif not _matches_value(doc.get(key), condition):
            return False
    return True


def _project(doc, projection):
    doc = copy.deepcopy(doc)
    for field, include in (projection or {}).items():
        if not include:
            doc.pop(field, None)
    return doc


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, key, direction=1):
        self._docs = sorted(self._docs, key=lambda d: d.get(key), reverse=direction < 0)
        return self

    def limit(self, n):
        if n:
            self._docs = self._docs[:n]
        return self

    def __iter__(self):
        return iter(self._docs)


def _through_bson(doc):
    # What the server would store and hand back (naive UTC datetimes, ms precision)
    return bson.decode(bson.encode(doc))


class FakeCollection:
    def __init__(self):
        self.docs = []
        self.indexes = []
        self.fail_next_updates = 0

    def insert_one(self, doc):
        self.docs.append(_through_bson(doc))
        return _InsertResult(doc.get('_id'))

    def find(self, query=None, projection=None):
        return FakeCursor([_project(d, projection) for d in self.docs if _matches(d, query)])

    def find_one(self, query=None, projection=None):
        for doc in self.docs:
            if _matches(doc, query):
                return _project(doc, projection)
        return None

    def update_one(self, query, update):
        if self.fail_next_updates:
            # Simulates a concurrent writer winning the race
            self.fail_next_updates -= 1
            return _UpdateResult(0, 0)
        for doc in self.docs:
            if _matches(doc, query):
                for field, value in _through_bson(update.get('$set', {})).items():
                    doc[field] = value
                for field, value in update.get('$inc', {}).items():
                    doc[field] = doc.get(field, 0) + value
                return _UpdateResult(1, 1)
        return _UpdateResult(0, 0)

    def create_index(self, keys, **kwargs):
        self.indexes.append((keys, kwargs))
        return kwargs.get('name')


class FakeDB:
    def __init__(self):
        self._collections = {}

    def __getitem__(self, name):
        if name not in self._collections:
            self._collections[name] = FakeCollection()
        return self._collections[name]


USERS = [
    {'_id': 'u1', 'full_name': 'Alice', 'email': 'alice@example.com', 'profile_pic': '', 'password': 'hash-1'},
    {'_id': 'u2', 'full_name': 'Bob', 'email': 'bob@example.com', 'profile_pic': '', 'password': 'hash-2'},
    {'_id': 'u3', 'full_name': 'Carol', 'email': 'carol@example.com', 'profile_pic': '', 'password': 'hash-3'},
]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_db():
    db = FakeDB()
    for user in USERS:
        db['users'].insert_one(user)
    return db


@pytest.fixture
def auth_configured():
    AuthSecurity.configure(secret_key='test-secret', algorithm='HS256')


@pytest.fixture
def make_token(auth_configured):
    def _make(user_id):
        return AuthSecurity.encode_token({'user_id': user_id})
    return _make


@pytest.fixture
def auth_headers(make_token):
    def _headers(user_id):
        return {'Authorization': f'Bearer {make_token(user_id)}'}
    return _headers


@pytest.fixture
def app_bundle(fake_db):
    from server import create_app

    app, socketio = create_app(db=fake_db)
    app.config['TESTING'] = True
    # create_app configures auth from config; keep the test secret
    AuthSecurity.configure(secret_key='test-secret', algorithm='HS256')
    return app, socketio


@pytest.fixture
def app(app_bundle):
    return app_bundle[0]


@pytest.fixture
def socketio(app_bundle):
    return app_bundle[1]


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def connect_socket(app, socketio, make_token):
    clients = []

    def _connect(user_id):
        sio_client = socketio.test_client(app, auth={'token': make_token(user_id)})
        clients.append(sio_client)
        return sio_client

    yield _connect

    for sio_client in clients:
        if sio_client.is_connected():
            sio_client.disconnect()
