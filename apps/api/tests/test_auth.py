"""
Registration, login and logout.
"""
from datetime import timedelta

from apps.api.app import create_app
from apps.api.config import Config
from apps.api import db
from apps.api.models.token_blacklist import TokenBlacklist
from apps.api.models.user import User
from apps.api.utils.time import utc_now


class AuthTestConfig(Config):
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    TESTING = True
    JWT_SECRET_KEY = 'test-secret'
    RATELIMIT_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4


REGISTRATION = {
    'username': 'Ramesh_K',
    'password': 'harvest2024',
    'mobile_number': '9876543210',
    'first_name': 'Ramesh',
    'last_name': 'Kumar',
    'roles': ['seller', 'buyer'],
    'location': 'Pune',
    'latitude': 18.52,
    'longitude': 73.85,
}


def test_register_login_logout_flow():
    app = create_app(AuthTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()

        resp = client.post('/api/auth/register', json=REGISTRATION)
        assert resp.status_code == 201
        body = resp.get_json()
        assert body['user']['username'] == 'ramesh_k'
        assert body['user']['roles'] == ['seller', 'buyer']
        assert body['user']['admin_type'] == 'none'
        assert 'password_hash' not in body['user']
        assert body['access_token']

        stored = User.query.filter_by(username='ramesh_k').one()
        assert stored.password_hash != REGISTRATION['password']

        # Usernames are case-insensitive
        resp = client.post('/api/auth/register', json=dict(REGISTRATION, username='RAMESH_K'))
        assert resp.status_code == 409
        assert resp.get_json()['code'] == 'USERNAME_EXISTS'

        resp = client.post('/api/auth/login', json={'username': 'Ramesh_K', 'password': 'harvest2024'})
        assert resp.status_code == 200
        token = resp.get_json()['access_token']
        headers = {'Authorization': f'Bearer {token}'}

        resp = client.get('/api/user', headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()['first_name'] == 'Ramesh'

        resp = client.post('/api/auth/logout', headers=headers)
        assert resp.status_code == 200
        assert TokenBlacklist.query.count() == 1

        resp = client.get('/api/user', headers=headers)
        assert resp.status_code == 401
        assert resp.get_json()['code'] == 'TOKEN_REVOKED'


def test_login_rejects_bad_credentials():
    app = create_app(AuthTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()
        client.post('/api/auth/register', json=REGISTRATION)

        resp = client.post('/api/auth/login', json={'username': 'ramesh_k', 'password': 'wrong-pass'})
        assert resp.status_code == 401
        assert resp.get_json()['code'] == 'INVALID_CREDENTIALS'

        resp = client.post('/api/auth/login', json={'username': 'nobody', 'password': 'harvest2024'})
        assert resp.status_code == 401
        assert resp.get_json()['code'] == 'INVALID_CREDENTIALS'

        resp = client.post('/api/auth/login', json={'username': 'ramesh_k'})
        assert resp.status_code == 400


def test_register_validation():
    app = create_app(AuthTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()

        cases = [
            ({'username': ''}, 'username'),
            ({'password': '123'}, 'password'),
            ({'mobile_number': '98765'}, 'mobile_number'),
            ({'mobile_number': '98765abcde'}, 'mobile_number'),
            ({'roles': ['super_admin']}, 'roles'),
            ({'latitude': 95}, 'latitude'),
            ({'longitude': None}, 'longitude'),
        ]
        for override, field in cases:
            resp = client.post('/api/auth/register', json=dict(REGISTRATION, **override))
            assert resp.status_code == 400, override
            assert resp.get_json()['field'] == field

        assert User.query.count() == 0


def test_missing_and_invalid_tokens():
    app = create_app(AuthTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()

        resp = client.get('/api/user')
        assert resp.status_code == 401
        assert resp.get_json()['code'] == 'AUTH_REQUIRED'

        resp = client.get('/api/user', headers={'Authorization': 'Bearer not-a-jwt'})
        assert resp.status_code == 401
        assert resp.get_json()['code'] == 'INVALID_TOKEN'


def test_profile_update_keeps_admin_fields():
    app = create_app(AuthTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()
        resp = client.post('/api/auth/register', json=REGISTRATION)
        headers = {'Authorization': f"Bearer {resp.get_json()['access_token']}"}

        resp = client.patch('/api/user', json={
            'first_name': 'Ramesh',
            'last_name': 'Patil',
            'mobile_number': '9123456780',
            'roles': ['buyer'],
            'admin_type': 'master_admin',
            'admin_status': 'approved',
        }, headers=headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body['last_name'] == 'Patil'
        assert body['roles'] == ['buyer']
        assert body['admin_type'] == 'none'
        assert body['admin_status'] == 'none'

        resp = client.patch('/api/user', json={'first_name': 'Ramesh'}, headers=headers)
        assert resp.status_code == 400
        assert resp.get_json()['field'] == 'last_name'
        assert User.query.filter_by(username='ramesh_k').one().last_name == 'Patil'


def test_purge_expired_blocklist_entries():
    app = create_app(AuthTestConfig)

    with app.app_context():
        db.create_all()
        now = utc_now()
        TokenBlacklist.add_token_to_blacklist('old-jti', 'access', 1, now - timedelta(hours=1))
        TokenBlacklist.add_token_to_blacklist('live-jti', 'access', 1, now + timedelta(hours=1))

        assert TokenBlacklist.purge_expired() == 1
        assert not TokenBlacklist.is_token_revoked('old-jti')
        assert TokenBlacklist.is_token_revoked('live-jti')
