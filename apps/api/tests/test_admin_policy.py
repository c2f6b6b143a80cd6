"""
Authorization policy for the admin hierarchy and admin directories.
"""
from flask_jwt_extended import create_access_token

from apps.api.app import create_app
from apps.api.config import Config
from apps.api import db
from apps.api.models.user import User
from apps.api.utils.admin_policy import can_process, can_view_admin_contact


class AdminPolicyTestConfig(Config):
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    TESTING = True
    JWT_SECRET_KEY = 'test-secret'
    RATELIMIT_ENABLED = False


def _user(username, admin_type='none', admin_status='none', roles=('buyer',), mobile='9876543210'):
    return User(
        username=username,
        password_hash='test',
        mobile_number=mobile,
        first_name=username.capitalize(),
        last_name='Tester',
        roles=list(roles),
        admin_type=admin_type,
        admin_status=admin_status,
    )


def _headers(user):
    return {'Authorization': f'Bearer {create_access_token(identity=str(user.id))}'}


def _seed():
    users = {
        'master': _user('masteradmin123', 'master_admin', 'approved', roles=()),
        'sup': _user('sup', 'super_admin', 'approved', mobile='1111111111'),
        'sup_pending': _user('suppending', 'super_admin', 'pending'),
        'local': _user('local', 'local_admin', 'approved', mobile='2222222222'),
        'local_pending': _user('localpending', 'local_admin', 'pending', mobile='3333333333'),
        'seller': _user('seller', roles=('seller',)),
        'buyer': _user('buyer'),
    }
    db.session.add_all(users.values())
    db.session.commit()
    users['local_pending'].requested_admin_id = users['sup'].id
    db.session.commit()
    return users


def test_can_process_matrix():
    app = create_app(AdminPolicyTestConfig)

    with app.app_context():
        db.create_all()
        u = _seed()

        assert can_process(u['master'], u['sup_pending']) == (True, None)
        assert can_process(u['master'], u['local_pending']) == (False, 'TARGET_TYPE_MISMATCH')
        assert can_process(u['sup'], u['local_pending']) == (True, None)
        assert can_process(u['sup'], u['sup_pending']) == (False, 'TARGET_TYPE_MISMATCH')
        assert can_process(u['sup_pending'], u['local_pending']) == (False, 'APPROVER_NOT_APPROVED')
        assert can_process(u['local'], u['local_pending']) == (False, 'ROLE_MISMATCH')
        assert can_process(u['buyer'], u['sup_pending']) == (False, 'ROLE_MISMATCH')


def test_admin_contact_visibility():
    app = create_app(AdminPolicyTestConfig)

    with app.app_context():
        db.create_all()
        u = _seed()

        # Privileged viewers see everyone
        assert can_view_admin_contact(u['master'], u['sup'])
        assert can_view_admin_contact(u['sup'], u['local_pending'])
        # Everyone else only sees approved local admins
        assert can_view_admin_contact(u['buyer'], u['local'])
        assert not can_view_admin_contact(u['buyer'], u['sup'])
        assert not can_view_admin_contact(u['buyer'], u['local_pending'])
        assert not can_view_admin_contact(None, u['sup'])


def test_admin_detail_endpoint():
    app = create_app(AdminPolicyTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()
        u = _seed()

        resp = client.get(f"/api/users/admin/{u['local'].id}", headers=_headers(u['buyer']))
        assert resp.status_code == 200
        body = resp.get_json()
        assert body['mobile_number'] == '2222222222'
        assert body['name'] == 'Local Tester'
        assert 'admin_status' not in body

        resp = client.get(f"/api/users/admin/{u['sup'].id}", headers=_headers(u['buyer']))
        assert resp.status_code == 403
        assert resp.get_json()['code'] == 'ADMIN_DETAILS_RESTRICTED'

        resp = client.get(f"/api/users/admin/{u['sup'].id}", headers=_headers(u['master']))
        assert resp.status_code == 200
        body = resp.get_json()
        assert body['admin_status'] == 'approved'
        assert body['mobile_number'] == '1111111111'
        assert 'password_hash' not in body

        resp = client.get(f"/api/users/admin/{u['local_pending'].id}", headers=_headers(u['sup']))
        assert resp.status_code == 200

        resp = client.get('/api/users/admin/9999', headers=_headers(u['master']))
        assert resp.status_code == 404


def test_directories_are_role_gated():
    app = create_app(AdminPolicyTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()
        u = _seed()

        resp = client.get('/api/users/admins', headers=_headers(u['sup']))
        assert resp.status_code == 403
        resp = client.get('/api/users/admins', headers=_headers(u['master']))
        assert resp.status_code == 200
        usernames = {a['username'] for a in resp.get_json()}
        assert usernames == {'masteradmin123', 'sup', 'suppending', 'local', 'localpending'}

        resp = client.get('/api/users/all', headers=_headers(u['buyer']))
        assert resp.status_code == 403
        resp = client.get('/api/users/all', headers=_headers(u['master']))
        assert len(resp.get_json()) == 7

        resp = client.get('/api/users/local-admins', headers=_headers(u['buyer']))
        assert resp.status_code == 403
        assert resp.get_json()['code'] == 'ROLE_MISMATCH'
        resp = client.get('/api/users/local-admins', headers=_headers(u['seller']))
        assert resp.status_code == 200
        assert [a['username'] for a in resp.get_json()] == ['local']

        resp = client.get('/api/admin/super-admins', headers=_headers(u['buyer']))
        assert resp.status_code == 403

        resp = client.get('/api/admin/overview', headers=_headers(u['master']))
        assert resp.status_code == 200
        stats = resp.get_json()['stats']
        assert stats == {'pending_admins': 2, 'super_admins': 1, 'local_admins': 1}

        resp = client.get('/api/admin/overview', headers=_headers(u['sup']))
        assert resp.status_code == 403


def test_pending_queue_per_viewer():
    app = create_app(AdminPolicyTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()
        u = _seed()

        resp = client.get('/api/admin/requests', headers=_headers(u['master']))
        assert [r['username'] for r in resp.get_json()] == ['suppending']

        resp = client.get('/api/admin/requests', headers=_headers(u['sup']))
        assert [r['username'] for r in resp.get_json()] == ['localpending']

        resp = client.get('/api/admin/requests', headers=_headers(u['sup_pending']))
        assert resp.status_code == 403


def test_admin_search_and_tags():
    app = create_app(AdminPolicyTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()
        u = _seed()
        u['local'].location = 'Nashik market yard'
        db.session.commit()

        resp = client.get('/api/admins/search?q=nashik', headers=_headers(u['buyer']))
        assert [a['username'] for a in resp.get_json()] == ['local']

        resp = client.get('/api/admins/search?q=pending', headers=_headers(u['buyer']))
        assert resp.get_json() == []

        headers = _headers(u['buyer'])
        resp = client.post('/api/user/tag-admin', json={'admin_id': u['local'].id, 'action': 'tag'}, headers=headers)
        assert resp.status_code == 201
        # Tagging twice is a no-op
        resp = client.post('/api/user/tag-admin', json={'admin_id': u['local'].id, 'action': 'tag'}, headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()['created'] is False

        resp = client.post('/api/user/tag-admin', json={'admin_id': u['local_pending'].id}, headers=headers)
        assert resp.status_code == 400

        resp = client.get('/api/user/tagged-admins', headers=headers)
        assert [a['username'] for a in resp.get_json()] == ['local']

        resp = client.post('/api/user/tag-admin', json={'admin_id': u['local'].id, 'action': 'untag'}, headers=headers)
        assert resp.get_json()['removed'] is True
        resp = client.get('/api/user/tagged-admins', headers=headers)
        assert resp.get_json() == []


def test_audit_log_is_master_only_and_filterable():
    app = create_app(AdminPolicyTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()
        u = _seed()
        target_id = u['local_pending'].id

        resp = client.post(f'/api/admin/requests/{target_id}/approve', headers=_headers(u['sup']))
        assert resp.status_code == 200
        resp = client.post(
            f"/api/admin/requests/{u['sup_pending'].id}/reject",
            json={'reason': 'Not enough experience'},
            headers=_headers(u['master']),
        )
        assert resp.status_code == 200

        resp = client.get('/api/admin/audit-log', headers=_headers(u['sup']))
        assert resp.status_code == 403

        resp = client.get('/api/admin/audit-log', headers=_headers(u['master']))
        body = resp.get_json()
        assert body['total'] == 2
        assert {e['action'] for e in body['entries']} == {'admin_approved', 'admin_rejected'}

        resp = client.get('/api/admin/audit-log?action=admin_approved', headers=_headers(u['master']))
        entries = resp.get_json()['entries']
        assert len(entries) == 1
        assert entries[0]['actor_username'] == 'sup'
        assert entries[0]['target_user_id'] == target_id

        resp = client.get(f'/api/admin/audit-log?target_user_id={target_id}&per_page=1',
                          headers=_headers(u['master']))
        assert resp.get_json()['pages'] == 1
