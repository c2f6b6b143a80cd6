"""
Account deletion: who may delete whom and what the cascade cleans up.
"""
from flask_jwt_extended import create_access_token

from apps.api.app import create_app
from apps.api.config import Config
from apps.api import db
from apps.api.models.admin_audit_log import AdminAuditLog, AuditAction
from apps.api.models.buyer_request import BuyerRequest, BuyerRequestAdmin
from apps.api.models.product import Product, ProductAdmin
from apps.api.models.user import User, UserAdminTag
from apps.api.utils.time import utc_now


class UserDeletionTestConfig(Config):
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    TESTING = True
    JWT_SECRET_KEY = 'test-secret'
    RATELIMIT_ENABLED = False


def _user(username, roles=('buyer',), admin_type='none', admin_status='none'):
    return User(
        username=username,
        password_hash='test',
        mobile_number='9876543210',
        first_name=username.capitalize(),
        last_name='User',
        roles=list(roles),
        admin_type=admin_type,
        admin_status=admin_status,
    )


def _headers(user_id):
    return {'Authorization': f'Bearer {create_access_token(identity=str(user_id))}'}


def _seed():
    master = _user('masteradmin123', roles=(), admin_type='master_admin', admin_status='approved')
    bob = _user('bob', roles=('seller', 'buyer'), admin_type='super_admin', admin_status='approved')
    alice = _user('alice', admin_type='local_admin', admin_status='approved')
    carol = _user('carol', admin_type='local_admin', admin_status='pending')
    seller = _user('seller', roles=('seller',))
    db.session.add_all([master, bob, alice, carol, seller])
    db.session.commit()

    bob.approved_by = master.id
    alice.approved_by = bob.id
    alice.admin_approval_date = utc_now()
    carol.requested_admin_id = bob.id

    bob_product = Product(seller_id=bob.id, name='Bananas', quantity=40, city='Jalgaon', state='MH')
    bob_request = BuyerRequest(buyer_id=bob.id, name='Cow feed', quantity=5, city='Jalgaon', state='MH')
    seller_product = Product(seller_id=seller.id, name='Grapes', quantity=80, city='Nashik', state='MH')
    db.session.add_all([bob_product, bob_request, seller_product])
    db.session.commit()

    db.session.add_all([
        ProductAdmin(product_id=bob_product.id, admin_id=alice.id),
        BuyerRequestAdmin(buyer_request_id=bob_request.id, admin_id=alice.id),
        ProductAdmin(product_id=seller_product.id, admin_id=bob.id),
        ProductAdmin(product_id=seller_product.id, admin_id=alice.id),
        UserAdminTag(user_id=seller.id, admin_id=bob.id),
        UserAdminTag(user_id=bob.id, admin_id=alice.id),
    ])
    db.session.commit()
    return {
        'master': master.id,
        'bob': bob.id,
        'alice': alice.id,
        'carol': carol.id,
        'seller': seller.id,
        'bob_product': bob_product.id,
        'bob_request': bob_request.id,
        'seller_product': seller_product.id,
    }


def test_master_deletes_super_admin_and_references_are_cleaned():
    app = create_app(UserDeletionTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()
        ids = _seed()

        resp = client.delete(f"/api/user?user_id={ids['bob']}", headers=_headers(ids['master']))
        assert resp.status_code == 200
        assert resp.get_json()['user_id'] == ids['bob']

        assert db.session.get(User, ids['bob']) is None

        alice = db.session.get(User, ids['alice'])
        assert alice.approved_by is None
        assert alice.admin_approval_date is None
        # Approval itself stands
        assert alice.admin_status == 'approved'

        assert db.session.get(User, ids['carol']).requested_admin_id is None

        # Bob's listings are gone together with their admin links
        assert db.session.get(Product, ids['bob_product']) is None
        assert db.session.get(BuyerRequest, ids['bob_request']) is None
        assert ProductAdmin.query.filter_by(product_id=ids['bob_product']).count() == 0
        assert BuyerRequestAdmin.query.filter_by(buyer_request_id=ids['bob_request']).count() == 0

        # Other listings lose only bob as an admin
        remaining = ProductAdmin.query.filter_by(product_id=ids['seller_product']).all()
        assert [link.admin_id for link in remaining] == [ids['alice']]

        assert UserAdminTag.query.count() == 0

        entry = AdminAuditLog.query.filter_by(action=AuditAction.USER_DELETED).one()
        assert entry.actor_id == ids['master']
        assert entry.target_user_id == ids['bob']
        assert entry.details['products_deleted'] == 1
        assert entry.details['buyer_requests_deleted'] == 1


def test_self_deletion_invalidates_the_session():
    app = create_app(UserDeletionTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()
        ids = _seed()
        headers = _headers(ids['seller'])

        resp = client.delete('/api/user', headers=headers)
        assert resp.status_code == 200
        assert db.session.get(User, ids['seller']) is None
        assert db.session.get(Product, ids['seller_product']) is None

        entry = AdminAuditLog.query.filter_by(action=AuditAction.USER_DELETED).one()
        assert entry.actor_id is None
        assert entry.actor_username == 'seller'

        resp = client.get('/api/user', headers=headers)
        assert resp.status_code == 401
        assert resp.get_json()['code'] == 'AUTH_REQUIRED'


def test_audit_history_survives_actor_deletion():
    app = create_app(UserDeletionTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()
        ids = _seed()

        resp = client.post(f"/api/admin/requests/{ids['carol']}/approve", headers=_headers(ids['bob']))
        assert resp.status_code == 200

        resp = client.delete('/api/user', headers=_headers(ids['bob']))
        assert resp.status_code == 200

        approval = AdminAuditLog.query.filter_by(action=AuditAction.ADMIN_APPROVED).one()
        assert approval.actor_id is None
        assert approval.actor_username == 'bob'
        assert approval.target_user_id == ids['carol']
        assert db.session.get(User, ids['carol']).approved_by is None


def test_pending_request_to_deleted_approver_can_be_resubmitted():
    app = create_app(UserDeletionTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()
        ids = _seed()
        dave = _user('dave', admin_type='super_admin', admin_status='approved')
        db.session.add(dave)
        db.session.commit()
        dave_id = dave.id

        resp = client.delete(f"/api/user?user_id={ids['bob']}", headers=_headers(ids['master']))
        assert resp.status_code == 200

        carol = db.session.get(User, ids['carol'])
        assert carol.admin_type == 'local_admin'
        assert carol.admin_status == 'registered'
        assert carol.requested_admin_id is None

        reset = AdminAuditLog.query.filter_by(action=AuditAction.ADMIN_REQUEST_RESET).one()
        assert reset.target_user_id == ids['carol']
        assert reset.actor_id == ids['master']
        assert reset.details['approver_id'] == ids['bob']

        resp = client.post('/api/admin/request', json={
            'admin_type': 'local_admin',
            'requested_admin_id': dave_id,
        }, headers=_headers(ids['carol']))
        assert resp.status_code == 200
        body = resp.get_json()
        assert body['admin_status'] == 'pending'
        assert body['requested_admin_id'] == dave_id


def test_self_deleting_approver_releases_pending_requests():
    app = create_app(UserDeletionTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()
        ids = _seed()

        resp = client.delete('/api/user', headers=_headers(ids['bob']))
        assert resp.status_code == 200

        assert db.session.get(User, ids['carol']).admin_status == 'registered'
        reset = AdminAuditLog.query.filter_by(action=AuditAction.ADMIN_REQUEST_RESET).one()
        assert reset.actor_id is None
        assert reset.actor_username == 'bob'


def test_master_admin_cannot_be_deleted():
    app = create_app(UserDeletionTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()
        ids = _seed()

        resp = client.delete('/api/user', headers=_headers(ids['master']))
        assert resp.status_code == 403
        assert resp.get_json()['code'] == 'MASTER_ADMIN_DELETION_FORBIDDEN'
        assert db.session.get(User, ids['master']) is not None


def test_only_master_deletes_other_accounts():
    app = create_app(UserDeletionTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()
        ids = _seed()

        resp = client.delete(f"/api/user?user_id={ids['alice']}", headers=_headers(ids['bob']))
        assert resp.status_code == 403
        assert resp.get_json()['code'] == 'UNAUTHORIZED_DELETION'

        resp = client.delete(f"/api/user?user_id={ids['master']}", headers=_headers(ids['bob']))
        assert resp.status_code == 403

        resp = client.delete('/api/user?user_id=9999', headers=_headers(ids['master']))
        assert resp.status_code == 404

        assert db.session.get(User, ids['alice']) is not None
