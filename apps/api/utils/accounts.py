"""Account-level operations: deletion cascade and admin tags."""
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from apps.api import db
from apps.api.models.admin_audit_log import AdminAuditLog, AuditAction
from apps.api.models.buyer_request import BuyerRequest, BuyerRequestAdmin
from apps.api.models.product import Product, ProductAdmin
from apps.api.models.user import AdminStatus, User, UserAdminTag
from apps.api.utils.admin_audit import log_admin_action
from apps.api.utils.admin_roles import is_reserved_master_username
from apps.api.utils.security import (
    AuthorizationDenied,
    NotFound,
    UpstreamFailure,
    ValidationError,
)
from apps.api.utils.validators import validate_positive_int


def ensure_can_delete(requester: User, target: User) -> None:
    """Users delete themselves; the master admin deletes anyone but itself."""
    if target.is_master_admin or is_reserved_master_username(target.username):
        raise AuthorizationDenied(
            'The master admin account cannot be deleted', code='MASTER_ADMIN_DELETION_FORBIDDEN'
        )
    if requester.id != target.id and not requester.is_master_admin:
        raise AuthorizationDenied(
            'Only the master admin or the user themselves can delete an account',
            code='UNAUTHORIZED_DELETION',
        )


def delete_user(requester: User, target: User) -> None:
    """Delete ``target`` and everything that points at it, in one transaction.

    Back-references from other users are nulled, the user's own listings are
    hard-deleted with their admin links, and the user's admin links and tags
    (in both directions) are removed before the user row.
    """
    ensure_can_delete(requester, target)
    user_id = target.id
    requester_id = requester.id

    try:
        # Users this account approved or was asked to approve
        User.query.filter(User.approved_by == user_id).update(
            {
                User.approved_by: None,
                User.admin_approval_date: None,
                User.admin_rejection_reason: None,
            },
            synchronize_session=False,
        )
        # Pending requests addressed to this account go back to registered so
        # the requester can resubmit to another approver
        reset_entries = []
        stranded_ids = [
            row.id for row in db.session.query(User.id).filter(
                User.requested_admin_id == user_id,
                User.admin_status == AdminStatus.PENDING,
            )
        ]
        if stranded_ids:
            User.query.filter(User.id.in_(stranded_ids)).update(
                {User.admin_status: AdminStatus.REGISTERED},
                synchronize_session=False,
            )
            for stranded_id in stranded_ids:
                reset_entries.append(log_admin_action(
                    requester,
                    AuditAction.ADMIN_REQUEST_RESET,
                    target_user_id=stranded_id,
                    details={'reason': 'approver_deleted', 'approver_id': user_id},
                ))
        User.query.filter(User.requested_admin_id == user_id).update(
            {User.requested_admin_id: None}, synchronize_session=False
        )

        # Oversight links where this account is the admin
        ProductAdmin.query.filter(ProductAdmin.admin_id == user_id).delete(synchronize_session=False)
        BuyerRequestAdmin.query.filter(BuyerRequestAdmin.admin_id == user_id).delete(synchronize_session=False)

        UserAdminTag.query.filter(
            (UserAdminTag.user_id == user_id) | (UserAdminTag.admin_id == user_id)
        ).delete(synchronize_session=False)

        # Owned listings and their admin links
        product_ids = [row.id for row in db.session.query(Product.id).filter(Product.seller_id == user_id)]
        if product_ids:
            ProductAdmin.query.filter(ProductAdmin.product_id.in_(product_ids)).delete(synchronize_session=False)
            Product.query.filter(Product.id.in_(product_ids)).delete(synchronize_session=False)

        request_ids = [row.id for row in db.session.query(BuyerRequest.id).filter(BuyerRequest.buyer_id == user_id)]
        if request_ids:
            BuyerRequestAdmin.query.filter(
                BuyerRequestAdmin.buyer_request_id.in_(request_ids)
            ).delete(synchronize_session=False)
            BuyerRequest.query.filter(BuyerRequest.id.in_(request_ids)).delete(synchronize_session=False)

        AdminAuditLog.query.filter(AdminAuditLog.actor_id == user_id).update(
            {AdminAuditLog.actor_id: None}, synchronize_session=False
        )

        entry = log_admin_action(
            requester,
            AuditAction.USER_DELETED,
            target_user_id=user_id,
            details={
                'username': target.username,
                'products_deleted': len(product_ids),
                'buyer_requests_deleted': len(request_ids),
            },
        )
        if requester.id == user_id:
            # Self-deletion: the actor row is about to disappear
            for staged in [entry] + reset_entries:
                staged.actor_id = None

        User.query.filter(User.id == user_id).delete(synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete user {user_id}: {e}")
        raise UpstreamFailure('Failed to delete account', operation='delete_user',
                              target_id=user_id, details=str(e))

    # The deleted row must not linger in the identity map
    db.session.expunge(target)
    current_app.logger.info(f"User {user_id} deleted by user {requester_id}")


# =============================================================================
# Admin tags
# =============================================================================

def _taggable_admin(admin_id) -> User:
    admin_id = validate_positive_int(admin_id, 'admin_id')
    admin = db.session.get(User, admin_id)
    if admin is None:
        raise NotFound('Admin not found', code='USER_NOT_FOUND')
    if not (admin.is_approved_local_admin or admin.is_approved_super_admin):
        raise ValidationError('admin_id', 'Only approved local or super admins can be tagged')
    return admin


def tag_admin(user: User, admin_id) -> bool:
    """Tag an admin. Returns False when the tag already existed."""
    admin = _taggable_admin(admin_id)
    if admin.id == user.id:
        raise ValidationError('admin_id', 'You cannot tag yourself')
    existing = UserAdminTag.query.filter_by(user_id=user.id, admin_id=admin.id).first()
    if existing is not None:
        return False
    db.session.add(UserAdminTag(user_id=user.id, admin_id=admin.id))
    db.session.commit()
    current_app.logger.info(f"User {user.id} tagged admin {admin.id}")
    return True


def untag_admin(user: User, admin_id) -> bool:
    """Remove a tag. Returns False when there was nothing to remove."""
    admin_id = validate_positive_int(admin_id, 'admin_id')
    removed = UserAdminTag.query.filter_by(user_id=user.id, admin_id=admin_id).delete(
        synchronize_session=False
    )
    db.session.commit()
    if removed:
        current_app.logger.info(f"User {user.id} untagged admin {admin_id}")
    return bool(removed)


def tagged_admins(user: User):
    return (
        User.query
        .join(UserAdminTag, UserAdminTag.admin_id == User.id)
        .filter(UserAdminTag.user_id == user.id)
        .order_by(UserAdminTag.created_at.asc(), User.id.asc())
        .all()
    )
