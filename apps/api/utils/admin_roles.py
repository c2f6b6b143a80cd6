"""Admin hierarchy state machine.

States are ``(admin_type, admin_status)`` pairs on the User row:

    none/none --register--> {local_admin|super_admin}/registered
    registered|rejected --request--> pending
    pending --approve--> approved        (terminal)
    pending --reject--> rejected

The reserved master admin username skips the machine and is created as
``master_admin/approved``.

Every transition is a guarded UPDATE that only applies while the row still
holds the state that was read, so two approvers racing on the same request
cannot both win. A lost race raises StateConflict; nothing is retried.
"""
from flask import current_app

from apps.api import db
from apps.api.models.admin_audit_log import AuditAction
from apps.api.models.user import User, AdminType, AdminStatus
from apps.api.utils.admin_audit import log_admin_action
from apps.api.utils.admin_policy import ensure_can_process
from apps.api.utils.security import NotFound, StateConflict, ValidationError
from apps.api.utils.time import utc_now
from apps.api.utils.validators import validate_positive_int


def is_reserved_master_username(username: str) -> bool:
    reserved = (current_app.config.get('MASTER_ADMIN_USERNAME') or '').strip().lower()
    return bool(reserved) and (username or '').strip().lower() == reserved


def get_master_admin():
    return User.query.filter_by(admin_type=AdminType.MASTER_ADMIN).first()


def apply_master_admin_bootstrap(user: User) -> bool:
    """Mark a not-yet-persisted user as the approved master admin if reserved.

    Returns True when the user was promoted. Only one master admin may exist.
    """
    if not is_reserved_master_username(user.username):
        return False
    if get_master_admin() is not None:
        raise StateConflict('A master admin already exists', code='MASTER_ADMIN_EXISTS')

    now = utc_now()
    user.admin_type = AdminType.MASTER_ADMIN
    user.admin_status = AdminStatus.APPROVED
    user.admin_request_date = now
    user.admin_approval_date = now
    # The hierarchy lives in admin_type; roles carries buyer/seller only
    user.roles = []
    return True


def _validate_admin_type(admin_type) -> str:
    admin_type = (admin_type or '').strip().lower() if isinstance(admin_type, str) else admin_type
    if admin_type not in AdminType.REQUESTABLE:
        raise ValidationError(
            'admin_type',
            f'admin_type must be one of: {", ".join(AdminType.REQUESTABLE)}',
            code='INVALID_ADMIN_TYPE',
        )
    return admin_type


def _transition(user: User, from_types, from_statuses, values: dict, operation: str) -> None:
    """Apply ``values`` to the user only if its admin state is still as read.

    Flushes within the current transaction; the caller commits.
    """
    updated = User.query.filter(
        User.id == user.id,
        User.admin_type.in_(tuple(from_types)),
        User.admin_status.in_(tuple(from_statuses)),
    ).update(values, synchronize_session=False)

    if updated != 1:
        db.session.rollback()
        current_app.logger.warning(
            f"{operation}: admin state of user {user.id} changed concurrently"
        )
        raise StateConflict(
            'Admin state changed while the request was being processed',
            code='STATE_CHANGED',
        )
    # Reload the new state on next access
    db.session.expire(user)


def register_admin_role(user: User, admin_type) -> User:
    """none/none (or registered, to switch type) -> admin_type/registered."""
    admin_type = _validate_admin_type(admin_type)

    allowed = (AdminStatus.NONE, AdminStatus.REGISTERED)
    if user.is_master_admin or user.admin_status not in allowed:
        raise StateConflict(
            f'Cannot register an admin role from status {user.admin_status}',
            code='INVALID_STATE',
        )

    _transition(
        user,
        from_types=(user.admin_type,),
        from_statuses=(user.admin_status,),
        values={
            'admin_type': admin_type,
            'admin_status': AdminStatus.REGISTERED,
            'admin_request_date': utc_now(),
        },
        operation='register_admin_role',
    )
    log_admin_action(user, AuditAction.ADMIN_ROLE_REGISTERED, target_user_id=user.id,
                     details={'admin_type': admin_type})
    db.session.commit()
    current_app.logger.info(f"User {user.id} registered for {admin_type}")
    return user


def _resolve_approver(admin_type: str, requested_admin_id) -> User:
    if admin_type == AdminType.SUPER_ADMIN:
        master = get_master_admin()
        if master is None:
            raise NotFound('Master admin account has not been created', code='MASTER_ADMIN_MISSING')
        return master

    if requested_admin_id in (None, ''):
        raise ValidationError('requested_admin_id', 'Local admin requests must name a super admin')
    requested_admin_id = validate_positive_int(requested_admin_id, 'requested_admin_id')

    approver = db.session.get(User, requested_admin_id)
    if approver is None:
        raise NotFound('Requested super admin not found', code='USER_NOT_FOUND')
    if not approver.is_approved_super_admin:
        raise ValidationError('requested_admin_id', 'Requested admin is not an approved super admin')
    return approver


def request_admin_approval(user: User, admin_type, requested_admin_id=None) -> User:
    """registered|rejected -> pending, addressed to the approver for the type.

    A user with no admin role is registered and moved to pending in one step.
    The requested type may differ from the registered one.
    """
    admin_type = _validate_admin_type(admin_type)

    allowed = (AdminStatus.NONE, AdminStatus.REGISTERED, AdminStatus.REJECTED)
    if user.is_master_admin or user.admin_status not in allowed:
        raise StateConflict(
            f'Cannot request approval from status {user.admin_status}',
            code='INVALID_STATE',
        )

    approver = _resolve_approver(admin_type, requested_admin_id)
    was_unregistered = user.admin_status == AdminStatus.NONE

    _transition(
        user,
        from_types=(user.admin_type,),
        from_statuses=(user.admin_status,),
        values={
            'admin_type': admin_type,
            'admin_status': AdminStatus.PENDING,
            'admin_request_date': utc_now(),
            'requested_admin_id': approver.id,
            # A new request starts without the previous decision
            'approved_by': None,
            'admin_approval_date': None,
            'admin_rejection_reason': None,
        },
        operation='request_admin_approval',
    )
    if was_unregistered:
        log_admin_action(user, AuditAction.ADMIN_ROLE_REGISTERED, target_user_id=user.id,
                         details={'admin_type': admin_type})
    log_admin_action(user, AuditAction.ADMIN_APPROVAL_REQUESTED, target_user_id=user.id,
                     details={'admin_type': admin_type, 'requested_admin_id': approver.id})
    db.session.commit()
    current_app.logger.info(
        f"User {user.id} requested {admin_type} approval from user {approver.id}"
    )
    return user


def _ensure_pending(target: User) -> None:
    if target.admin_status != AdminStatus.PENDING:
        raise StateConflict(
            f'Request is not pending (status: {target.admin_status})',
            code='INVALID_STATE',
        )


def approve_admin_request(approver: User, target: User) -> User:
    """pending -> approved, recording the approver."""
    ensure_can_process(approver, target, 'approve')
    _ensure_pending(target)

    _transition(
        target,
        from_types=(target.admin_type,),
        from_statuses=(AdminStatus.PENDING,),
        values={
            'admin_status': AdminStatus.APPROVED,
            'approved_by': approver.id,
            'admin_approval_date': utc_now(),
            'admin_rejection_reason': None,
        },
        operation='approve_admin_request',
    )
    log_admin_action(approver, AuditAction.ADMIN_APPROVED, target_user_id=target.id,
                     details={'admin_type': target.admin_type})
    db.session.commit()
    current_app.logger.info(
        f"User {approver.id} approved {target.admin_type} request of user {target.id}"
    )
    return target


def reject_admin_request(approver: User, target: User, reason) -> User:
    """pending -> rejected. A non-empty reason is required."""
    ensure_can_process(approver, target, 'reject')

    reason = (reason or '').strip() if isinstance(reason, str) else ''
    if not reason:
        raise ValidationError('reason', 'Rejection reason is required')

    _ensure_pending(target)

    _transition(
        target,
        from_types=(target.admin_type,),
        from_statuses=(AdminStatus.PENDING,),
        values={
            'admin_status': AdminStatus.REJECTED,
            'approved_by': approver.id,
            'admin_approval_date': utc_now(),
            'admin_rejection_reason': reason,
        },
        operation='reject_admin_request',
    )
    log_admin_action(approver, AuditAction.ADMIN_REJECTED, target_user_id=target.id,
                     details={'admin_type': target.admin_type, 'reason': reason})
    db.session.commit()
    current_app.logger.info(
        f"User {approver.id} rejected {target.admin_type} request of user {target.id}"
    )
    return target
