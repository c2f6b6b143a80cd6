"""Who may do what in the admin hierarchy.

Denials raise AuthorizationDenied with a code telling the caller whether the
requester has the wrong role (ROLE_MISMATCH, APPROVER_NOT_APPROVED) or the
target is the wrong one (TARGET_TYPE_MISMATCH, NOT_ADDRESSED_TO_APPROVER).
"""
from flask import current_app

from apps.api.models.user import User, AdminType, AdminStatus
from apps.api.utils.geo import meters_to_km
from apps.api.utils.security import AuthorizationDenied


def can_process(approver: User, target: User):
    """Return ``(allowed, code)`` for approving or rejecting ``target``.

    The master admin processes super admin requests. An approved super admin
    processes local admin requests addressed to them. Nobody else processes
    anything.
    """
    if approver.is_master_admin:
        if target.admin_type != AdminType.SUPER_ADMIN:
            return False, 'TARGET_TYPE_MISMATCH'
        return True, None

    if approver.admin_type == AdminType.SUPER_ADMIN:
        if approver.admin_status != AdminStatus.APPROVED:
            return False, 'APPROVER_NOT_APPROVED'
        if target.admin_type != AdminType.LOCAL_ADMIN:
            return False, 'TARGET_TYPE_MISMATCH'
        if target.requested_admin_id != approver.id:
            return False, 'NOT_ADDRESSED_TO_APPROVER'
        return True, None

    return False, 'ROLE_MISMATCH'


_DENIAL_MESSAGES = {
    'ROLE_MISMATCH': 'Only the master admin or an approved super admin can process admin requests',
    'APPROVER_NOT_APPROVED': 'Your super admin account has not been approved',
    'TARGET_TYPE_MISMATCH': 'You cannot process requests for this admin type',
    'NOT_ADDRESSED_TO_APPROVER': 'This request is addressed to another super admin',
}


def ensure_can_process(approver: User, target: User, action: str) -> None:
    allowed, code = can_process(approver, target)
    if not allowed:
        current_app.logger.warning(
            f"Denied {action} of user {target.id} by user {approver.id}: {code}"
        )
        raise AuthorizationDenied(_DENIAL_MESSAGES[code], code=code)


def ensure_master_admin(user: User) -> None:
    if not user.is_master_admin:
        raise AuthorizationDenied('Master admin access required', code='ROLE_MISMATCH')


def ensure_role(user: User, role: str, message: str = None) -> None:
    if not user.has_role(role):
        raise AuthorizationDenied(message or f'The {role} role is required', code='ROLE_MISMATCH')


def is_privileged_viewer(user: User) -> bool:
    """Master admin or approved super admin."""
    return user is not None and (user.is_master_admin or user.is_approved_super_admin)


def pending_queue_filter(viewer: User) -> dict:
    """``list_users`` filter for the pending requests ``viewer`` may process."""
    if viewer.is_master_admin:
        return {'admin_type': AdminType.SUPER_ADMIN, 'admin_status': AdminStatus.PENDING}
    if viewer.is_approved_super_admin:
        return {
            'admin_type': AdminType.LOCAL_ADMIN,
            'admin_status': AdminStatus.PENDING,
            'requested_admin_id': viewer.id,
        }
    raise AuthorizationDenied('Must be an approved admin to view requests', code='ROLE_MISMATCH')


def can_view_admin_contact(requester: User, target: User) -> bool:
    if requester is not None and requester.id == target.id:
        return True
    if is_privileged_viewer(requester):
        return True
    return target.is_approved_local_admin


def admin_detail_view(requester: User, target: User) -> dict:
    """Serialize ``target`` as much as ``requester`` may see."""
    if is_privileged_viewer(requester) or requester.id == target.id:
        return target.to_dict()
    if target.is_approved_local_admin:
        return target.to_contact_dict()
    raise AuthorizationDenied("Cannot access this admin's details", code='ADMIN_DETAILS_RESTRICTED')


def admin_summary(requester: User, admin: User, distance_meters: float = None) -> dict:
    """Directory entry for an admin; the phone number follows the contact rule."""
    data = {
        'id': admin.id,
        'username': admin.username,
        'name': admin.display_name,
        'admin_type': admin.admin_type,
        'location': admin.location,
        'latitude': admin.latitude,
        'longitude': admin.longitude,
    }
    if can_view_admin_contact(requester, admin):
        data['mobile_number'] = admin.mobile_number
    if distance_meters is not None:
        data['distance_km'] = round(meters_to_km(distance_meters), 3)
    return data
