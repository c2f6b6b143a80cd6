"""
AgriMarket - User Routes
Profile management, account deletion, admin tags and user directories
"""
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import unset_jwt_cookies

from apps.api import db
from apps.api.models.user import User, AdminType, AdminStatus
from apps.api.utils import (
    NotFound,
    ValidationError,
    validate_coordinates,
    validate_name,
    validate_phone,
    validate_roles,
    sanitize_string,
)
from apps.api.utils.accounts import delete_user, tag_admin, tagged_admins, untag_admin
from apps.api.utils.admin_directory import list_users
from apps.api.utils.admin_policy import (
    admin_detail_view,
    admin_summary,
    ensure_master_admin,
    ensure_role,
)
from apps.api.utils.auth import login_required

users_bp = Blueprint('users', __name__, url_prefix='/api')


def _get_user_or_404(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound('User not found', code='USER_NOT_FOUND')
    return user


# =============================================================================
# Current user
# =============================================================================

@users_bp.route('/user', methods=['GET'])
@login_required
def get_profile(current_user):
    """Get the current user's profile."""
    return jsonify(current_user.to_dict()), 200


@users_bp.route('/user', methods=['PATCH'])
@login_required
def update_profile(current_user):
    """Update profile fields. Admin fields are not editable here."""
    data = request.get_json(silent=True) or {}

    current_user.first_name = validate_name(data.get('first_name'), 'first_name')
    current_user.last_name = validate_name(data.get('last_name'), 'last_name')
    current_user.mobile_number = validate_phone(data.get('mobile_number'))

    if 'location' in data:
        current_user.location = sanitize_string(data.get('location'), max_length=255) or None
    if 'latitude' in data or 'longitude' in data:
        current_user.latitude, current_user.longitude = validate_coordinates(
            data.get('latitude'), data.get('longitude')
        )
    if 'roles' in data:
        if current_user.is_master_admin:
            raise ValidationError('roles', 'The master admin has no functional roles')
        current_user.roles = validate_roles(data.get('roles'))

    db.session.commit()
    current_app.logger.info(f"Profile updated for user {current_user.id}")
    return jsonify(current_user.to_dict()), 200


@users_bp.route('/user', methods=['DELETE'])
@login_required
def delete_account(current_user):
    """Delete the current account, or any account when called by the master admin."""
    target_id = request.args.get('user_id', type=int) or current_user.id
    is_self = target_id == current_user.id
    target = current_user if is_self else _get_user_or_404(target_id)

    delete_user(current_user, target)

    resp = jsonify({'message': 'Account deleted', 'user_id': target_id})
    if is_self:
        unset_jwt_cookies(resp)
    return resp, 200


# =============================================================================
# Admin tags
# =============================================================================

@users_bp.route('/user/tag-admin', methods=['POST'])
@login_required
def tag_admin_route(current_user):
    """Tag or untag an admin: {"admin_id": 5, "action": "tag" | "untag"}."""
    data = request.get_json(silent=True) or {}
    action = (data.get('action') or 'tag').strip().lower()
    admin_id = data.get('admin_id')
    if admin_id in (None, ''):
        raise ValidationError('admin_id', 'admin_id is required')

    if action == 'tag':
        created = tag_admin(current_user, admin_id)
        return jsonify({'tagged': True, 'created': created}), 201 if created else 200
    if action == 'untag':
        removed = untag_admin(current_user, admin_id)
        return jsonify({'tagged': False, 'removed': removed}), 200
    raise ValidationError('action', 'action must be tag or untag')


@users_bp.route('/user/tagged-admins', methods=['GET'])
@login_required
def list_tagged_admins(current_user):
    admins = tagged_admins(current_user)
    return jsonify([admin_summary(current_user, admin) for admin in admins]), 200


# =============================================================================
# Directories
# =============================================================================

@users_bp.route('/users/all', methods=['GET'])
@login_required
def list_all_users(current_user):
    """All users (master admin only)."""
    ensure_master_admin(current_user)
    return jsonify([user.to_dict() for user in list_users()]), 200


@users_bp.route('/users/admins', methods=['GET'])
@login_required
def list_admin_users(current_user):
    """Everyone with an admin type, in any status (master admin only)."""
    ensure_master_admin(current_user)
    admins = list_users(admin_type=(
        AdminType.LOCAL_ADMIN, AdminType.SUPER_ADMIN, AdminType.MASTER_ADMIN
    ))
    return jsonify([admin.to_dict() for admin in admins]), 200


@users_bp.route('/users/local-admins', methods=['GET'])
@login_required
def list_local_admins(current_user):
    """Approved local admins a seller can attach to a listing."""
    ensure_role(current_user, 'seller', 'Only sellers can view the local admin list')
    admins = list_users(admin_type=AdminType.LOCAL_ADMIN, admin_status=AdminStatus.APPROVED)
    return jsonify([admin.to_contact_dict() for admin in admins]), 200


@users_bp.route('/users/admin/<int:admin_id>', methods=['GET'])
@login_required
def get_admin_details(current_user, admin_id):
    admin = db.session.get(User, admin_id)
    if not admin:
        raise NotFound('Admin not found', code='USER_NOT_FOUND')
    return jsonify(admin_detail_view(current_user, admin)), 200
