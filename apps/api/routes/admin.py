"""
AgriMarket - Admin Routes
Admin hierarchy: role registration, approval requests, and their processing
"""
from flask import Blueprint, request, jsonify, current_app

from apps.api import db
from apps.api.models.admin_audit_log import AdminAuditLog
from apps.api.models.user import User, AdminType, AdminStatus
from apps.api.utils import AuthorizationDenied, NotFound, ValidationError
from apps.api.utils.admin_directory import list_users
from apps.api.utils.admin_policy import admin_summary, ensure_master_admin, pending_queue_filter
from apps.api.utils.admin_roles import (
    approve_admin_request,
    register_admin_role,
    reject_admin_request,
    request_admin_approval,
)
from apps.api.utils.auth import login_required

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


@admin_bp.route('/role', methods=['POST'])
@login_required
def register_role(current_user):
    """Register for an admin type without requesting approval yet."""
    data = request.get_json(silent=True) or {}
    user = register_admin_role(current_user, data.get('admin_type'))
    return jsonify(user.to_dict()), 200


@admin_bp.route('/request', methods=['POST'])
@login_required
def request_approval(current_user):
    """Request approval for an admin type.

    Local admin requests name an approved super admin in ``requested_admin_id``;
    super admin requests always go to the master admin.
    """
    data = request.get_json(silent=True) or {}
    user = request_admin_approval(
        current_user,
        data.get('admin_type'),
        data.get('requested_admin_id'),
    )
    return jsonify(user.to_dict()), 200


@admin_bp.route('/requests', methods=['GET'])
@login_required
def list_pending_requests(current_user):
    """Pending requests the caller may approve or reject."""
    pending = list_users(**pending_queue_filter(current_user))
    return jsonify([user.to_dict() for user in pending]), 200


@admin_bp.route('/requests/<int:user_id>/<action>', methods=['POST'])
@login_required
def process_request(current_user, user_id, action):
    """Approve or reject a pending admin request."""
    if action not in ('approve', 'reject'):
        raise ValidationError('action', 'action must be approve or reject')

    target = db.session.get(User, user_id)
    if not target:
        raise NotFound('User not found', code='USER_NOT_FOUND')

    if action == 'approve':
        user = approve_admin_request(current_user, target)
    else:
        data = request.get_json(silent=True) or {}
        user = reject_admin_request(current_user, target, data.get('reason'))
    return jsonify(user.to_dict()), 200


@admin_bp.route('/super-admins', methods=['GET'])
@login_required
def list_super_admins(current_user):
    """Approved super admins, for choosing who to address a local admin request to."""
    if current_user.admin_type not in (AdminType.LOCAL_ADMIN, AdminType.MASTER_ADMIN):
        current_app.logger.warning(f"User {current_user.id} denied super admin list")
        raise AuthorizationDenied(
            'Only local admins and the master admin can list super admins', code='ROLE_MISMATCH'
        )
    admins = list_users(admin_type=AdminType.SUPER_ADMIN, admin_status=AdminStatus.APPROVED)
    return jsonify([admin_summary(current_user, admin) for admin in admins]), 200


@admin_bp.route('/overview', methods=['GET'])
@login_required
def overview(current_user):
    """Hierarchy overview (master admin only)."""
    ensure_master_admin(current_user)

    pending = list_users(admin_type=AdminType.REQUESTABLE, admin_status=AdminStatus.PENDING)
    super_admins = list_users(admin_type=AdminType.SUPER_ADMIN, admin_status=AdminStatus.APPROVED)
    local_admins = list_users(admin_type=AdminType.LOCAL_ADMIN, admin_status=AdminStatus.APPROVED)

    return jsonify({
        'stats': {
            'pending_admins': len(pending),
            'super_admins': len(super_admins),
            'local_admins': len(local_admins),
        },
        'pending_admins': [u.to_dict() for u in pending],
        'super_admins': [u.to_dict() for u in super_admins],
        'local_admins': [u.to_dict() for u in local_admins],
    }), 200


@admin_bp.route('/audit-log', methods=['GET'])
@login_required
def audit_log(current_user):
    """Paginated admin audit trail, newest first (master admin only)."""
    ensure_master_admin(current_user)

    page = max(request.args.get('page', 1, type=int) or 1, 1)
    per_page = min(max(request.args.get('per_page', 50, type=int) or 50, 1), 200)

    query = AdminAuditLog.query
    action = request.args.get('action')
    if action:
        query = query.filter(AdminAuditLog.action == action)
    target_user_id = request.args.get('target_user_id', type=int)
    if target_user_id:
        query = query.filter(AdminAuditLog.target_user_id == target_user_id)

    pagination = query.order_by(
        AdminAuditLog.created_at.desc(), AdminAuditLog.id.desc()
    ).paginate(page=page, per_page=per_page, error_out=False)

    return jsonify({
        'entries': [entry.to_dict() for entry in pagination.items],
        'page': page,
        'per_page': per_page,
        'total': pagination.total,
        'pages': pagination.pages,
    }), 200
