"""Admin audit logging utility for the admin hierarchy.

Entries are added to the current session without committing, so the caller's
commit persists the audit row together with the change it describes.
"""
from flask import request, current_app, has_request_context

from apps.api import db
from apps.api.models.admin_audit_log import AdminAuditLog, AuditAction


def _request_context():
    """Return (ip_address, user_agent) for the current request, if any."""
    if not has_request_context():
        return None, None
    # Try to get real IP from proxy headers first
    ip_address = request.headers.get('X-Forwarded-For', '').split(',')[0].strip()
    if not ip_address:
        ip_address = request.headers.get('X-Real-IP')
    if not ip_address:
        ip_address = request.remote_addr
    return ip_address, request.headers.get('User-Agent')


def log_admin_action(actor, action: str, target_user_id: int = None, details: dict = None) -> AdminAuditLog:
    """
    Stage an admin audit entry in the current transaction.

    Args:
        actor: The User performing the action (None for system actions)
        action: The action being performed (use AuditAction constants)
        target_user_id: The user affected by the action (optional)
        details: Additional details as a dict (optional)

    Returns:
        The pending AdminAuditLog instance
    """
    if not action:
        raise ValueError("action is required")

    ip_address, user_agent = _request_context()

    log_entry = AdminAuditLog(
        actor_id=actor.id if actor is not None else None,
        actor_username=actor.username if actor is not None else 'system',
        action=action,
        target_user_id=target_user_id,
        ip_address=ip_address,
        user_agent=user_agent,
        details=details or {},
    )
    db.session.add(log_entry)
    current_app.logger.info(
        f"Audit: {action} by {log_entry.actor_username} on user:{target_user_id}"
    )
    return log_entry


__all__ = ['log_admin_action', 'AuditAction']
