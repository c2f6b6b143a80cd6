"""Admin audit log model for tracking the admin hierarchy.

Records every role transition (register, request, approve, reject) and account
deletion, written in the same transaction as the change it describes.
"""
from apps.api import db
from apps.api.utils.time import utc_now
from sqlalchemy import Index


class AdminAuditLog(db.Model):
    __tablename__ = 'admin_audit_logs'

    id = db.Column(db.Integer, primary_key=True)

    # Who performed the action
    actor_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    actor_username = db.Column(db.String(50), nullable=False)  # Denormalized, survives deletion

    # What action was performed
    action = db.Column(db.String(100), nullable=False)

    # Which user was affected
    target_user_id = db.Column(db.Integer, nullable=True)

    # Request context
    ip_address = db.Column(db.String(45), nullable=True)  # Supports IPv6
    user_agent = db.Column(db.Text, nullable=True)

    details = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=utc_now, nullable=False)

    __table_args__ = (
        Index('idx_admin_audit_actor', 'actor_id'),
        Index('idx_admin_audit_action', 'action'),
        Index('idx_admin_audit_created', 'created_at'),
        Index('idx_admin_audit_target', 'target_user_id'),
    )

    def __repr__(self):
        return f'<AdminAuditLog {self.id}: {self.action} by {self.actor_username}>'

    def to_dict(self):
        """Serialize for API responses."""
        return {
            'id': self.id,
            'actor_id': self.actor_id,
            'actor_username': self.actor_username,
            'action': self.action,
            'target_user_id': self.target_user_id,
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'details': self.details,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class AuditAction:
    """Constants for audit log actions."""

    ADMIN_ROLE_REGISTERED = 'admin_role_registered'
    ADMIN_APPROVAL_REQUESTED = 'admin_approval_requested'
    ADMIN_APPROVED = 'admin_approved'
    ADMIN_REJECTED = 'admin_rejected'
    ADMIN_REQUEST_RESET = 'admin_request_reset'
    MASTER_ADMIN_BOOTSTRAPPED = 'master_admin_bootstrapped'

    USER_DELETED = 'user_deleted'
