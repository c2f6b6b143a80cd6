"""User model with functional roles and the admin hierarchy fields."""
from apps.api import db
from apps.api.utils.time import utc_now
from sqlalchemy import CheckConstraint, Index, UniqueConstraint


class AdminType:
    """Constants for the admin hierarchy level."""

    NONE = 'none'
    LOCAL_ADMIN = 'local_admin'
    SUPER_ADMIN = 'super_admin'
    MASTER_ADMIN = 'master_admin'

    ALL = (NONE, LOCAL_ADMIN, SUPER_ADMIN, MASTER_ADMIN)
    # Types a regular user may register for and request approval of
    REQUESTABLE = (LOCAL_ADMIN, SUPER_ADMIN)


class AdminStatus:
    """Constants for where an admin request stands."""

    NONE = 'none'
    REGISTERED = 'registered'
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'

    ALL = (NONE, REGISTERED, PENDING, APPROVED, REJECTED)


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)

    # Identity
    username = db.Column(db.String(50), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)

    # Profile
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)
    mobile_number = db.Column(db.String(15), nullable=False)
    location = db.Column(db.String(255), nullable=True)
    profile_picture = db.Column(db.String(255), nullable=True)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)

    # Functional capabilities: 'buyer' and/or 'seller'
    roles = db.Column(db.JSON, nullable=False, default=lambda: ['buyer'])

    # Admin hierarchy
    admin_type = db.Column(db.String(20), nullable=False, default=AdminType.NONE)
    admin_status = db.Column(db.String(20), nullable=False, default=AdminStatus.NONE)
    approved_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    requested_admin_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    admin_request_date = db.Column(db.DateTime, nullable=True)
    admin_approval_date = db.Column(db.DateTime, nullable=True)
    admin_rejection_reason = db.Column(db.Text, nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        CheckConstraint(
            "admin_type IN ('none', 'local_admin', 'super_admin', 'master_admin')",
            name='ck_users_admin_type',
        ),
        CheckConstraint(
            "admin_status IN ('none', 'registered', 'pending', 'approved', 'rejected')",
            name='ck_users_admin_status',
        ),
        # A user without an admin type cannot carry an admin status
        CheckConstraint(
            "admin_type != 'none' OR admin_status = 'none'",
            name='ck_users_admin_status_requires_type',
        ),
        Index('idx_users_admin', 'admin_type', 'admin_status'),
        Index('idx_users_requested_admin', 'requested_admin_id'),
        Index('idx_users_approved_by', 'approved_by'),
    )

    def __repr__(self):
        return f'<User {self.username}>'

    def has_role(self, role: str) -> bool:
        return role in (self.roles or [])

    @property
    def is_master_admin(self) -> bool:
        return self.admin_type == AdminType.MASTER_ADMIN

    def is_approved(self, admin_type: str) -> bool:
        return self.admin_type == admin_type and self.admin_status == AdminStatus.APPROVED

    @property
    def is_approved_super_admin(self) -> bool:
        return self.is_approved(AdminType.SUPER_ADMIN)

    @property
    def is_approved_local_admin(self) -> bool:
        return self.is_approved(AdminType.LOCAL_ADMIN)

    @property
    def display_name(self) -> str:
        if self.first_name and self.last_name:
            return f'{self.first_name} {self.last_name}'
        return self.username

    def admin_fields_consistent(self) -> bool:
        if self.admin_type == AdminType.NONE:
            return self.admin_status == AdminStatus.NONE
        return self.admin_status in AdminStatus.ALL and self.admin_status != AdminStatus.NONE

    def to_dict(self, include_admin_details: bool = True):
        """Serialize for API responses. Never includes the password hash."""
        data = {
            'id': self.id,
            'username': self.username,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'mobile_number': self.mobile_number,
            'location': self.location,
            'profile_picture': self.profile_picture,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'roles': list(self.roles or []),
            'admin_type': self.admin_type,
            'admin_status': self.admin_status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_admin_details:
            data.update({
                'approved_by': self.approved_by,
                'requested_admin_id': self.requested_admin_id,
                'admin_request_date': self.admin_request_date.isoformat() if self.admin_request_date else None,
                'admin_approval_date': self.admin_approval_date.isoformat() if self.admin_approval_date else None,
                'admin_rejection_reason': self.admin_rejection_reason,
            })
        return data

    def to_contact_dict(self):
        """Public contact card for an approved local admin."""
        return {
            'id': self.id,
            'username': self.username,
            'name': self.display_name,
            'mobile_number': self.mobile_number,
            'location': self.location,
        }


class UserAdminTag(db.Model):
    """A user's bookmark of an admin, independent of listing oversight."""

    __tablename__ = 'user_admin_tags'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    admin_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = db.Column(db.DateTime, default=utc_now, nullable=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'admin_id', name='uq_user_admin_tag'),
        Index('idx_user_admin_tags_user', 'user_id'),
        Index('idx_user_admin_tags_admin', 'admin_id'),
    )
