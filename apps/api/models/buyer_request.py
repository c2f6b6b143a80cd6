"""Buyer request (buy-side listing) model and its admin oversight association."""
from apps.api import db
from apps.api.models.listing import ListingMixin
from apps.api.utils.time import utc_now
from sqlalchemy import Index, UniqueConstraint


class BuyerRequest(ListingMixin, db.Model):
    __tablename__ = 'buyer_requests'

    LISTING_TYPE = 'buyer'
    OWNER_FIELD = 'buyer_id'

    buyer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    description = db.Column(db.Text, nullable=True)

    __table_args__ = (
        Index('idx_buyer_requests_buyer', 'buyer_id'),
        Index('idx_buyer_requests_active_created', 'active', 'created_at'),
    )

    def __repr__(self):
        return f'<BuyerRequest {self.id}: {self.name}>'

    def to_dict(self):
        data = super().to_dict()
        data['description'] = self.description
        return data


class BuyerRequestAdmin(db.Model):
    """An admin overseeing a buyer request."""

    __tablename__ = 'buyer_request_admins'

    id = db.Column(db.Integer, primary_key=True)
    buyer_request_id = db.Column(
        db.Integer, db.ForeignKey('buyer_requests.id', ondelete='CASCADE'), nullable=False
    )
    admin_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = db.Column(db.DateTime, default=utc_now, nullable=False)

    __table_args__ = (
        UniqueConstraint('buyer_request_id', 'admin_id', name='uq_buyer_request_admin'),
        Index('idx_buyer_request_admins_request', 'buyer_request_id'),
        Index('idx_buyer_request_admins_admin', 'admin_id'),
    )
