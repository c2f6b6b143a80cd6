"""Columns and serialization shared by products and buyer requests.

A product is a sell offer, a buyer request is a buy-side listing. Both carry the
same descriptive fields, location and engagement counters, so they share this
mixin and are told apart in the unified feed by ``LISTING_TYPE``.
"""
from apps.api import db
from apps.api.utils.time import utc_now


class ListingMixin:
    LISTING_TYPE = None
    OWNER_FIELD = None

    id = db.Column(db.Integer, primary_key=True)

    # Description
    name = db.Column(db.String(200), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    quality = db.Column(db.String(255), nullable=True)
    condition = db.Column(db.String(20), nullable=True)  # new, used, perishable
    category = db.Column(db.String(20), nullable=False, default='other')  # fruits, vegetables, dairy, other
    target_price = db.Column(db.Numeric(10, 2), nullable=True)

    # Location
    city = db.Column(db.String(100), nullable=False)
    state = db.Column(db.String(100), nullable=False)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)

    # Lifecycle (active=False is a soft delete)
    active = db.Column(db.Boolean, nullable=False, default=True)
    views = db.Column(db.Integer, nullable=False, default=0)
    contact_requests = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    @property
    def owner_id(self):
        return getattr(self, self.OWNER_FIELD)

    def to_dict(self):
        return {
            'id': self.id,
            'listing_type': self.LISTING_TYPE,
            self.OWNER_FIELD: self.owner_id,
            'name': self.name,
            'quantity': self.quantity,
            'quality': self.quality,
            'condition': self.condition,
            'category': self.category,
            'target_price': float(self.target_price) if self.target_price is not None else None,
            'city': self.city,
            'state': self.state,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'active': self.active,
            'views': self.views or 0,
            'contact_requests': self.contact_requests or 0,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
