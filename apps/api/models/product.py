"""Product (sell offer) model and its admin oversight association."""
from apps.api import db
from apps.api.models.listing import ListingMixin
from apps.api.utils.time import utc_now
from sqlalchemy import Index, UniqueConstraint


class Product(ListingMixin, db.Model):
    __tablename__ = 'products'

    LISTING_TYPE = 'seller'
    OWNER_FIELD = 'seller_id'

    seller_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    image = db.Column(db.String(255), nullable=True)
    availability_date = db.Column(db.DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index('idx_products_seller', 'seller_id'),
        Index('idx_products_active_created', 'active', 'created_at'),
    )

    def __repr__(self):
        return f'<Product {self.id}: {self.name}>'

    def to_dict(self):
        data = super().to_dict()
        data.update({
            'image': self.image,
            'availability_date': self.availability_date.isoformat() if self.availability_date else None,
        })
        return data


class ProductAdmin(db.Model):
    """An admin overseeing a product."""

    __tablename__ = 'product_admins'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id', ondelete='CASCADE'), nullable=False)
    admin_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = db.Column(db.DateTime, default=utc_now, nullable=False)

    __table_args__ = (
        UniqueConstraint('product_id', 'admin_id', name='uq_product_admin'),
        Index('idx_product_admins_product', 'product_id'),
        Index('idx_product_admins_admin', 'admin_id'),
    )
