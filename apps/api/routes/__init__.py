"""API Routes - Import all blueprints here."""

from .auth import auth_bp
from .users import users_bp
from .admin import admin_bp
from .admins import admins_bp
from .products import products_bp
from .buyer_requests import buyer_requests_bp
from .listings import listings_bp

__all__ = [
    'auth_bp',
    'users_bp',
    'admin_bp',
    'admins_bp',
    'products_bp',
    'buyer_requests_bp',
    'listings_bp',
]
