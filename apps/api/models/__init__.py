"""
AgriMarket - Database Models
Import all models here for Flask-Migrate to detect them
"""
from apps.api import db

# Base model will be imported by other models
Base = db.Model

# Import all models to register them with SQLAlchemy
from .user import User, UserAdminTag, AdminType, AdminStatus
from .product import Product, ProductAdmin
from .buyer_request import BuyerRequest, BuyerRequestAdmin
from .token_blacklist import TokenBlacklist
from .admin_audit_log import AdminAuditLog, AuditAction

__all__ = [
    'User',
    'UserAdminTag',
    'AdminType',
    'AdminStatus',
    'Product',
    'ProductAdmin',
    'BuyerRequest',
    'BuyerRequestAdmin',
    'TokenBlacklist',
    'AdminAuditLog',
    'AuditAction',
]
