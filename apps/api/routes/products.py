"""
AgriMarket - Product Routes
Sell offers: listing, search, CRUD and contacting the seller

Every fetch counts as a view of each product it returns.
"""
from flask import Blueprint, request, jsonify

from apps.api.utils.auth import login_optional, login_required
from apps.api.utils.listings import (
    PRODUCTS,
    contact_owner,
    create_listing,
    find_listings,
    get_listing,
    get_visible_listing,
    increment_views,
    increment_views_bulk,
    owner_listings,
    request_filters,
    serialize_listing,
    serialize_listings,
    soft_delete,
    update_listing,
)

products_bp = Blueprint('products', __name__, url_prefix='/api/products')


@products_bp.route('', methods=['GET'])
@login_optional
def list_products(current_user):
    """Active products, filtered by ``category``, ``q`` and ``lat``/``lng``/``radius``."""
    pairs = find_listings(PRODUCTS, **request_filters(request.args))
    products = [product for product, _ in pairs]
    distances = {(product.LISTING_TYPE, product.id): d for product, d in pairs if d is not None}

    payload = serialize_listings(products, viewer=current_user, distances=distances)
    increment_views_bulk(PRODUCTS, [product.id for product in products])
    return jsonify(payload), 200


@products_bp.route('/<int:product_id>', methods=['GET'])
@login_optional
def get_product(current_user, product_id):
    product = get_visible_listing(PRODUCTS, product_id, viewer=current_user)
    payload = serialize_listing(product, viewer=current_user)
    if product.active:
        increment_views(PRODUCTS, product.id)
    return jsonify(payload), 200


@products_bp.route('', methods=['POST'])
@login_required
def create_product(current_user):
    """Create a product; ``admin_ids`` names the overseeing admins."""
    product = create_listing(PRODUCTS, current_user, request.get_json(silent=True) or {})
    return jsonify(serialize_listing(product, viewer=current_user)), 201


@products_bp.route('/<int:product_id>', methods=['PATCH'])
@login_required
def update_product(current_user, product_id):
    """Update a product; ``admin_ids``, when sent, replaces the admin set."""
    product = get_listing(PRODUCTS, product_id)
    product = update_listing(PRODUCTS, product, current_user, request.get_json(silent=True) or {})
    return jsonify(serialize_listing(product, viewer=current_user)), 200


@products_bp.route('/<int:product_id>', methods=['DELETE'])
@login_required
def delete_product(current_user, product_id):
    """Soft delete: the product disappears from listings but is kept."""
    product = get_listing(PRODUCTS, product_id)
    soft_delete(PRODUCTS, product, current_user)
    return jsonify({'message': 'Product deleted', 'id': product_id}), 200


@products_bp.route('/<int:product_id>/contact', methods=['POST'])
@login_required
def contact_seller(current_user, product_id):
    """Reveal the seller's name and phone to a buyer; every call is counted."""
    seller = contact_owner(PRODUCTS, product_id, current_user)
    return jsonify({'message': 'Contact request processed successfully', 'seller': seller}), 200


@products_bp.route('/seller/<int:seller_id>', methods=['GET'])
@login_required
def list_seller_products(current_user, seller_id):
    """A seller's products; the seller and the master admin also see deleted ones."""
    include_inactive = current_user.id == seller_id or current_user.is_master_admin
    products = owner_listings(PRODUCTS, seller_id, include_inactive=include_inactive)
    return jsonify(serialize_listings(products, viewer=current_user)), 200
