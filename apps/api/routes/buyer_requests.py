"""
AgriMarket - Buyer Request Routes
Buy-side listings: what buyers are looking for, and contacting the buyer
"""
from flask import Blueprint, request, jsonify

from apps.api.utils.auth import login_optional, login_required
from apps.api.utils.listings import (
    BUYER_REQUESTS,
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

buyer_requests_bp = Blueprint('buyer_requests', __name__, url_prefix='/api/buyer-requests')


@buyer_requests_bp.route('', methods=['GET'])
@login_optional
def list_buyer_requests(current_user):
    pairs = find_listings(BUYER_REQUESTS, **request_filters(request.args))
    requests_ = [item for item, _ in pairs]
    distances = {(item.LISTING_TYPE, item.id): d for item, d in pairs if d is not None}

    payload = serialize_listings(requests_, viewer=current_user, distances=distances)
    increment_views_bulk(BUYER_REQUESTS, [item.id for item in requests_])
    return jsonify(payload), 200


@buyer_requests_bp.route('/<int:request_id>', methods=['GET'])
@login_optional
def get_buyer_request(current_user, request_id):
    item = get_visible_listing(BUYER_REQUESTS, request_id, viewer=current_user)
    payload = serialize_listing(item, viewer=current_user)
    if item.active:
        increment_views(BUYER_REQUESTS, item.id)
    return jsonify(payload), 200


@buyer_requests_bp.route('', methods=['POST'])
@login_required
def create_buyer_request(current_user):
    item = create_listing(BUYER_REQUESTS, current_user, request.get_json(silent=True) or {})
    return jsonify(serialize_listing(item, viewer=current_user)), 201


@buyer_requests_bp.route('/<int:request_id>', methods=['PATCH'])
@login_required
def update_buyer_request(current_user, request_id):
    item = get_listing(BUYER_REQUESTS, request_id)
    item = update_listing(BUYER_REQUESTS, item, current_user, request.get_json(silent=True) or {})
    return jsonify(serialize_listing(item, viewer=current_user)), 200


@buyer_requests_bp.route('/<int:request_id>', methods=['DELETE'])
@login_required
def delete_buyer_request(current_user, request_id):
    item = get_listing(BUYER_REQUESTS, request_id)
    soft_delete(BUYER_REQUESTS, item, current_user)
    return jsonify({'message': 'Buyer request deleted', 'id': request_id}), 200


@buyer_requests_bp.route('/<int:request_id>/contact', methods=['POST'])
@login_required
def contact_buyer(current_user, request_id):
    """Reveal the buyer's name and phone to a seller."""
    buyer = contact_owner(BUYER_REQUESTS, request_id, current_user)
    return jsonify({'message': 'Contact request processed successfully', 'buyer': buyer}), 200


@buyer_requests_bp.route('/buyer/<int:buyer_id>', methods=['GET'])
@login_required
def list_buyer_requests_by_buyer(current_user, buyer_id):
    include_inactive = current_user.id == buyer_id or current_user.is_master_admin
    items = owner_listings(BUYER_REQUESTS, buyer_id, include_inactive=include_inactive)
    return jsonify(serialize_listings(items, viewer=current_user)), 200
