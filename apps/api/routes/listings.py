"""
AgriMarket - Unified Listing Feed
Products and buyer requests together, each tagged with ``listing_type``
"""
from flask import Blueprint, request, jsonify

from apps.api.utils import validate_choice
from apps.api.utils.auth import login_optional
from apps.api.utils.listings import (
    KIND_BY_TYPE,
    record_feed_views,
    request_filters,
    search_all,
    serialize_listings,
)

listings_bp = Blueprint('listings', __name__, url_prefix='/api/listings')


@listings_bp.route('', methods=['GET'])
@login_optional
def feed(current_user):
    """Active listings of both kinds; ``listing_type`` is seller or buyer."""
    listing_type = request.args.get('listing_type')
    if listing_type:
        listing_type = validate_choice(listing_type, 'listing_type', tuple(KIND_BY_TYPE))
    else:
        listing_type = None

    listings, distances = search_all(listing_type=listing_type, **request_filters(request.args))
    payload = serialize_listings(listings, viewer=current_user, distances=distances)
    record_feed_views(listings)
    return jsonify(payload), 200
