"""
AgriMarket - Admin Search Routes
Finding approved local and super admins by location or name

Radii are given in kilometers.
"""
from flask import Blueprint, request, jsonify, current_app

from apps.api import db
from apps.api.models.user import User
from apps.api.utils import NotFound, ValidationError, validate_coordinates, validate_radius_km, sanitize_string
from apps.api.utils.admin_directory import nearby_admins, search_admins
from apps.api.utils.admin_policy import admin_summary
from apps.api.utils.auth import login_required
from apps.api.utils.listings import KINDS, listings_overseen_by, serialize_listings

admins_bp = Blueprint('admins', __name__, url_prefix='/api/admins')


@admins_bp.route('/nearby', methods=['GET'])
@login_required
def nearby(current_user):
    """Approved admins within ``radius`` km of ``lat``/``lng``, nearest first."""
    lat, lng = validate_coordinates(request.args.get('lat'), request.args.get('lng'), 'lat', 'lng')
    if lat is None:
        raise ValidationError('lat', 'lat and lng are required')
    radius_km = validate_radius_km(
        request.args.get('radius'),
        current_app.config['MAX_SEARCH_RADIUS_KM'],
        default=current_app.config['DEFAULT_ADMIN_SEARCH_RADIUS_KM'],
    )

    matches = nearby_admins(lat, lng, radius_km)
    return jsonify({
        'radius_km': radius_km,
        'admins': [admin_summary(current_user, admin, distance) for admin, distance in matches],
    }), 200


@admins_bp.route('/search', methods=['GET'])
@login_required
def search(current_user):
    term = sanitize_string(request.args.get('q'), max_length=100) or ''
    admins = search_admins(term)
    return jsonify([admin_summary(current_user, admin) for admin in admins]), 200


@admins_bp.route('/<int:admin_id>/listings', methods=['GET'])
@login_required
def overseen_listings(current_user, admin_id):
    """Active products and buyer requests this admin oversees."""
    admin = db.session.get(User, admin_id)
    if not admin:
        raise NotFound('Admin not found', code='USER_NOT_FOUND')

    result = {}
    for kind in KINDS:
        result[kind.listing_type] = serialize_listings(
            listings_overseen_by(kind, admin.id), viewer=current_user
        )
    return jsonify({
        'admin': admin_summary(current_user, admin),
        'products': result['seller'],
        'buyer_requests': result['buyer'],
    }), 200
