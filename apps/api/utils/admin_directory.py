"""User directory queries: filtered user lists, nearby and searched admins."""
from sqlalchemy import or_

from apps.api.models.user import User, AdminType, AdminStatus
from apps.api.utils.geo import apply_latitude_prefilter, filter_within_radius, km_to_meters


def list_users(admin_type=None, admin_status=None, requested_admin_id=None, role=None):
    """Users matching every given filter, ordered by id.

    ``admin_type`` and ``admin_status`` accept a single value or a sequence.
    """
    query = User.query
    if admin_type is not None:
        types = (admin_type,) if isinstance(admin_type, str) else tuple(admin_type)
        query = query.filter(User.admin_type.in_(types))
    if admin_status is not None:
        statuses = (admin_status,) if isinstance(admin_status, str) else tuple(admin_status)
        query = query.filter(User.admin_status.in_(statuses))
    if requested_admin_id is not None:
        query = query.filter(User.requested_admin_id == requested_admin_id)
    users = query.order_by(User.id.asc()).all()
    # roles is a JSON list; containment is filtered here for portability
    if role is not None:
        users = [u for u in users if u.has_role(role)]
    return users


def _approved_field_admins():
    return User.query.filter(
        User.admin_type.in_(AdminType.REQUESTABLE),
        User.admin_status == AdminStatus.APPROVED,
    )


def nearby_admins(lat: float, lng: float, radius_km: float):
    """Approved local and super admins within ``radius_km`` of the point.

    Returns ``[(admin, distance_meters)]`` by ascending distance, then id.
    Admins without coordinates never match.
    """
    radius_meters = km_to_meters(radius_km)
    query = apply_latitude_prefilter(_approved_field_admins(), User, lat, radius_meters)
    return filter_within_radius(query.all(), lat, lng, radius_meters)


def search_admins(term: str, limit: int = 50):
    """Approved local and super admins whose username, name or location matches."""
    query = _approved_field_admins()
    term = (term or '').strip()
    if term:
        like = f'%{term}%'
        query = query.filter(or_(
            User.username.ilike(like),
            User.first_name.ilike(like),
            User.last_name.ilike(like),
            User.location.ilike(like),
        ))
    return query.order_by(User.id.asc()).limit(limit).all()
