"""Listing operations shared by products and buyer requests.

A ListingKind bundles the model, its admin association table and the roles
that own and contact it. Products are owned by sellers and contacted by
buyers; buyer requests the other way round.

Engagement counters are only ever changed with ``counter = counter + 1``
UPDATE statements so concurrent requests never lose an increment.
"""
from flask import current_app

from apps.api import db
from apps.api.models.buyer_request import BuyerRequest, BuyerRequestAdmin
from apps.api.models.product import Product, ProductAdmin
from apps.api.models.user import User, AdminType, AdminStatus
from apps.api.utils.admin_policy import admin_summary, ensure_role
from apps.api.utils.geo import apply_latitude_prefilter, filter_within_radius, km_to_meters, meters_to_km
from apps.api.utils.security import AuthorizationDenied, NotFound, ValidationError
from apps.api.utils.validators import (
    LISTING_CATEGORIES,
    PRODUCT_CONDITIONS,
    sanitize_string,
    validate_choice,
    validate_coordinates,
    validate_id_list,
    validate_positive_int,
    validate_price,
    validate_radius_km,
    validate_required_fields,
)


class ListingKind:
    def __init__(self, label, model, link_model, link_field, owner_role, contact_role):
        self.label = label
        self.model = model
        self.link_model = link_model
        self.link_field = link_field
        self.owner_role = owner_role
        self.contact_role = contact_role

    @property
    def listing_type(self):
        return self.model.LISTING_TYPE

    @property
    def link_column(self):
        return getattr(self.link_model, self.link_field)

    def __repr__(self):
        return f'<ListingKind {self.label}>'


PRODUCTS = ListingKind('Product', Product, ProductAdmin, 'product_id',
                       owner_role='seller', contact_role='buyer')
BUYER_REQUESTS = ListingKind('Buyer request', BuyerRequest, BuyerRequestAdmin, 'buyer_request_id',
                             owner_role='buyer', contact_role='seller')

KINDS = (PRODUCTS, BUYER_REQUESTS)
KIND_BY_TYPE = {kind.listing_type: kind for kind in KINDS}


# =============================================================================
# Lookup
# =============================================================================

def get_listing(kind: ListingKind, listing_id: int):
    """Fetch a listing by id regardless of ``active``."""
    listing = db.session.get(kind.model, listing_id)
    if listing is None:
        raise NotFound(f'{kind.label} not found')
    return listing


def get_visible_listing(kind: ListingKind, listing_id: int, viewer=None):
    """Fetch a listing; soft-deleted ones are visible to the owner and master admin only."""
    listing = get_listing(kind, listing_id)
    if not listing.active:
        can_audit = viewer is not None and (viewer.id == listing.owner_id or viewer.is_master_admin)
        if not can_audit:
            raise NotFound(f'{kind.label} not found')
    return listing


def active_query(kind: ListingKind, category=None, q=None, owner_id=None):
    model = kind.model
    query = model.query.filter(model.active.is_(True))
    if category:
        query = query.filter(model.category == category)
    if q:
        query = query.filter(model.name.ilike(f'%{q}%'))
    if owner_id is not None:
        query = query.filter(getattr(model, model.OWNER_FIELD) == owner_id)
    return query


def find_listings(kind: ListingKind, category=None, q=None, owner_id=None,
                  lat=None, lng=None, radius_km=None):
    """Active listings, newest first, or nearest first when a radius is given.

    Returns ``[(listing, distance_meters_or_None)]``. Radius search skips
    listings without coordinates.
    """
    query = active_query(kind, category=category, q=q, owner_id=owner_id)
    if lat is None or lng is None or radius_km is None:
        listings = query.order_by(kind.model.created_at.desc(), kind.model.id.desc()).all()
        return [(listing, None) for listing in listings]

    radius_meters = km_to_meters(radius_km)
    query = apply_latitude_prefilter(query, kind.model, lat, radius_meters)
    return filter_within_radius(query.all(), lat, lng, radius_meters)


def owner_listings(kind: ListingKind, owner_id: int, include_inactive: bool = False):
    model = kind.model
    query = model.query.filter(getattr(model, model.OWNER_FIELD) == owner_id)
    if not include_inactive:
        query = query.filter(model.active.is_(True))
    return query.order_by(model.created_at.desc(), model.id.desc()).all()


def listings_overseen_by(kind: ListingKind, admin_id: int):
    """Active listings the admin is associated with."""
    model = kind.model
    return (
        model.query
        .join(kind.link_model, kind.link_column == model.id)
        .filter(kind.link_model.admin_id == admin_id, model.active.is_(True))
        .order_by(model.created_at.desc(), model.id.desc())
        .all()
    )


# =============================================================================
# Admin associations
# =============================================================================

def clean_admin_ids(admin_ids) -> list:
    """Deduplicated ids, each an approved local or super admin."""
    admin_ids = validate_id_list(admin_ids, 'admin_ids')
    if not admin_ids:
        return admin_ids
    admins = User.query.filter(User.id.in_(admin_ids)).all()
    found = {admin.id: admin for admin in admins}
    for admin_id in admin_ids:
        admin = found.get(admin_id)
        if admin is None:
            raise ValidationError('admin_ids', f'Admin {admin_id} does not exist')
        if admin.admin_type not in AdminType.REQUESTABLE or admin.admin_status != AdminStatus.APPROVED:
            raise ValidationError('admin_ids', f'User {admin_id} is not an approved local or super admin')
    return admin_ids


def associate_admins(kind: ListingKind, listing_id: int, admin_ids) -> list:
    """Replace the listing's admin set with ``admin_ids`` from clean_admin_ids.

    An empty list clears the set. Runs in the caller's transaction, so readers
    see either the old set or the new one.
    """
    kind.link_model.query.filter(kind.link_column == listing_id).delete(synchronize_session=False)
    for admin_id in admin_ids:
        db.session.add(kind.link_model(**{kind.link_field: listing_id, 'admin_id': admin_id}))
    db.session.flush()

    current_app.logger.info(f"{kind.label} {listing_id} admins set to {admin_ids}")
    return admin_ids


def admins_by_listing(kind: ListingKind, listing_ids) -> dict:
    """Map listing id to its associated admins, in one query."""
    result = {listing_id: [] for listing_id in listing_ids}
    if not listing_ids:
        return result
    rows = (
        db.session.query(kind.link_column, User)
        .join(User, User.id == kind.link_model.admin_id)
        .filter(kind.link_column.in_(list(listing_ids)))
        .order_by(User.id.asc())
        .all()
    )
    for listing_id, admin in rows:
        result[listing_id].append(admin)
    return result


# =============================================================================
# Engagement counters
# =============================================================================

def increment_views(kind: ListingKind, listing_id: int) -> None:
    model = kind.model
    model.query.filter_by(id=listing_id).update(
        {model.views: model.views + 1}, synchronize_session=False
    )
    db.session.commit()


def increment_views_bulk(kind: ListingKind, listing_ids) -> None:
    """Count one view for each listing in a single statement."""
    listing_ids = list(listing_ids)
    if not listing_ids:
        return
    model = kind.model
    model.query.filter(model.id.in_(listing_ids)).update(
        {model.views: model.views + 1}, synchronize_session=False
    )
    db.session.commit()


def increment_contact_requests(kind: ListingKind, listing_id: int) -> None:
    model = kind.model
    model.query.filter_by(id=listing_id).update(
        {model.contact_requests: model.contact_requests + 1}, synchronize_session=False
    )
    db.session.commit()


def record_feed_views(listings) -> None:
    """Count a view for every listing in a (possibly mixed) result set."""
    for kind in KINDS:
        ids = [listing.id for listing in listings if isinstance(listing, kind.model)]
        increment_views_bulk(kind, ids)


# =============================================================================
# Create / update / delete
# =============================================================================

def parse_listing_payload(kind: ListingKind, data: dict, partial: bool = False) -> dict:
    """Validate listing fields; with ``partial`` only the given keys are checked."""
    data = data or {}
    if not partial:
        validate_required_fields(data, ['name', 'quantity', 'city', 'state'])

    fields = {}
    if 'name' in data:
        name = sanitize_string(data.get('name'), max_length=200)
        if not name:
            raise ValidationError('name', 'name is required')
        fields['name'] = name
    if 'quantity' in data:
        fields['quantity'] = validate_positive_int(data.get('quantity'), 'quantity')
    if 'quality' in data:
        fields['quality'] = sanitize_string(data.get('quality'), max_length=255) or None
    if 'condition' in data and data.get('condition') not in (None, ''):
        fields['condition'] = validate_choice(data.get('condition'), 'condition', PRODUCT_CONDITIONS)
    if 'category' in data and data.get('category') not in (None, ''):
        fields['category'] = validate_choice(data.get('category'), 'category', LISTING_CATEGORIES)
    if 'target_price' in data:
        fields['target_price'] = validate_price(data.get('target_price'))
    for field in ('city', 'state'):
        if field in data:
            value = sanitize_string(data.get(field), max_length=100)
            if not value:
                raise ValidationError(field, f'{field} is required')
            fields[field] = value
    if 'latitude' in data or 'longitude' in data:
        fields['latitude'], fields['longitude'] = validate_coordinates(
            data.get('latitude'), data.get('longitude')
        )

    if kind is PRODUCTS and 'image' in data:
        fields['image'] = sanitize_string(data.get('image'), max_length=255) or None
    if kind is BUYER_REQUESTS and 'description' in data:
        fields['description'] = sanitize_string(data.get('description'), max_length=2000) or None
    return fields


def create_listing(kind: ListingKind, owner: User, data: dict):
    ensure_role(owner, kind.owner_role, f'Only {kind.owner_role}s can create {kind.label.lower()}s')
    fields = parse_listing_payload(kind, data)
    admin_ids = clean_admin_ids((data or {}).get('admin_ids'))

    listing = kind.model(**fields)
    setattr(listing, kind.model.OWNER_FIELD, owner.id)
    db.session.add(listing)
    db.session.flush()

    associate_admins(kind, listing.id, admin_ids)
    db.session.commit()
    current_app.logger.info(f"{kind.label} {listing.id} created by user {owner.id}")
    return listing


def _ensure_owner(kind: ListingKind, listing, actor: User, action: str) -> None:
    ensure_role(actor, kind.owner_role, f'Only {kind.owner_role}s can {action} {kind.label.lower()}s')
    if listing.owner_id != actor.id:
        raise AuthorizationDenied(
            f'You can only {action} your own {kind.label.lower()}s', code='NOT_OWNER'
        )


def update_listing(kind: ListingKind, listing, actor: User, data: dict):
    """Apply a partial update; ``admin_ids``, when present, replaces the admin set."""
    _ensure_owner(kind, listing, actor, 'update')
    data = data or {}
    fields = parse_listing_payload(kind, data, partial=True)
    admin_ids = clean_admin_ids(data.get('admin_ids')) if 'admin_ids' in data else None

    for key, value in fields.items():
        setattr(listing, key, value)
    if admin_ids is not None:
        associate_admins(kind, listing.id, admin_ids)

    db.session.commit()
    current_app.logger.info(f"{kind.label} {listing.id} updated by user {actor.id}")
    return listing


def soft_delete(kind: ListingKind, listing, actor: User):
    _ensure_owner(kind, listing, actor, 'delete')
    listing.active = False
    db.session.commit()
    current_app.logger.info(f"{kind.label} {listing.id} deactivated by user {actor.id}")
    return listing


# =============================================================================
# Contact
# =============================================================================

def contact_owner(kind: ListingKind, listing_id: int, requester: User) -> dict:
    """Count a contact request and return the owner's name and phone number."""
    counterpart = 'sellers' if kind.owner_role == 'seller' else 'buyers'
    ensure_role(requester, kind.contact_role, f'Only {kind.contact_role}s can contact {counterpart}')

    listing = get_listing(kind, listing_id)
    if not listing.active:
        raise NotFound(f'{kind.label} not found')

    owner = db.session.get(User, listing.owner_id)
    if owner is None:
        raise NotFound(f'{kind.owner_role.capitalize()} information not available', code='OWNER_MISSING')

    increment_contact_requests(kind, listing.id)
    current_app.logger.info(
        f"User {requester.id} contacted {kind.owner_role} of {kind.label.lower()} {listing.id}"
    )
    return {'name': owner.display_name, 'mobile_number': owner.mobile_number}


# =============================================================================
# Serialization
# =============================================================================

def serialize_listings(listings, viewer=None, distances=None) -> list:
    """Serialize listings of any kind with their admins attached.

    ``distances`` maps ``(listing_type, id)`` to meters for radius results.
    """
    admins = {}
    for kind in KINDS:
        ids = [listing.id for listing in listings if isinstance(listing, kind.model)]
        if ids:
            admins[kind.listing_type] = admins_by_listing(kind, ids)

    result = []
    for listing in listings:
        data = listing.to_dict()
        linked = admins.get(listing.LISTING_TYPE, {}).get(listing.id, [])
        data['admins'] = [admin_summary(viewer, admin) for admin in linked]
        if distances:
            meters = distances.get((listing.LISTING_TYPE, listing.id))
            if meters is not None:
                data['distance_km'] = round(meters_to_km(meters), 3)
        result.append(data)
    return result


def serialize_listing(listing, viewer=None) -> dict:
    return serialize_listings([listing], viewer=viewer)[0]


def search_all(listing_type=None, category=None, q=None, lat=None, lng=None, radius_km=None):
    """Unified feed across products and buyer requests.

    Returns ``(listings, distances)``; listings are newest first, or nearest
    first for radius searches.
    """
    kinds = (KIND_BY_TYPE[listing_type],) if listing_type else KINDS
    pairs = []
    for kind in kinds:
        pairs.extend(find_listings(kind, category=category, q=q, lat=lat, lng=lng, radius_km=radius_km))

    if radius_km is not None and lat is not None and lng is not None:
        pairs.sort(key=lambda pair: (pair[1], pair[0].LISTING_TYPE, pair[0].id))
    else:
        pairs.sort(key=lambda pair: (pair[0].created_at, pair[0].id), reverse=True)

    distances = {
        (listing.LISTING_TYPE, listing.id): distance
        for listing, distance in pairs if distance is not None
    }
    return [listing for listing, _ in pairs], distances


def search_filters(args) -> dict:
    """Parse ``category`` and ``q`` query parameters."""
    category = sanitize_string(args.get('category'))
    if category:
        category = validate_choice(category, 'category', LISTING_CATEGORIES)
    q = sanitize_string(args.get('q'), max_length=100)
    return {'category': category or None, 'q': q or None}


def radius_filters(args, max_km: float, default_km: float) -> dict:
    """Parse ``lat``/``lng``/``radius`` query parameters (radius in km).

    Either no location is given, or both coordinates are; the radius then
    falls back to ``default_km``.
    """
    lat, lng = validate_coordinates(args.get('lat'), args.get('lng'), 'lat', 'lng')
    if lat is None:
        if args.get('radius') not in (None, ''):
            raise ValidationError('lat', 'lat and lng are required with radius')
        return {'lat': None, 'lng': None, 'radius_km': None}
    radius_km = validate_radius_km(args.get('radius'), max_km, default=default_km)
    return {'lat': lat, 'lng': lng, 'radius_km': radius_km}


def request_filters(args) -> dict:
    """All listing filters from a request's query string."""
    filters = search_filters(args)
    filters.update(radius_filters(
        args,
        current_app.config['MAX_SEARCH_RADIUS_KM'],
        current_app.config['DEFAULT_ADMIN_SEARCH_RADIUS_KM'],
    ))
    return filters
