"""Input validators for the AgriMarket API.

Each validator returns the cleaned value or raises ValidationError naming the
offending field.
"""
import math
import re
from decimal import Decimal, InvalidOperation

from apps.api.utils.security import ValidationError

USERNAME_RE = re.compile(r'^[A-Za-z0-9_.-]{3,50}$')
MOBILE_RE = re.compile(r'^[0-9]+$')

FUNCTIONAL_ROLES = ('buyer', 'seller')
PRODUCT_CONDITIONS = ('new', 'used', 'perishable')
LISTING_CATEGORIES = ('fruits', 'vegetables', 'dairy', 'other')

# Column limits: Integer ids and quantities, Numeric(10, 2) prices
MAX_INT = 2147483647
MAX_PRICE = Decimal('99999999.99')


def sanitize_string(value, max_length: int = None):
    """Strip surrounding whitespace and control characters."""
    if value is None:
        return None
    cleaned = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', str(value)).strip()
    if max_length is not None:
        cleaned = cleaned[:max_length]
    return cleaned


def validate_required_fields(data: dict, fields) -> None:
    for field in fields:
        value = data.get(field) if data else None
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(field, f'{field} is required')


def validate_username(username) -> str:
    username = sanitize_string(username) or ''
    if not USERNAME_RE.match(username):
        raise ValidationError(
            'username',
            'Username must be 3-50 characters of letters, digits, dot, dash or underscore',
        )
    return username


def validate_password(password) -> str:
    if not isinstance(password, str) or len(password) < 6:
        raise ValidationError('password', 'Password must be at least 6 characters')
    if len(password) > 128:
        raise ValidationError('password', 'Password is too long')
    return password


def validate_phone(value, field: str = 'mobile_number', required: bool = True):
    value = sanitize_string(value)
    if not value:
        if required:
            raise ValidationError(field, f'{field} is required')
        return None
    if not MOBILE_RE.match(value):
        raise ValidationError(field, 'Mobile number must contain only digits')
    if len(value) < 10:
        raise ValidationError(field, 'Mobile number must be at least 10 digits')
    if len(value) > 15:
        raise ValidationError(field, 'Mobile number must be at most 15 digits')
    return value


def validate_name(value, field: str, required: bool = True):
    value = sanitize_string(value, max_length=100)
    if not value:
        if required:
            raise ValidationError(field, f'{field} is required')
        return None
    return value


def _coerce_float(value, field: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(field, f'{field} must be a number')
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(field, f'{field} must be a number')


def validate_latitude(value, field: str = 'latitude'):
    if value is None or value == '':
        return None
    lat = _coerce_float(value, field)
    if not -90.0 <= lat <= 90.0:
        raise ValidationError(field, 'Latitude must be between -90 and 90')
    return lat


def validate_longitude(value, field: str = 'longitude'):
    if value is None or value == '':
        return None
    lng = _coerce_float(value, field)
    if not -180.0 <= lng <= 180.0:
        raise ValidationError(field, 'Longitude must be between -180 and 180')
    return lng


def validate_coordinates(latitude, longitude, lat_field: str = 'latitude', lng_field: str = 'longitude'):
    """Validate an optional coordinate pair; both or neither must be given."""
    lat = validate_latitude(latitude, lat_field)
    lng = validate_longitude(longitude, lng_field)
    if (lat is None) != (lng is None):
        missing = lng_field if lng is None else lat_field
        raise ValidationError(missing, 'Latitude and longitude must be provided together')
    return lat, lng


def validate_radius_km(value, max_km: float, default: float = None) -> float:
    if value is None or value == '':
        if default is None:
            raise ValidationError('radius', 'radius is required')
        return float(default)
    radius = _coerce_float(value, 'radius')
    if not math.isfinite(radius):
        raise ValidationError('radius', 'radius must be a number')
    if radius <= 0:
        raise ValidationError('radius', 'radius must be positive')
    if radius > max_km:
        raise ValidationError('radius', f'radius must not exceed {max_km:g} km')
    return radius


def validate_positive_int(value, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(field, f'{field} must be a whole number')
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(field, f'{field} must be a whole number')
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(field, f'{field} must be a whole number')
    if number <= 0:
        raise ValidationError(field, f'{field} must be positive')
    if number > MAX_INT:
        raise ValidationError(field, f'{field} is too large')
    return number


def validate_price(value, field: str = 'target_price'):
    if value is None or value == '':
        return None
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(field, f'{field} must be a number')
    if not price.is_finite():
        raise ValidationError(field, f'{field} must be a number')
    if price < 0:
        raise ValidationError(field, 'Price must be positive')
    if price > MAX_PRICE or price.quantize(Decimal('0.01')) > MAX_PRICE:
        raise ValidationError(field, f'Price must not exceed {MAX_PRICE}')
    return price.quantize(Decimal('0.01'))


def validate_choice(value, field: str, choices):
    value = sanitize_string(value)
    if value:
        value = value.lower()
    if value not in choices:
        raise ValidationError(field, f'{field} must be one of: {", ".join(choices)}')
    return value


def validate_roles(roles) -> list:
    """Functional roles only; admin roles live in admin_type."""
    if roles is None:
        return ['buyer']
    if isinstance(roles, str):
        roles = [roles]
    if not isinstance(roles, (list, tuple)):
        raise ValidationError('roles', 'roles must be a list')
    cleaned = []
    for role in roles:
        role = (sanitize_string(role) or '').lower()
        if role not in FUNCTIONAL_ROLES:
            raise ValidationError('roles', f'roles may only contain: {", ".join(FUNCTIONAL_ROLES)}')
        if role not in cleaned:
            cleaned.append(role)
    if not cleaned:
        raise ValidationError('roles', 'At least one role is required')
    return cleaned


def validate_id_list(values, field: str) -> list:
    """Validate a list of positive integer ids, dropping duplicates in order."""
    if values is None:
        return []
    if not isinstance(values, (list, tuple)):
        raise ValidationError(field, f'{field} must be a list of ids')
    ids = []
    for value in values:
        item = validate_positive_int(value, field)
        if item not in ids:
            ids.append(item)
    return ids
