"""
AgriMarket - Authentication Routes
User registration, login and logout

Security: Critical endpoints have rate limiting applied to prevent:
- Brute force attacks on login
- Credential stuffing
- Spam account creation
"""
from datetime import datetime, timezone

from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import (
    create_access_token,
    jwt_required,
    get_jwt,
    get_jwt_identity,
    set_access_cookies,
    unset_jwt_cookies,
)
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from apps.api import db, limiter
from apps.api.models.token_blacklist import TokenBlacklist
from apps.api.models.user import User
from apps.api.utils import (
    StateConflict,
    ValidationError,
    AuthenticationRequired,
    validate_username,
    validate_password,
    validate_phone,
    validate_name,
    validate_coordinates,
    validate_roles,
    sanitize_string,
)
from apps.api.utils.admin_roles import apply_master_admin_bootstrap
from apps.api.utils.auth import hash_password, verify_password

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


# Rate limiting helper - applies limiter if available
def _limit(limit_string):
    """Apply rate limit if limiter is available."""
    def decorator(f):
        if limiter:
            return limiter.limit(limit_string)(f)
        return f
    return decorator


def _token_response(user: User, status_code: int, message: str):
    access_token = create_access_token(identity=str(user.id))
    resp = jsonify({
        'message': message,
        'access_token': access_token,
        'user': user.to_dict(),
    })
    # Web clients authenticate with the cookie, mobile clients with the header
    set_access_cookies(resp, access_token)
    return resp, status_code


@auth_bp.route('/register', methods=['POST'])
@_limit("5 per hour")  # Prevent spam account creation
def register():
    """Register a new account; the reserved username becomes the master admin."""
    data = request.get_json(silent=True) or {}

    for field in ('username', 'password', 'mobile_number'):
        if not data.get(field):
            raise ValidationError(field, f'{field} is required')

    username = validate_username(data['username']).lower()
    password = validate_password(data['password'])
    mobile_number = validate_phone(data.get('mobile_number'))
    first_name = validate_name(data.get('first_name'), 'first_name', required=False)
    last_name = validate_name(data.get('last_name'), 'last_name', required=False)
    latitude, longitude = validate_coordinates(data.get('latitude'), data.get('longitude'))
    roles = validate_roles(data.get('roles'))

    if User.query.filter(func.lower(User.username) == username).first():
        raise StateConflict('Username already exists', code='USERNAME_EXISTS')

    user = User(
        username=username,
        password_hash=hash_password(password),
        mobile_number=mobile_number,
        first_name=first_name,
        last_name=last_name,
        location=sanitize_string(data.get('location'), max_length=255) or None,
        latitude=latitude,
        longitude=longitude,
        roles=roles,
    )
    if apply_master_admin_bootstrap(user):
        current_app.logger.info("Master admin account registered")

    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same name
        db.session.rollback()
        raise StateConflict('Username already exists', code='USERNAME_EXISTS')
    current_app.logger.info(f"User {user.id} registered")

    return _token_response(user, 201, 'Registration successful')


@auth_bp.route('/login', methods=['POST'])
@_limit("10 per minute")  # Critical: prevent brute force attacks
def login():
    """Login and get an access token."""
    data = request.get_json(silent=True) or {}

    username = (data.get('username') or '').strip().lower()
    password = data.get('password')

    if not username or not password:
        raise ValidationError('username', 'Username and password are required')

    user = User.query.filter(func.lower(User.username) == username).first()

    # Same answer for unknown users and wrong passwords
    if not user or not verify_password(password, user.password_hash):
        current_app.logger.warning("Failed login attempt")
        raise AuthenticationRequired('Invalid credentials', code='INVALID_CREDENTIALS')

    return _token_response(user, 200, 'Login successful')


@auth_bp.route('/logout', methods=['POST'])
@jwt_required()
def logout():
    """Logout and blacklist the current token."""
    jwt_data = get_jwt()
    expires_at = datetime.fromtimestamp(jwt_data['exp'], tz=timezone.utc).replace(tzinfo=None)

    TokenBlacklist.add_token_to_blacklist(
        jwt_data['jti'],
        jwt_data.get('type', 'access'),
        get_jwt_identity(),
        expires_at,
    )

    resp = jsonify({'message': 'Logout successful'})
    # Clear JWT cookies if present
    unset_jwt_cookies(resp)
    return resp, 200
