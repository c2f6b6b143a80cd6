"""Current-user resolution on top of flask-jwt-extended."""
from functools import wraps

import bcrypt
from flask import current_app
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from apps.api import db
from apps.api.models.user import User
from apps.api.utils.security import AuthenticationRequired


def hash_password(password: str) -> str:
    rounds = current_app.config.get('BCRYPT_LOG_ROUNDS', 12)
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds)).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def get_current_user(optional: bool = False):
    """Resolve the JWT identity to a User.

    A valid token whose user no longer exists is treated as unauthenticated.
    With ``optional=True`` anonymous requests resolve to None instead of raising.
    """
    verify_jwt_in_request(optional=optional)
    identity = get_jwt_identity()
    if identity is None:
        if optional:
            return None
        raise AuthenticationRequired()
    try:
        user_id = int(identity)
    except (TypeError, ValueError):
        raise AuthenticationRequired('Invalid token identity', code='INVALID_TOKEN')
    user = db.session.get(User, user_id)
    if user is None:
        if optional:
            return None
        raise AuthenticationRequired('Account no longer exists')
    return user


def login_required(f):
    """Require a valid token and pass the resolved user as ``current_user``."""
    @wraps(f)
    def decorated(*args, **kwargs):
        kwargs['current_user'] = get_current_user()
        return f(*args, **kwargs)
    return decorated


def login_optional(f):
    """Like login_required, but anonymous callers get ``current_user=None``."""
    @wraps(f)
    def decorated(*args, **kwargs):
        kwargs['current_user'] = get_current_user(optional=True)
        return f(*args, **kwargs)
    return decorated
