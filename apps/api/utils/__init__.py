"""Utility functions for the API."""

from .validators import (
    validate_username,
    validate_password,
    validate_phone,
    validate_name,
    validate_latitude,
    validate_longitude,
    validate_coordinates,
    validate_radius_km,
    validate_positive_int,
    validate_price,
    validate_choice,
    validate_roles,
    validate_id_list,
    validate_required_fields,
    sanitize_string,
)

from .security import (
    APIError,
    ValidationError,
    AuthenticationRequired,
    AuthorizationDenied,
    NotFound,
    StateConflict,
    UpstreamFailure,
    api_error_response,
    safe_error_response,
    error_401,
    error_404,
    error_429,
    error_500,
    sanitize_log_message,
)

__all__ = [
    # Validators
    'validate_username',
    'validate_password',
    'validate_phone',
    'validate_name',
    'validate_latitude',
    'validate_longitude',
    'validate_coordinates',
    'validate_radius_km',
    'validate_positive_int',
    'validate_price',
    'validate_choice',
    'validate_roles',
    'validate_id_list',
    'validate_required_fields',
    'sanitize_string',
    # Errors
    'APIError',
    'ValidationError',
    'AuthenticationRequired',
    'AuthorizationDenied',
    'NotFound',
    'StateConflict',
    'UpstreamFailure',
    'api_error_response',
    'safe_error_response',
    'error_401',
    'error_404',
    'error_429',
    'error_500',
    'sanitize_log_message',
]
