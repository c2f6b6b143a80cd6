"""Security and error utilities for the AgriMarket API.

This module provides:
- The API error taxonomy (validation, authentication, authorization,
  not found, state conflict, upstream failure)
- Standardized error responses (safe for production)
- Log sanitizing helpers
"""
import logging
import re
from typing import Optional, Set
from flask import jsonify, current_app, has_app_context


# =============================================================================
# Error Taxonomy
# =============================================================================

class APIError(Exception):
    """Base exception for API errors with safe error messages."""

    status_code = 500
    default_code = 'ERROR'

    def __init__(self, message: str, code: str = None, status_code: int = None, details: str = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        if status_code is not None:
            self.status_code = status_code
        self.details = details  # Only shown in debug mode

    def to_dict(self) -> dict:
        payload = {'error': self.message, 'code': self.code}
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationError(APIError):
    """Malformed input. Carries the offending field name."""

    status_code = 400
    default_code = 'VALIDATION_ERROR'

    def __init__(self, field: str, message: str, code: str = None):
        super().__init__(message, code=code)
        self.field = field

    def __str__(self):
        return f'{self.field}: {self.message}' if self.field else self.message

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.field:
            payload['field'] = self.field
        return payload


class AuthenticationRequired(APIError):
    status_code = 401
    default_code = 'AUTH_REQUIRED'

    def __init__(self, message: str = 'Authentication required', code: str = None):
        super().__init__(message, code=code)


class AuthorizationDenied(APIError):
    """Authenticated, but the role or the target's state forbids the action."""

    status_code = 403
    default_code = 'FORBIDDEN'


class NotFound(APIError):
    status_code = 404
    default_code = 'NOT_FOUND'


class StateConflict(APIError):
    """The target is not in a state that allows the transition."""

    status_code = 409
    default_code = 'STATE_CONFLICT'


class UpstreamFailure(APIError):
    """Persistence or session store failure, surfaced with operation context."""

    status_code = 500
    default_code = 'UPSTREAM_FAILURE'

    def __init__(self, message: str, operation: str = None, target_id=None, details: str = None):
        super().__init__(message, details=details)
        self.operation = operation
        self.target_id = target_id


# =============================================================================
# Standardized Error Responses
# =============================================================================

def api_error_response(error: APIError) -> tuple:
    """Serialize an APIError, hiding details outside debug mode."""
    payload = error.to_dict()
    if not (has_app_context() and current_app.config.get('DEBUG')):
        payload.pop('details', None)
    return jsonify(payload), error.status_code


def safe_error_response(
    message: str,
    exception: Optional[Exception] = None,
    status_code: int = 500,
    code: str = None,
    log_level: str = 'error'
) -> tuple:
    """
    Create a standardized, safe error response.

    In production only the safe message is returned and the full error is
    logged server-side. In debug mode the exception details are included.

    Args:
        message: Safe error message for clients
        exception: The caught exception (optional)
        status_code: HTTP status code
        code: Optional error code for client parsing
        log_level: Logging level ('error', 'warning', 'info')

    Returns:
        Tuple of (response, status_code)
    """
    response = {'error': message}

    if code:
        response['code'] = code

    logger = current_app.logger if has_app_context() else logging.getLogger(__name__)
    log_message = f"{message}"
    if exception:
        log_message += f": {type(exception).__name__}: {exception}"

    log_func = getattr(logger, log_level, logger.error)
    log_func(log_message)

    if has_app_context() and current_app.config.get('DEBUG') and exception:
        response['details'] = str(exception)
        response['exception_type'] = type(exception).__name__

    return jsonify(response), status_code


def error_401(message: str = "Unauthorized", exception: Exception = None, code: str = None):
    """Unauthorized error."""
    return safe_error_response(message, exception, 401, code or 'AUTH_REQUIRED', 'warning')


def error_404(message: str = "Not found", exception: Exception = None, code: str = None):
    """Not found error."""
    return safe_error_response(message, exception, 404, code, 'info')


def error_429(message: str = "Too many requests", exception: Exception = None, code: str = None):
    """Rate limit exceeded."""
    return safe_error_response(message, exception, 429, code or 'RATE_LIMITED', 'warning')


def error_500(message: str = "Internal server error", exception: Exception = None, code: str = None):
    """Internal server error."""
    return safe_error_response(message, exception, 500, code, 'error')


# =============================================================================
# Security Helpers
# =============================================================================

_DEFAULT_SENSITIVE_FIELDS = {'password', 'password_hash', 'token', 'secret', 'access_token', 'authorization'}


def sanitize_log_message(message: str, sensitive_fields: Set[str] = None) -> str:
    """
    Sanitize a message before logging to prevent sensitive data leakage.

    Args:
        message: The message to sanitize
        sensitive_fields: Set of field names to redact

    Returns:
        Sanitized message
    """
    if sensitive_fields is None:
        sensitive_fields = _DEFAULT_SENSITIVE_FIELDS

    sanitized = message
    for field in sensitive_fields:
        patterns = [
            rf"({field}['\"]?\s*[:=]\s*['\"]?)([^'\",\s]+)",
            rf"({field}['\"]?\s*[:=]\s*)([^\s,}}]+)",
        ]
        for pattern in patterns:
            sanitized = re.sub(pattern, r'\1[REDACTED]', sanitized, flags=re.IGNORECASE)

    return sanitized
