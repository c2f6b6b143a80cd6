"""
AgriMarket - Flask API Application
Main application entry point
"""
import sys
import os
import time
from pathlib import Path
from dotenv import load_dotenv

# Determine project root (2 levels up from this file)
API_DIR = Path(__file__).parent.resolve()
PROJECT_ROOT = API_DIR.parent.parent.resolve()

# Load environment variables from .env file at project root
env_path = PROJECT_ROOT / '.env'
if env_path.exists():
    load_dotenv(env_path)

# Add project root to path for absolute imports
sys.path.insert(0, str(PROJECT_ROOT))

from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_limiter.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from apps.api.config import Config
from apps.api import db, migrate, jwt, limiter, __version__
from apps.api.utils.security import (
    APIError,
    UpstreamFailure,
    api_error_response,
    error_401,
    error_404,
    error_429,
    error_500,
    safe_error_response,
    sanitize_log_message,
)


def create_app(config_class=Config):
    """Application factory pattern"""
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Log database backend (never the URL, it carries credentials)
    db_url = app.config.get('SQLALCHEMY_DATABASE_URI', '')
    if db_url.startswith('postgresql'):
        app.logger.info("Database: PostgreSQL")
    elif db_url.startswith('sqlite'):
        app.logger.info("Database: SQLite (local)")

    config_class.init_app(app)

    # Initialize extensions with app
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    # The limiter reads RATELIMIT_ENABLED itself
    limiter.init_app(app)
    if app.config.get('RATELIMIT_ENABLED', True):
        app.logger.info("Rate limiting enabled")
    else:
        app.logger.warning("Rate limiting is DISABLED - not recommended for production")

    # Security Headers Middleware
    @app.after_request
    def add_security_headers(response):
        """Add security headers to all responses."""
        # Prevent MIME type sniffing
        response.headers['X-Content-Type-Options'] = 'nosniff'

        # Prevent clickjacking
        response.headers['X-Frame-Options'] = 'DENY'

        # Referrer policy
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'

        # Permissions policy (disable unnecessary browser features)
        response.headers['Permissions-Policy'] = 'microphone=(), camera=()'

        # HSTS - only in production (when not localhost)
        if not app.config.get('DEBUG'):
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        response.headers['Content-Security-Policy'] = "default-src 'none'; frame-ancestors 'none'"
        return response

    # CORS configuration
    # NOTE: Cannot use wildcard ("*") with supports_credentials=True
    cors_origins = []
    is_production = (app.config.get('FLASK_ENV') == 'production') and not app.config.get('DEBUG')

    web_url = (app.config.get('WEB_URL') or '').strip()
    if web_url:
        cors_origins.append(web_url)

    # Optional explicit allowlist: comma-separated origins.
    extra_origins = (os.getenv('CORS_ALLOWED_ORIGINS') or '').split(',')
    cors_origins.extend([o.strip() for o in extra_origins if o.strip()])

    if not is_production:
        cors_origins.extend([
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ])

    # Remove duplicates
    cors_origins = list(dict.fromkeys(cors_origins))

    if is_production and not cors_origins:
        raise RuntimeError(
            "CORS configuration error: set WEB_URL or CORS_ALLOWED_ORIGINS in production."
        )

    CORS(app,
         origins=cors_origins,
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
         allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
         supports_credentials=True,
         expose_headers=["Content-Type", "Authorization"])

    # JWT token blacklist check
    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        from apps.api.models.token_blacklist import TokenBlacklist
        return TokenBlacklist.is_token_revoked(jwt_payload['jti'])

    @jwt.unauthorized_loader
    def missing_token(reason):
        return error_401('Authentication required', code='AUTH_REQUIRED')

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return error_401('Invalid token', code='INVALID_TOKEN')

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return error_401('Token has expired', code='TOKEN_EXPIRED')

    @jwt.revoked_token_loader
    def revoked_token(jwt_header, jwt_payload):
        return error_401('Token has been revoked', code='TOKEN_REVOKED')

    # Register blueprints
    from apps.api.routes import (
        auth_bp,
        users_bp,
        admin_bp,
        admins_bp,
        products_bp,
        buyer_requests_bp,
        listings_bp,
    )

    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(admins_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(buyer_requests_bp)
    app.register_blueprint(listings_bp)

    # Health check endpoint
    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint for monitoring"""
        return jsonify({
            'status': 'ok',
            'service': app.config.get('APP_NAME', 'AgriMarket') + ' API',
            'version': __version__
        }), 200

    # Database health check endpoint
    @app.route('/health/db', methods=['GET'])
    def db_health_check():
        """Health check endpoint that tests database connectivity"""
        start = time.time()
        try:
            db.session.execute(text('SELECT 1')).fetchone()
            db.session.rollback()  # Don't leave transaction open
            elapsed = time.time() - start
            return jsonify({
                'status': 'healthy',
                'database': 'connected',
                'latency_ms': round(elapsed * 1000, 2),
            }), 200
        except SQLAlchemyError as e:
            elapsed = time.time() - start
            app.logger.error(f"Database health check failed: {e}")
            return jsonify({
                'status': 'unhealthy',
                'database': 'disconnected',
                'latency_ms': round(elapsed * 1000, 2),
            }), 503

    # Error handlers
    @app.errorhandler(APIError)
    def handle_api_error(error):
        # Discard anything a failed operation left in the session
        db.session.rollback()
        if error.status_code >= 500:
            app.logger.error(
                f"{error.code} in {request.endpoint} "
                f"(operation={getattr(error, 'operation', None)}, "
                f"target={getattr(error, 'target_id', None)}): {error.details or error.message}"
            )
        return api_error_response(error)

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        db.session.rollback()
        app.logger.error(sanitize_log_message(
            f"Database error in {request.endpoint} args={request.view_args}: "
            f"{type(error).__name__}: {error}"
        ))
        failure = UpstreamFailure(
            'A database error occurred',
            operation=request.endpoint,
            details=str(error),
        )
        return api_error_response(failure)

    @app.errorhandler(404)
    def not_found(error):
        return error_404('Resource not found', code='NOT_FOUND')

    @app.errorhandler(405)
    def method_not_allowed(error):
        return safe_error_response('Method not allowed', status_code=405,
                                   code='METHOD_NOT_ALLOWED', log_level='info')

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return error_500('Internal server error', exception=error, code='INTERNAL_ERROR')

    # Flask-Limiter rate limit handler (ensure JSON, not HTML)
    @app.errorhandler(RateLimitExceeded)
    def ratelimit_handler(error):
        resp, status = error_429('Rate limit exceeded', code='RATE_LIMITED')
        # Preserve limiter-provided headers other than the HTML content type
        for key, value in error.get_headers():
            if str(key).lower() != 'content-type':
                resp.headers[key] = value
        return resp, status

    return app


# Create app instance
app = create_app()

if __name__ == '__main__':
    app.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=app.config['DEBUG']
    )
