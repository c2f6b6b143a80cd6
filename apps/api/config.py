"""
AgriMarket - Configuration
Application configuration management
"""
import os
import logging
from datetime import timedelta
from pathlib import Path
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse

# Resolve base directory for both monorepo and API-only deployments.
# Monorepo layout: <repo>/apps/api/config.py -> BASE_DIR=<repo>
# API-only layout: /app/config.py -> BASE_DIR=/app
_THIS_DIR = Path(__file__).parent.resolve()
_MONOREPO_ROOT = _THIS_DIR.parent.parent
if (_MONOREPO_ROOT / 'apps' / 'api').exists():
    BASE_DIR = _MONOREPO_ROOT.resolve()
else:
    BASE_DIR = _THIS_DIR


def _require_env(name: str, default: str = None, allow_default_in_dev: bool = True) -> str:
    """
    Get environment variable, failing loudly in production if not set.

    Args:
        name: Environment variable name
        default: Default value (only used in development)
        allow_default_in_dev: Whether to allow default in development mode

    Returns:
        The environment variable value

    Raises:
        RuntimeError: If variable is not set in production
    """
    value = os.getenv(name)
    is_production = os.getenv('FLASK_ENV', 'development') == 'production'

    if value:
        return value

    if is_production:
        # Secrets must never fall back to the development defaults
        if default is None or name in ('SECRET_KEY', 'JWT_SECRET_KEY'):
            raise RuntimeError(
                f"SECURITY ERROR: {name} environment variable is required in production. "
                f"Set it in your deployment environment."
            )
        logging.warning(f"Using default value for {name} in production - consider setting explicitly")
        return default

    if default is not None and allow_default_in_dev:
        logging.debug(f"Using default value for {name} in development")
        return default

    raise RuntimeError(f"{name} environment variable is required")


def get_database_url():
    """
    Get and process the database URL.
    - Handles URL scheme conversion (postgres:// -> postgresql://)
    - Ensures SSL is enabled for PostgreSQL connections
    - Falls back to a local SQLite file when DATABASE_URL is unset
    """
    url = os.getenv('DATABASE_URL')

    if not url:
        fallback = 'sqlite:///agrimarket.db'
        logging.warning("DATABASE_URL not set; using fallback %s", fallback)
        return fallback

    # SQLAlchemy requires postgresql://
    if url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)

    if url.startswith('postgresql://'):
        try:
            parsed = urlparse(url)
            query_params = parse_qs(parsed.query)

            if 'sslmode' not in query_params:
                query_params['sslmode'] = [os.getenv('DATABASE_SSLMODE', 'require')]

            new_query = urlencode(query_params, doseq=True)
            url = urlunparse((
                parsed.scheme,
                parsed.netloc,
                parsed.path,
                parsed.params,
                new_query,
                parsed.fragment
            ))
        except ValueError as e:
            # Special characters in the password can break urlparse
            logging.warning(f"Could not parse DATABASE_URL (special chars?): {e}")
            if 'sslmode=' not in url:
                separator = '&' if '?' in url else '?'
                url = f"{url}{separator}sslmode=require"

    return url


def get_engine_options():
    """
    Get SQLAlchemy engine options based on the database type.

    Role transitions and counter updates rely on the database for atomicity,
    so PostgreSQL runs with a short statement timeout and pre-ping to drop
    stale connections instead of hanging a request.
    """
    db_url = get_database_url()

    options = {
        'pool_pre_ping': True,
    }

    if db_url.startswith('postgresql://'):
        options.update({
            'pool_recycle': int(os.getenv('DB_POOL_RECYCLE', 300)),
            'pool_timeout': 20,
            'pool_size': int(os.getenv('DB_POOL_SIZE', 5)),
            'max_overflow': int(os.getenv('DB_MAX_OVERFLOW', 10)),
            'connect_args': {
                'connect_timeout': 20,
                'keepalives': 1,
                'keepalives_idle': 30,
                'keepalives_interval': 10,
                'keepalives_count': 5,
                'options': '-c statement_timeout=20000',
                'application_name': 'agrimarket-api',
            }
        })

    # SQLite keeps the options minimal (no pooling)
    if db_url.startswith('sqlite://'):
        from sqlalchemy.pool import NullPool
        options = {'poolclass': NullPool}

    return options


class Config:
    """Base configuration"""

    # Flask - SECRET_KEY is REQUIRED in production
    SECRET_KEY = _require_env('SECRET_KEY', 'dev-secret-key-for-local-development-only')
    DEBUG = os.getenv('DEBUG', 'False') == 'True'
    FLASK_ENV = os.getenv('FLASK_ENV', 'development')

    # Database
    SQLALCHEMY_DATABASE_URI = get_database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = DEBUG
    SQLALCHEMY_ENGINE_OPTIONS = get_engine_options()

    # JWT - JWT_SECRET_KEY is REQUIRED in production
    JWT_SECRET_KEY = _require_env('JWT_SECRET_KEY', 'jwt-dev-secret-for-local-development-only')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(
        seconds=int(os.getenv('JWT_ACCESS_TOKEN_EXPIRES', 86400))
    )
    JWT_ALGORITHM = 'HS256'
    # Web clients use the access cookie, mobile clients the Authorization header
    JWT_TOKEN_LOCATION = ['headers', 'cookies']
    JWT_COOKIE_SECURE = (os.getenv('JWT_COOKIE_SECURE', 'False' if DEBUG else 'True') == 'True')
    JWT_COOKIE_SAMESITE = os.getenv('JWT_COOKIE_SAMESITE', 'Lax')
    JWT_ACCESS_COOKIE_NAME = 'sessionId'
    JWT_ACCESS_COOKIE_PATH = '/'
    JWT_COOKIE_CSRF_PROTECT = (os.getenv('JWT_COOKIE_CSRF_PROTECT', 'False') == 'True')

    # Password hashing
    BCRYPT_LOG_ROUNDS = int(os.getenv('BCRYPT_LOG_ROUNDS', 12))

    # Rate Limiting Configuration
    RATELIMIT_ENABLED = os.getenv('RATELIMIT_ENABLED', 'True') == 'True'
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')
    if FLASK_ENV == 'production' and RATELIMIT_ENABLED and RATELIMIT_STORAGE_URI.strip().lower() == 'memory://':
        raise RuntimeError(
            "RATELIMIT_STORAGE_URI must use a shared backend (e.g., Redis) in production."
        )
    RATELIMIT_DEFAULT = os.getenv('RATELIMIT_DEFAULT', '200 per day, 50 per hour')
    RATELIMIT_HEADERS_ENABLED = True

    # Application
    APP_NAME = os.getenv('APP_NAME', 'AgriMarket')

    # Frontend URL (for CORS)
    WEB_URL = os.getenv('WEB_URL', 'http://localhost:5173')

    # Admin hierarchy
    # The single master admin account is created by registering this username.
    MASTER_ADMIN_USERNAME = os.getenv('MASTER_ADMIN_USERNAME', 'masteradmin123')

    # Geo search (radii are accepted in kilometers at the HTTP boundary)
    DEFAULT_ADMIN_SEARCH_RADIUS_KM = float(os.getenv('DEFAULT_ADMIN_SEARCH_RADIUS_KM', 50))
    MAX_SEARCH_RADIUS_KM = float(os.getenv('MAX_SEARCH_RADIUS_KM', 500))

    @staticmethod
    def init_app(app):
        """Initialize application configuration"""
        if not (app.config.get('MASTER_ADMIN_USERNAME') or '').strip():
            raise RuntimeError("MASTER_ADMIN_USERNAME must not be empty")
        app.logger.info(
            "Master admin username configured (%d chars)",
            len(app.config['MASTER_ADMIN_USERNAME']),
        )


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SQLALCHEMY_ECHO = True


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    SQLALCHEMY_ECHO = False


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SQLALCHEMY_ECHO = False
    JWT_SECRET_KEY = 'test-secret'
    JWT_COOKIE_SECURE = False
    RATELIMIT_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4


# Config dictionary
config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
