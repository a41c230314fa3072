import os
from datetime import timedelta


basedir = os.path.abspath(os.path.dirname(__file__))


class Config:
    """Base configuration"""

    # Secret key for Flask internals (signed cookies are not used by the API)
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Database configuration
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'homeledger.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False  # Set to True for SQL query logging during development
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }

    # Access tokens
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'dev-jwt-key-change-in-production'
    JWT_ALGORITHM = 'HS256'
    JWT_ISSUER = os.environ.get('JWT_ISSUER') or 'homeledger'
    JWT_AUDIENCE = os.environ.get('JWT_AUDIENCE') or 'homeledger-clients'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=24)

    # Invitations and password resets
    TEMP_PASSWORD_TTL = timedelta(hours=24)
    PASSWORD_RESET_TTL = timedelta(hours=24)
    FRONTEND_BASE_URL = os.environ.get('FRONTEND_BASE_URL') or 'http://localhost:5173'

    # Milk rate used when an admin has never saved settings (Rs per liter)
    DEFAULT_MILK_RATE_PER_LITER = os.environ.get('DEFAULT_MILK_RATE_PER_LITER') or '200'

    # Rate Limiting
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI') or 'memory://'
    RATELIMIT_STRATEGY = 'fixed-window'
    RATELIMIT_HEADERS_ENABLED = True

    # Security Headers
    SECURITY_HEADERS = {
        'Strict-Transport-Security': 'max-age=31536000; includeSubDomains',
        'X-Content-Type-Options': 'nosniff',
        'X-Frame-Options': 'DENY',
        'Referrer-Policy': 'strict-origin-when-cross-origin'
    }

    # Password Requirements
    PASSWORD_MIN_LENGTH = 8
    PASSWORD_REQUIRE_UPPERCASE = True
    PASSWORD_REQUIRE_LOWERCASE = True
    PASSWORD_REQUIRE_DIGIT = True
    PASSWORD_REQUIRE_SPECIAL = False

    # Login Security
    MAX_LOGIN_ATTEMPTS = 5
    LOCKOUT_DURATION = timedelta(minutes=15)

    # Blob storage (bill attachments, profile images)
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER') or os.path.join(basedir, 'instance', 'uploads')
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10MB
    ALLOWED_UPLOAD_EXTENSIONS = {'pdf', 'png', 'jpg', 'jpeg', 'gif', 'webp'}

    # Email
    MAIL_BACKEND = os.environ.get('MAIL_BACKEND') or 'log'  # 'smtp' | 'log' | 'memory'
    MAIL_SERVER = os.environ.get('MAIL_SERVER') or 'localhost'
    MAIL_PORT = int(os.environ.get('MAIL_PORT') or 587)
    MAIL_USE_TLS = (os.environ.get('MAIL_USE_TLS') or 'true').lower() in ('true', '1', 'yes')
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_SENDER_NAME = os.environ.get('MAIL_SENDER_NAME') or 'HomeLedger'
    MAIL_SENDER_EMAIL = os.environ.get('MAIL_SENDER_EMAIL') or 'no-reply@homeledger.local'
    MAIL_TIMEOUT = 10


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SQLALCHEMY_ECHO = False  # Set to True only when debugging SQL queries


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False

    # MUST set these environment variables in production
    SECRET_KEY = os.environ.get('SECRET_KEY')  # Generate with: python -c 'import secrets; print(secrets.token_hex(32))'
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or os.environ.get('SQLALCHEMY_DATABASE_URI')
    MAIL_BACKEND = os.environ.get('MAIL_BACKEND') or 'smtp'

    PREFERRED_URL_SCHEME = 'https'

    # Validate required settings
    @classmethod
    def init_app(cls, app):
        Config.init_app(app)

        if not app.config.get('SECRET_KEY'):
            raise ValueError("SECRET_KEY environment variable must be set in production!")
        if not app.config.get('JWT_SECRET_KEY'):
            raise ValueError("JWT_SECRET_KEY environment variable must be set in production!")

        # Warn if using SQLite in production
        if 'sqlite' in (app.config.get('SQLALCHEMY_DATABASE_URI') or ''):
            import warnings
            warnings.warn("Using SQLite in production is not recommended. Use PostgreSQL or MySQL.")


# Add init_app to base config
Config.init_app = classmethod(lambda cls, app: None)


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = 'testing-jwt-key-with-enough-length-for-hs256'
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    MAIL_BACKEND = 'memory'


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
