import os
import logging
import click
from logging.handlers import RotatingFileHandler
from flask import Flask, jsonify, request
from flask_limiter.errors import RateLimitExceeded
from werkzeug.exceptions import HTTPException
from config import config
from extensions import db, migrate, login_manager, limiter


def configure_logging(app):
    """Configure application logging"""
    if not app.debug and not app.testing:
        # Create logs directory if it doesn't exist
        if not os.path.exists('logs'):
            os.mkdir('logs')

        # File handler for errors
        file_handler = RotatingFileHandler(
            'logs/homeledger.log',
            maxBytes=10240000,  # 10MB
            backupCount=10
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s '
            '[in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)

        app.logger.setLevel(logging.INFO)
        app.logger.info('HomeLedger startup')
    else:
        # Development logging to console
        app.logger.setLevel(logging.DEBUG)
        app.logger.info('HomeLedger startup (DEBUG mode)')


def create_app(config_name=None):
    """Application factory pattern"""

    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config[config_name])
    config[config_name].init_app(app)

    # Tokens cannot be verified without a signing key
    if not app.config.get('JWT_SECRET_KEY'):
        raise ValueError('JWT_SECRET_KEY must be configured.')

    # Configure logging
    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)

    from services.blob_store import LocalBlobStore
    app.extensions['blob_store'] = LocalBlobStore(app.config['UPLOAD_FOLDER'])

    # Add security headers
    @app.after_request
    def add_security_headers(response):
        """Add security headers to all responses"""
        headers = app.config.get('SECURITY_HEADERS', {})
        for header, value in headers.items():
            response.headers[header] = value
        return response

    # Identity comes from the bearer token on every request; no session cookie
    @login_manager.request_loader
    def load_identity_from_request(req):
        from services.token_service import TokenService
        from utils.errors import InvalidToken
        header = req.headers.get('Authorization')
        if not header:
            return None
        try:
            return TokenService.identity_from_header(header)
        except InvalidToken as exc:
            app.logger.debug(f'Rejected bearer token: {exc.message}')
            return None

    @login_manager.user_loader
    def load_user(user_id):
        return None

    @login_manager.unauthorized_handler
    def unauthorized():
        from utils.errors import InvalidToken, Unauthenticated
        if request.headers.get('Authorization'):
            raise InvalidToken()
        raise Unauthenticated()

    # Import models to ensure they're registered with SQLAlchemy
    with app.app_context():
        import models  # noqa: F401

    # Register blueprints
    from blueprints.auth import auth_bp
    from blueprints.records import records_bp
    from blueprints.milk import milk_bp
    from blueprints.bills import bills_bp
    from blueprints.rent import rent_bp
    from blueprints.settings import settings_bp
    from blueprints.users import users_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(records_bp)
    app.register_blueprint(milk_bp)
    app.register_blueprint(bills_bp)
    app.register_blueprint(rent_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(users_bp)

    # Create database tables
    with app.app_context():
        db.create_all()

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    register_commands(app)

    return app


def register_error_handlers(app):
    """Render every error as JSON: {"error": kind, "message": text[, "fields": {...}]}"""
    from utils.errors import ServiceError

    @app.errorhandler(ServiceError)
    def service_error(error):
        if error.status_code >= 500:
            app.logger.error(f'{error.kind}: {error.message}')
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(RateLimitExceeded)
    def rate_limited(error):
        return jsonify({'error': 'RateLimited', 'message': f'Too many requests: {error.description}'}), 429

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'error': error.name.replace(' ', ''), 'message': error.description}), error.code

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        app.logger.error(f'Internal Server Error: {error}')
        return jsonify({'error': 'InternalServerError', 'message': 'An unexpected error occurred.'}), 500


def register_commands(app):
    """Register Flask CLI commands."""

    @app.cli.group()
    def users():
        """Manage user accounts."""
        pass

    @users.command('create-admin')
    @click.argument('email')
    @click.option('--name', prompt='Full name', help='Display name for the admin.')
    @click.password_option()
    def create_admin(email, name, password):
        """Create an Admin account for EMAIL."""
        from services.user_service import UserService
        from utils.errors import AlreadyExists
        try:
            result = UserService.register(email, name, password)
        except AlreadyExists:
            click.echo(f'ERROR: A user with email "{email}" already exists.', err=True)
            return
        click.echo(f'SUCCESS: Admin "{result.user.full_name}" ({result.user.email}) created with id {result.user.id}.')

    @users.command('list')
    @click.option('--role', type=click.Choice(['Admin', 'Viewer']), default=None)
    def list_users(role):
        """List user accounts, optionally filtered by ROLE."""
        from models.users import User
        query = User.query.order_by(User.email)
        if role:
            query = query.filter_by(role=role)
        found = query.all()
        if not found:
            click.echo('No users found.')
            return
        click.echo(f'{"ID":<38} {"Name":<25} {"Email":<40} {"Role":<8}')
        click.echo('-' * 112)
        for u in found:
            click.echo(f'{u.id:<38} {u.full_name:<25} {u.email:<40} {u.role:<8}')


if __name__ == '__main__':
    app = create_app()
    # SECURITY: Only bind to localhost in development
    app.run(host='127.0.0.1', port=5000, debug=True)
