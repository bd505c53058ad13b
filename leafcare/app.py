# =============================================================================
# LeafCare API
# app.py - Application Factory & Entry Point
#
# Flask application factory with extension initialization, service wiring,
# blueprint registration, error handlers, and CLI commands.
# =============================================================================

import os
import logging
import click
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .config import get_config
from .extensions import db, migrate, jwt, bcrypt, cors, limiter
from .errors import APIError, RateLimitedError
from .middleware import default_pipeline
from .utils import error_response


def create_app(config_name=None):
    """
    Application factory function.

    Args:
        config_name: Configuration environment ('development', 'testing', 'production')
                    Defaults to FLASK_ENV environment variable or 'development'

    Returns:
        Flask: Configured Flask application instance

    Raises:
        RuntimeError: A required production setting is missing
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))
    app.config['ENV_NAME'] = config_name

    check_required_settings(app)

    setup_logging(app)
    init_extensions(app)
    init_services(app)
    register_blueprints(app)
    register_error_handlers(app)
    register_jwt_handlers(app)
    register_commands(app)

    # Request id, timing and audit log around every request
    default_pipeline().init_app(app)
    setup_database_handlers(app)

    app.logger.info(f"LeafCare API started in {config_name} mode")

    return app


def check_required_settings(app):
    missing = [
        name for name in app.config.get('REQUIRED_SETTINGS', ())
        if not app.config.get(name)
    ]
    if missing:
        raise RuntimeError(f"Missing required configuration: {', '.join(missing)}")


def setup_logging(app):
    """
    Configure application logging.

    Level comes from LOG_LEVEL (DEBUG in development).
    """
    log_level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    app.logger.setLevel(log_level)
    logging.getLogger('leafcare').setLevel(log_level)


def init_extensions(app):
    """
    Initialize Flask extensions with the application instance.

    Extensions are created in extensions.py without app context,
    then initialized here with the app instance.
    """
    # Connection pooling only applies to server databases
    if not app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite'):
        app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', app.config['SERVER_DB_ENGINE_OPTIONS'])

    # Database ORM
    db.init_app(app)

    # Database migrations
    migrate.init_app(app, db)

    # JWT authentication
    jwt.init_app(app)

    # Password hashing
    bcrypt.init_app(app)

    # CORS - Cross Origin Resource Sharing
    cors.init_app(
        app,
        origins=app.config.get('CORS_ORIGINS', ['http://localhost:4200']),
        supports_credentials=app.config.get('CORS_SUPPORTS_CREDENTIALS', True),
        allow_headers=['Content-Type', 'Authorization', 'X-Request-ID'],
        methods=['GET', 'POST', 'PATCH', 'DELETE', 'OPTIONS']
    )

    # Rate limiting
    limiter.init_app(app)

    app.logger.info("Flask extensions initialized")


def init_services(app):
    """
    Build the service objects once and store them in app config.

    Services receive their settings here and never read app config
    themselves.
    """
    from .services import (
        TokenService,
        UserService,
        AuthService,
        ClassifierClient,
        RecommendationService,
        build_generator
    )

    users = UserService()
    tokens = TokenService.from_config(app.config)
    generator = build_generator(app.config)

    app.config['USER_SERVICE'] = users
    app.config['TOKEN_SERVICE'] = tokens
    app.config['AUTH_SERVICE'] = AuthService(users, tokens)
    app.config['CLASSIFIER_SERVICE'] = ClassifierClient.from_config(app.config)
    app.config['RECOMMENDATION_SERVICE'] = RecommendationService(generator)

    app.logger.info(f"Recommendation generator: {generator.name}")


def register_blueprints(app):
    """
    Register all API route blueprints under API_PREFIX.
    """
    from .routes import auth_bp, users_bp, classify_bp, recommendations_bp, health_bp

    prefix = app.config['API_PREFIX'].rstrip('/')

    app.register_blueprint(auth_bp, url_prefix=f'{prefix}/auth')
    app.register_blueprint(users_bp, url_prefix=f'{prefix}/users')
    app.register_blueprint(classify_bp, url_prefix=f'{prefix}/classify')
    app.register_blueprint(recommendations_bp, url_prefix=f'{prefix}/recommendations')
    app.register_blueprint(health_bp, url_prefix=prefix)

    app.logger.info("Blueprints registered")


def register_error_handlers(app):
    """
    Register global error handlers.

    Every error leaves the API as {success, statusCode, error, message}.
    """

    @app.errorhandler(APIError)
    def handle_api_error(error):
        if error.status_code >= 500:
            app.logger.error(f"{type(error).__name__}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(400)
    def bad_request(error):
        return error_response('Bad Request', error.description or 'Invalid request', status_code=400)

    @app.errorhandler(404)
    def not_found(error):
        return error_response('Not Found', 'The requested resource was not found', status_code=404)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return error_response('Method Not Allowed', 'The method is not allowed for this endpoint', status_code=405)

    @app.errorhandler(413)
    def request_entity_too_large(error):
        return error_response('File Too Large', 'The uploaded file exceeds the maximum allowed size', status_code=413)

    @app.errorhandler(429)
    def rate_limit_exceeded(error):
        limited = RateLimitedError()
        return jsonify(limited.to_dict()), limited.status_code

    @app.errorhandler(500)
    def internal_server_error(error):
        db.session.rollback()
        original = getattr(error, 'original_exception', None) or error
        app.logger.exception(f"Internal server error: {original}", exc_info=original)
        return error_response(
            'Internal Server Error',
            'An unexpected error occurred. Please try again later.',
            status_code=500
        )

    @app.errorhandler(HTTPException)
    def http_exception(error):
        return error_response(error.name, error.description or error.name, status_code=error.code)

    app.logger.info("Error handlers registered")


def register_jwt_handlers(app):
    """
    Access-token user loading and JWT error responses.

    Every authenticated request re-loads the user; deleted or deactivated
    accounts are rejected even while their token is unexpired.
    """
    from .models import User

    @jwt.user_lookup_loader
    def load_user(jwt_header, jwt_payload):
        try:
            user = db.session.get(User, int(jwt_payload['sub']))
        except (KeyError, TypeError, ValueError):
            return None
        if user is None or not user.is_active:
            return None
        return user

    @jwt.user_lookup_error_loader
    def user_lookup_error_callback(jwt_header, jwt_payload):
        return error_response('Unauthorized', 'User not found or inactive', status_code=401)

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return error_response('Token Expired', 'Your session has expired. Please login again.', status_code=401)

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        return error_response('Invalid Token', 'Token verification failed', status_code=401)

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        return error_response('Authorization Required', 'Missing access token', status_code=401)


def setup_database_handlers(app):
    """Remove the database session at the end of each app context."""

    @app.teardown_appcontext
    def shutdown_session(exception=None):
        if exception:
            db.session.rollback()
        db.session.remove()


def register_commands(app):
    """Flask CLI commands: init-db and cleanup-uploads."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create tables and seed the default admin."""
        from .init_db import init_database
        init_database(app)

    @app.cli.command('cleanup-uploads')
    @click.option('--max-age', type=int, default=None, help='Maximum file age in seconds')
    def cleanup_uploads_command(max_age):
        """Remove stale temporary uploads."""
        from .services.uploads import cleanup_stale_uploads

        if max_age is None:
            max_age = int(app.config['TEMP_UPLOAD_MAX_AGE'].total_seconds())
        removed = cleanup_stale_uploads(app.config['TEMP_UPLOAD_DIR'], max_age)
        click.echo(f"Removed {removed} stale upload(s)")


# =============================================================================
# Application Entry Point
# =============================================================================

if __name__ == '__main__':
    app = create_app()

    app.run(
        host='0.0.0.0',
        port=app.config['PORT'],
        debug=app.config['DEBUG']
    )
