"""
Notespace Identity Service application entry point.
Sets up the Flask app, configuration, CORS, database,
and registers blueprints for the account, session, password and directory routes."""

import os
import logging
from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_cors import CORS
from config import get_config
from db.database import init_db
from routes.auth_routes import auth_bp
from routes.session_routes import session_bp
from routes.password_routes import password_bp
from routes.directory_routes import directory_bp
from utils.error_handling import (
    AuthorizationError,
    IdentityServiceError,
    ResourceNotFoundError,
    create_error_response,
)
from utils.security_utils import add_security_headers


# Load environment variables from .env file
load_dotenv()


def _configure_logging(config_class):
    handlers = [logging.StreamHandler()]
    if getattr(config_class, 'LOG_FILE', None):
        handlers.append(logging.FileHandler(config_class.LOG_FILE))
    logging.basicConfig(
        level=getattr(logging, config_class.LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def create_app(config_class=None):
    """
    Build the Flask application.

    Args:
        config_class: Configuration class; defaults to the one selected by FLASK_ENV

    Returns:
        Configured Flask app with tables created
    """
    if config_class is None:
        config_class = get_config()

    app = Flask(__name__)
    app.config.from_object(config_class)

    # Initialize CORS
    # The browser client sends the session cookie, so origins must be explicit
    origins_list = [origin.strip() for origin in app.config['CORS_ORIGINS'].split(',') if origin.strip()]
    CORS(app, resources={
        r"/api/*": {
            "origins": origins_list,
            "methods": ["GET", "POST", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
            "supports_credentials": True
        }
    })

    # Initialize database
    init_db(app)

    _configure_logging(config_class)

    if config_class.uses_generated_secret():
        logging.warning(
            "SECRET_KEY is not set; using a random per-process key. "
            "Session tokens and secret envelopes will not survive a restart."
        )

    # Register blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(session_bp)
    app.register_blueprint(password_bp)
    app.register_blueprint(directory_bp)

    # Add security headers to all responses
    @app.after_request
    def after_request(response):
        return add_security_headers(response)

    # Framework-level errors use the same shape as the routes
    @app.errorhandler(404)
    def not_found(error):
        body, status = create_error_response(ResourceNotFoundError('Endpoint not found'))
        return jsonify(body), status

    @app.errorhandler(405)
    def method_not_allowed(error):
        body, status = create_error_response(
            IdentityServiceError('Method not allowed', 'METHOD_NOT_ALLOWED', 405)
        )
        return jsonify(body), status

    @app.errorhandler(403)
    def forbidden(error):
        body, status = create_error_response(AuthorizationError('Forbidden'))
        return jsonify(body), status

    @app.errorhandler(500)
    def internal_error(error):
        body, status = create_error_response(getattr(error, 'original_exception', None) or error)
        return jsonify(body), status

    logging.info(
        f"{config_class.APP_NAME} starting (env: {os.environ.get('FLASK_ENV', 'development')})"
    )
    return app


# This block allows the app to be run directly for development purposes
if __name__ == "__main__":
    config_class = get_config()
    app = create_app(config_class)
    app.run(host=config_class.HOST, port=config_class.PORT)
