"""
EventBoard - Main Flask Application
Event listings with image uploads, gated by a single shared login.
"""
import sys
from datetime import timedelta
from typing import Optional

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException

from .config import Settings, MAX_CONTENT_LENGTH, SESSION_LIFETIME_HOURS
from .exceptions import ConfigurationError
from .log import configure_logger, logger
from .repositories import EventRepository
from .routes import api_bp, pages_bp
from .services import BlobStoreClient, EventService


def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[EventRepository] = None,
    blob_client: Optional[BlobStoreClient] = None
) -> Flask:
    """
    Build the Flask application.
    Settings are read from the environment unless given; the repository
    and blob client can be injected (tests do).
    """
    settings = settings or Settings.from_env()
    configure_logger(settings.log_level, settings.log_dir)

    app = Flask(__name__)
    app.secret_key = settings.secret_key
    app.permanent_session_lifetime = timedelta(hours=SESSION_LIFETIME_HOURS)
    app.config.update(
        SETTINGS=settings,
        MAX_CONTENT_LENGTH=MAX_CONTENT_LENGTH,
        SESSION_REFRESH_EACH_REQUEST=True,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SECURE=settings.secure_cookies,
    )

    repository = repository or EventRepository(settings.database, settings.upload_folder)
    blob_client = blob_client or BlobStoreClient(settings.blob_token, settings.blob_api_base)
    if not blob_client.configured:
        logger.warning("No blob token configured; images will be kept locally")

    app.extensions['event_service'] = EventService(
        repository,
        blob_client,
        upload_folder=settings.upload_folder,
        blob_required=settings.blob_required,
        image_required=settings.image_required,
    )

    app.register_blueprint(api_bp, url_prefix='/api')
    app.register_blueprint(pages_bp)

    # ---------------------------------------------------------------------------
    # Initialize DB on first request
    # ---------------------------------------------------------------------------
    @app.before_request
    def _init_db_once():
        if settings.auto_init_db and not app.config.get('DB_INITIALIZED'):
            repository.ensure_schema()
            app.config['DB_INITIALIZED'] = True

    # ==================== ERROR HANDLERS ====================

    @app.errorhandler(HTTPException)
    def http_error(error):
        """JSON errors under /api, the default pages elsewhere."""
        if request.path.startswith('/api'):
            message = 'File too large' if error.code == 413 else error.name
            return jsonify({'success': False, 'error': message}), error.code
        return error

    return app


def main():
    try:
        settings = Settings.from_env()
        app = create_app(settings)
    except ConfigurationError as e:
        logger.error("Configuration error: {}", e)
        sys.exit(1)

    logger.info("Server running on port {}", settings.port)
    app.run(host='0.0.0.0', port=settings.port)


if __name__ == '__main__':
    main()
