import logging
import traceback
from typing import NamedTuple, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.exceptions import HTTPException

from .chat_service import ChatGateway
from .config import Settings
from .connection import ConnectionCache, sqlalchemy_connector
from .errors import MindMateError, RateLimited
from .routes import ENDPOINTS, ai_bp, journal_bp, main_bp, mood_bp
from .store import EntryStore

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Hardening headers added to every response unless a view set its own.
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-DNS-Prefetch-Control": "off",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "cross-origin",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'self'",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
}


class Services(NamedTuple):
    settings: Settings
    cache: ConnectionCache
    store: EntryStore
    gateway: ChatGateway


def configure_logging(level="INFO"):
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=_LOG_FORMAT)


def _error_body(settings, message, kind, exc=None, detail=None):
    body = {"success": False, "error": message, "kind": kind}
    if not settings.is_production and exc is not None:
        body["details"] = detail if detail else str(exc)
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


def _register_error_handlers(app, settings):
    @app.errorhandler(MindMateError)
    def handle_mindmate_error(exc):
        log = logger.warning if exc.status_code < 500 else logger.error
        log("%s %s -> %s (%s)", request.method, request.path, exc.status_code, exc.kind)
        message = exc.public_message if settings.is_production else exc.message
        resp = jsonify(_error_body(settings, message, exc.kind, exc, exc.detail))
        resp.status_code = exc.status_code
        if isinstance(exc, RateLimited) and exc.retry_after:
            resp.headers["Retry-After"] = str(exc.retry_after)
        return resp

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        kind = "RateLimited" if exc.code == 429 else "HTTPError"
        body = {"success": False, "error": exc.name, "kind": kind}
        if exc.code == 404:
            body.update(path=request.path, method=request.method, availableEndpoints=ENDPOINTS)
        return jsonify(body), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        message = "Something went wrong" if settings.is_production else str(exc)
        return jsonify(_error_body(settings, message, "InternalError", exc)), 500


def create_app(settings: Optional[Settings] = None, cache=None, store=None, gateway=None):
    """Build the Flask app. Collaborators default to ones built from ``settings``."""
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_content_length
    app.json.sort_keys = False

    # --- CORS (allow the deployed frontend origins if provided) ---
    if settings.frontend_origins:
        CORS(app, resources={r"/*": {"origins": list(settings.frontend_origins)}})
    else:
        # Dev fallback: allow all
        CORS(app)

    Limiter(
        get_remote_address,
        app=app,
        default_limits=[settings.rate_limit] if settings.rate_limit else [],
        storage_uri="memory://",
    )

    @app.after_request
    def set_security_headers(resp):
        for name, value in SECURITY_HEADERS.items():
            resp.headers.setdefault(name, value)
        return resp

    if cache is None:
        cache = ConnectionCache(sqlalchemy_connector(
            settings.database_url,
            connect_timeout=settings.db_connect_timeout,
            idle_timeout=settings.db_idle_timeout,
        ))
    app.extensions["mindmate"] = Services(
        settings=settings,
        cache=cache,
        store=store or EntryStore(cache),
        gateway=gateway or ChatGateway(settings),
    )

    app.register_blueprint(main_bp)
    app.register_blueprint(journal_bp, url_prefix="/journal")
    app.register_blueprint(mood_bp, url_prefix="/mood")
    app.register_blueprint(ai_bp, url_prefix="/ai")
    _register_error_handlers(app, settings)

    logger.info("MindMate app created (environment=%s)", settings.environment)
    return app


def main():
    settings = Settings.from_env()
    app = create_app(settings)
    app.run(
        host="0.0.0.0",
        port=settings.port,
        debug=settings.debug,
        threaded=True,
    )


if __name__ == "__main__":
    main()
