import logging
import time
from types import SimpleNamespace

from flask import Flask

from .config import Settings
from .errors import register_error_handlers
from .utils import logger as log


def create_app(settings: Settings | None = None, store=None, resolver=None, transport=None, clock=None):
    """
    Build the Flask app. Every collaborator can be injected; anything not passed in
    is constructed from ``settings`` (which itself defaults to the environment).
    """
    from .clients.cms import CmsTransport
    from .services.reconciler import CollectionReconciler
    from .services.resolver import CatalogResolver
    from .services.store import CollectionStore
    from .utils.security import AdministrativeToken, TimestampedSignature

    settings = settings or Settings.from_env()
    app = Flask(__name__)

    # =========================================================
    # Logging: reuse gunicorn's handlers when served by it, plus stdout
    # =========================================================
    gunicorn_error = logging.getLogger("gunicorn.error")
    app.logger.handlers = gunicorn_error.handlers
    app.logger.setLevel(log.LEVELS.get(settings.log_level, logging.INFO))
    log.configure(settings.log_level, gunicorn_error.handlers)

    # =========================================================
    # Components
    # =========================================================
    if store is None:
        store = CollectionStore.from_url(settings.database_url)
        store.create_all()
    runtime_gate = TimestampedSignature(settings.cms_hmac_secret, settings.signature_window_sec, clock or time.time)
    app.extensions["collections_sync"] = SimpleNamespace(
        settings=settings,
        store=store,
        reconciler=CollectionReconciler(
            store,
            resolver or CatalogResolver.from_settings(settings),
            transport or CmsTransport(settings),
            settings,
        ),
        gates={
            "admin": AdministrativeToken(settings.admin_token),
            "runtime": runtime_gate,
        },
    )

    # =========================================================
    # Blueprints
    # =========================================================
    from .routes.collections import bp as collections_bp

    app.register_blueprint(collections_bp, url_prefix="/collections")
    register_error_handlers(app)

    # =========================================================
    # Health check
    # =========================================================
    @app.get("/health")
    def health():
        log.debug("Health check endpoint called")
        return {"ok": True}, 200

    log.info(f"collections-sync ready (default site: {settings.default_site_host or '-'})")
    return app
