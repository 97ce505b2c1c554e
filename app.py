#!/usr/bin/env python3
"""
Orçamentos — Application Entry Point
Creates the Flask app, wires the quote store and registers the API Blueprint.
"""

import os
import time
import logging

from flask import Flask, jsonify, request

log = logging.getLogger("orcamento")


def create_app(config: dict = None):
    """Application factory.

    `config` overrides app.config keys (TESTING, DATA_DIR, LOGO_SOURCE,
    STORAGE_BACKEND, STORAGE).
    """
    from orcamento.core import paths
    from orcamento.core.settings import load_config, validate_settings
    from orcamento.core.storage import create_storage

    app = Flask(__name__)
    app.secret_key = os.environ.get("SECRET_KEY", "orcamento-dev")

    settings = load_config()
    app.config.update(
        DATA_DIR=paths.DATA_DIR,
        LOGO_SOURCE=paths.LOGO_SOURCE,
        STORAGE_BACKEND=settings["storage"],
        ORCAMENTO_SETTINGS=settings,
    )
    if config:
        app.config.update(config)

    # ── Start-up checks ───────────────────────────────────────────────────────
    checks = validate_settings(settings)
    for w in checks["warnings"]:
        log.warning("STARTUP: %s", w)
    for e in checks["errors"]:
        log.error("STARTUP: %s", e)

    path_checks = paths.validate_paths()
    for w in path_checks["warnings"]:
        log.warning("STARTUP: %s", w)
    for e in path_checks["errors"]:
        log.error("STARTUP: %s", e)

    # ── Store ─────────────────────────────────────────────────────────────────
    if "STORAGE" not in app.config:
        app.config["STORAGE"] = create_storage(app.config["STORAGE_BACKEND"],
                                               app.config["DATA_DIR"])
    log.info("Storage: %s (%s)", app.config["STORAGE"].backend, app.config["DATA_DIR"])

    from orcamento.api.routes import bp
    app.register_blueprint(bp)

    from orcamento.core.security import init_security
    init_security(app)

    # ── Request-level structured logging ──────────────────────────────────────
    @app.before_request
    def _log_request_start():
        request._start_time = time.time()

    @app.after_request
    def _log_request_end(response):
        if hasattr(request, "_start_time"):
            duration_ms = round((time.time() - request._start_time) * 1000, 1)
            if request.path != "/api/health":
                log.info("%s %s → %d (%.0fms)",
                         request.method, request.path, response.status_code, duration_ms,
                         extra={"route": request.path, "method": request.method,
                                "status": response.status_code, "duration_ms": duration_ms})
        return response

    @app.errorhandler(500)
    def _internal_error(e):
        log.error("Unhandled error on %s %s: %s", request.method, request.path,
                  getattr(e, "original_exception", e))
        return jsonify({"message": "Erro interno do servidor"}), 500

    return app


# For gunicorn: gunicorn "app:create_app()"
if __name__ == "__main__":
    from logging_config import setup_logging
    setup_logging()
    port = int(os.environ.get("PORT", 5000))
    create_app().run(host="0.0.0.0", port=port, debug=False)
