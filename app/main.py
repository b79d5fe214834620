"""
Flask application factory for the resume slot store.
"""

import argparse
import logging
from pathlib import Path
from typing import Optional

from flask import Flask, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix

from config_manager import ConfigManager
from config_manager import config_manager as default_config_manager
from app.dashboard import create_dashboard_module
from app.error_handlers import register_error_handlers
from app.liked_jobs import create_liked_jobs_module
from app.quota import create_quota_module
from app.record_store import RecordStore, create_record_store
from app.resume_slots import create_resume_slots_module
from app.subscription import create_subscription_module

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent
SERVICE_NAME = "resume-slot-store"


def create_app(config: Optional[ConfigManager] = None,
               store: Optional[RecordStore] = None) -> Flask:
    """
    Build the Flask app with every module wired to one shared record store.

    Args:
        config: Configuration source; the process-wide ConfigManager when None
        store: Pre-built record store (tests pass an InMemoryRecordStore);
            built from the store configuration when None

    Returns:
        Configured Flask application. The store and service are exposed in
        ``app.extensions["resume_store"]``.
    """
    config = config or default_config_manager
    store_config = config.get_store_config()
    quota_config = config.get_quota_config()

    app = Flask(__name__)
    app.wsgi_app = ProxyFix(
        app.wsgi_app,
        x_proto=1,     # trust 1 hop for X-Forwarded-Proto
        x_host=1,      # trust 1 hop for X-Forwarded-Host
        x_prefix=1)

    # -------------------------------------------------------------------------
    # Shared components
    # -------------------------------------------------------------------------

    if store is None:
        store = create_record_store(store_config, base_dir=PROJECT_ROOT)

    quota_module = create_quota_module(quota_config.tier_capacities)
    quota_manager = quota_module["manager"]

    resume_slots_module = create_resume_slots_module(
        store=store,
        quota_manager=quota_manager,
        max_write_retries=store_config.max_write_retries
    )
    resume_service = resume_slots_module["service"]

    dashboard_module = create_dashboard_module(resume_service)
    subscription_module = create_subscription_module(resume_service, quota_manager)
    liked_jobs_module = create_liked_jobs_module(resume_service)

    # -------------------------------------------------------------------------
    # Blueprints
    # -------------------------------------------------------------------------

    app.register_blueprint(resume_slots_module["blueprint"])
    app.register_blueprint(dashboard_module["blueprint"])
    app.register_blueprint(subscription_module["blueprint"])
    app.register_blueprint(liked_jobs_module["blueprint"])

    register_error_handlers(app)

    @app.route("/health")
    def health():
        return jsonify({"status": "UP", "service": SERVICE_NAME})

    app.extensions["resume_store"] = {
        "store": store,
        "service": resume_service,
        "quota_manager": quota_manager,
    }

    logger.info(
        f"App created: backend={store_config.backend}, "
        f"tiers={quota_manager.table.to_dict()}, retries={store_config.max_write_retries}"
    )
    return app


def close_store(app: Flask) -> None:
    """Close the record store owned by ``app``. Safe to call twice."""
    components = app.extensions.get("resume_store")
    if components and not components["store"].closed:
        components["store"].close()
        logger.info("Record store closed")


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------

if __name__ == "__main__":
    from app.logging_config import setup_logging, stop_logging

    parser = argparse.ArgumentParser(description="Resume slot store HTTP service")
    parser.add_argument("--port", type=int, help="Port to run the server on")
    parser.add_argument("--host", type=str, help="Host to bind the server to")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    args = parser.parse_args()

    app_config = default_config_manager.get_app_config()
    if args.port:
        app_config.port = args.port
    if args.host:
        app_config.host = args.host
    if args.debug:
        app_config.debug = args.debug

    setup_logging(app_config.debug)
    app = create_app()
    try:
        app.run(host=app_config.host, port=app_config.port, debug=app_config.debug)
    finally:
        close_store(app)
        stop_logging()
