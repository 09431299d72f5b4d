from __future__ import annotations

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from visitor_stats.clock import TimeNormalizer
from visitor_stats.config import Settings
from visitor_stats.extensions import configure_logging, cors
from visitor_stats.routes import api_bp
from visitor_stats.services.access import AccessService
from visitor_stats.services.address_resolver import AddressResolver
from visitor_stats.services.denylist import DenylistGuard
from visitor_stats.services.recording import RecordService
from visitor_stats.services.visitor_store import VisitorStore
from visitor_stats.storage import Database

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> Flask:
    settings = settings or Settings.from_env()
    configure_logging(settings)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_content_length_mb * 1024 * 1024

    cors.init_app(
        app,
        resources={r"*": {"origins": settings.cors_origins}},
        methods=["GET", "POST", "PUT", "DELETE"],
    )

    database = Database(settings.database_url)
    database.init_schema()

    clock = TimeNormalizer()
    resolver = AddressResolver()
    denylist = DenylistGuard(settings=settings, database=database, clock=clock)
    store = VisitorStore(database=database)

    app.extensions["settings"] = settings
    app.extensions["services"] = {
        "database": database,
        "clock": clock,
        "resolver": resolver,
        "denylist": denylist,
        "store": store,
        "access": AccessService(settings=settings, resolver=resolver, denylist=denylist),
        "recorder": RecordService(
            resolver=resolver,
            denylist=denylist,
            clock=clock,
            store=store,
        ),
    }

    api_prefix = f"{settings.app_base_path}/api"
    app.register_blueprint(api_bp, url_prefix=api_prefix)

    @app.get(f"{settings.app_base_path}/")
    def root() -> tuple:
        return jsonify(
            {
                "success": True,
                "message": "visitor-stats service is running",
                "serviceTime": clock.now(),
                "availableApis": [
                    {"path": f"{api_prefix}/verify-ip", "method": "GET", "desc": "Check whether the caller may access the site"},
                    {"path": f"{api_prefix}/record-visitor", "method": "POST", "desc": "Record the caller's visit (address derived server-side)"},
                    {"path": f"{api_prefix}/get-visitor-data", "method": "GET", "desc": "Visit count, last visit and full record list"},
                    {"path": f"{api_prefix}/delete-visitor/<id>", "method": "DELETE", "desc": "Delete one visit record"},
                    {"path": f"{api_prefix}/batch-delete-visitor", "method": "DELETE", "desc": "Delete visit records by id list"},
                    {"path": f"{api_prefix}/edit-visitor/<id>", "method": "PUT", "desc": "Set the remark of a visit record"},
                    {"path": f"{api_prefix}/get-blacklist", "method": "GET", "desc": "List denylisted addresses"},
                    {"path": f"{api_prefix}/save-blacklist", "method": "POST", "desc": "Replace the denylist"},
                    {"path": f"{api_prefix}/reset-visitor", "method": "DELETE", "desc": "Delete every visit record"},
                ],
            }
        ), 200

    @app.errorhandler(413)
    def request_too_large(_error):
        return jsonify({"success": False, "msg": "Request payload too large."}), 200

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException):
        return jsonify({"success": False, "msg": error.description or error.name}), 200

    @app.errorhandler(Exception)
    def unhandled_error(error: Exception):
        logger.exception("Unhandled error while serving request", exc_info=error)
        return jsonify({"success": False, "msg": "Internal error."}), 200

    logger.info("visitor-stats app created (env=%s, api=%s)", settings.app_env, api_prefix)
    return app
