# -*- coding: utf-8 -*-
import logging
from flask import Flask, request
from flask_login import current_user

from .config import Config, ensure_instance
from .extensions import db, migrate, login_manager
from .errors import Unauthorized, register_error_handlers
from .api import ok, request_id
from .cache import clear_cache

# blueprints
from .auth import auth_bp
from .admin_mgmt import bp as admin_mgmt_bp
from .modules.companies import bp as companies_bp
from .modules.jobs import bp as jobs_bp
from .modules.shifts import bp as shifts_bp
from .modules.staffing import bp as staffing_bp
from .modules.timesheets import bp as timesheets_bp
from .modules.permissions import bp as permissions_bp
from .modules.notifications import bp as notifications_bp
from .modules.dashboard import bp as dashboard_bp
from .modules.api_v1 import bp as api_v1_bp
from .modules.files import bp as files_bp

_WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


def create_app(overrides=None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)
    ensure_instance(app)
    app.json.sort_keys = False

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    @login_manager.unauthorized_handler
    def _unauthorized():
        raise Unauthorized("Authentication required")

    register_error_handlers(app)

    # --- request bookkeeping ---
    @app.before_request
    def _start():
        request_id()

    @app.after_request
    def _finish(response):
        # any successful write invalidates cached lists / dashboards
        if (
            request.method in _WRITE_METHODS
            and request.path.startswith("/api/")
            and response.status_code < 400
        ):
            clear_cache()
        response.headers["X-Request-ID"] = request_id()
        return response

    # --- blueprints ---
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_mgmt_bp)
    app.register_blueprint(companies_bp)
    app.register_blueprint(jobs_bp)
    app.register_blueprint(shifts_bp)
    app.register_blueprint(staffing_bp)
    app.register_blueprint(timesheets_bp)
    app.register_blueprint(permissions_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(api_v1_bp)
    app.register_blueprint(files_bp)

    # --- index ---
    @app.route("/")
    def home():
        return ok({
            "service": "holitime",
            "authenticated": current_user.is_authenticated,
        })

    return app
