# fleetdesk/__init__.py
from __future__ import annotations

import logging
from typing import Any, Mapping

from flask import Flask, flash, redirect, render_template, request, url_for
from flask_login import logout_user

from .settings import Config
from .extensions import login_manager, limiter


def create_app(overrides: Mapping[str, Any] | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")), logging.INFO))

    # ======================
    # Initialize Extensions
    # ======================
    login_manager.init_app(app)
    limiter.init_app(app)

    # ======================
    # Global template context (operator identity, navigation)
    # ======================
    from .config import branding_context
    from .models import parse_date

    @app.context_processor
    def inject_branding():
        # Gives templates:
        # - APP_NAME, CURRENCY, SUPPORT_EMAIL
        # - NAVIGATION (per role) and money()
        return branding_context()

    @app.template_filter("day")
    def day_filter(value):
        parsed = parse_date(value)
        return parsed.isoformat() if parsed else "-"

    # ======================
    # Register Blueprints
    # ======================
    from .routes import main
    from .auth import auth
    from .admin import admin_bp
    from .owner import owner_bp
    from .manager import manager_bp

    app.register_blueprint(main)
    app.register_blueprint(auth)
    app.register_blueprint(admin_bp)
    app.register_blueprint(owner_bp)
    app.register_blueprint(manager_bp)

    # ======================
    # Route guard (auth token)
    # ======================
    from .services import SessionContext, SessionExpired
    from .utils.guards import is_public_endpoint

    @app.before_request
    def enforce_auth_token():
        endpoint = request.endpoint or ""
        if endpoint.startswith("static"):
            return None

        ctx = SessionContext.load()
        if ctx.is_authenticated and ctx.principal is None:
            # Token without a usable user record: start over at login
            SessionContext.clear()
        has_token = ctx.is_authenticated and ctx.principal is not None
        public = is_public_endpoint(endpoint)

        if not has_token and not public:
            next_path = request.full_path if request.method == "GET" else None
            return redirect(url_for("auth.login", next=next_path))

        if has_token and public:
            return redirect(url_for("main.home"))

        return None

    # ======================
    # Expired backend session
    # ======================
    @app.errorhandler(SessionExpired)
    def session_expired(e):
        app.logger.info("Backend session expired on %s", request.path)
        SessionContext.clear()
        logout_user()
        flash(e.user_message("Session expired. Please login again."), "warning")
        return redirect(url_for("auth.login"))

    # ======================
    # Rate limit error handler
    # ======================
    @app.errorhandler(429)
    def ratelimit_handler(e):
        return "Too many requests. Please try again later.", 429

    # ======================
    # Forbidden handler
    # ======================
    @app.errorhandler(403)
    def forbidden(e):
        return render_template("403.html"), 403

    # ======================
    # Not found handler
    # ======================
    @app.errorhandler(404)
    def not_found(e):
        return render_template("404.html", back_url=request.referrer or url_for("main.home")), 404

    return app
