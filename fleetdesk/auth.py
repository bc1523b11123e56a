# fleetdesk/auth.py
from __future__ import annotations

import re
from datetime import datetime
from urllib.parse import urlparse, urljoin

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from flask_login import login_user, logout_user, current_user

from .extensions import login_manager, limiter
from .models import Principal
from .services import ApiError, SessionContext, api_client
from .services.auth import AuthService
from .utils.guards import ROLE_HOME, current_role

auth = Blueprint("auth", __name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _login_limit() -> str:
    return current_app.config.get("LOGIN_RATE_LIMIT", "5 per minute")


# =========================================================
# Flask-Login loaders (principal lives in the Flask session)
# =========================================================
@login_manager.user_loader
def load_user(user_id: str) -> Principal | None:
    principal = SessionContext.load().principal
    if principal is None or principal.id != str(user_id):
        return None
    return principal


@login_manager.request_loader
def load_user_from_session(_request) -> Principal | None:
    ctx = SessionContext.load()
    return ctx.principal if ctx.is_authenticated else None


# =========================================================
# Helpers
# =========================================================
def _clean_str(value: str | None) -> str:
    return (value or "").strip()


def _is_safe_next(target: str) -> bool:
    """
    Allow only same-host redirects AND block redirect loops into /login or /logout.
    """
    if not target:
        return False

    blocked_prefixes = ("/login", "/logout")
    if target.startswith(blocked_prefixes):
        return False

    ref = urlparse(request.host_url)
    test = urlparse(urljoin(request.host_url, target))
    return test.scheme in ("http", "https") and ref.netloc == test.netloc


def home_for(principal: Principal | None) -> str:
    """Role landing page; roles without a dashboard go to the site root."""
    endpoint = ROLE_HOME.get(principal.role) if principal else None
    return url_for(endpoint) if endpoint else url_for("main.home")


def _start_session(ctx: SessionContext) -> None:
    ctx.save()
    login_user(ctx.principal)


def _render_login(next_url: str, username: str = ""):
    return render_template(
        "login.html",
        next=next_url,
        username=username,
        current_year=datetime.utcnow().year,
    )


# =========================================================
# Login / Logout
# =========================================================
@auth.route("/login", methods=["GET", "POST"])
@limiter.limit(_login_limit, methods=["POST"])
def login():
    next_url = request.args.get("next") or request.form.get("next") or ""

    if request.method == "POST":
        username = _clean_str(request.form.get("username"))
        password = request.form.get("password") or ""

        if not username or not password:
            flash("Username and password are required.", "danger")
            return _render_login(next_url, username)

        try:
            ctx = AuthService(api_client(SessionContext())).login(username, password)
        except ApiError as exc:
            current_app.logger.warning("Login failed for %s (status %s)", username, exc.status)
            flash(exc.user_message("Login failed. Please check your credentials."), "danger")
            return _render_login(next_url, username)

        _start_session(ctx)
        flash(f"Welcome back, {ctx.principal.name}.", "success")

        if next_url and _is_safe_next(next_url):
            return redirect(next_url)
        return redirect(home_for(ctx.principal))

    return _render_login(next_url)


@auth.route("/logout")
def logout():
    """
    IMPORTANT: logout must NOT be login_required, otherwise Flask-Login redirects to
    /login?next=/logout and you get a loop after successful login.
    """
    ctx = SessionContext.load()
    AuthService(api_client(ctx)).logout()
    SessionContext.clear()
    logout_user()
    flash("You have been logged out.", "success")
    return redirect(url_for("auth.login"))


# =========================================================
# Signup
# =========================================================
@auth.route("/signup", methods=["GET", "POST"])
@limiter.limit(_login_limit, methods=["POST"])
def signup():
    """
    Accounts are provisioned by an administrator; signup signs the user in
    with those credentials and records the display name they entered.
    """
    form = {
        "name": _clean_str(request.form.get("name")),
        "username": _clean_str(request.form.get("username")),
    }

    if request.method == "POST":
        password = request.form.get("password") or ""
        confirm = request.form.get("confirm_password") or ""

        if not form["name"] or not form["username"] or not password:
            flash("Name, username and password are required.", "danger")
            return render_template("signup.html", form=form)

        if password != confirm:
            flash("Passwords do not match.", "danger")
            return render_template("signup.html", form=form)

        try:
            ctx = AuthService(api_client(SessionContext())).login(
                form["username"], password, name=form["name"]
            )
        except ApiError as exc:
            current_app.logger.warning("Signup sign-in failed for %s (status %s)", form["username"], exc.status)
            flash(exc.user_message("Signup failed. Please try again."), "danger")
            return render_template("signup.html", form=form)

        _start_session(ctx)
        flash("Account ready. Welcome!", "success")
        return redirect(home_for(ctx.principal))

    return render_template("signup.html", form=form)


# =========================================================
# Forgot password
# =========================================================
@auth.route("/forgot-password", methods=["GET", "POST"])
def forgot_password():
    email = _clean_str(request.form.get("email")).lower()

    if request.method == "POST":
        if not email or not EMAIL_RE.match(email):
            flash("Please enter a valid email address.", "danger")
            return render_template("forgot_password.html", email=email)

        try:
            AuthService(api_client(SessionContext())).forgot_password(email)
        except ApiError as exc:
            current_app.logger.warning("Password reset request failed (status %s)", exc.status)
            flash(exc.user_message("Could not send reset instructions. Please try again."), "danger")
            return render_template("forgot_password.html", email=email)

        flash("If that email is registered, reset instructions are on their way.", "info")
        return redirect(url_for("auth.login"))

    return render_template("forgot_password.html", email=email)


@auth.app_context_processor
def inject_principal():
    role = current_role()
    return {"current_role": role.value if role else None}
