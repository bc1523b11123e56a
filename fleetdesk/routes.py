# fleetdesk/routes.py
from __future__ import annotations

from flask import Blueprint, redirect, render_template, url_for
from flask_login import current_user, login_required

from .utils.guards import ROLE_HOME, current_role

main = Blueprint("main", __name__)


# ======================
# Home
# ======================
@main.route("/")
@login_required
def home():
    """
    Dashboard roles land on their own area; any other backend role
    (conductors signing in by mistake) gets a plain landing page.
    """
    endpoint = ROLE_HOME.get(current_role())
    if endpoint:
        return redirect(url_for(endpoint))
    return render_template("home.html", user=current_user)


# =========================================================
# Dashboard Router (ROLE-SAFE LANDING)
# =========================================================
@main.route("/dashboard")
@login_required
def dashboard():
    return redirect(url_for("main.home"))
