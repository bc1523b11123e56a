# fleetdesk/utils/guards.py

from __future__ import annotations

from functools import wraps
from typing import Callable, Any

from flask import abort
from flask_login import login_required, current_user

from ..models import Role, normalize_role

# Paths reachable without an auth token
PUBLIC_ENDPOINTS = {
    "auth.login",
    "auth.signup",
    "auth.forgot_password",
    "static",
}

# Where each role lands after login
ROLE_HOME = {
    Role.SUPER_ADMIN: "admin.dashboard",
    Role.BUS_OWNER: "owner.dashboard",
    Role.MANAGER: "manager.dashboard",
}


def is_public_endpoint(endpoint: str | None) -> bool:
    endpoint = endpoint or ""
    return endpoint in PUBLIC_ENDPOINTS or endpoint.startswith("static")


def current_role() -> Role | None:
    role = getattr(current_user, "role", None)
    if role is None:
        return None
    if isinstance(role, Role):
        return role
    try:
        return Role(normalize_role(role))
    except ValueError:
        return None


def role_required(*allowed_roles: Role | str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Generic role gate:
        @role_required(Role.SUPER_ADMIN, Role.MANAGER)
        def view(): ...
    Returns 403 (Access Denied page) for every other logged-in role.
    """
    allowed = {Role(normalize_role(r.value if isinstance(r, Role) else r)) for r in allowed_roles}

    def decorator(view: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view)
        @login_required
        def wrapped(*args, **kwargs):
            if current_role() not in allowed:
                abort(403)
            return view(*args, **kwargs)
        return wrapped
    return decorator


def admin_required(view: Callable[..., Any]) -> Callable[..., Any]:
    """
    Allow only super-admin.
    """
    return role_required(Role.SUPER_ADMIN)(view)

