# fleetdesk/services/auth.py
from __future__ import annotations

import logging

from ..models import Principal, record_id
from .api import REFRESH_COOKIE, ApiClient, ApiError, SessionExpired, unwrap
from .session import SessionContext

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    def login(self, username: str, password: str, name: str | None = None) -> SessionContext:
        """
        Exchange credentials for an access token.

        Returns a populated SessionContext; the caller decides where to save it.
        """
        response = self.client.send(
            "POST", "/auth/login", json={"username": username, "password": password}
        )
        try:
            payload = unwrap(response.json()) or {}
        except ValueError:
            raise ApiError("Unexpected response from server", status=response.status_code)

        token = payload.get("accessToken")
        user = payload.get("user") or {}
        if not token or not user:
            raise ApiError("Login response did not include a session", status=response.status_code)
        if not record_id(user):
            raise ApiError("Login response did not include a user id", status=response.status_code)

        refresh = response.cookies.get(REFRESH_COOKIE) or payload.get("refreshToken")
        return SessionContext(
            token=token,
            refresh_token=refresh,
            principal=Principal.from_backend(user, name=name),
        )

    def logout(self) -> None:
        """Best-effort backend logout; the local session is cleared regardless."""
        if not self.client.session_ctx.is_authenticated:
            return
        try:
            self.client.post("/auth/logout")
        except (ApiError, SessionExpired) as exc:
            logger.info("Backend logout failed: %s", exc)

    def forgot_password(self, email: str) -> None:
        self.client.post("/auth/forgot-password", json={"email": email})
