# fleetdesk/services/api.py
from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

import requests
from flask import current_app

from .session import SessionContext

logger = logging.getLogger(__name__)

REFRESH_PATH = "/auth/refresh-token"
REFRESH_COOKIE = "refreshToken"


# =========================================================
# Errors
# =========================================================
class ApiError(Exception):
    """
    A backend call that did not succeed.

    `server_message` is the backend's own `message` field, if it sent one;
    views show it verbatim and otherwise fall back to their own wording.
    """

    default_message = "An error occurred"

    def __init__(
        self,
        server_message: str | None = None,
        status: int | None = None,
        data: Any = None,
    ) -> None:
        self.server_message = (server_message or "").strip() or None
        self.status = status
        self.data = data
        super().__init__(self.server_message or self.default_message)

    def user_message(self, fallback: str) -> str:
        return self.server_message or fallback


class NetworkError(ApiError):
    default_message = "Unable to reach the server. Check your connection and try again."


class ValidationFailed(ApiError):
    default_message = "The submitted data was rejected."

    @property
    def field_errors(self) -> dict:
        details = (self.data or {}).get("details") if isinstance(self.data, Mapping) else None
        return dict(details) if isinstance(details, Mapping) else {}


class AuthorizationFailed(ApiError):
    default_message = "You are not allowed to perform this action."


class SessionExpired(Exception):
    """
    The access token was rejected and could not be refreshed.

    Not an ApiError: views catch those, while this one propagates to the
    app-level handler that ends the session.
    """

    default_message = "Session expired. Please login again."

    def __init__(self, server_message: str | None = None, status: int | None = 401, data: Any = None) -> None:
        self.server_message = (server_message or "").strip() or None
        self.status = status
        self.data = data
        super().__init__(self.server_message or self.default_message)

    def user_message(self, fallback: str) -> str:
        return self.server_message or fallback


class NotFound(ApiError):
    default_message = "The requested record was not found."


class Conflict(ApiError):
    default_message = "The record is still referenced by other records."


_STATUS_ERRORS = {
    400: ValidationFailed,
    401: AuthorizationFailed,
    403: AuthorizationFailed,
    404: NotFound,
    409: Conflict,
    422: ValidationFailed,
}


def error_for_response(response: requests.Response) -> ApiError:
    try:
        data = response.json()
    except ValueError:
        data = None

    message = None
    if isinstance(data, Mapping):
        message = data.get("message") or data.get("error")

    cls = _STATUS_ERRORS.get(response.status_code, ApiError)
    return cls(message, status=response.status_code, data=data)


# =========================================================
# Client
# =========================================================
def clean_params(params: Mapping[str, Any] | None) -> dict[str, str]:
    """Drop unset filters and stringify the rest the way the backend expects."""
    out: dict[str, str] = {}
    for key, value in (params or {}).items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            out[key] = "true" if value else "false"
        else:
            out[key] = str(value)
    return out


class ApiClient:
    def __init__(
        self,
        base_url: str,
        session_ctx: SessionContext | None = None,
        timeout: float = 10,
        http: requests.Session | None = None,
        on_refresh: Callable[[SessionContext], None] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session_ctx = session_ctx or SessionContext()
        self.timeout = timeout
        self.http = http or requests.Session()
        self.http.headers.setdefault("Content-Type", "application/json")
        self.on_refresh = on_refresh

    # ----------------------
    # Transport
    # ----------------------
    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _headers(self) -> dict[str, str]:
        token = self.session_ctx.token
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _send(self, method: str, path: str, params=None, json=None) -> requests.Response:
        try:
            return self.http.request(
                method,
                self._url(path),
                params=clean_params(params),
                json=json,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            logger.warning("API %s %s unreachable: %s", method, path, exc.__class__.__name__)
            raise NetworkError() from exc
        except requests.RequestException as exc:
            logger.warning("API %s %s failed before a response: %s", method, path, exc)
            raise NetworkError() from exc

    def _refresh(self) -> None:
        ctx = self.session_ctx
        try:
            response = self.http.request(
                "POST",
                self._url(REFRESH_PATH),
                json={REFRESH_COOKIE: ctx.refresh_token},
                cookies={REFRESH_COOKIE: ctx.refresh_token or ""},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise SessionExpired() from exc

        if not response.ok:
            logger.info("Token refresh rejected with %s", response.status_code)
            raise SessionExpired(status=response.status_code)

        try:
            token = (response.json().get("data") or {}).get("accessToken")
        except (ValueError, AttributeError):
            token = None
        if not token:
            raise SessionExpired()

        ctx.token = token
        if self.on_refresh is not None:
            self.on_refresh(ctx)

    def send(self, method: str, path: str, *, params=None, json=None) -> requests.Response:
        """
        Send one request; on 401 refresh the access token once and replay.
        Raises ApiError subclasses for every non-2xx outcome.
        """
        response = self._send(method, path, params=params, json=json)

        if response.status_code == 401 and self.session_ctx.refresh_token and path != REFRESH_PATH:
            self._refresh()
            response = self._send(method, path, params=params, json=json)

        if not response.ok:
            err = error_for_response(response)
            logger.warning("API %s %s failed with %s", method, path, response.status_code)
            if response.status_code == 401 and self.session_ctx.token:
                raise SessionExpired(err.server_message, status=401, data=err.data)
            raise err

        return response

    def request(self, method: str, path: str, *, params=None, json=None) -> Any:
        response = self.send(method, path, params=params, json=json)
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            logger.warning("API %s %s returned a non-JSON body", method, path)
            raise ApiError("Unexpected response from server", status=response.status_code)

    # ----------------------
    # Verbs
    # ----------------------
    def get(self, path: str, params=None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json=None) -> Any:
        return self.request("POST", path, json=json)

    def put(self, path: str, json=None) -> Any:
        return self.request("PUT", path, json=json)

    def patch(self, path: str, json=None) -> Any:
        return self.request("PATCH", path, json=json)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    def get_bytes(self, path: str, params=None) -> bytes:
        return self.send("GET", path, params=params).content


def unwrap(body: Any) -> Any:
    """The backend wraps payloads as {success, data}; bare payloads pass through."""
    if isinstance(body, Mapping) and "data" in body:
        return body["data"]
    return body


def api_client(session_ctx: SessionContext | None = None) -> ApiClient:
    """Client for the current request, bound to the caller's session context."""
    ctx = session_ctx or SessionContext.load()
    return ApiClient(
        current_app.config["API_BASE_URL"],
        session_ctx=ctx,
        timeout=current_app.config.get("API_TIMEOUT", 10),
        on_refresh=lambda refreshed: refreshed.save(),
    )
