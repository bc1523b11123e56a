# fleetdesk/services/__init__.py
"""
Thin wrappers over the backend REST API.

Every wrapper takes an ApiClient; views build one per request with
api_client(), which reads the caller's token from the session context.
"""

from .api import (
    ApiClient,
    ApiError,
    AuthorizationFailed,
    Conflict,
    NetworkError,
    NotFound,
    SessionExpired,
    ValidationFailed,
    api_client,
)
from .session import SessionContext

__all__ = [
    "ApiClient",
    "ApiError",
    "AuthorizationFailed",
    "Conflict",
    "NetworkError",
    "NotFound",
    "SessionContext",
    "SessionExpired",
    "ValidationFailed",
    "api_client",
]
