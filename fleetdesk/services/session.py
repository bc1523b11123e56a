# fleetdesk/services/session.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, MutableMapping

from flask import session as flask_session

from ..models import Principal

# Same key the browser cookie used before the dashboard moved server side
SESSION_TOKEN_KEY = "auth-token"
SESSION_REFRESH_KEY = "refresh-token"
SESSION_USER_KEY = "user"


@dataclass
class SessionContext:
    """
    The caller's credentials for backend calls.

    Passed explicitly into ApiClient; only load/save/clear touch the
    Flask session.
    """

    token: str | None = None
    refresh_token: str | None = None
    principal: Principal | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @classmethod
    def load(cls, store: MutableMapping[str, Any] | None = None) -> "SessionContext":
        store = flask_session if store is None else store
        return cls(
            token=store.get(SESSION_TOKEN_KEY) or None,
            refresh_token=store.get(SESSION_REFRESH_KEY) or None,
            principal=Principal.from_session(store.get(SESSION_USER_KEY)),
        )

    def save(self, store: MutableMapping[str, Any] | None = None) -> None:
        store = flask_session if store is None else store
        store[SESSION_TOKEN_KEY] = self.token
        if self.refresh_token:
            store[SESSION_REFRESH_KEY] = self.refresh_token
        else:
            store.pop(SESSION_REFRESH_KEY, None)
        if self.principal is not None:
            store[SESSION_USER_KEY] = self.principal.to_session()

    @staticmethod
    def clear(store: MutableMapping[str, Any] | None = None) -> None:
        store = flask_session if store is None else store
        for key in (SESSION_TOKEN_KEY, SESSION_REFRESH_KEY, SESSION_USER_KEY):
            store.pop(key, None)
