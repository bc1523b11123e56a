import pytest
import requests

from fleetdesk.services.api import (
    ApiClient,
    Conflict,
    NetworkError,
    NotFound,
    SessionExpired,
    ValidationFailed,
    clean_params,
    unwrap,
)
from fleetdesk.services.session import SessionContext

from conftest import BACKEND_URL, make_response


def _client(token="access-1", refresh="refresh-1", on_refresh=None):
    return ApiClient(BACKEND_URL, SessionContext(token=token, refresh_token=refresh), on_refresh=on_refresh)


def test_bearer_token_and_clean_params(backend):
    backend.on("GET", "/routes", {"data": []})
    _client().get("/routes", params={"page": 1, "q": "", "isActive": True, "x": None})

    call = backend.calls[-1]
    assert call.headers["Authorization"] == "Bearer access-1"
    assert call.params == {"page": "1", "isActive": "true"}


def test_clean_params_drops_unset_values():
    assert clean_params({"a": None, "b": "", "c": 0, "d": False}) == {"c": "0", "d": "false"}


@pytest.mark.parametrize(
    "status, exc_type",
    [(400, ValidationFailed), (422, ValidationFailed), (404, NotFound), (409, Conflict)],
)
def test_status_codes_map_to_error_types(backend, status, exc_type):
    backend.on("DELETE", "/stops/1", {"message": "Nope"}, status=status)
    with pytest.raises(exc_type) as info:
        _client().delete("/stops/1")
    assert info.value.user_message("fallback") == "Nope"
    assert info.value.status == status


def test_missing_server_message_falls_back(backend):
    backend.on("PUT", "/buses/1", None, status=400)
    with pytest.raises(ValidationFailed) as info:
        _client().put("/buses/1", json={})
    assert info.value.user_message("Failed to update bus.") == "Failed to update bus."


def test_validation_details_become_field_errors(backend):
    backend.on("POST", "/buses", {"message": "Invalid", "details": {"busNumber": "Already taken"}}, status=400)
    with pytest.raises(ValidationFailed) as info:
        _client().post("/buses", json={})
    assert info.value.field_errors == {"busNumber": "Already taken"}


def test_network_failure_raises_network_error(monkeypatch):
    def boom(session, method, url, **kwargs):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(requests.Session, "request", boom)
    with pytest.raises(NetworkError):
        _client().get("/routes")


def test_expired_token_is_refreshed_once_and_replayed(backend):
    saved = []
    backend.on_sequence("GET", "/buses", [
        make_response(401, {"message": "jwt expired"}),
        make_response(200, {"data": [{"_id": "b1"}]}),
    ])
    backend.on("POST", "/auth/refresh-token", {"data": {"accessToken": "access-2"}})

    client = _client(on_refresh=saved.append)
    body = client.get("/buses")

    assert unwrap(body) == [{"_id": "b1"}]
    assert client.session_ctx.token == "access-2"
    assert saved == [client.session_ctx]
    assert backend.calls[-1].headers["Authorization"] == "Bearer access-2"
    refresh = backend.calls_to("POST", "/auth/refresh-token")[0]
    assert refresh.json == {"refreshToken": "refresh-1"}


def test_rejected_refresh_means_session_expired(backend):
    backend.on("GET", "/buses", {"message": "jwt expired"}, status=401)
    backend.on("POST", "/auth/refresh-token", {"message": "invalid"}, status=401)

    with pytest.raises(SessionExpired):
        _client().get("/buses")
    assert len(backend.calls_to("GET", "/buses")) == 1


def test_empty_body_is_an_empty_mapping(backend):
    backend.on("DELETE", "/routes/1", status=204)
    assert _client().delete("/routes/1") == {}
