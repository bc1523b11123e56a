from fleetdesk.services.session import SESSION_REFRESH_KEY, SESSION_TOKEN_KEY, SESSION_USER_KEY

from conftest import flashes, login_as


def _login_payload(role):
    return {
        "success": True,
        "data": {
            "accessToken": "access-1",
            "user": {"_id": "u1", "username": "kamal", "role": role},
        },
    }


def test_protected_pages_redirect_to_login_without_token(client):
    resp = client.get("/super-admin/dashboard")
    assert resp.status_code == 302
    assert "/login" in resp.headers["Location"]


def test_public_pages_redirect_home_with_token(client):
    login_as(client, "super-admin")
    resp = client.get("/login")
    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/")


def test_login_page_renders(client):
    resp = client.get("/login")
    assert resp.status_code == 200
    assert b"Log in" in resp.data


def test_login_redirects_by_role(client, backend):
    backend.on("POST", "/auth/login", _login_payload("owner"), cookies={"refreshToken": "refresh-9"})
    resp = client.post("/login", data={"username": "kamal", "password": "secret123"})

    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/bus-owner/dashboard")
    assert backend.calls_to("POST", "/auth/login")[0].json == {"username": "kamal", "password": "secret123"}
    with client.session_transaction() as sess:
        assert sess[SESSION_TOKEN_KEY] == "access-1"
        assert sess[SESSION_REFRESH_KEY] == "refresh-9"
        assert sess[SESSION_USER_KEY]["role"] == "bus-owner"


def test_admin_login_lands_on_super_admin_dashboard(client, backend):
    backend.on("POST", "/auth/login", _login_payload("admin"))
    resp = client.post("/login", data={"username": "kamal", "password": "secret123"})
    assert resp.headers["Location"].endswith("/super-admin/dashboard")


def test_login_failure_shows_server_message(client, backend):
    backend.on("POST", "/auth/login", {"message": "Invalid credentials"}, status=401)
    resp = client.post("/login", data={"username": "kamal", "password": "bad"})
    assert resp.status_code == 200
    assert b"Invalid credentials" in resp.data
    with client.session_transaction() as sess:
        assert SESSION_TOKEN_KEY not in sess


def test_login_requires_both_fields(client, backend):
    resp = client.post("/login", data={"username": "", "password": ""})
    assert b"Username and password are required." in resp.data
    assert backend.calls == []


def test_login_without_user_id_is_rejected(client, backend):
    backend.on("POST", "/auth/login", {
        "success": True,
        "data": {"accessToken": "access-1", "user": {"username": "kamal", "role": "admin"}},
    })
    resp = client.post("/login", data={"username": "kamal", "password": "secret123"})

    assert resp.status_code == 200
    assert b"Login response did not include a user id" in resp.data
    with client.session_transaction() as sess:
        assert SESSION_TOKEN_KEY not in sess


def test_token_without_user_is_sent_back_to_login(client):
    with client.session_transaction() as sess:
        sess[SESSION_TOKEN_KEY] = "access-1"
        sess[SESSION_USER_KEY] = {"username": "ghost", "role": "super-admin"}

    resp = client.get("/super-admin/dashboard")
    assert resp.status_code == 302
    assert "/login" in resp.headers["Location"]
    with client.session_transaction() as sess:
        assert SESSION_TOKEN_KEY not in sess
        assert SESSION_USER_KEY not in sess

    # The login page itself now renders instead of bouncing back home
    resp = client.get("/login")
    assert resp.status_code == 200


def test_unsafe_next_is_ignored(client, backend):
    backend.on("POST", "/auth/login", _login_payload("manager"))
    resp = client.post("/login?next=https://evil.example/", data={"username": "m", "password": "secret123"})
    assert resp.headers["Location"].endswith("/manager/dashboard")


def test_wrong_role_gets_access_denied(client):
    login_as(client, "manager")
    resp = client.get("/super-admin/dashboard")
    assert resp.status_code == 403
    assert b"Access Denied" in resp.data


def test_logout_clears_session(client, backend):
    login_as(client, "super-admin")
    backend.on("POST", "/auth/logout", {"success": True})
    resp = client.get("/logout")

    assert resp.status_code == 302
    assert len(backend.calls_to("POST", "/auth/logout")) == 1
    with client.session_transaction() as sess:
        assert SESSION_TOKEN_KEY not in sess
        assert SESSION_USER_KEY not in sess


def test_expired_session_redirects_to_login(client, backend):
    login_as(client, "manager")
    backend.on("GET", "/auth/manager/bus", {"message": "expired"}, status=401)
    backend.on("POST", "/auth/refresh-token", {"message": "expired"}, status=401)

    resp = client.get("/manager/bus")
    assert resp.status_code == 302
    assert "/login" in resp.headers["Location"]
    with client.session_transaction() as sess:
        assert SESSION_TOKEN_KEY not in sess


def test_forgot_password_validates_email(client, backend):
    resp = client.post("/forgot-password", data={"email": "not-an-email"})
    assert b"Please enter a valid email address." in resp.data
    assert backend.calls == []


def test_forgot_password_calls_backend(client, backend):
    backend.on("POST", "/auth/forgot-password", {"success": True})
    resp = client.post("/forgot-password", data={"email": "Kamal@Example.com"})
    assert resp.status_code == 302
    assert backend.calls_to("POST", "/auth/forgot-password")[0].json == {"email": "kamal@example.com"}
    assert ("info", "If that email is registered, reset instructions are on their way.") in flashes(client)


def test_signup_keeps_entered_name(client, backend):
    backend.on("POST", "/auth/login", _login_payload("manager"))
    resp = client.post(
        "/signup",
        data={"name": "Nimal Perera", "username": "nimal", "password": "secret123", "confirm_password": "secret123"},
    )
    assert resp.headers["Location"].endswith("/manager/dashboard")
    with client.session_transaction() as sess:
        assert sess[SESSION_USER_KEY]["name"] == "Nimal Perera"


def test_signup_rejects_mismatched_passwords(client, backend):
    resp = client.post(
        "/signup",
        data={"name": "N", "username": "n", "password": "secret123", "confirm_password": "other"},
    )
    assert b"Passwords do not match." in resp.data
    assert backend.calls == []
