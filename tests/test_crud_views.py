from conftest import flashes

BUS = {
    "_id": "b1",
    "busNumber": "NB-1234",
    "busName": "Kandy Express",
    "ownerId": {"_id": "o1", "username": "kamal"},
    "routeId": {"_id": "r1", "routeNumber": "1"},
    "seatCapacity": 54,
    "status": "active",
}
ROUTES = [
    {"_id": "r1", "routeNumber": "1", "routeName": "Colombo - Kandy", "isActive": True},
    {"_id": "r2", "routeNumber": "2", "routeName": "Galle - Matara", "isActive": False},
]


def test_list_shows_inactive_items_and_filters_them(admin_client, backend):
    backend.on("GET", "/routes", {"data": {"routes": ROUTES, "count": 2}})

    resp = admin_client.get("/super-admin/routes")
    assert b"Colombo - Kandy" in resp.data
    assert b"Galle - Matara" in resp.data

    resp = admin_client.get("/super-admin/routes?status=inactive")
    assert b"Colombo - Kandy" not in resp.data
    assert b"Galle - Matara" in resp.data


def test_list_search_is_local(admin_client, backend):
    backend.on("GET", "/routes", {"data": {"routes": ROUTES}})
    resp = admin_client.get("/super-admin/routes?q=galle")

    assert b"Colombo - Kandy" not in resp.data
    assert b"Galle - Matara" in resp.data
    assert "q" not in backend.calls_to("GET", "/routes")[0].params


def test_list_sends_page_and_resource_page_size(admin_client, backend):
    backend.on("GET", "/stops", {"data": {"stops": []}})
    admin_client.get("/super-admin/stops?page=3")
    assert backend.calls_to("GET", "/stops")[0].params == {"page": "3", "limit": "10"}


def test_delete_needs_confirmation(admin_client, backend):
    backend.on("GET", "/buses/b1", {"data": BUS})
    resp = admin_client.get("/super-admin/buses/b1/delete")

    assert resp.status_code == 200
    assert b"NB-1234" in resp.data
    assert backend.calls_to("DELETE", "/buses/b1") == []


def test_referenced_record_survives_failed_delete(admin_client, backend):
    backend.on("DELETE", "/buses/b1", None, status=409)
    backend.on("GET", "/buses", {"data": {"buses": [BUS]}})

    resp = admin_client.post("/super-admin/buses/b1/delete")
    assert resp.status_code == 302
    assert ("danger", "This bus still has day end records, fees or expenses attached.") in flashes(admin_client)

    resp = admin_client.get("/super-admin/buses")
    assert b"NB-1234" in resp.data


def test_server_conflict_message_wins(admin_client, backend):
    backend.on("DELETE", "/routes/r1", {"message": "Route has 3 buses"}, status=409)
    admin_client.post("/super-admin/routes/r1/delete")
    assert ("danger", "Route has 3 buses") in flashes(admin_client)


def test_successful_delete(admin_client, backend):
    backend.on("DELETE", "/routes/r1", status=204)
    resp = admin_client.post("/super-admin/routes/r1/delete")
    assert resp.headers["Location"].endswith("/super-admin/routes")
    assert ("success", "Route deleted.") in flashes(admin_client)


def test_toggling_twice_restores_bus_status(admin_client, backend):
    backend.on("PUT", "/buses/b1", {"data": BUS})

    admin_client.post("/super-admin/buses/b1/toggle", data={"current": "active"})
    admin_client.post("/super-admin/buses/b1/toggle", data={"current": "inactive"})

    sent = [c.json for c in backend.calls_to("PUT", "/buses/b1")]
    assert sent == [{"status": "inactive"}, {"status": "active"}]


def test_toggle_boolean_flag(admin_client, backend):
    backend.on("PUT", "/routes/r2", {"data": ROUTES[1]})
    admin_client.post("/super-admin/routes/r2/toggle", data={"current": "False"})

    assert backend.calls_to("PUT", "/routes/r2")[0].json == {"isActive": True}
    assert ("success", "Route activated.") in flashes(admin_client)


def test_create_validation_rerenders_without_calling_backend(admin_client, backend):
    resp = admin_client.post("/super-admin/routes/new", data={"routeNumber": "7", "routeName": ""})

    assert resp.status_code == 200
    assert b"Please fix the highlighted fields." in resp.data
    assert backend.calls_to("POST", "/routes") == []


def test_rejected_create_keeps_entered_values(admin_client, backend):
    backend.on(
        "POST",
        "/routes",
        {"message": "Route number already exists", "details": {"routeNumber": "Already taken"}},
        status=400,
    )

    resp = admin_client.post(
        "/super-admin/routes/new",
        data={"routeNumber": "99", "routeName": "Jaffna Night Mail", "startPoint": "Colombo", "endPoint": "Jaffna"},
    )

    assert resp.status_code == 200
    assert b"Route number already exists" in resp.data
    assert b"Already taken" in resp.data
    assert b"Jaffna Night Mail" in resp.data


def test_create_success_redirects_to_list(admin_client, backend):
    backend.on("POST", "/routes", {"data": {"_id": "r9"}}, status=201)

    resp = admin_client.post(
        "/super-admin/routes/new",
        data={"routeNumber": "99", "routeName": "Night Mail", "startPoint": "A", "endPoint": "B", "isActive": "on"},
    )

    assert resp.headers["Location"].endswith("/super-admin/routes")
    sent = backend.calls_to("POST", "/routes")[0].json
    assert sent["routeNumber"] == "99"
    assert sent["isActive"] is True
    assert ("success", "Route created successfully.") in flashes(admin_client)


def test_user_creation_enforces_password_rules(admin_client, backend):
    resp = admin_client.post(
        "/super-admin/users/new",
        data={"username": "nimal", "password": "short", "role": "manager"},
    )
    assert b"Password must be at least 8 characters." in resp.data
    assert backend.calls_to("POST", "/users") == []


def test_missing_item_is_404(admin_client, backend):
    backend.on("GET", "/stops/s9", {"message": "Stop not found"}, status=404)
    assert admin_client.get("/super-admin/stops/s9").status_code == 404


def test_owner_scoped_expense_types_use_owner_path(owner_client, backend):
    backend.on("GET", "/expense-types/owner", {"data": {"expenseTypes": [{"_id": "e1", "expenseName": "Diesel"}]}})
    backend.on("GET", "/buses/owner/u-owner", {"data": {"buses": [BUS]}})

    resp = owner_client.get("/bus-owner/expense-types")
    assert resp.status_code == 200
    assert b"Diesel" in resp.data
