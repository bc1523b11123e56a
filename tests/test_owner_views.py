OWN_BUSES = [
    {"_id": "b1", "busNumber": "NB-1234", "routeId": {"_id": "r1", "routeNumber": "1"}, "status": "active"},
    {"_id": "b2", "busNumber": "NC-5678", "routeId": "r1", "status": "inactive"},
]
FEES = [
    {"_id": "f1", "busId": "b1", "ownerId": "u-owner", "month": "2025-01", "amount": 5000, "paidAmount": 5000, "status": "paid"},
    {"_id": "f2", "busId": "b2", "ownerId": "u-owner", "month": "2025-02", "amount": 5000, "paidAmount": 1000, "status": "partial"},
]


def _own(backend):
    backend.on("GET", "/buses/owner/u-owner", {"data": {"buses": OWN_BUSES}})


def test_dashboard_summarizes_own_buses_and_fees(owner_client, backend):
    _own(backend)
    backend.on("GET", "/monthly-fees", {"data": {"fees": FEES}})

    resp = owner_client.get("/bus-owner/dashboard")

    assert resp.status_code == 200
    assert b"LKR 4,000.00" in resp.data
    assert backend.calls_to("GET", "/monthly-fees")[0].params["ownerId"] == "u-owner"


def test_bus_list_search(owner_client, backend):
    _own(backend)
    resp = owner_client.get("/bus-owner/buses?q=nc-")
    assert b"NC-5678" in resp.data
    assert b"NB-1234" not in resp.data


def test_foreign_bus_is_not_found(owner_client, backend):
    _own(backend)
    assert owner_client.get("/bus-owner/buses/b99").status_code == 404
    assert owner_client.get("/bus-owner/buses/b1").status_code == 200


def test_fee_list_is_read_only(owner_client, backend):
    _own(backend)
    backend.on("GET", "/monthly-fees", {"data": {"fees": FEES, "count": 2}})

    resp = owner_client.get("/bus-owner/monthly-fees")

    assert resp.status_code == 200
    assert b"NB-1234" in resp.data
    assert b"/super-admin/monthly-fees" not in resp.data


def test_bill_for_another_owners_fee_is_forbidden(owner_client, backend):
    backend.on("GET", "/monthly-fees/f9", {"data": {**FEES[0], "_id": "f9", "ownerId": "someone-else"}})

    resp = owner_client.get("/bus-owner/monthly-fees/f9/bill")

    assert resp.status_code == 403
    assert backend.calls_to("GET", "/monthly-fees/f9/bill") == []


def test_bill_download(owner_client, backend):
    backend.on("GET", "/monthly-fees/f1", {"data": FEES[0]})
    backend.on("GET", "/monthly-fees/f1/bill", content=b"%PDF-1.4", headers={"Content-Type": "application/pdf"})

    resp = owner_client.get("/bus-owner/monthly-fees/f1/bill")

    assert resp.status_code == 200
    assert resp.headers["Content-Disposition"] == 'attachment; filename="monthly-fee-2025-01.pdf"'


def test_route_sections_fetched_once_per_route(owner_client, backend):
    _own(backend)
    backend.on("GET", "/route-sections/route/r1", {"data": {"routeSections": [
        {"_id": "s1", "routeId": {"_id": "r1", "routeNumber": "1"}, "stopId": {"_id": "st1", "stopName": "Kadawatha"}, "fare": 80, "order": 1},
    ]}})

    resp = owner_client.get("/bus-owner/route-sections")

    assert b"Kadawatha" in resp.data
    assert len(backend.calls_to("GET", "/route-sections/route/r1")) == 1


def test_owner_cannot_open_admin_pages(owner_client):
    resp = owner_client.get("/super-admin/buses")
    assert resp.status_code == 403


def test_bus_lookup_failure_is_reported(owner_client, backend):
    backend.on("GET", "/buses/owner/u-owner", {"message": "Owner service down"}, status=503)

    resp = owner_client.get("/bus-owner/buses")
    assert resp.status_code == 200
    assert b"Owner service down" in resp.data
