from conftest import flashes

REPORTS = [
    {
        "_id": "r1",
        "busId": {"_id": "b1", "busNumber": "NB-1234"},
        "date": "2025-01-03T00:00:00.000Z",
        "status": "pending",
        "totalRevenue": 1200,
        "totalExpenses": 200,
        "profit": 1000,
        "notes": "Late start",
    },
    {
        "_id": "r2",
        "busId": "b2",
        "date": "2025-01-02",
        "status": "approved",
        "totalRevenue": 800,
        "totalExpenses": 100,
        "profit": 700,
    },
]
BUSES = [
    {"_id": "b1", "busNumber": "NB-1234", "ownerId": "o1", "status": "active"},
    {"_id": "b2", "busNumber": "NC-5678", "ownerId": {"_id": "o2", "username": "sunil"}, "status": "inactive"},
]


def _day_end_backend(backend):
    backend.on("GET", "/day-end", {"success": True, "data": {"reports": REPORTS, "count": 2, "totalPages": 1}})
    backend.on("GET", "/buses", {"data": {"buses": BUSES, "count": 2}})


# =========================================================
# Day end list
# =========================================================
def test_day_end_list_sends_date_range_and_resolves_bus_numbers(admin_client, backend):
    _day_end_backend(backend)
    resp = admin_client.get("/super-admin/day-end?period=week")

    assert resp.status_code == 200
    assert b"NB-1234" in resp.data
    assert b"NC-5678" in resp.data
    params = backend.calls_to("GET", "/day-end")[0].params
    assert params["page"] == "1"
    assert params["limit"] == "10"
    assert "startDate" in params


def test_day_end_all_period_has_no_start_date(admin_client, backend):
    _day_end_backend(backend)
    admin_client.get("/super-admin/day-end?period=all")
    assert "startDate" not in backend.calls_to("GET", "/day-end")[0].params


def test_day_end_list_sends_chosen_date_range(admin_client, backend):
    _day_end_backend(backend)
    resp = admin_client.get("/super-admin/day-end?startDate=2025-01-01&endDate=2025-01-31")

    assert resp.status_code == 200
    params = backend.calls_to("GET", "/day-end")[0].params
    assert params["startDate"] == "2025-01-01"
    assert params["endDate"] == "2025-01-31"
    assert b'value="2025-01-01"' in resp.data
    assert b'value="2025-01-31"' in resp.data


def test_day_end_list_warns_about_bad_dates(admin_client, backend):
    _day_end_backend(backend)
    resp = admin_client.get("/super-admin/day-end?period=all&startDate=31-01-2025")

    assert resp.status_code == 200
    assert b"Start date must look like 2025-01-31." in resp.data
    assert "startDate" not in backend.calls_to("GET", "/day-end")[0].params


def test_day_end_page_refetches_json_with_seq(admin_client, backend):
    _day_end_backend(backend)
    resp = admin_client.get("/super-admin/day-end")

    assert b'data-json-url="/super-admin/day-end.json"' in resp.data
    assert b'params.set("seq", seq)' in resp.data
    assert b"body.seq !== latestSeq" in resp.data


def test_day_end_json_echoes_range(admin_client, backend):
    _day_end_backend(backend)
    body = admin_client.get("/super-admin/day-end.json?seq=2&startDate=2025-01-01&endDate=2025-01-31").get_json()

    assert body["seq"] == 2
    assert body["startDate"] == "2025-01-01"
    assert body["endDate"] == "2025-01-31"
    assert body["rangeErrors"] == []


def test_day_end_json_echoes_seq_and_filters_locally(admin_client, backend):
    _day_end_backend(backend)
    resp = admin_client.get("/super-admin/day-end.json?seq=7&period=all&q=nc-56")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["seq"] == 7
    assert body["state"] == "populated"
    assert [r["id"] for r in body["records"]] == ["r2"]
    assert body["records"][0]["busNumber"] == "NC-5678"
    assert body["records"][0]["transitions"] == []
    assert body["summary"]["totalReports"] == 1
    assert body["summary"]["totalRevenue"] == "800"


def test_day_end_json_reports_backend_failure(admin_client, backend):
    backend.on("GET", "/day-end", {"message": "Database unavailable"}, status=500)
    resp = admin_client.get("/super-admin/day-end.json?seq=3")

    assert resp.status_code == 502
    body = resp.get_json()
    assert body["seq"] == 3
    assert body["state"] == "error"
    assert body["error"] == "Database unavailable"
    assert body["records"] == []


def test_day_end_list_failure_offers_retry(admin_client, backend):
    backend.on("GET", "/day-end", {"message": "Database unavailable"}, status=500)
    resp = admin_client.get("/super-admin/day-end")
    assert resp.status_code == 200
    assert b"Database unavailable" in resp.data


# =========================================================
# Day end status transitions
# =========================================================
def test_status_change_is_confirmed_before_patching(admin_client, backend):
    backend.on("GET", "/day-end/r1", {"data": REPORTS[0]})
    backend.on("GET", "/buses", {"data": {"buses": BUSES}})

    resp = admin_client.get("/super-admin/day-end/r1/status?status=approved")
    assert resp.status_code == 200
    assert b"Approve Day End Record" in resp.data
    assert backend.calls_to("PATCH", "/day-end/r1/status") == []


def test_confirmed_status_change_patches_backend(admin_client, backend):
    backend.on("GET", "/day-end/r1", {"data": REPORTS[0]})
    backend.on("GET", "/buses", {"data": {"buses": BUSES}})
    backend.on("PATCH", "/day-end/r1/status", {"data": {**REPORTS[0], "status": "approved"}})

    resp = admin_client.post("/super-admin/day-end/r1/status", data={"status": "approved", "notes": "Checked"})

    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/super-admin/day-end/r1")
    patch = backend.calls_to("PATCH", "/day-end/r1/status")
    assert [c.json for c in patch] == [{"status": "approved", "notes": "Checked"}]
    assert ("success", "Day end record approved successfully.") in flashes(admin_client)


def test_settled_record_cannot_change_status(admin_client, backend):
    backend.on("GET", "/day-end/r2", {"data": REPORTS[1]})

    resp = admin_client.post("/super-admin/day-end/r2/status", data={"status": "rejected"})

    assert resp.status_code == 302
    assert backend.calls_to("PATCH", "/day-end/r2/status") == []
    assert ("danger", "A approved day end record cannot be set to rejected.") in flashes(admin_client)


def test_failed_status_change_keeps_record(admin_client, backend):
    backend.on("GET", "/day-end/r1", {"data": REPORTS[0]})
    backend.on("PATCH", "/day-end/r1/status", {"message": "Report is locked"}, status=400)

    admin_client.post("/super-admin/day-end/r1/status", data={"status": "rejected"})
    assert ("danger", "Report is locked") in flashes(admin_client)


def test_missing_day_end_record_is_404(admin_client, backend):
    backend.on("GET", "/day-end/zz", {"message": "Not found"}, status=404)
    resp = admin_client.get("/super-admin/day-end/zz")
    assert resp.status_code == 404
    assert b"Not Found" in resp.data


def test_day_end_delete_requires_post(admin_client, backend):
    backend.on("GET", "/day-end/r1", {"data": REPORTS[0]})
    backend.on("GET", "/buses", {"data": {"buses": BUSES}})
    backend.on("DELETE", "/day-end/r1", status=204)

    resp = admin_client.get("/super-admin/day-end/r1/delete")
    assert resp.status_code == 200
    assert backend.calls_to("DELETE", "/day-end/r1") == []

    resp = admin_client.post("/super-admin/day-end/r1/delete")
    assert resp.status_code == 302
    assert len(backend.calls_to("DELETE", "/day-end/r1")) == 1
    assert ("success", "Day end record deleted.") in flashes(admin_client)


# =========================================================
# Monthly fees
# =========================================================
FEE = {
    "_id": "f1",
    "busId": {"_id": "b1", "busNumber": "NB-1234"},
    "ownerId": {"_id": "o1", "name": "Kamal"},
    "month": "2025-01",
    "amount": 5000,
    "paidAmount": 1000,
    "status": "partial",
}


def test_fee_create_rejects_invalid_form(admin_client, backend):
    backend.on("GET", "/buses", {"data": {"buses": BUSES}})
    resp = admin_client.post("/super-admin/monthly-fees/new", data={"busId": "", "month": "Jan", "amount": "-5"})

    assert resp.status_code == 200
    assert b"Bus selection is required" in resp.data
    assert b"Month must look like 2025-01" in resp.data
    assert b"Amount must be a positive number" in resp.data
    assert backend.calls_to("POST", "/monthly-fees") == []


def test_fee_create_defaults_owner_from_bus(admin_client, backend):
    backend.on("GET", "/buses", {"data": {"buses": BUSES}})
    backend.on("POST", "/monthly-fees", {"data": {**FEE, "_id": "f9"}}, status=201)

    resp = admin_client.post(
        "/super-admin/monthly-fees/new",
        data={"busId": "b1", "month": "2025-02", "amount": "5000", "status": "unpaid"},
    )

    assert resp.status_code == 302
    sent = backend.calls_to("POST", "/monthly-fees")[0].json
    assert sent["busId"] == "b1"
    assert sent["ownerId"] == "o1"
    assert sent["month"] == "2025-02"
    assert ("success", "Monthly fee created successfully.") in flashes(admin_client)


def test_fee_create_shows_backend_field_errors(admin_client, backend):
    backend.on("GET", "/buses", {"data": {"buses": BUSES}})
    backend.on("POST", "/monthly-fees", {
        "message": "Validation failed",
        "details": {"month": "Duplicate month for this bus"},
    }, status=400)

    resp = admin_client.post(
        "/super-admin/monthly-fees/new",
        data={"busId": "b1", "month": "2025-01", "amount": "5000", "status": "unpaid"},
    )

    assert resp.status_code == 200
    assert b"Duplicate month for this bus" in resp.data
    assert b"Validation failed" in resp.data


def test_fee_edit_shows_backend_field_errors(admin_client, backend):
    backend.on("GET", "/monthly-fees/f1", {"data": FEE})
    backend.on("GET", "/buses", {"data": {"buses": BUSES}})
    backend.on("PUT", "/monthly-fees/f1", {"details": {"amount": "Amount is below the paid total"}}, status=422)

    resp = admin_client.post(
        "/super-admin/monthly-fees/f1/edit",
        data={"busId": "b1", "ownerId": "o1", "month": "2025-01", "amount": "500", "status": "partial"},
    )

    assert resp.status_code == 200
    assert b"Amount is below the paid total" in resp.data
    assert b"Failed to update monthly fee." in resp.data


def test_payment_adds_to_amount_already_paid(admin_client, backend):
    backend.on("GET", "/monthly-fees/f1", {"data": FEE})
    backend.on("GET", "/buses", {"data": {"buses": BUSES}})
    backend.on("PATCH", "/monthly-fees/f1/mark-paid", {"data": {**FEE, "paidAmount": 3000}})

    resp = admin_client.post(
        "/super-admin/monthly-fees/f1/payment",
        data={"paidAmount": "2000", "paymentDate": "2025-01-20"},
    )

    assert resp.status_code == 302
    sent = backend.calls_to("PATCH", "/monthly-fees/f1/mark-paid")[0].json
    assert sent == {"paidAmount": 3000.0, "paymentDate": "2025-01-20"}


def test_payment_requires_positive_amount(admin_client, backend):
    backend.on("GET", "/monthly-fees/f1", {"data": FEE})
    backend.on("GET", "/buses", {"data": {"buses": BUSES}})

    resp = admin_client.post("/super-admin/monthly-fees/f1/payment", data={"paidAmount": "0"})
    assert resp.status_code == 200
    assert b"Please enter a valid payment amount" in resp.data
    assert backend.calls_to("PATCH", "/monthly-fees/f1/mark-paid") == []


def test_bill_download_is_a_pdf_attachment(admin_client, backend):
    backend.on("GET", "/monthly-fees/f1/bill", content=b"%PDF-1.4 bill", headers={"Content-Type": "application/pdf"})

    resp = admin_client.get("/super-admin/monthly-fees/f1/bill")

    assert resp.status_code == 200
    assert resp.data == b"%PDF-1.4 bill"
    assert resp.headers["Content-Type"] == "application/pdf"
    assert resp.headers["Content-Disposition"] == 'attachment; filename="monthly-fee-f1.pdf"'


def test_dashboard_shows_counts(admin_client, backend):
    backend.on("GET", "/buses", {"data": {"buses": BUSES, "count": 42}})
    backend.on("GET", "/routes", {"data": {"routes": [], "count": 7}})
    backend.on("GET", "/users", {"data": {"users": [], "count": 15}})
    backend.on("GET", "/day-end", {"data": {"reports": REPORTS, "count": 2}})

    resp = admin_client.get("/super-admin/dashboard")
    assert resp.status_code == 200
    assert b"42" in resp.data
    assert b"NB-1234" in resp.data
