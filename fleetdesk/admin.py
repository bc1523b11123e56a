# fleetdesk/admin.py
from __future__ import annotations

from datetime import date

from flask import (
    Blueprint,
    abort,
    current_app,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    url_for,
)

from .billing import (
    EDITABLE_STATUSES,
    derived_status,
    status_disagrees,
    summarize_fees,
    validate_fee_form,
    validate_payment,
)
from .crud import register_crud
from .journeys import TRIP_DIRECTIONS, summarize_tickets, summarize_trips
from .listing import ListState, parse_seq
from .models import DayEndRecord, FeeStatus, index_by_id, parse_ref, ref_id, resolve_ref
from .reconciliation import (
    PERIODS,
    STATUS_FILTERS,
    FilterState,
    StatusController,
    allowed_transitions,
    apply_local_filters,
    bus_number,
    parse_iso_date,
    summarize,
    transition_verb,
)
from .resources import ADMIN_RESOURCES
from .services import ApiError, NotFound, ValidationFailed, api_client
from .services import resources as svc
from .services.dayend import DayEndService
from .services.fees import MonthlyFeeService
from .services.tickets import TicketService
from .services.trips import TripService
from .utils.downloads import pdf_response
from .utils.guards import admin_required

admin_bp = Blueprint("admin", __name__, url_prefix="/super-admin")

# -------------------------------------------------------------------
# Helpers / Constants
# -------------------------------------------------------------------
LOOKUP_LIMIT = 1000
NOTES_MAXLEN = 500


def _clean_str(value: str | None) -> str:
    return (value or "").strip()


def _page_size() -> int:
    return int(current_app.config.get("PAGE_SIZE", 10))


def _safe_index(loader, what: str) -> dict:
    """id -> record map for display; a failed lookup only costs the labels."""
    try:
        return index_by_id(loader())
    except ApiError as exc:
        current_app.logger.warning("Could not load %s for display: %s", what, exc)
        return {}


def _bus_index(client) -> dict:
    return _safe_index(lambda: svc.buses(client).list({"limit": LOOKUP_LIMIT}), "buses")


def _owner_index(client) -> dict:
    return _safe_index(lambda: svc.users(client).by_role("owner", LOOKUP_LIMIT), "owners")


def _record_json(record: DayEndRecord, buses: dict) -> dict:
    return {
        "id": record.id,
        "busNumber": bus_number(record.bus, buses),
        "date": record.date.isoformat() if record.date else None,
        "status": record.status,
        "totalRevenue": str(record.total_revenue),
        "totalExpenses": str(record.total_expenses),
        "profit": str(record.profit),
        "notes": record.notes,
        "transitions": list(allowed_transitions(record.status)),
    }


# =========================================================
# Dashboard
# =========================================================
@admin_bp.route("/dashboard")
@admin_required
def dashboard():
    client = api_client()
    counts: dict[str, int | None] = {}
    for key, factory in (("buses", svc.buses), ("routes", svc.routes), ("users", svc.users)):
        try:
            counts[key] = factory(client).list_page({"page": 1, "limit": 1}).count
        except ApiError as exc:
            current_app.logger.warning("Dashboard count for %s failed: %s", key, exc)
            counts[key] = None

    summary = None
    recent: list[DayEndRecord] = []
    try:
        page = DayEndService(client).list(FilterState("week").params(page_size=_page_size()))
        summary = summarize(page.items, server_count=page.count)
        recent = page.items[:5]
    except ApiError as exc:
        current_app.logger.warning("Dashboard day end summary failed: %s", exc)
        flash(exc.user_message("Failed to load day end summary."), "warning")

    return render_template(
        "admin/dashboard.html",
        counts=counts,
        summary=summary,
        recent=recent,
        buses=_bus_index(client) if recent else {},
        bus_number=bus_number,
    )


# =========================================================
# Day End: list (server date range + local search/status)
# =========================================================
def _load_day_ends():
    filters = FilterState.from_args(request.args)
    search = _clean_str(request.args.get("q"))
    status_filter = _clean_str(request.args.get("status")).lower() or "all"
    if status_filter not in STATUS_FILTERS:
        status_filter = "all"

    client = api_client()
    state = ListState()
    state.begin()
    page = None
    try:
        page = DayEndService(client).list(filters.params(page_size=_page_size()))
        state.resolve(page.items)
    except ApiError as exc:
        current_app.logger.warning("Day end list failed: %s", exc)
        state.fail(exc.user_message("Failed to load day end records."))

    buses = _bus_index(client) if state.items else {}
    records = apply_local_filters(state.items, search, status_filter, buses)
    summary = summarize(records, server_count=page.count if page and records is state.items else None)

    return {
        "filters": filters,
        "search": search,
        "status_filter": status_filter,
        "state": state,
        "page": page,
        "records": records,
        "summary": summary,
        "buses": buses,
    }


@admin_bp.route("/day-end")
@admin_required
def day_end_list():
    ctx = _load_day_ends()
    for message in ctx["filters"].range_errors:
        flash(message, "warning")
    return render_template(
        "dayend/list.html",
        periods=PERIODS,
        status_filters=STATUS_FILTERS,
        bus_number=bus_number,
        allowed_transitions=allowed_transitions,
        **ctx,
    )


@admin_bp.route("/day-end.json")
@admin_required
def day_end_json():
    """
    Same data as the HTML list. Callers pass `seq` and drop any response
    whose echoed seq is not the latest they issued.
    """
    ctx = _load_day_ends()
    filters: FilterState = ctx["filters"]
    state: ListState = ctx["state"]
    page = ctx["page"]
    summary = ctx["summary"]
    body = {
        "seq": parse_seq(request.args.get("seq")),
        "state": state.state.value,
        "error": state.error,
        "period": filters.period,
        "startDate": filters.start_date.isoformat() if filters.start_date else None,
        "endDate": filters.end_date.isoformat() if filters.end_date else None,
        "rangeErrors": list(filters.range_errors),
        "page": filters.page,
        "totalPages": page.total_pages if page else 0,
        "records": [_record_json(r, ctx["buses"]) for r in ctx["records"]],
        "summary": {
            "totalReports": summary.total_reports,
            "approvedCount": summary.approved_count,
            "pendingCount": summary.pending_count,
            "rejectedCount": summary.rejected_count,
            "totalRevenue": str(summary.total_revenue),
            "pageOnly": summary.page_only,
        },
    }
    return jsonify(body), (200 if state.error is None else 502)


# =========================================================
# Day End: detail + status transitions
# =========================================================
def _get_day_end_or_redirect(record_id: str):
    client = api_client()
    try:
        record = DayEndService(client).get(record_id)
    except NotFound:
        abort(404)
    except ApiError as exc:
        flash(exc.user_message("Failed to load day end record."), "danger")
        return client, None
    if not record.id:
        abort(404)
    return client, record


@admin_bp.route("/day-end/<record_id>")
@admin_required
def day_end_detail(record_id: str):
    client, record = _get_day_end_or_redirect(record_id)
    if record is None:
        return redirect(url_for("admin.day_end_list"))

    buses = _bus_index(client)
    return render_template(
        "dayend/detail.html",
        record=record,
        bus_label=bus_number(record.bus, buses),
        conductor_label=resolve_ref(record.conductor, None, "name", "username", default="-"),
        transitions=allowed_transitions(record.status),
        transition_verb=transition_verb,
        back_url=url_for("admin.day_end_list"),
        status_endpoint="admin.day_end_status",
    )


@admin_bp.route("/day-end/<record_id>/status", methods=["GET", "POST"])
@admin_required
def day_end_status(record_id: str):
    target = _clean_str(request.values.get("status")).lower()
    client, record = _get_day_end_or_redirect(record_id)
    if record is None:
        return redirect(url_for("admin.day_end_list"))

    detail_url = url_for("admin.day_end_detail", record_id=record_id)

    if target not in allowed_transitions(record.status):
        flash(f"A {record.status} day end record cannot be set to {target or 'that status'}.", "danger")
        return redirect(detail_url)

    if request.method == "GET":
        verb = transition_verb(target)
        return render_template(
            "confirm.html",
            title=f"{verb.capitalize()} Day End Record",
            message=(
                f"Are you sure you want to {verb} the day end record for "
                f"{bus_number(record.bus, _bus_index(client))} on {record.date or '-'}?"
            ),
            action=url_for("admin.day_end_status", record_id=record_id),
            hidden={"status": target},
            textarea={"name": "notes", "label": "Notes (optional)", "required": False},
            confirm_label=verb.capitalize(),
            confirm_class="success" if verb == "approve" else "warning",
            cancel_url=detail_url,
        )

    notes = _clean_str(request.form.get("notes"))[:NOTES_MAXLEN] or None
    outcome = StatusController(DayEndService(client).update_status).request_transition(record, target, notes)
    flash(outcome.message, outcome.category)
    return redirect(detail_url)


# =========================================================
# Day End: delete (confirmation gated)
# =========================================================
@admin_bp.route("/day-end/<record_id>/delete", methods=["GET"])
@admin_required
def day_end_confirm_delete(record_id: str):
    client, record = _get_day_end_or_redirect(record_id)
    if record is None:
        return redirect(url_for("admin.day_end_list"))

    return render_template(
        "confirm.html",
        title="Delete Day End Record",
        message=(
            f"Delete the day end record for {bus_number(record.bus, _bus_index(client))} "
            f"on {record.date or '-'}? This cannot be undone."
        ),
        action=url_for("admin.day_end_delete", record_id=record_id),
        confirm_label="Delete",
        confirm_class="danger",
        cancel_url=url_for("admin.day_end_detail", record_id=record_id),
    )


@admin_bp.route("/day-end/<record_id>/delete", methods=["POST"])
@admin_required
def day_end_delete(record_id: str):
    try:
        DayEndService(api_client()).delete(record_id)
    except ApiError as exc:
        current_app.logger.warning("Delete day end %s failed: %s", record_id, exc)
        flash(exc.user_message("Failed to delete day end record."), "danger")
        return redirect(url_for("admin.day_end_list"))

    flash("Day end record deleted.", "success")
    return redirect(url_for("admin.day_end_list"))


# =========================================================
# Trips
# =========================================================
def _route_index(client) -> dict:
    return _safe_index(lambda: svc.routes(client).list({"limit": LOOKUP_LIMIT}), "routes")


def _route_label(ref, routes: dict) -> str:
    return resolve_ref(ref, routes, "routeName", "name", "routeNumber", default="Unknown Route")


def _trip_filters() -> dict:
    """
    `date` defaults to today; an explicitly blank date lists every day.
    """
    raw_date = request.args.get("date")
    if raw_date is None:
        day = date.today().isoformat()
    else:
        parsed = parse_iso_date(raw_date)
        if _clean_str(raw_date) and parsed is None:
            flash("Date must look like 2025-01-31.", "warning")
            parsed = date.today()
        day = parsed.isoformat() if parsed else ""

    direction = _clean_str(request.args.get("direction")).lower() or "all"
    if direction not in TRIP_DIRECTIONS:
        direction = "all"

    return {
        "date": day,
        "direction": direction,
        "search": _clean_str(request.args.get("search")),
    }


@admin_bp.route("/trips")
@admin_required
def trips_list():
    client = api_client()
    filters = _trip_filters()
    page_no = request.args.get("page", 1, type=int) or 1

    params = {
        "page": max(page_no, 1),
        "limit": int(current_app.config.get("TRIPS_PAGE_SIZE", 15)),
        "date": filters["date"],
        "direction": None if filters["direction"] == "all" else filters["direction"],
        "search": filters["search"],
    }

    state = ListState()
    state.begin()
    page = None
    try:
        page = TripService(client).list(params)
        state.resolve(page.items)
    except ApiError as exc:
        current_app.logger.warning("Trip list failed: %s", exc)
        state.fail(exc.user_message("Failed to load trips. Please try again later."))

    routes = _route_index(client) if state.items else {}
    buses = _bus_index(client) if state.items else {}
    return render_template(
        "trips/list.html",
        trips=state.items,
        state=state,
        page=page,
        filters=filters,
        directions=TRIP_DIRECTIONS,
        summary=summarize_trips(state.items),
        route_label=lambda trip: trip.route_name or _route_label(trip.route, routes),
        bus_label=lambda trip: bus_number(trip.bus, buses),
    )


def _get_trip_or_redirect(client, trip_id: str):
    try:
        trip = TripService(client).get(trip_id)
    except NotFound:
        abort(404)
    except ApiError as exc:
        flash(exc.user_message("Failed to load trip."), "danger")
        return None
    if not trip.id:
        abort(404)
    return trip


@admin_bp.route("/trips/<trip_id>")
@admin_required
def trip_detail(trip_id: str):
    client = api_client()
    trip = _get_trip_or_redirect(client, trip_id)
    if trip is None:
        return redirect(url_for("admin.trips_list"))

    tickets = []
    try:
        tickets = TicketService(client).for_trip(trip_id)
    except ApiError as exc:
        current_app.logger.warning("Tickets for trip %s failed: %s", trip_id, exc)
        flash(exc.user_message("Failed to load tickets for this trip."), "warning")

    return render_template(
        "trips/detail.html",
        trip=trip,
        route_label=trip.route_name or _route_label(trip.route, _route_index(client)),
        bus_label=bus_number(trip.bus, _bus_index(client)),
        conductor_label=trip.conductor_name or resolve_ref(trip.conductor, None, "name", "username", default="-"),
        tickets=tickets,
        ticket_summary=summarize_tickets(tickets),
        back_url=url_for("admin.trips_list"),
    )


@admin_bp.route("/trips/<trip_id>/delete", methods=["GET"])
@admin_required
def trip_confirm_delete(trip_id: str):
    trip = _get_trip_or_redirect(api_client(), trip_id)
    if trip is None:
        return redirect(url_for("admin.trips_list"))

    started = trip.start_time.strftime("%Y-%m-%d %H:%M") if trip.start_time else "-"
    return render_template(
        "confirm.html",
        title="Delete Trip",
        message=f"Are you sure you want to delete trip #{trip.trip_number or trip.id} started {started}?",
        action=url_for("admin.trip_delete", trip_id=trip_id),
        confirm_label="Delete",
        confirm_class="danger",
        cancel_url=url_for("admin.trip_detail", trip_id=trip_id),
    )


@admin_bp.route("/trips/<trip_id>/delete", methods=["POST"])
@admin_required
def trip_delete(trip_id: str):
    try:
        TripService(api_client()).delete(trip_id)
    except ApiError as exc:
        current_app.logger.warning("Delete trip %s failed: %s", trip_id, exc)
        flash(exc.user_message("Failed to delete trip."), "danger")
        return redirect(url_for("admin.trips_list"))

    flash("Trip deleted.", "success")
    return redirect(url_for("admin.trips_list"))


# =========================================================
# Tickets
# =========================================================
@admin_bp.route("/tickets")
@admin_required
def tickets_list():
    client = api_client()
    filters = {
        "busId": _clean_str(request.args.get("busId")),
        "routeId": _clean_str(request.args.get("routeId")),
    }
    page_no = max(request.args.get("page", 1, type=int) or 1, 1)

    state = ListState()
    state.begin()
    page = None
    try:
        page = TicketService(client).list({**filters, "page": page_no, "limit": _page_size()})
        state.resolve(page.items)
    except ApiError as exc:
        current_app.logger.warning("Ticket list failed: %s", exc)
        state.fail(exc.user_message("Failed to load tickets."))

    routes = _route_index(client)
    buses = _bus_index(client)
    return render_template(
        "tickets/list.html",
        tickets=state.items,
        state=state,
        page=page,
        filters=filters,
        buses=buses,
        routes=routes,
        summary=summarize_tickets(state.items),
        route_label=lambda ticket: _route_label(ticket.route, routes),
        bus_label=lambda ticket: bus_number(ticket.bus, buses),
    )


def _get_ticket_or_redirect(client, ticket_id: str):
    try:
        ticket = TicketService(client).get(ticket_id)
    except NotFound:
        abort(404)
    except ApiError as exc:
        flash(exc.user_message("Failed to load ticket."), "danger")
        return None
    if not ticket.id:
        abort(404)
    return ticket


@admin_bp.route("/tickets/<ticket_id>")
@admin_required
def ticket_detail(ticket_id: str):
    client = api_client()
    ticket = _get_ticket_or_redirect(client, ticket_id)
    if ticket is None:
        return redirect(url_for("admin.tickets_list"))

    return render_template(
        "tickets/detail.html",
        ticket=ticket,
        route_label=_route_label(ticket.route, _route_index(client)),
        bus_label=bus_number(ticket.bus, _bus_index(client)),
        conductor_label=resolve_ref(ticket.conductor, None, "name", "username", default="-"),
        back_url=url_for("admin.tickets_list"),
    )


@admin_bp.route("/tickets/<ticket_id>/delete", methods=["GET"])
@admin_required
def ticket_confirm_delete(ticket_id: str):
    ticket = _get_ticket_or_redirect(api_client(), ticket_id)
    if ticket is None:
        return redirect(url_for("admin.tickets_list"))

    return render_template(
        "confirm.html",
        title="Delete Ticket",
        message=f"Are you sure you want to delete ticket {ticket.ticket_number or ticket.id}? This cannot be undone.",
        action=url_for("admin.ticket_delete", ticket_id=ticket_id),
        confirm_label="Delete",
        confirm_class="danger",
        cancel_url=url_for("admin.ticket_detail", ticket_id=ticket_id),
    )


@admin_bp.route("/tickets/<ticket_id>/delete", methods=["POST"])
@admin_required
def ticket_delete(ticket_id: str):
    try:
        TicketService(api_client()).delete(ticket_id)
    except ApiError as exc:
        current_app.logger.warning("Delete ticket %s failed: %s", ticket_id, exc)
        flash(exc.user_message("Failed to delete ticket."), "danger")
        return redirect(url_for("admin.tickets_list"))

    flash("Ticket deleted.", "success")
    return redirect(url_for("admin.tickets_list"))


# =========================================================
# Monthly Fees
# =========================================================
def _fee_filters() -> dict:
    return {
        "month": _clean_str(request.args.get("month")),
        "status": _clean_str(request.args.get("status")).lower(),
        "busId": _clean_str(request.args.get("busId")),
        "ownerId": _clean_str(request.args.get("ownerId")),
    }


def _fee_form_context(client, values: dict, errors: dict, fee_id: str | None = None) -> dict:
    return {
        "values": values,
        "errors": errors,
        "fee_id": fee_id,
        "editing": fee_id is not None,
        "buses": list(_bus_index(client).values()),
        "statuses": EDITABLE_STATUSES,
        "cancel_url": url_for("admin.monthly_fees"),
    }


def _with_owner(payload: dict, client) -> dict:
    """A fee's owner defaults to the owner of the selected bus."""
    if payload.get("ownerId"):
        return payload
    bus = _bus_index(client).get(payload.get("busId") or "")
    owner_id = ref_id(parse_ref(bus.get("ownerId"))) if bus else ""
    if owner_id:
        payload["ownerId"] = owner_id
    return payload


@admin_bp.route("/monthly-fees")
@admin_required
def monthly_fees():
    filters = _fee_filters()
    page_no = request.args.get("page", 1, type=int) or 1
    client = api_client()

    state = ListState()
    state.begin()
    page = None
    try:
        page = MonthlyFeeService(client).list({**filters, "page": max(page_no, 1), "limit": _page_size()})
        state.resolve(page.items)
    except ApiError as exc:
        current_app.logger.warning("Monthly fee list failed: %s", exc)
        state.fail(exc.user_message("Failed to load monthly fees."))

    buses = _bus_index(client)
    owners = _owner_index(client)

    return render_template(
        "fees/list.html",
        fees=state.items,
        state=state,
        page=page,
        filters=filters,
        summary=summarize_fees(state.items),
        statuses=[s.value for s in FeeStatus],
        buses=buses,
        bus_label=lambda fee: bus_number(fee.bus, buses),
        owner_label=lambda fee: resolve_ref(fee.owner, owners, "name", "username", default="-"),
        derived_status=lambda fee: derived_status(fee.amount, fee.paid_amount),
        status_disagrees=status_disagrees,
        endpoint_prefix="admin",
        can_edit=True,
    )


@admin_bp.route("/monthly-fees/new", methods=["GET", "POST"])
@admin_required
def monthly_fee_new():
    client = api_client()

    if request.method == "GET":
        values = {"status": FeeStatus.UNPAID.value, "month": _clean_str(request.args.get("month"))}
        return render_template("fees/form.html", **_fee_form_context(client, values, {}))

    values = request.form.to_dict()
    payload, errors = validate_fee_form(request.form)
    if errors:
        flash("Please fix the highlighted fields.", "danger")
        return render_template("fees/form.html", **_fee_form_context(client, values, errors))

    try:
        MonthlyFeeService(client).create(_with_owner(payload, client))
    except ValidationFailed as exc:
        flash(exc.user_message("Failed to create monthly fee."), "danger")
        return render_template("fees/form.html", **_fee_form_context(client, values, exc.field_errors))
    except ApiError as exc:
        current_app.logger.warning("Create monthly fee failed: %s", exc)
        flash(exc.user_message("Failed to create monthly fee."), "danger")
        return render_template("fees/form.html", **_fee_form_context(client, values, {}))

    flash("Monthly fee created successfully.", "success")
    return redirect(url_for("admin.monthly_fees"))


def _get_fee_or_redirect(client, fee_id: str):
    try:
        fee = MonthlyFeeService(client).get(fee_id)
    except NotFound:
        abort(404)
    except ApiError as exc:
        flash(exc.user_message("Failed to load monthly fee."), "danger")
        return None
    if not fee.id:
        abort(404)
    return fee


@admin_bp.route("/monthly-fees/<fee_id>/edit", methods=["GET", "POST"])
@admin_required
def monthly_fee_edit(fee_id: str):
    client = api_client()
    fee = _get_fee_or_redirect(client, fee_id)
    if fee is None:
        return redirect(url_for("admin.monthly_fees"))

    if request.method == "GET":
        values = {
            "busId": ref_id(fee.bus),
            "ownerId": ref_id(fee.owner),
            "month": fee.month,
            "amount": fee.amount,
            "paidAmount": fee.paid_amount,
            "status": fee.status,
            "paymentDate": fee.payment_date.isoformat() if fee.payment_date else "",
            "notes": fee.notes,
        }
        return render_template("fees/form.html", **_fee_form_context(client, values, {}, fee_id))

    values = request.form.to_dict()
    payload, errors = validate_fee_form(request.form)
    if errors:
        flash("Please fix the highlighted fields.", "danger")
        return render_template("fees/form.html", **_fee_form_context(client, values, errors, fee_id))

    try:
        MonthlyFeeService(client).update(fee_id, _with_owner(payload, client))
    except ValidationFailed as exc:
        flash(exc.user_message("Failed to update monthly fee."), "danger")
        return render_template("fees/form.html", **_fee_form_context(client, values, exc.field_errors, fee_id))
    except ApiError as exc:
        current_app.logger.warning("Update monthly fee %s failed: %s", fee_id, exc)
        flash(exc.user_message("Failed to update monthly fee."), "danger")
        return render_template("fees/form.html", **_fee_form_context(client, values, {}, fee_id))

    flash("Monthly fee updated successfully.", "success")
    return redirect(url_for("admin.monthly_fees"))


@admin_bp.route("/monthly-fees/<fee_id>/delete", methods=["GET", "POST"])
@admin_required
def monthly_fee_delete(fee_id: str):
    client = api_client()

    if request.method == "GET":
        fee = _get_fee_or_redirect(client, fee_id)
        if fee is None:
            return redirect(url_for("admin.monthly_fees"))
        return render_template(
            "confirm.html",
            title="Delete Monthly Fee",
            message=f"Delete the {fee.month} fee for {bus_number(fee.bus, _bus_index(client))}? This cannot be undone.",
            action=url_for("admin.monthly_fee_delete", fee_id=fee_id),
            confirm_label="Delete",
            confirm_class="danger",
            cancel_url=url_for("admin.monthly_fees"),
        )

    try:
        MonthlyFeeService(client).delete(fee_id)
    except ApiError as exc:
        current_app.logger.warning("Delete monthly fee %s failed: %s", fee_id, exc)
        flash(exc.user_message("Failed to delete monthly fee."), "danger")
        return redirect(url_for("admin.monthly_fees"))

    flash("Monthly fee deleted.", "success")
    return redirect(url_for("admin.monthly_fees"))


@admin_bp.route("/monthly-fees/<fee_id>/payment", methods=["GET", "POST"])
@admin_required
def monthly_fee_payment(fee_id: str):
    client = api_client()
    fee = _get_fee_or_redirect(client, fee_id)
    if fee is None:
        return redirect(url_for("admin.monthly_fees"))

    context = {
        "fee": fee,
        "bus_label": bus_number(fee.bus, _bus_index(client)),
        "action": url_for("admin.monthly_fee_payment", fee_id=fee_id),
        "cancel_url": url_for("admin.monthly_fees"),
    }

    if request.method == "GET":
        return render_template("fees/payment.html", values={"paidAmount": fee.balance}, **context)

    amount, payment_date, error = validate_payment(request.form)
    if error:
        flash(error, "danger")
        return render_template("fees/payment.html", values=request.form.to_dict(), **context)

    try:
        # The backend stores cumulative payments
        MonthlyFeeService(client).mark_paid(fee_id, fee.paid_amount + amount, payment_date)
    except ApiError as exc:
        current_app.logger.warning("Record payment for fee %s failed: %s", fee_id, exc)
        flash(exc.user_message("Failed to record payment."), "danger")
        return render_template("fees/payment.html", values=request.form.to_dict(), **context)

    flash("Payment recorded successfully.", "success")
    return redirect(url_for("admin.monthly_fees"))


@admin_bp.route("/monthly-fees/<fee_id>/bill")
@admin_required
def monthly_fee_bill(fee_id: str):
    try:
        pdf_bytes = MonthlyFeeService(api_client()).bill(fee_id)
    except NotFound:
        abort(404)
    except ApiError as exc:
        current_app.logger.warning("Bill download for fee %s failed: %s", fee_id, exc)
        flash(exc.user_message("Failed to download bill."), "danger")
        return redirect(url_for("admin.monthly_fees"))

    return pdf_response(pdf_bytes, f"monthly-fee-{fee_id}")


# =========================================================
# Flat resources (buses, routes, stops, sections, ...)
# =========================================================
for _resource in ADMIN_RESOURCES:
    register_crud(admin_bp, _resource, admin_required)
