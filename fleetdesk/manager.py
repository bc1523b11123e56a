# fleetdesk/manager.py
from __future__ import annotations

from datetime import date
from decimal import Decimal

from flask import Blueprint, abort, current_app, flash, redirect, render_template, request, url_for

from .billing import summarize_fees
from .journeys import TICKET_STATUSES, TRIP_PERIODS, summarize_tickets, summarize_trips
from .listing import ListState
from .models import DayEndStatus, FeeStatus, Role, parse_ref, record_id, resolve_ref, to_decimal
from .reconciliation import (
    PERIODS,
    FilterState,
    StatusController,
    allowed_transitions,
    build_filter_params,
    bus_number,
    summarize,
)
from .services import ApiError, NotFound, api_client
from .services.manager import ManagerService
from .utils.guards import role_required

manager_bp = Blueprint("manager", __name__, url_prefix="/manager")

manager_required = role_required(Role.MANAGER)

REASON_MAXLEN = 500
EXPENSE_CATEGORIES = ("all", "fuel", "maintenance", "salary", "insurance", "other")
PAYMENT_METHODS = (
    ("cash", "Cash"),
    ("bank_transfer", "Bank transfer"),
    ("cheque", "Cheque"),
    ("online", "Online"),
)


def _clean_str(value: str | None) -> str:
    return (value or "").strip()


def _service() -> ManagerService:
    return ManagerService(api_client())


# =========================================================
# Dashboard + assigned bus
# =========================================================
@manager_bp.route("/dashboard")
@manager_required
def dashboard():
    service = _service()

    stats: dict = {}
    activities: list[dict] = []
    try:
        stats = service.dashboard_stats()
        activities = service.recent_activities(limit=5)
    except ApiError as exc:
        current_app.logger.warning("Manager dashboard failed: %s", exc)
        flash(exc.user_message("Failed to load dashboard data."), "warning")

    def stat(key: str) -> Decimal:
        return to_decimal(stats.get(key))

    total_trips = stat("totalTrips")
    return render_template(
        "manager/dashboard.html",
        stats=stats,
        stat=stat,
        activities=activities,
        pending_total=int(stat("pendingReports") + stat("pendingExpenses")),
        revenue_per_trip=(stat("totalRevenue") / total_trips).quantize(Decimal("1")) if total_trips else 0,
    )


@manager_bp.route("/bus")
@manager_required
def bus():
    try:
        assigned = _service().assigned_bus()
    except NotFound:
        assigned = {}
    except ApiError as exc:
        current_app.logger.warning("Assigned bus lookup failed: %s", exc)
        flash(exc.user_message("Failed to load bus details."), "danger")
        assigned = {}

    return render_template(
        "manager/bus.html",
        bus=assigned,
        route_label=resolve_ref(parse_ref(assigned.get("routeId")), None, "routeNumber", "routeName", default="-"),
    )


# =========================================================
# Day End reports (period + page)
# =========================================================
@manager_bp.route("/day-end")
@manager_required
def day_end():
    filters = FilterState.from_args(request.args)

    state = ListState()
    state.begin()
    page = None
    try:
        page = _service().day_end_reports(filters.params(page_size=current_app.config.get("PAGE_SIZE", 10)))
        state.resolve(page.items)
    except ApiError as exc:
        current_app.logger.warning("Manager day end list failed: %s", exc)
        state.fail(exc.user_message("Failed to load day end reports."))

    return render_template(
        "manager/day_end.html",
        filters=filters,
        periods=PERIODS,
        state=state,
        page=page,
        records=state.items,
        summary=summarize(state.items, server_count=page.count if page else None),
        bus_number=bus_number,
        allowed_transitions=allowed_transitions,
    )


def _manager_update(service: ManagerService):
    def update(report_id: str, target: str, notes: str | None):
        if target == DayEndStatus.APPROVED.value:
            return service.approve_day_end(report_id, notes)
        return service.reject_day_end(report_id, notes or "")
    return update


@manager_bp.route("/day-end/<report_id>/<action>", methods=["GET", "POST"])
@manager_required
def day_end_action(report_id: str, action: str):
    targets = {"approve": DayEndStatus.APPROVED.value, "reject": DayEndStatus.REJECTED.value}
    target = targets.get(action)
    if target is None:
        abort(404)

    service = _service()
    back = url_for("manager.day_end", period=request.values.get("period"), page=request.values.get("page"))
    try:
        record = service.day_end_report(report_id)
    except NotFound:
        abort(404)
    except ApiError as exc:
        flash(exc.user_message("Failed to load day end report."), "danger")
        return redirect(back)

    rejecting = target == DayEndStatus.REJECTED.value
    confirm_context = {
        "title": f"{action.capitalize()} Day End Report",
        "message": f"{action.capitalize()} the report for {bus_number(record.bus)} on {record.date or '-'}?",
        "action": url_for("manager.day_end_action", report_id=report_id, action=action),
        "hidden": {"period": request.values.get("period") or "", "page": request.values.get("page") or ""},
        "textarea": {
            "name": "reason" if rejecting else "remarks",
            "label": "Reason for rejection" if rejecting else "Remarks (optional)",
            "required": rejecting,
        },
        "confirm_label": action.capitalize(),
        "confirm_class": "warning" if rejecting else "success",
        "cancel_url": back,
    }

    if request.method == "GET":
        if target not in allowed_transitions(record.status):
            flash(f"A {record.status} day end report cannot be {target}.", "danger")
            return redirect(back)
        return render_template("confirm.html", **confirm_context)

    text = _clean_str(request.form.get("reason" if rejecting else "remarks"))[:REASON_MAXLEN]
    if rejecting and not text:
        flash("Please provide a reason for rejection.", "danger")
        return render_template("confirm.html", **confirm_context)

    outcome = StatusController(_manager_update(service)).request_transition(record, target, text or None)
    flash(outcome.message, outcome.category)
    return redirect(back)


# =========================================================
# Trips + tickets (cancel with reason)
# =========================================================
@manager_bp.route("/trips")
@manager_required
def trips():
    period = _clean_str(request.args.get("period")).lower() or "today"
    if period not in TRIP_PERIODS:
        period = "today"

    state = ListState()
    state.begin()
    try:
        state.resolve(_service().trips(period))
    except ApiError as exc:
        current_app.logger.warning("Manager trip list failed: %s", exc)
        state.fail(exc.user_message("Failed to load trips."))

    return render_template(
        "manager/trips.html",
        period=period,
        periods=TRIP_PERIODS,
        state=state,
        trips=state.items,
        summary=summarize_trips(state.items),
        bus_label=lambda trip: bus_number(trip.bus),
    )


@manager_bp.route("/trips/<trip_id>/cancel", methods=["GET", "POST"])
@manager_required
def trip_cancel(trip_id: str):
    service = _service()
    back = url_for("manager.trips", period=request.values.get("period") or None)
    try:
        trip = service.trip(trip_id)
    except NotFound:
        abort(404)
    except ApiError as exc:
        flash(exc.user_message("Failed to load trip."), "danger")
        return redirect(back)

    if not trip.cancellable:
        flash(f"A {trip.status.replace('-', ' ')} trip cannot be cancelled.", "danger")
        return redirect(back)

    confirm_context = {
        "title": "Cancel Trip",
        "message": f"Cancel trip #{trip.trip_number or trip.id} for {bus_number(trip.bus)}?",
        "action": url_for("manager.trip_cancel", trip_id=trip_id),
        "hidden": {"period": request.values.get("period") or ""},
        "textarea": {"name": "reason", "label": "Reason for cancellation", "required": True},
        "confirm_label": "Cancel trip",
        "confirm_class": "warning",
        "cancel_url": back,
    }
    if request.method == "GET":
        return render_template("confirm.html", **confirm_context)

    reason = _clean_str(request.form.get("reason"))[:REASON_MAXLEN]
    if not reason:
        flash("Please provide a reason for cancellation.", "danger")
        return render_template("confirm.html", **confirm_context)

    try:
        service.cancel_trip(trip_id, reason)
    except ApiError as exc:
        current_app.logger.warning("Cancel trip %s failed: %s", trip_id, exc)
        flash(exc.user_message("Failed to cancel trip."), "danger")
        return redirect(back)

    flash("Trip cancelled.", "warning")
    return redirect(back)


@manager_bp.route("/tickets")
@manager_required
def tickets():
    filters = FilterState.from_args(request.args, default_period="all")
    for message in filters.range_errors:
        flash(message, "warning")
    status = _clean_str(request.args.get("status")).lower() or "all"
    if status not in TICKET_STATUSES:
        status = "all"

    params = filters.params(page_size=current_app.config.get("PAGE_SIZE", 10))
    if status != "all":
        params["status"] = status

    state = ListState()
    state.begin()
    page = None
    try:
        page = _service().tickets(params)
        state.resolve(page.items)
    except ApiError as exc:
        current_app.logger.warning("Manager ticket list failed: %s", exc)
        state.fail(exc.user_message("Failed to load tickets."))

    return render_template(
        "manager/tickets.html",
        filters=filters,
        periods=PERIODS,
        status=status,
        statuses=TICKET_STATUSES,
        state=state,
        page=page,
        tickets=state.items,
        summary=summarize_tickets(state.items),
    )


@manager_bp.route("/tickets/<ticket_id>/cancel", methods=["GET", "POST"])
@manager_required
def ticket_cancel(ticket_id: str):
    label = _clean_str(request.values.get("number")) or ticket_id
    back = url_for("manager.tickets", status=request.values.get("status") or None)
    confirm_context = {
        "title": "Cancel Ticket",
        "message": f"Cancel ticket {label}? The passenger will no longer be able to travel on it.",
        "action": url_for("manager.ticket_cancel", ticket_id=ticket_id),
        "hidden": {"number": label, "status": request.values.get("status") or ""},
        "textarea": {"name": "reason", "label": "Reason for cancellation", "required": True},
        "confirm_label": "Cancel ticket",
        "confirm_class": "warning",
        "cancel_url": back,
    }
    if request.method == "GET":
        return render_template("confirm.html", **confirm_context)

    reason = _clean_str(request.form.get("reason"))[:REASON_MAXLEN]
    if not reason:
        flash("Please provide a reason for cancellation.", "danger")
        return render_template("confirm.html", **confirm_context)

    try:
        _service().cancel_ticket(ticket_id, reason)
    except NotFound:
        abort(404)
    except ApiError as exc:
        current_app.logger.warning("Cancel ticket %s failed: %s", ticket_id, exc)
        flash(exc.user_message("Failed to cancel ticket."), "danger")
        return redirect(back)

    flash(f"Ticket {label} cancelled.", "warning")
    return redirect(back)


# =========================================================
# Expenses
# =========================================================
@manager_bp.route("/expenses")
@manager_required
def expenses():
    period = _clean_str(request.args.get("period")).lower() or "month"
    if period not in PERIODS:
        period = "month"
    category = _clean_str(request.args.get("category")).lower() or "all"
    if category not in EXPENSE_CATEGORIES:
        category = "all"

    params = build_filter_params(period)
    params.pop("page")
    params.pop("limit")

    state = ListState()
    state.begin()
    try:
        state.resolve(_service().expenses(params))
    except ApiError as exc:
        current_app.logger.warning("Manager expense list failed: %s", exc)
        state.fail(exc.user_message("Failed to load expenses."))

    items = [e for e in state.items if category == "all" or (e.get("category") or "").lower() == category]
    return render_template(
        "manager/expenses.html",
        expenses=items,
        state=state,
        period=period,
        periods=PERIODS,
        category=category,
        categories=EXPENSE_CATEGORIES,
        total_amount=sum((to_decimal(e.get("amount")) for e in items), Decimal("0")),
        approved_count=sum(1 for e in items if e.get("status") == "approved"),
        pending_count=sum(1 for e in items if e.get("status") == "pending"),
        record_id=record_id,
    )


@manager_bp.route("/expenses/<expense_id>/<action>", methods=["POST"])
@manager_required
def expense_action(expense_id: str, action: str):
    back = url_for("manager.expenses", period=request.form.get("period"), category=request.form.get("category"))
    text = _clean_str(request.form.get("reason"))[:REASON_MAXLEN]

    try:
        if action == "approve":
            _service().approve_expense(expense_id, text or None)
        elif action == "reject":
            if not text:
                flash("Please provide a reason for rejection.", "danger")
                return redirect(back)
            _service().reject_expense(expense_id, text)
        else:
            abort(404)
    except ApiError as exc:
        current_app.logger.warning("Expense %s %s failed: %s", expense_id, action, exc)
        flash(exc.user_message(f"Failed to {action} expense."), "danger")
        return redirect(back)

    if action == "approve":
        flash("Expense approved successfully.", "success")
    else:
        flash("Expense rejected.", "warning")
    return redirect(back)


# =========================================================
# Monthly fees
# =========================================================
@manager_bp.route("/monthly-fees")
@manager_required
def monthly_fees():
    year = request.args.get("year", date.today().year, type=int)

    state = ListState()
    state.begin()
    try:
        state.resolve(_service().monthly_fees(year))
    except ApiError as exc:
        current_app.logger.warning("Manager fee list failed: %s", exc)
        state.fail(exc.user_message("Failed to load monthly fees."))

    this_year = date.today().year
    return render_template(
        "manager/monthly_fees.html",
        fees=state.items,
        state=state,
        year=year,
        years=list(range(this_year, this_year - 5, -1)),
        summary=summarize_fees(state.items),
        payment_methods=PAYMENT_METHODS,
        payable=lambda fee: fee.status in (FeeStatus.PENDING.value, FeeStatus.OVERDUE.value),
        bus_number=bus_number,
    )


@manager_bp.route("/monthly-fees/<fee_id>/pay", methods=["POST"])
@manager_required
def monthly_fee_pay(fee_id: str):
    back = url_for("manager.monthly_fees", year=request.form.get("year"))
    method = _clean_str(request.form.get("paymentMethod"))
    if method not in {key for key, _ in PAYMENT_METHODS}:
        flash("Choose a payment method.", "danger")
        return redirect(back)

    payment = {
        "paymentMethod": method,
        "transactionId": _clean_str(request.form.get("transactionId")) or None,
        "paidDate": date.today().isoformat(),
    }
    try:
        _service().mark_fee_paid(fee_id, payment)
    except ApiError as exc:
        current_app.logger.warning("Mark fee %s paid failed: %s", fee_id, exc)
        flash(exc.user_message("Failed to record payment."), "danger")
        return redirect(back)

    flash("Payment recorded successfully.", "success")
    return redirect(back)


# =========================================================
# Route sections (read-only)
# =========================================================
@manager_bp.route("/route-sections")
@manager_required
def route_sections():
    state = ListState()
    state.begin()
    try:
        state.resolve(_service().route_sections())
    except ApiError as exc:
        current_app.logger.warning("Manager route sections failed: %s", exc)
        state.fail(exc.user_message("Failed to load route sections."))

    return render_template(
        "route_sections.html",
        sections=state.items,
        state=state,
        ref_label=lambda value, *keys: resolve_ref(parse_ref(value), None, *keys, default="-"),
    )
