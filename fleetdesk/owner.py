# fleetdesk/owner.py
from __future__ import annotations

from flask import Blueprint, abort, current_app, flash, redirect, render_template, request, url_for
from flask_login import current_user

from .billing import derived_status, status_disagrees, summarize_fees
from .crud import register_crud, search_items
from .listing import ListState
from .models import FeeStatus, Role, index_by_id, parse_ref, record_id, ref_id, resolve_ref
from .resources import OWNER_RESOURCES
from .services import ApiError, NotFound, api_client
from .services import resources as svc
from .services.fees import MonthlyFeeService
from .utils.downloads import pdf_response
from .utils.guards import role_required

owner_bp = Blueprint("owner", __name__, url_prefix="/bus-owner")

owner_required = role_required(Role.BUS_OWNER)

BUS_SEARCH_KEYS = ("busNumber", "busName", "driverName", "telephoneNumber")


def _clean_str(value: str | None) -> str:
    return (value or "").strip()


def _own_buses(client) -> list[dict]:
    return svc.buses(client).for_owner(current_user.id)


# =========================================================
# Dashboard
# =========================================================
@owner_bp.route("/dashboard")
@owner_required
def dashboard():
    client = api_client()

    buses: list[dict] = []
    try:
        buses = _own_buses(client)
    except ApiError as exc:
        current_app.logger.warning("Owner %s bus list failed: %s", current_user.id, exc)
        flash(exc.user_message("Failed to load your buses."), "warning")

    fees = []
    try:
        fees = MonthlyFeeService(client).list_for_owner(current_user.id, {"limit": 100}).items
    except ApiError as exc:
        current_app.logger.warning("Owner %s fee list failed: %s", current_user.id, exc)
        flash(exc.user_message("Failed to load your monthly fees."), "warning")

    active = [b for b in buses if (b.get("status") or "active") == "active"]
    return render_template(
        "owner/dashboard.html",
        buses=buses,
        active_count=len(active),
        fee_summary=summarize_fees(fees),
        open_fees=[f for f in fees if f.status != FeeStatus.PAID.value][:5],
    )


# =========================================================
# Buses (read-only)
# =========================================================
@owner_bp.route("/buses")
@owner_required
def buses():
    q = _clean_str(request.args.get("q"))
    state = ListState()
    state.begin()
    try:
        state.resolve(_own_buses(api_client()))
    except ApiError as exc:
        current_app.logger.warning("Owner %s bus list failed: %s", current_user.id, exc)
        state.fail(exc.user_message("Failed to load your buses."))

    return render_template(
        "owner/buses.html",
        buses=search_items(state.items, BUS_SEARCH_KEYS, q),
        state=state,
        q=q,
        route_label=lambda bus: resolve_ref(parse_ref(bus.get("routeId")), None, "routeNumber", "routeName", default="-"),
    )


@owner_bp.route("/buses/<bus_id>")
@owner_required
def bus_detail(bus_id: str):
    client = api_client()
    try:
        own = index_by_id(_own_buses(client))
    except ApiError as exc:
        flash(exc.user_message("Failed to load bus."), "danger")
        return redirect(url_for("owner.buses"))

    # Only buses the backend lists for this owner are visible here
    bus = own.get(bus_id)
    if bus is None:
        abort(404)

    return render_template(
        "owner/bus_detail.html",
        bus=bus,
        bus_id=record_id(bus),
        route_label=resolve_ref(parse_ref(bus.get("routeId")), None, "routeNumber", "routeName", default="-"),
        conductor_label=resolve_ref(parse_ref(bus.get("conductorId")), None, "username", "name", default="-"),
    )


# =========================================================
# Monthly Fees
# =========================================================
@owner_bp.route("/monthly-fees")
@owner_required
def monthly_fees():
    filters = {
        "month": _clean_str(request.args.get("month")),
        "status": _clean_str(request.args.get("status")).lower(),
    }
    page_no = request.args.get("page", 1, type=int) or 1
    client = api_client()

    state = ListState()
    state.begin()
    page = None
    try:
        page = MonthlyFeeService(client).list_for_owner(
            current_user.id,
            {**filters, "page": max(page_no, 1), "limit": current_app.config.get("PAGE_SIZE", 10)},
        )
        state.resolve(page.items)
    except ApiError as exc:
        current_app.logger.warning("Owner %s fee list failed: %s", current_user.id, exc)
        state.fail(exc.user_message("Failed to load monthly fees."))

    try:
        buses = index_by_id(_own_buses(client)) if state.items else {}
    except ApiError as exc:
        current_app.logger.warning("Owner %s bus lookup failed: %s", current_user.id, exc)
        buses = {}

    return render_template(
        "fees/list.html",
        fees=state.items,
        state=state,
        page=page,
        filters=filters,
        summary=summarize_fees(state.items),
        statuses=[s.value for s in FeeStatus],
        buses=buses,
        bus_label=lambda fee: resolve_ref(fee.bus, buses, "busNumber", default="Unknown Bus"),
        owner_label=lambda fee: current_user.name,
        derived_status=lambda fee: derived_status(fee.amount, fee.paid_amount),
        status_disagrees=status_disagrees,
        endpoint_prefix="owner",
        can_edit=False,
    )


@owner_bp.route("/monthly-fees/<fee_id>/bill")
@owner_required
def monthly_fee_bill(fee_id: str):
    client = api_client()
    try:
        fee = MonthlyFeeService(client).get(fee_id)
        if ref_id(fee.owner) and ref_id(fee.owner) != current_user.id:
            abort(403)
        pdf_bytes = MonthlyFeeService(client).bill(fee_id)
    except NotFound:
        abort(404)
    except ApiError as exc:
        current_app.logger.warning("Owner bill download for fee %s failed: %s", fee_id, exc)
        flash(exc.user_message("Failed to download bill."), "danger")
        return redirect(url_for("owner.monthly_fees"))

    return pdf_response(pdf_bytes, f"monthly-fee-{fee.month or fee_id}")


# =========================================================
# Route sections (read-only fare table)
# =========================================================
@owner_bp.route("/route-sections")
@owner_required
def route_sections():
    client = api_client()
    state = ListState()
    state.begin()
    try:
        state.resolve(svc.route_sections(client).for_owner(_own_buses(client)))
    except ApiError as exc:
        current_app.logger.warning("Owner %s route sections failed: %s", current_user.id, exc)
        state.fail(exc.user_message("Failed to load route sections."))

    return render_template(
        "route_sections.html",
        sections=state.items,
        state=state,
        ref_label=lambda value, *keys: resolve_ref(parse_ref(value), None, *keys, default="-"),
    )


# =========================================================
# Owner-scoped expense types / transactions
# =========================================================
for _resource in OWNER_RESOURCES:
    register_crud(owner_bp, _resource, owner_required)
