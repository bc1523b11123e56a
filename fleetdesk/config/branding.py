# fleetdesk/config/branding.py
from __future__ import annotations

"""
Single source of truth for operator identity shown in the dashboard.

Templates read these through branding_context(); nothing else should hardcode
the operator name or the currency label.
"""

import os

# -----------------------------
# Canonical fields
# -----------------------------
APP_NAME = os.environ.get("FLEETDESK_APP_NAME", "FleetDesk")
APP_TAGLINE = "Bus ticketing operations"

# All fares, expenses and fees are billed in a single currency
CURRENCY = os.environ.get("FLEETDESK_CURRENCY", "LKR")

SUPPORT_EMAIL = os.environ.get("FLEETDESK_SUPPORT_EMAIL", "support@fleetdesk.local")

# Sidebar sections per role (endpoint, label)
NAVIGATION = {
    "super-admin": [
        ("admin.dashboard", "Dashboard"),
        ("admin.buses_list", "Buses"),
        ("admin.routes_list", "Routes"),
        ("admin.stops_list", "Stops"),
        ("admin.sections_list", "Sections"),
        ("admin.route_sections_list", "Route Sections"),
        ("admin.trips_list", "Trips"),
        ("admin.tickets_list", "Tickets"),
        ("admin.day_end_list", "Day End"),
        ("admin.expense_types_list", "Expense Types"),
        ("admin.expense_transactions_list", "Expenses"),
        ("admin.monthly_fees", "Monthly Fees"),
        ("admin.users_list", "Users"),
    ],
    "bus-owner": [
        ("owner.dashboard", "Dashboard"),
        ("owner.buses", "My Buses"),
        ("owner.expense_types_list", "Expense Types"),
        ("owner.expense_transactions_list", "Expenses"),
        ("owner.monthly_fees", "Monthly Fees"),
        ("owner.route_sections", "Route Sections"),
    ],
    "manager": [
        ("manager.dashboard", "Dashboard"),
        ("manager.bus", "My Bus"),
        ("manager.trips", "Trips"),
        ("manager.tickets", "Tickets"),
        ("manager.day_end", "Day End"),
        ("manager.expenses", "Expenses"),
        ("manager.monthly_fees", "Monthly Fees"),
        ("manager.route_sections", "Route Sections"),
    ],
}


def format_money(value) -> str:
    """LKR 12,500.00 style label; tolerant of None and strings."""
    try:
        if value is None:
            return "-"
        return f"{CURRENCY} {float(value):,.2f}"
    except (TypeError, ValueError):
        return f"{CURRENCY} {value}"


def branding_context() -> dict:
    """Template context injected on every render."""
    return {
        "APP_NAME": APP_NAME,
        "APP_TAGLINE": APP_TAGLINE,
        "CURRENCY": CURRENCY,
        "SUPPORT_EMAIL": SUPPORT_EMAIL,
        "NAVIGATION": NAVIGATION,
        "money": format_money,
    }
