# fleetdesk/services/manager.py
from __future__ import annotations

from typing import Any, Mapping

from ..models import DayEndRecord, MonthlyFee, Page, Ticket, Trip
from .api import ApiClient, unwrap


class ManagerService:
    """Endpoints scoped by the backend to the manager's assigned bus."""

    def __init__(self, client: ApiClient) -> None:
        self.client = client

    # ----------------------
    # Bus + dashboard
    # ----------------------
    def assigned_bus(self) -> dict:
        return unwrap(self.client.get("/auth/manager/bus")) or {}

    def dashboard_stats(self) -> dict:
        return unwrap(self.client.get("/auth/manager/dashboard/stats")) or {}

    def recent_activities(self, limit: int = 5) -> list[dict]:
        return unwrap(self.client.get("/auth/manager/dashboard/activities", params={"limit": limit})) or []

    # ----------------------
    # Day end
    # ----------------------
    def day_end_reports(self, params: Mapping[str, Any] | None = None) -> Page:
        params = dict(params or {})
        body = self.client.get("/manager/day-end", params=params)
        page = Page.from_payload(body, items_key="reports", page=int(params.get("page") or 1))
        page.items = [DayEndRecord.from_api(item) for item in page.items]
        return page

    def day_end_report(self, report_id: str) -> DayEndRecord:
        return DayEndRecord.from_api(unwrap(self.client.get(f"/manager/day-end/{report_id}")) or {})

    def approve_day_end(self, report_id: str, remarks: str | None = None) -> DayEndRecord:
        body = self.client.put(f"/manager/day-end/{report_id}/approve", json={"remarks": remarks})
        return DayEndRecord.from_api(unwrap(body) or {})

    def reject_day_end(self, report_id: str, reason: str) -> DayEndRecord:
        body = self.client.put(f"/manager/day-end/{report_id}/reject", json={"reason": reason})
        return DayEndRecord.from_api(unwrap(body) or {})

    # ----------------------
    # Trips + tickets
    # ----------------------
    def trips(self, period: str | None = None) -> list[Trip]:
        """period is today, week, month or all; "all" sends no filter."""
        params = {"filter": period} if period and period != "all" else None
        body = self.client.get("/auth/manager/trips", params=params)
        return [Trip.from_api(item) for item in Page.from_payload(body, items_key="trips").items]

    def trip(self, trip_id: str) -> Trip:
        return Trip.from_api(unwrap(self.client.get(f"/manager/trips/{trip_id}")) or {})

    def cancel_trip(self, trip_id: str, reason: str) -> Trip:
        body = self.client.put(f"/manager/trips/{trip_id}/cancel", json={"reason": reason})
        return Trip.from_api(unwrap(body) or {})

    def tickets(self, params: Mapping[str, Any] | None = None) -> Page:
        params = dict(params or {})
        body = self.client.get("/auth/manager/tickets", params=params)
        page = Page.from_payload(body, items_key="tickets", page=int(params.get("page") or 1))
        page.items = [Ticket.from_api(item) for item in page.items]
        return page

    def cancel_ticket(self, ticket_id: str, reason: str) -> Ticket:
        body = self.client.put(f"/manager/tickets/{ticket_id}/cancel", json={"reason": reason})
        return Ticket.from_api(unwrap(body) or {})

    # ----------------------
    # Expenses
    # ----------------------
    def expenses(self, filters: Mapping[str, Any] | None = None) -> list[dict]:
        return Page.from_payload(self.client.get("/manager/expenses", params=filters), items_key="expenses").items

    def approve_expense(self, expense_id: str, remarks: str | None = None) -> dict:
        return unwrap(self.client.put(f"/manager/expenses/{expense_id}/approve", json={"remarks": remarks})) or {}

    def reject_expense(self, expense_id: str, reason: str) -> dict:
        return unwrap(self.client.put(f"/manager/expenses/{expense_id}/reject", json={"reason": reason})) or {}

    # ----------------------
    # Fares + fees
    # ----------------------
    def route_sections(self) -> list[dict]:
        return Page.from_payload(self.client.get("/manager/route-sections"), items_key="routeSections").items

    def monthly_fees(self, year: int | None = None) -> list[MonthlyFee]:
        body = self.client.get("/manager/monthly-fees", params={"year": year})
        return [MonthlyFee.from_api(item) for item in Page.from_payload(body, items_key="fees").items]

    def mark_fee_paid(self, fee_id: str, payment: Mapping[str, Any]) -> MonthlyFee:
        body = self.client.put(f"/manager/monthly-fees/{fee_id}/mark-paid", json=dict(payment))
        return MonthlyFee.from_api(unwrap(body) or {})
