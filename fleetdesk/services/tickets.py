# fleetdesk/services/tickets.py
from __future__ import annotations

from typing import Any, Mapping

from ..models import Page, Ticket
from .api import ApiClient, unwrap


class TicketService:
    base = "/tickets"

    def __init__(self, client: ApiClient) -> None:
        self.client = client

    def list(self, filters: Mapping[str, Any] | None = None) -> Page:
        """GET /tickets, optionally narrowed by routeId, busId or conductorId."""
        params = dict(filters or {})
        body = self.client.get(self.base, params=params)
        page = Page.from_payload(body, items_key="tickets", page=int(params.get("page") or 1))
        page.items = [Ticket.from_api(item) for item in page.items]
        return page

    def get(self, ticket_id: str) -> Ticket:
        return Ticket.from_api(unwrap(self.client.get(f"{self.base}/{ticket_id}")) or {})

    def for_trip(self, trip_id: str) -> list[Ticket]:
        body = self.client.get(f"{self.base}/trip/{trip_id}")
        return [Ticket.from_api(item) for item in Page.from_payload(body, items_key="tickets").items]

    def delete(self, ticket_id: str) -> None:
        self.client.delete(f"{self.base}/{ticket_id}")
