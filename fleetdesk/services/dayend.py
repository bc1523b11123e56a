# fleetdesk/services/dayend.py
from __future__ import annotations

from typing import Any, Mapping

from ..models import DayEndRecord, Page
from .api import ApiClient, unwrap


class DayEndService:
    base = "/day-end"

    def __init__(self, client: ApiClient) -> None:
        self.client = client

    def list(self, params: Mapping[str, Any] | None = None) -> Page:
        """
        GET /day-end with startDate/endDate/busId/status/page/limit.
        Items come back as DayEndRecord.
        """
        params = dict(params or {})
        body = self.client.get(self.base, params=params)
        page = Page.from_payload(body, items_key="reports", page=int(params.get("page") or 1))
        page.items = [DayEndRecord.from_api(item) for item in page.items]
        return page

    def get(self, record_id: str) -> DayEndRecord:
        return DayEndRecord.from_api(unwrap(self.client.get(f"{self.base}/{record_id}")) or {})

    def update_status(self, record_id: str, status: str, notes: str | None = None) -> DayEndRecord:
        payload: dict[str, Any] = {"status": status}
        if notes:
            payload["notes"] = notes
        body = self.client.patch(f"{self.base}/{record_id}/status", json=payload)
        return DayEndRecord.from_api(unwrap(body) or {})

    def delete(self, record_id: str) -> None:
        self.client.delete(f"{self.base}/{record_id}")
