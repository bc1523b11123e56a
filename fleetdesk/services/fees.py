# fleetdesk/services/fees.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from ..models import MonthlyFee, Page
from .api import ApiClient, unwrap


class MonthlyFeeService:
    base = "/monthly-fees"

    def __init__(self, client: ApiClient) -> None:
        self.client = client

    def list(self, filters: Mapping[str, Any] | None = None) -> Page:
        filters = dict(filters or {})
        body = self.client.get(self.base, params=filters)
        page = Page.from_payload(body, items_key="fees", page=int(filters.get("page") or 1))
        page.items = [MonthlyFee.from_api(item) for item in page.items]
        return page

    def list_for_owner(self, owner_id: str, filters: Mapping[str, Any] | None = None) -> Page:
        return self.list({**(filters or {}), "ownerId": owner_id})

    def get(self, fee_id: str) -> MonthlyFee:
        return MonthlyFee.from_api(unwrap(self.client.get(f"{self.base}/{fee_id}")) or {})

    def create(self, data: Mapping[str, Any]) -> MonthlyFee:
        return MonthlyFee.from_api(unwrap(self.client.post(self.base, json=dict(data))) or {})

    def update(self, fee_id: str, data: Mapping[str, Any]) -> MonthlyFee:
        body = self.client.put(f"{self.base}/{fee_id}", json=dict(data))
        return MonthlyFee.from_api(unwrap(body) or {})

    def delete(self, fee_id: str) -> None:
        self.client.delete(f"{self.base}/{fee_id}")

    def mark_paid(self, fee_id: str, paid_amount, payment_date: str | None = None) -> MonthlyFee:
        body = self.client.patch(
            f"{self.base}/{fee_id}/mark-paid",
            json={
                "paidAmount": float(paid_amount),
                "paymentDate": payment_date or datetime.now(timezone.utc).isoformat(),
            },
        )
        return MonthlyFee.from_api(unwrap(body) or {})

    def bill(self, fee_id: str) -> bytes:
        """PDF bill rendered by the backend."""
        return self.client.get_bytes(f"{self.base}/{fee_id}/bill")
