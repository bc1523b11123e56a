# fleetdesk/services/trips.py
from __future__ import annotations

from typing import Any, Mapping

from ..models import Page, Trip
from .api import ApiClient, unwrap


class TripService:
    base = "/trips"

    def __init__(self, client: ApiClient) -> None:
        self.client = client

    def list(self, params: Mapping[str, Any] | None = None) -> Page:
        """
        GET /trips with page/limit and the optional date/direction/search
        filters. Items come back as Trip.
        """
        params = dict(params or {})
        body = self.client.get(self.base, params=params)
        page = Page.from_payload(body, items_key="trips", page=int(params.get("page") or 1))
        page.items = [Trip.from_api(item) for item in page.items]
        return page

    def get(self, trip_id: str) -> Trip:
        return Trip.from_api(unwrap(self.client.get(f"{self.base}/{trip_id}")) or {})

    def delete(self, trip_id: str) -> None:
        self.client.delete(f"{self.base}/{trip_id}")
