# fleetdesk/services/resources.py
from __future__ import annotations

from typing import Any, Mapping

from ..models import Page
from .api import ApiClient, unwrap


class CrudService:
    """
    REST conventions shared by buses, routes, stops, sections, route
    sections, users and expense types/transactions:

        GET    <path>          list (optional filters/page/limit)
        GET    <path>/<id>     fetch one
        POST   <path>          create
        PUT    <path>/<id>     full or partial update
        DELETE <path>/<id>     delete
    """

    def __init__(self, client: ApiClient, path: str, items_key: str = "items") -> None:
        self.client = client
        self.path = "/" + path.strip("/")
        self.items_key = items_key

    def list_page(self, params: Mapping[str, Any] | None = None) -> Page:
        params = dict(params or {})
        body = self.client.get(self.path, params=params)
        return Page.from_payload(body, items_key=self.items_key, page=int(params.get("page") or 1))

    def list(self, params: Mapping[str, Any] | None = None) -> list[dict]:
        return self.list_page(params).items

    def get(self, item_id: str) -> dict:
        return unwrap(self.client.get(f"{self.path}/{item_id}")) or {}

    def create(self, data: Mapping[str, Any]) -> dict:
        return unwrap(self.client.post(self.path, json=dict(data))) or {}

    def update(self, item_id: str, data: Mapping[str, Any]) -> dict:
        return unwrap(self.client.put(f"{self.path}/{item_id}", json=dict(data))) or {}

    def delete(self, item_id: str) -> None:
        self.client.delete(f"{self.path}/{item_id}")

    def set_active(self, item_id: str, field: str, value: Any) -> dict:
        """Single-field update used by the status toggles."""
        return self.update(item_id, {field: value})


class BusService(CrudService):
    def __init__(self, client: ApiClient) -> None:
        super().__init__(client, "/buses", items_key="buses")

    def for_owner(self, owner_id: str) -> list[dict]:
        body = self.client.get(f"{self.path}/owner/{owner_id}")
        return Page.from_payload(body, items_key="buses").items


class UserService(CrudService):
    def __init__(self, client: ApiClient) -> None:
        super().__init__(client, "/users", items_key="users")

    def by_role(self, role: str, limit: int = 1000) -> list[dict]:
        return self.list({"role": role, "limit": limit})


class RouteSectionService(CrudService):
    def __init__(self, client: ApiClient) -> None:
        super().__init__(client, "/route-sections", items_key="routeSections")

    def for_route(self, route_id: str) -> list[dict]:
        body = self.client.get(f"{self.path}/route/{route_id}")
        return Page.from_payload(body, items_key=self.items_key).items

    def for_owner(self, buses: list[dict]) -> list[dict]:
        """Route sections for every route an owner's buses run on."""
        seen: set[str] = set()
        out: list[dict] = []
        for bus in buses:
            route = bus.get("routeId")
            route_id = str(route.get("_id") or route.get("id") or "") if isinstance(route, Mapping) else str(route or "")
            if not route_id or route_id in seen:
                continue
            seen.add(route_id)
            out.extend(self.for_route(route_id))
        return out


def buses(client: ApiClient) -> BusService:
    return BusService(client)


def users(client: ApiClient) -> UserService:
    return UserService(client)


def routes(client: ApiClient) -> CrudService:
    return CrudService(client, "/routes", items_key="routes")


def stops(client: ApiClient) -> CrudService:
    return CrudService(client, "/stops", items_key="stops")


def sections(client: ApiClient) -> CrudService:
    return CrudService(client, "/sections", items_key="sections")


def route_sections(client: ApiClient) -> RouteSectionService:
    return RouteSectionService(client)


def expense_types(client: ApiClient, owner_scoped: bool = False) -> CrudService:
    return CrudService(client, "/expense-types/owner" if owner_scoped else "/expense-types", items_key="expenseTypes")


def expense_transactions(client: ApiClient, owner_scoped: bool = False) -> CrudService:
    path = "/expense-transactions/owner" if owner_scoped else "/expense-transactions"
    return CrudService(client, path, items_key="transactions")
