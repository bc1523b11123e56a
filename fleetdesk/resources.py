# fleetdesk/resources.py
"""
Declarative catalogue of the flat CRUD resources.

Each Resource names its backend service, its form fields, the table
columns, and how its active flag is stored. fleetdesk.crud turns a Resource
into list/detail/new/edit/delete/toggle views.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

from .forms import Field
from .models import BACKEND_ROLES, Principal, record_id
from .services import resources as svc
from .services.api import ApiClient
from .utils.passwords import validate_password

SECTION_CATEGORIES = [
    ("normal", "Normal"),
    ("semi_luxury", "Semi Luxury"),
    ("luxury", "Luxury"),
    ("high_luxury", "High Luxury"),
    ("sisu_sariya", "Sisu Sariya"),
]

BUS_STATUSES = [("active", "Active"), ("inactive", "Inactive")]

ROLE_CHOICES = [(r, r.capitalize()) for r in BACKEND_ROLES]


@dataclass(frozen=True)
class Column:
    key: str
    label: str
    kind: str = "text"  # text | money | date | ref | active | choice
    ref: str | None = None  # lookup name for kind="ref"


@dataclass(frozen=True)
class Lookup:
    """Options for a `ref` field and display names for `ref` columns."""

    name: str
    loader: Callable[[ApiClient, Principal | None], list[dict]]
    label_keys: Sequence[str]


@dataclass(frozen=True)
class ActiveFlag:
    """
    Where a resource keeps its active flag.

    Buses store status='active'|'inactive'; everything else stores
    isActive=true|false. Both are treated the same way: inactive rows stay
    listed and referenceable, and lists can filter on them.
    """

    field: str = "isActive"
    on: Any = True
    off: Any = False

    def is_active(self, item: Mapping[str, Any]) -> bool:
        value = item.get(self.field, self.on)
        if isinstance(value, str) and isinstance(self.on, bool):
            return value.strip().lower() in ("true", "1", "yes", "active")
        return value == self.on

    def toggled(self, item: Mapping[str, Any]) -> Any:
        return self.off if self.is_active(item) else self.on


@dataclass(frozen=True)
class Resource:
    key: str
    singular: str
    plural: str
    service: Callable[[ApiClient], svc.CrudService]
    fields: Sequence[Field]
    columns: Sequence[Column]
    search_keys: Sequence[str]
    title_key: str
    active: ActiveFlag = ActiveFlag()
    lookups: Sequence[Lookup] = ()
    page_size: int = 20
    extra_checks: Callable[[dict, bool], dict] | None = None
    delete_conflict: str = ""

    @property
    def endpoint(self) -> str:
        return self.key.replace("-", "_")

    def lookup(self, name: str) -> Lookup | None:
        for lk in self.lookups:
            if lk.name == name:
                return lk
        return None

    def title_of(self, item: Mapping[str, Any]) -> str:
        return str(item.get(self.title_key) or record_id(item) or self.singular)


# =========================================================
# Lookups
# =========================================================
def _all(service_factory, **params):
    def loader(client: ApiClient, principal: Principal | None) -> list[dict]:
        return service_factory(client).list({"limit": 1000, **params})
    return loader


def _owner_buses(client: ApiClient, principal: Principal | None) -> list[dict]:
    if principal is None:
        return []
    return svc.buses(client).for_owner(principal.id)


def _owner_expense_types(client: ApiClient, principal: Principal | None) -> list[dict]:
    return svc.expense_types(client, owner_scoped=True).list({"limit": 1000})


ROUTES_LOOKUP = Lookup("routeId", _all(svc.routes), ("routeNumber", "routeName", "name", "code"))
STOPS_LOOKUP = Lookup("stopId", _all(svc.stops), ("stopName", "stopCode"))
BUSES_LOOKUP = Lookup("busId", _all(svc.buses), ("busNumber", "busName"))
OWNERS_LOOKUP = Lookup("ownerId", _all(svc.users, role="owner"), ("username", "name"))
CONDUCTORS_LOOKUP = Lookup("conductorId", _all(svc.users, role="conductor"), ("username", "name"))
EXPENSE_TYPES_LOOKUP = Lookup("expenseTypeId", _all(svc.expense_types), ("expenseName",))

OWNER_BUSES_LOOKUP = Lookup("busId", _owner_buses, ("busNumber", "busName"))
OWNER_EXPENSE_TYPES_LOOKUP = Lookup("expenseTypeId", _owner_expense_types, ("expenseName",))


# =========================================================
# Extra validation
# =========================================================
def _user_checks(data: dict, editing: bool) -> dict:
    if editing:
        return {}
    ok, msg = validate_password(data.get("password") or "")
    return {} if ok else {"password": msg}


# =========================================================
# Catalogue
# =========================================================
BUSES = Resource(
    key="buses",
    singular="Bus",
    plural="Buses",
    service=svc.buses,
    fields=[
        Field("busNumber", "Bus number", required=True, immutable=True, maxlen=30),
        Field("busName", "Bus name", required=True),
        Field("telephoneNumber", "Telephone number", maxlen=30),
        Field("category", "Category", kind="select", choices=SECTION_CATEGORIES),
        Field("ownerId", "Owner", kind="ref", required=True),
        Field("routeId", "Route", kind="ref", required=True),
        Field("seatCapacity", "Seat capacity", kind="int", required=True, gt_value=0),
        Field("driverName", "Driver name"),
        Field("conductorId", "Conductor", kind="ref", required=True),
        Field("status", "Status", kind="select", required=True, choices=BUS_STATUSES),
        Field("notes", "Notes", kind="textarea"),
    ],
    columns=[
        Column("busNumber", "Bus number"),
        Column("busName", "Name"),
        Column("ownerId", "Owner", kind="ref", ref="ownerId"),
        Column("routeId", "Route", kind="ref", ref="routeId"),
        Column("seatCapacity", "Seats"),
        Column("status", "Status", kind="active"),
    ],
    search_keys=("busNumber", "busName", "driverName", "telephoneNumber"),
    title_key="busNumber",
    active=ActiveFlag("status", "active", "inactive"),
    lookups=(OWNERS_LOOKUP, ROUTES_LOOKUP, CONDUCTORS_LOOKUP),
    delete_conflict="This bus still has day end records, fees or expenses attached.",
)

ROUTES = Resource(
    key="routes",
    singular="Route",
    plural="Routes",
    service=svc.routes,
    fields=[
        Field("routeNumber", "Route number", required=True, immutable=True, maxlen=30),
        Field("routeName", "Route name", required=True),
        Field("startPoint", "Start point", required=True),
        Field("endPoint", "End point", required=True),
        Field("distance", "Distance (km)", kind="decimal", min_value=0),
        Field("estimatedDuration", "Estimated duration (min)", kind="int", min_value=0),
        Field("description", "Description", kind="textarea"),
        Field("isActive", "Active", kind="bool"),
    ],
    columns=[
        Column("routeNumber", "Number"),
        Column("routeName", "Name"),
        Column("startPoint", "From"),
        Column("endPoint", "To"),
        Column("distance", "Distance"),
        Column("isActive", "Status", kind="active"),
    ],
    search_keys=("routeNumber", "routeName", "startPoint", "endPoint"),
    title_key="routeNumber",
    delete_conflict="This route still has stops, sections or buses assigned.",
)

STOPS = Resource(
    key="stops",
    singular="Stop",
    plural="Stops",
    service=svc.stops,
    fields=[
        Field("stopCode", "Stop code", required=True, immutable=True, maxlen=30),
        Field("stopName", "Stop name", required=True),
        Field("sectionNumber", "Section number", kind="int", required=True, min_value=0),
        Field("routeId", "Route", kind="ref", required=True),
        Field("isActive", "Active", kind="bool"),
    ],
    columns=[
        Column("stopCode", "Code"),
        Column("stopName", "Name"),
        Column("sectionNumber", "Section"),
        Column("routeId", "Route", kind="ref", ref="routeId"),
        Column("isActive", "Status", kind="active"),
    ],
    search_keys=("stopCode", "stopName"),
    title_key="stopName",
    lookups=(ROUTES_LOOKUP,),
    page_size=10,
    delete_conflict="This stop is still used by route sections or tickets.",
)

SECTIONS = Resource(
    key="sections",
    singular="Section",
    plural="Sections",
    service=svc.sections,
    fields=[
        Field("sectionNumber", "Section number", kind="int", required=True, min_value=0),
        Field("fare", "Fare", kind="decimal", required=True, gt_value=0),
        Field("category", "Category", kind="select", required=True, choices=SECTION_CATEGORIES),
        Field("description", "Description", kind="textarea"),
        Field("isActive", "Active", kind="bool"),
    ],
    columns=[
        Column("sectionNumber", "Section"),
        Column("category", "Category", kind="choice"),
        Column("fare", "Fare", kind="money"),
        Column("isActive", "Status", kind="active"),
    ],
    search_keys=("sectionNumber", "category", "description"),
    title_key="sectionNumber",
    page_size=15,
    delete_conflict="This section is still referenced by route fares.",
)

ROUTE_SECTIONS = Resource(
    key="route-sections",
    singular="Route Section",
    plural="Route Sections",
    service=svc.route_sections,
    fields=[
        Field("routeId", "Route", kind="ref", required=True),
        Field("stopId", "Stop", kind="ref", required=True),
        Field("category", "Category", kind="select", required=True, choices=SECTION_CATEGORIES),
        Field("fare", "Fare", kind="decimal", required=True, gt_value=0),
        Field("order", "Order", kind="int", required=True, min_value=0),
        Field("isActive", "Active", kind="bool"),
    ],
    columns=[
        Column("routeId", "Route", kind="ref", ref="routeId"),
        Column("stopId", "Stop", kind="ref", ref="stopId"),
        Column("category", "Category", kind="choice"),
        Column("fare", "Fare", kind="money"),
        Column("order", "Order"),
        Column("isActive", "Status", kind="active"),
    ],
    search_keys=("category",),
    title_key="order",
    lookups=(ROUTES_LOOKUP, STOPS_LOOKUP),
)

USERS = Resource(
    key="users",
    singular="User",
    plural="Users",
    service=svc.users,
    fields=[
        Field("username", "Username", required=True, immutable=True, maxlen=120),
        Field("password", "Password", kind="password", required=True, create_only=True),
        Field("role", "Role", kind="select", required=True, choices=ROLE_CHOICES),
        Field("isActive", "Active", kind="bool"),
    ],
    columns=[
        Column("username", "Username"),
        Column("role", "Role", kind="choice"),
        Column("isActive", "Status", kind="active"),
        Column("createdAt", "Created", kind="date"),
    ],
    search_keys=("username", "role"),
    title_key="username",
    extra_checks=_user_checks,
    delete_conflict="This user still owns buses or has submitted records.",
)

EXPENSE_TYPES = Resource(
    key="expense-types",
    singular="Expense Type",
    plural="Expense Types",
    service=svc.expense_types,
    fields=[
        Field("busId", "Bus", kind="ref", required=True),
        Field("expenseName", "Expense name", required=True),
        Field("description", "Description", kind="textarea"),
        Field("isActive", "Active", kind="bool"),
    ],
    columns=[
        Column("expenseName", "Name"),
        Column("busId", "Bus", kind="ref", ref="busId"),
        Column("description", "Description"),
        Column("isActive", "Status", kind="active"),
    ],
    search_keys=("expenseName", "description"),
    title_key="expenseName",
    lookups=(BUSES_LOOKUP,),
    delete_conflict="This expense type still has transactions recorded against it.",
)

EXPENSE_TRANSACTIONS = Resource(
    key="expense-transactions",
    singular="Expense",
    plural="Expenses",
    service=svc.expense_transactions,
    fields=[
        Field("expenseTypeId", "Expense type", kind="ref", required=True),
        Field("amount", "Amount", kind="decimal", required=True, gt_value=0),
        Field("date", "Date", kind="date", required=True),
        Field("uploadedBill", "Bill URL", maxlen=500),
        Field("notes", "Notes", kind="textarea"),
        Field("isActive", "Active", kind="bool"),
    ],
    columns=[
        Column("date", "Date", kind="date"),
        Column("expenseTypeId", "Type", kind="ref", ref="expenseTypeId"),
        Column("amount", "Amount", kind="money"),
        Column("notes", "Notes"),
        Column("isActive", "Status", kind="active"),
    ],
    search_keys=("notes",),
    title_key="date",
    lookups=(EXPENSE_TYPES_LOOKUP,),
)

OWNER_EXPENSE_TYPES = Resource(
    key="expense-types",
    singular="Expense Type",
    plural="Expense Types",
    service=lambda client: svc.expense_types(client, owner_scoped=True),
    fields=EXPENSE_TYPES.fields,
    columns=EXPENSE_TYPES.columns,
    search_keys=EXPENSE_TYPES.search_keys,
    title_key="expenseName",
    lookups=(OWNER_BUSES_LOOKUP,),
    delete_conflict=EXPENSE_TYPES.delete_conflict,
)

OWNER_EXPENSE_TRANSACTIONS = Resource(
    key="expense-transactions",
    singular="Expense",
    plural="Expenses",
    service=lambda client: svc.expense_transactions(client, owner_scoped=True),
    fields=EXPENSE_TRANSACTIONS.fields,
    columns=EXPENSE_TRANSACTIONS.columns,
    search_keys=EXPENSE_TRANSACTIONS.search_keys,
    title_key="date",
    lookups=(OWNER_EXPENSE_TYPES_LOOKUP,),
)

ADMIN_RESOURCES = (
    BUSES,
    ROUTES,
    STOPS,
    SECTIONS,
    ROUTE_SECTIONS,
    USERS,
    EXPENSE_TYPES,
    EXPENSE_TRANSACTIONS,
)

OWNER_RESOURCES = (OWNER_EXPENSE_TYPES, OWNER_EXPENSE_TRANSACTIONS)
