# fleetdesk/models.py
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Union

from flask_login import UserMixin


# =========================================================
# Parsing helpers
# =========================================================
def to_decimal(value: Any) -> Decimal:
    """Backend numbers arrive as int, float or str; None counts as zero."""
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def parse_date(value: Any) -> date | None:
    """Accepts date, datetime, ISO date or ISO timestamp (with trailing Z)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def record_id(payload: Mapping[str, Any]) -> str:
    return str(payload.get("_id") or payload.get("id") or "")


# =========================================================
# Roles
# =========================================================
class Role(str, enum.Enum):
    SUPER_ADMIN = "super-admin"
    BUS_OWNER = "bus-owner"
    MANAGER = "manager"
    USER = "user"


_BACKEND_ROLE_MAP = {
    "admin": Role.SUPER_ADMIN,
    "owner": Role.BUS_OWNER,
    "manager": Role.MANAGER,
}

# Backend role keys, used by the user admin forms
BACKEND_ROLES = ("admin", "owner", "manager", "conductor")


def normalize_role(role: str | None) -> str:
    """
    Normalize role strings to prevent mismatches like 'super_admin' vs 'super-admin'.
    """
    return (role or "").strip().lower().replace("_", "-")


def map_backend_role(role: str | None) -> Role:
    """Backend roles (admin/owner/manager/conductor) to dashboard roles."""
    key = normalize_role(role)
    if key in _BACKEND_ROLE_MAP:
        return _BACKEND_ROLE_MAP[key]
    try:
        return Role(key)
    except ValueError:
        return Role.USER


# =========================================================
# Principal (Flask-Login user, session backed)
# =========================================================
class Principal(UserMixin):
    def __init__(
        self,
        id: str,
        username: str,
        role: Role | str,
        name: str | None = None,
        assigned_buses: list[str] | None = None,
    ) -> None:
        self.id = str(id)
        self.username = username
        self.role = map_backend_role(role.value if isinstance(role, Role) else role)
        self.name = name or username
        self.assigned_buses = list(assigned_buses or [])

    @classmethod
    def from_backend(cls, user: Mapping[str, Any], name: str | None = None) -> "Principal":
        return cls(
            id=record_id(user),
            username=user.get("username") or user.get("email") or "",
            role=user.get("role") or "",
            name=name or user.get("name"),
            assigned_buses=[str(b) for b in (user.get("assignedBuses") or [])],
        )

    @classmethod
    def from_session(cls, data: Mapping[str, Any] | None) -> "Principal | None":
        if not data or not data.get("id"):
            return None
        return cls(
            id=data["id"],
            username=data.get("username") or "",
            role=data.get("role") or "",
            name=data.get("name"),
            assigned_buses=data.get("assigned_buses") or [],
        )

    def to_session(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role.value,
            "name": self.name,
            "assigned_buses": self.assigned_buses,
        }

    def __repr__(self) -> str:
        return f"<Principal {self.id} {self.username} {self.role.value}>"


# =========================================================
# References: bare id or populated object
# =========================================================
@dataclass(frozen=True)
class IdRef:
    id: str


@dataclass(frozen=True)
class PopulatedRef:
    id: str
    fields: Mapping[str, Any]


Ref = Union[IdRef, PopulatedRef, None]


def parse_ref(value: Any) -> Ref:
    if value is None or value == "":
        return None
    if isinstance(value, (IdRef, PopulatedRef)):
        return value
    if isinstance(value, Mapping):
        return PopulatedRef(id=record_id(value), fields=dict(value))
    return IdRef(id=str(value))


def ref_id(ref: Ref) -> str:
    return ref.id if ref is not None else ""


def resolve_ref(
    ref: Ref,
    lookup: Mapping[str, Mapping[str, Any]] | None,
    *keys: str,
    default: str = "",
) -> str:
    """
    First non-empty display field for a reference.

    Populated objects are read directly; bare ids go through `lookup`
    (id -> record), which callers build from an already fetched list.
    """
    if ref is None:
        return default
    source: Mapping[str, Any] | None
    if isinstance(ref, PopulatedRef):
        source = ref.fields
    else:
        source = (lookup or {}).get(ref.id)
    if not source:
        return default
    for key in keys:
        value = source.get(key)
        if value not in (None, ""):
            return str(value)
    return default


def index_by_id(items) -> dict[str, Mapping[str, Any]]:
    return {record_id(item): item for item in items or [] if record_id(item)}


# =========================================================
# Day-end reconciliation
# =========================================================
class DayEndStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class TripDetail:
    trip_number: int
    start_time: datetime | None
    end_time: datetime | None
    passenger_count: int
    total_fare: Decimal
    cash_in_hand: Decimal
    trip_id: str = ""

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "TripDetail":
        return cls(
            trip_number=int(payload.get("tripNumber") or 0),
            start_time=parse_datetime(payload.get("startTime")),
            end_time=parse_datetime(payload.get("endTime")),
            passenger_count=int(payload.get("passengerCount") or 0),
            total_fare=to_decimal(payload.get("totalFare")),
            cash_in_hand=to_decimal(payload.get("cashInHand")),
            trip_id=str(payload.get("tripId") or ""),
        )


@dataclass
class DayEndExpense:
    expense_name: str
    amount: Decimal
    expense_type_id: str = ""

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "DayEndExpense":
        return cls(
            expense_name=payload.get("expenseName") or "",
            amount=to_decimal(payload.get("amount")),
            expense_type_id=str(payload.get("expenseTypeId") or ""),
        )


@dataclass
class DayEndRecord:
    id: str
    bus: Ref
    conductor: Ref
    date: date | None
    status: str
    trip_details: list[TripDetail] = field(default_factory=list)
    expenses: list[DayEndExpense] = field(default_factory=list)
    total_revenue: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")
    profit: Decimal = Decimal("0")
    notes: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "DayEndRecord":
        return cls(
            id=record_id(payload),
            bus=parse_ref(payload.get("busId")),
            conductor=parse_ref(payload.get("conductorId")),
            date=parse_date(payload.get("date")),
            status=(payload.get("status") or DayEndStatus.PENDING.value).strip().lower(),
            trip_details=[TripDetail.from_api(t) for t in payload.get("tripDetails") or []],
            expenses=[DayEndExpense.from_api(e) for e in payload.get("expenses") or []],
            total_revenue=to_decimal(payload.get("totalRevenue")),
            total_expenses=to_decimal(payload.get("totalExpenses")),
            profit=to_decimal(payload.get("profit")),
            notes=payload.get("notes") or "",
            created_at=parse_datetime(payload.get("createdAt")),
            updated_at=parse_datetime(payload.get("updatedAt")),
        )

    @property
    def passenger_total(self) -> int:
        return sum(t.passenger_count for t in self.trip_details)

    @property
    def cash_total(self) -> Decimal:
        return sum((t.cash_in_hand for t in self.trip_details), Decimal("0"))


# =========================================================
# Monthly fees
# =========================================================
class FeeStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    # Manager-side billing uses these instead of "unpaid"
    PENDING = "pending"
    OVERDUE = "overdue"


@dataclass
class MonthlyFee:
    id: str
    bus: Ref
    owner: Ref
    month: str
    amount: Decimal
    paid_amount: Decimal
    status: str
    payment_date: date | None = None
    late_fee: Decimal = Decimal("0")
    due_date: date | None = None
    notes: str = ""

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "MonthlyFee":
        return cls(
            id=record_id(payload),
            bus=parse_ref(payload.get("busId")),
            owner=parse_ref(payload.get("ownerId")),
            month=str(payload.get("month") or ""),
            amount=to_decimal(payload.get("amount")),
            paid_amount=to_decimal(payload.get("paidAmount")),
            status=(payload.get("status") or FeeStatus.UNPAID.value).strip().lower(),
            payment_date=parse_date(payload.get("paymentDate") or payload.get("paidDate")),
            late_fee=to_decimal(payload.get("lateFee")),
            due_date=parse_date(payload.get("dueDate")),
            notes=payload.get("notes") or "",
        )

    @property
    def balance(self) -> Decimal:
        return self.amount - self.paid_amount


# =========================================================
# Trips + tickets
# =========================================================
class TripStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class Trip:
    id: str
    trip_number: str
    route: Ref
    bus: Ref
    conductor: Ref
    status: str
    direction: str = ""
    start_time: datetime | None = None
    end_time: datetime | None = None
    passenger_count: int = 0
    revenue: Decimal = Decimal("0")
    from_section: str = ""
    to_section: str = ""
    route_name: str = ""
    conductor_name: str = ""

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "Trip":
        start = parse_datetime(payload.get("startTime") or payload.get("departureTime"))
        end = parse_datetime(payload.get("endTime") or payload.get("arrivalTime"))
        revenue = payload.get("revenue")
        if revenue is None:
            revenue = payload.get("totalFare")
        status = (payload.get("status") or "").strip().lower()
        if not status:
            # Conductor-app trips carry no status; a recorded end time means done
            status = TripStatus.COMPLETED.value if end else TripStatus.IN_PROGRESS.value
        from_section = payload.get("fromStopSection") or {}
        to_section = payload.get("toStopSection") or {}
        return cls(
            id=record_id(payload),
            trip_number=str(payload.get("tripNumber") or ""),
            route=parse_ref(payload.get("routeId") or payload.get("route")),
            bus=parse_ref(payload.get("busId") or payload.get("bus")),
            conductor=parse_ref(payload.get("conductorId") or payload.get("conductor")),
            status=status,
            direction=(payload.get("direction") or "").strip().lower(),
            start_time=start,
            end_time=end,
            passenger_count=int(payload.get("passengerCount") or payload.get("ticketsSold") or 0),
            revenue=to_decimal(revenue),
            from_section=str(from_section.get("sectionName") or "") if isinstance(from_section, Mapping) else "",
            to_section=str(to_section.get("sectionName") or "") if isinstance(to_section, Mapping) else "",
            route_name=payload.get("routeName") or "",
            conductor_name=payload.get("conductorName") or "",
        )

    @property
    def cancellable(self) -> bool:
        return self.status in (TripStatus.SCHEDULED.value, TripStatus.IN_PROGRESS.value)


class TicketStatus(str, enum.Enum):
    BOOKED = "booked"
    USED = "used"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


@dataclass
class FareLine:
    fare_type: str
    quantity: int
    fare_per_unit: Decimal
    subtotal: Decimal

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "FareLine":
        return cls(
            fare_type=payload.get("fareType") or "full",
            quantity=int(payload.get("quantity") or 0),
            fare_per_unit=to_decimal(payload.get("farePerUnit")),
            subtotal=to_decimal(payload.get("subtotal")),
        )


def _stop_name(stop: Any, fallback: Any = None) -> str:
    if isinstance(stop, Mapping):
        return str(stop.get("stopName") or stop.get("name") or "")
    return str(fallback or "")


@dataclass
class Ticket:
    id: str
    ticket_number: str
    route: Ref
    bus: Ref
    conductor: Ref
    issued_at: datetime | None
    payment_method: str
    fare: Decimal
    status: str
    from_stop: str = ""
    to_stop: str = ""
    passengers: list[FareLine] = field(default_factory=list)
    total_passengers: int = 0
    trip_number: str = ""
    passenger_name: str = ""
    seat_number: str = ""

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "Ticket":
        passengers = [FareLine.from_api(p) for p in payload.get("passengers") or []]
        fare = payload.get("farePaid")
        if fare is None:
            fare = payload.get("price")
        return cls(
            id=record_id(payload),
            ticket_number=str(payload.get("ticketId") or payload.get("ticketNumber") or ""),
            route=parse_ref(payload.get("routeId")),
            bus=parse_ref(payload.get("busId")),
            conductor=parse_ref(payload.get("conductorId")),
            issued_at=parse_datetime(payload.get("dateTime") or payload.get("bookingTime")),
            payment_method=(payload.get("paymentMethod") or "cash").strip().lower(),
            fare=to_decimal(fare),
            # Conductor-issued tickets have no booking lifecycle; they are used on issue
            status=(payload.get("status") or TicketStatus.USED.value).strip().lower(),
            from_stop=_stop_name(payload.get("fromStop"), payload.get("fromStopName")),
            to_stop=_stop_name(payload.get("toStop"), payload.get("toStopName")),
            passengers=passengers,
            total_passengers=int(payload.get("totalPassengers") or sum(p.quantity for p in passengers) or 1),
            trip_number=str(payload.get("tripNumber") or ""),
            passenger_name=payload.get("passengerName") or "",
            seat_number=str(payload.get("seatNumber") or ""),
        )

    @property
    def cancellable(self) -> bool:
        return self.status == TicketStatus.BOOKED.value


# =========================================================
# Pagination envelope
# =========================================================
@dataclass
class Page:
    items: list
    count: int
    total_pages: int = 1
    current_page: int = 1

    @classmethod
    def from_payload(cls, payload: Any, items_key: str = "reports", page: int = 1) -> "Page":
        """
        Accepts the shapes the backend uses:
          {data: [...], total|count, totalPages, currentPage}
          {data: {reports: [...], count, totalPages}}
          [...]
        """
        if isinstance(payload, list):
            return cls(items=payload, count=len(payload), total_pages=1, current_page=page)

        body = payload or {}
        data = body.get("data", body)
        sources: list[Mapping[str, Any]] = [body]
        if isinstance(data, Mapping):
            sources.insert(0, data)
            items = data.get(items_key) or data.get("items") or []
        else:
            items = data or []

        def meta(*keys: str, default: Any = None) -> Any:
            for src in sources:
                for key in keys:
                    if src.get(key) is not None:
                        return src[key]
            return default

        return cls(
            items=list(items),
            count=int(meta("count", "total", "totalCount", default=len(items)) or 0),
            total_pages=max(int(meta("totalPages", default=1) or 1), 1),
            current_page=int(meta("currentPage", default=page) or page),
        )

    @property
    def has_prev(self) -> bool:
        return self.current_page > 1

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages
