# fleetdesk/reconciliation.py
"""
Day-end reconciliation: status transitions, list filtering and the summary
cards shown above day-end tables.

Nothing here talks to Flask; the status controller receives the remote
update as a callable so views can hand it either the admin or the manager
endpoint.
"""
from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Iterable, Mapping, Sequence

from .models import DayEndRecord, DayEndStatus, Ref, resolve_ref
from .services.api import ApiError

logger = logging.getLogger(__name__)

PERIODS = ("week", "month", "all")
STATUS_FILTERS = ("all",) + tuple(s.value for s in DayEndStatus)
DEFAULT_PAGE_SIZE = 10

_TRANSITIONS = {
    DayEndStatus.PENDING.value: (DayEndStatus.APPROVED.value, DayEndStatus.REJECTED.value),
}

_VERBS = {
    DayEndStatus.APPROVED.value: "approve",
    DayEndStatus.REJECTED.value: "reject",
}

# Flash category per target status
_CATEGORIES = {
    DayEndStatus.APPROVED.value: "success",
    DayEndStatus.REJECTED.value: "warning",
}


# =========================================================
# Status transitions
# =========================================================
def allowed_transitions(status: str | None) -> tuple[str, ...]:
    """Only pending reports can be approved or rejected; nothing re-opens."""
    return _TRANSITIONS.get((status or "").strip().lower(), ())


def transition_verb(target: str) -> str:
    return _VERBS.get(target, target)


@dataclass(frozen=True)
class TransitionOutcome:
    ok: bool
    record: DayEndRecord
    message: str
    category: str


class StatusController:
    """
    Mediates pending -> approved/rejected.

    `update(record_id, target, notes)` performs the remote call and returns
    the updated record. The record passed in is never modified; callers
    render `outcome.record` after a success and keep their own copy after a
    failure.
    """

    def __init__(self, update: Callable[[str, str, str | None], DayEndRecord]) -> None:
        self.update = update

    def request_transition(
        self,
        record: DayEndRecord,
        target: str,
        notes: str | None = None,
    ) -> TransitionOutcome:
        target = (target or "").strip().lower()
        verb = transition_verb(target)

        if target not in allowed_transitions(record.status):
            return TransitionOutcome(
                ok=False,
                record=record,
                message=f"A {record.status} day end record cannot be set to {target or 'that status'}.",
                category="danger",
            )

        try:
            updated = self.update(record.id, target, notes)
        except ApiError as exc:
            logger.warning("Day end %s %s failed: %s", record.id, verb, exc)
            return TransitionOutcome(
                ok=False,
                record=record,
                message=exc.user_message(f"Failed to {verb} day end record"),
                category="danger",
            )

        # Some endpoints answer with an empty body; patch the status locally then
        if not updated.id:
            updated = replace(record, status=target)

        return TransitionOutcome(
            ok=True,
            record=updated,
            message=f"Day end record {target} successfully.",
            category=_CATEGORIES[target],
        )


# =========================================================
# Server-side filter parameters
# =========================================================
def subtract_month(day: date) -> date:
    """Same day last month, clamped to that month's last day (Mar 31 -> Feb 28/29)."""
    year, month = (day.year - 1, 12) if day.month == 1 else (day.year, day.month - 1)
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last))


def parse_iso_date(value: str | None) -> date | None:
    """'2025-01-31' -> date; blank or malformed input -> None."""
    value = (value or "").strip()
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def build_filter_params(
    period: str,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    today: date | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict:
    """
    Query params for a dated list. An explicit start or end date replaces
    the window the period would otherwise derive from today.
    """
    today = today or date.today()
    params: dict = {"page": max(int(page or 1), 1), "limit": page_size}

    if start_date or end_date:
        if start_date:
            params["startDate"] = start_date.isoformat()
        if end_date:
            params["endDate"] = end_date.isoformat()
        return params

    if period == "week":
        params["startDate"] = (today - timedelta(days=7)).isoformat()
    elif period == "month":
        params["startDate"] = subtract_month(today).isoformat()
    elif period != "all":
        raise ValueError(f"Unknown period: {period!r}")

    return params


@dataclass(frozen=True)
class FilterState:
    period: str = "week"
    page: int = 1
    start_date: date | None = None
    end_date: date | None = None
    # Messages for range input that was dropped
    range_errors: tuple[str, ...] = ()

    @classmethod
    def from_args(cls, args: Mapping[str, str], default_period: str = "week") -> "FilterState":
        period = (args.get("period") or default_period).strip().lower()
        if period not in PERIODS:
            period = default_period
        try:
            page = max(int(args.get("page") or 1), 1)
        except (TypeError, ValueError):
            page = 1

        errors: list[str] = []
        start = parse_iso_date(args.get("startDate"))
        end = parse_iso_date(args.get("endDate"))
        if (args.get("startDate") or "").strip() and start is None:
            errors.append("Start date must look like 2025-01-31.")
        if (args.get("endDate") or "").strip() and end is None:
            errors.append("End date must look like 2025-01-31.")
        if start and end and start > end:
            errors.append("Start date must be on or before the end date.")
            start = end = None

        return cls(period=period, page=page, start_date=start, end_date=end, range_errors=tuple(errors))

    @property
    def has_range(self) -> bool:
        return bool(self.start_date or self.end_date)

    def with_period(self, period: str) -> "FilterState":
        # A new period always starts from the first page and drops any range
        return FilterState(period=period, page=1)

    def with_page(self, page: int) -> "FilterState":
        return replace(self, page=max(int(page), 1))

    def params(self, page_size: int = DEFAULT_PAGE_SIZE, today: date | None = None) -> dict:
        return build_filter_params(
            self.period,
            self.page,
            page_size,
            today=today,
            start_date=self.start_date,
            end_date=self.end_date,
        )


# =========================================================
# Local (client-side) filters
# =========================================================
def bus_number(ref: Ref, buses: Mapping[str, Mapping] | None = None) -> str:
    return resolve_ref(ref, buses, "busNumber", "regNumber", default="Unknown Bus")


def revenue_text(value: Decimal) -> str:
    """1000 -> '1000', 1000.5 -> '1000.5' (what a user types into search)."""
    if value == value.to_integral_value():
        return str(int(value))
    return format(value.normalize(), "f")


def apply_local_filters(
    records: Sequence[DayEndRecord],
    search_term: str = "",
    status_filter: str = "all",
    buses: Mapping[str, Mapping] | None = None,
) -> Sequence[DayEndRecord]:
    """
    Search and status filters run on the already fetched page; they are
    never sent to the server.
    """
    needle = (search_term or "").strip().lower()
    status_filter = (status_filter or "all").strip().lower()

    if not needle and status_filter == "all":
        return records

    def matches(record: DayEndRecord) -> bool:
        if status_filter != "all" and record.status != status_filter:
            return False
        if not needle:
            return True
        return (
            needle in bus_number(record.bus, buses).lower()
            or needle in (record.notes or "").lower()
            or needle in revenue_text(record.total_revenue)
        )

    return [r for r in records if matches(r)]


# =========================================================
# Summary cards
# =========================================================
@dataclass(frozen=True)
class DayEndSummary:
    total_reports: int
    approved_count: int
    pending_count: int
    rejected_count: int
    total_revenue: Decimal
    total_expenses: Decimal
    total_profit: Decimal
    # True when the status counts cover the loaded page rather than the dataset
    page_only: bool


def summarize(records: Iterable[DayEndRecord], server_count: int | None = None) -> DayEndSummary:
    records = list(records)
    by_status = {s.value: 0 for s in DayEndStatus}
    for r in records:
        by_status[r.status] = by_status.get(r.status, 0) + 1

    zero = Decimal("0")
    return DayEndSummary(
        total_reports=server_count if server_count is not None else len(records),
        approved_count=by_status[DayEndStatus.APPROVED.value],
        pending_count=by_status[DayEndStatus.PENDING.value],
        rejected_count=by_status[DayEndStatus.REJECTED.value],
        total_revenue=sum((r.total_revenue for r in records), zero),
        total_expenses=sum((r.total_expenses for r in records), zero),
        total_profit=sum((r.profit for r in records), zero),
        page_only=server_count is not None and server_count > len(records),
    )
