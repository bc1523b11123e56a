# fleetdesk/journeys.py
"""
Trip and ticket lists: filter choices and the summary cards above them.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from .models import Ticket, TicketStatus, Trip, TripStatus

TRIP_PERIODS = ("today", "week", "month", "all")
TRIP_DIRECTIONS = ("all", "forward", "return")
TICKET_STATUSES = ("all",) + tuple(s.value for s in TicketStatus)

ZERO = Decimal("0")


@dataclass(frozen=True)
class TripSummary:
    total_trips: int
    completed: int
    in_progress: int
    cancelled: int
    passengers: int
    revenue: Decimal


def summarize_trips(trips: Sequence[Trip]) -> TripSummary:
    def count(status: TripStatus) -> int:
        return sum(1 for t in trips if t.status == status.value)

    return TripSummary(
        total_trips=len(trips),
        completed=count(TripStatus.COMPLETED),
        in_progress=count(TripStatus.IN_PROGRESS),
        cancelled=count(TripStatus.CANCELLED),
        passengers=sum(t.passenger_count for t in trips),
        revenue=sum((t.revenue for t in trips), ZERO),
    )


@dataclass(frozen=True)
class TicketSummary:
    total_tickets: int
    paid_tickets: int
    passengers: int
    revenue: Decimal
    cash_payments: int
    digital_payments: int

    @property
    def average_fare(self) -> Decimal:
        if not self.paid_tickets:
            return ZERO
        return (self.revenue / self.paid_tickets).quantize(Decimal("0.01"))


def summarize_tickets(tickets: Sequence[Ticket]) -> TicketSummary:
    """Cancelled and refunded tickets are listed but earn nothing."""
    earning = [
        t for t in tickets
        if t.status not in (TicketStatus.CANCELLED.value, TicketStatus.REFUNDED.value)
    ]
    cash = sum(1 for t in tickets if t.payment_method == "cash")
    return TicketSummary(
        total_tickets=len(tickets),
        paid_tickets=len(earning),
        passengers=sum(t.total_passengers for t in tickets),
        revenue=sum((t.fare for t in earning), ZERO),
        cash_payments=cash,
        digital_payments=len(tickets) - cash,
    )
