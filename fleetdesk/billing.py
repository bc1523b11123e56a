# fleetdesk/billing.py
"""
Monthly fee arithmetic and form rules.

The fee status is an independently settable field on the backend. The
amount-derived status is shown next to it so admins can spot fees whose two
sources of truth disagree; neither overrides the other here.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable, Mapping

from .models import FeeStatus, MonthlyFee

MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
EDITABLE_STATUSES = (FeeStatus.UNPAID.value, FeeStatus.PARTIAL.value, FeeStatus.PAID.value)

ZERO = Decimal("0")


def balance(fee: MonthlyFee) -> Decimal:
    return fee.amount - fee.paid_amount


def derived_status(amount: Decimal, paid_amount: Decimal) -> str:
    if paid_amount <= ZERO:
        return FeeStatus.UNPAID.value
    if paid_amount >= amount:
        return FeeStatus.PAID.value
    return FeeStatus.PARTIAL.value


def status_disagrees(fee: MonthlyFee) -> bool:
    # Manager-side statuses (pending/overdue) are due-date driven; nothing to compare
    if fee.status not in EDITABLE_STATUSES:
        return False
    return fee.status != derived_status(fee.amount, fee.paid_amount)


@dataclass(frozen=True)
class FeeSummary:
    total_paid: Decimal
    total_pending: Decimal
    total_overdue: Decimal
    paid_count: int
    total_count: int
    payment_rate: int
    total_billed: Decimal
    total_collected: Decimal
    total_outstanding: Decimal


def summarize_fees(fees: Iterable[MonthlyFee]) -> FeeSummary:
    fees = list(fees)
    paid = [f for f in fees if f.status == FeeStatus.PAID.value]
    total_count = len(fees)

    return FeeSummary(
        total_paid=sum((f.amount + f.late_fee for f in paid), ZERO),
        total_pending=sum((f.amount for f in fees if f.status == FeeStatus.PENDING.value), ZERO),
        total_overdue=sum((f.amount for f in fees if f.status == FeeStatus.OVERDUE.value), ZERO),
        paid_count=len(paid),
        total_count=total_count,
        payment_rate=round(100 * len(paid) / total_count) if total_count else 0,
        total_billed=sum((f.amount for f in fees), ZERO),
        total_collected=sum((f.paid_amount for f in fees), ZERO),
        total_outstanding=sum((balance(f) for f in fees), ZERO),
    )


# =========================================================
# Form rules
# =========================================================
def _number(raw) -> Decimal | None:
    text = str(raw if raw is not None else "").strip()
    if not text:
        return None
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def validate_fee_form(form: Mapping[str, str]) -> tuple[dict, dict]:
    """
    Returns (payload, errors). Payload keys follow the backend's camelCase.
    """
    errors: dict[str, str] = {}
    bus_id = (form.get("busId") or "").strip()
    owner_id = (form.get("ownerId") or "").strip()
    month = (form.get("month") or "").strip()
    status = (form.get("status") or FeeStatus.UNPAID.value).strip().lower()
    payment_date = (form.get("paymentDate") or "").strip()
    notes = (form.get("notes") or "").strip()

    if not bus_id:
        errors["busId"] = "Bus selection is required"
    if not month:
        errors["month"] = "Month is required"
    elif not MONTH_RE.match(month):
        errors["month"] = "Month must look like 2025-01"

    raw_amount = (form.get("amount") or "").strip()
    amount = _number(raw_amount)
    if not raw_amount:
        errors["amount"] = "Amount is required"
    elif amount is None or amount <= ZERO:
        errors["amount"] = "Amount must be a positive number"

    raw_paid = (form.get("paidAmount") or "").strip()
    paid = _number(raw_paid) if raw_paid else ZERO
    if raw_paid and (paid is None or paid < ZERO):
        errors["paidAmount"] = "Paid amount must be a non-negative number"

    if status not in EDITABLE_STATUSES:
        errors["status"] = "Choose unpaid, partial or paid"
    elif status == FeeStatus.PAID.value and (paid is None or paid == ZERO):
        errors["paidAmount"] = "Paid amount is required when status is paid"

    if errors:
        return {}, errors

    payload = {
        "busId": bus_id,
        "month": month,
        "amount": float(amount),
        "paidAmount": float(paid),
        "status": status,
    }
    if owner_id:
        payload["ownerId"] = owner_id
    if payment_date:
        payload["paymentDate"] = payment_date
    if notes:
        payload["notes"] = notes
    return payload, {}


def validate_payment(form: Mapping[str, str]) -> tuple[Decimal | None, str | None, str]:
    """Returns (amount, payment_date, error)."""
    amount = _number(form.get("paidAmount"))
    if amount is None or amount <= ZERO:
        return None, None, "Please enter a valid payment amount"
    payment_date = (form.get("paymentDate") or "").strip() or None
    return amount, payment_date, ""
