# fleetdesk/forms.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Sequence

NAME_MAXLEN = 160
TEXT_MAXLEN = 500


def _clean_str(value: str | None) -> str:
    return (value or "").strip()


@dataclass(frozen=True)
class Field:
    """
    One input of a CRUD form.

    kind: text | textarea | int | decimal | select | date | bool | password | ref
    `ref` is a select whose options come from another resource.
    """

    name: str
    label: str
    kind: str = "text"
    required: bool = False
    min_value: float | None = None
    gt_value: float | None = None
    choices: Sequence[tuple[str, str]] = ()
    immutable: bool = False
    maxlen: int | None = None
    create_only: bool = False
    help_text: str = ""

    @property
    def is_checkbox(self) -> bool:
        return self.kind == "bool"


def _parse_number(kind: str, text: str):
    if kind == "int":
        return int(text)
    value = Decimal(text)
    if not value.is_finite():
        raise InvalidOperation(text)
    return float(value)


def validate(
    fields: Sequence[Field],
    form: Mapping[str, Any],
    editing: bool = False,
) -> tuple[dict, dict]:
    """
    Returns (data, errors).

    `data` holds typed values for the backend; immutable fields are left out
    of updates and create-only fields are skipped entirely when editing.
    """
    data: dict[str, Any] = {}
    errors: dict[str, str] = {}

    for f in fields:
        if editing and (f.immutable or f.create_only):
            continue

        if f.is_checkbox:
            data[f.name] = form.get(f.name) in ("on", "true", "1", "yes", True)
            continue

        raw = _clean_str(form.get(f.name))

        if not raw:
            if f.required:
                errors[f.name] = f"{f.label} is required"
            continue

        maxlen = f.maxlen or (TEXT_MAXLEN if f.kind == "textarea" else NAME_MAXLEN)
        if f.kind in ("text", "textarea") and len(raw) > maxlen:
            errors[f.name] = f"{f.label} is too long (max {maxlen})"
            continue

        if f.kind in ("int", "decimal"):
            try:
                value = _parse_number(f.kind, raw)
            except (ValueError, InvalidOperation):
                errors[f.name] = f"{f.label} must be a number"
                continue
            if f.gt_value is not None and value <= f.gt_value:
                errors[f.name] = f"{f.label} must be greater than {f.gt_value:g}"
                continue
            if f.min_value is not None and value < f.min_value:
                errors[f.name] = f"{f.label} must be at least {f.min_value:g}"
                continue
            data[f.name] = value
            continue

        if f.kind == "date":
            try:
                data[f.name] = date.fromisoformat(raw).isoformat()
            except ValueError:
                errors[f.name] = f"{f.label} must be a date (YYYY-MM-DD)"
            continue

        if f.kind == "select" and f.choices and raw not in {key for key, _ in f.choices}:
            errors[f.name] = f"Choose a valid {f.label.lower()}"
            continue

        data[f.name] = raw

    return data, errors


def initial_values(fields: Sequence[Field], item: Mapping[str, Any] | None) -> dict:
    """Pre-populate an edit form from a fetched record (refs collapse to their id)."""
    values: dict[str, Any] = {}
    for f in fields:
        value = (item or {}).get(f.name)
        if isinstance(value, Mapping):
            value = value.get("_id") or value.get("id")
        if f.kind == "date" and isinstance(value, str):
            value = value[:10]
        if value is None:
            value = "" if not f.is_checkbox else False
        values[f.name] = value
    return values
