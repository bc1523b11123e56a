# fleetdesk/utils/downloads.py
from __future__ import annotations

import re

from flask import make_response

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(name: str, default: str = "document") -> str:
    cleaned = _UNSAFE.sub("-", name or "").strip("-.")
    return cleaned or default


def pdf_response(pdf_bytes: bytes, filename: str, inline: bool = False):
    filename = safe_filename(filename)
    if not filename.lower().endswith(".pdf"):
        filename = f"{filename}.pdf"

    resp = make_response(pdf_bytes)
    resp.headers["Content-Type"] = "application/pdf"
    disposition = "inline" if inline else "attachment"
    resp.headers["Content-Disposition"] = f'{disposition}; filename="{filename}"'
    return resp
