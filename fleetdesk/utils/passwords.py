# fleetdesk/utils/passwords.py
from __future__ import annotations

import re
from typing import Tuple


# =========================
# Password policy
# =========================
# Applied when an admin creates a dashboard or conductor account; the backend
# stores and hashes the password.
_PASSWORD_RULES = [
    (lambda s: len(s) >= 8, "Password must be at least 8 characters."),
    (lambda s: re.search(r"[A-Za-z]", s) is not None, "Include at least one letter."),
    (lambda s: re.search(r"\d", s) is not None, "Include at least one number."),
]


def validate_password(plain_password: str) -> Tuple[bool, str]:
    """
    Returns (ok, message). If ok is False, message explains what to fix.
    """
    if not isinstance(plain_password, str):
        return False, "Password must be text."
    pw = plain_password.strip()
    if not pw:
        return False, "Password cannot be empty."
    if pw != plain_password:
        return False, "Password cannot start or end with spaces."

    for rule, msg in _PASSWORD_RULES:
        if not rule(pw):
            return False, msg
    return True, ""
