# fleetdesk/config/__init__.py
from __future__ import annotations

"""
fleetdesk.config is a PACKAGE.

- Operator identity lives in: fleetdesk.config.branding
- App runtime settings live in: fleetdesk.settings
"""

from .branding import branding_context

__all__ = ["branding_context"]
