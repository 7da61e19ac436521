"""
API Services Layer.

Direct database operations for API endpoints. Every function opens its own
session and returns a result dictionary.
"""

from api.services import (
    auth,
    users,
    students,
    periods,
    statuses,
    files,
    interviews,
    slots,
    notes,
    scoring,
    reports,
    notifications,
)

__all__ = [
    "auth",
    "users",
    "students",
    "periods",
    "statuses",
    "files",
    "interviews",
    "slots",
    "notes",
    "scoring",
    "reports",
    "notifications",
]
