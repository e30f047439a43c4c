"""Constants and environment-driven defaults."""

from __future__ import annotations

import os

from ticket_tool.models import GroupingMode

# Sentinels
UNASSIGNED_CUSTOMER_ID = "unassigned"
UNASSIGNED_CUSTOMER_NAME = "Unassigned Client"
UNKNOWN_CUSTOMER_NAME = "Unknown Customer"
UNKNOWN_EMPLOYEE_NAME = "Unknown"
FALLBACK_INITIALS = "XX"

GROUPING_SENTINEL = "_"
BILLING_KEY_SEPARATOR = "::"
NO_PO_AFE_LABEL = "(no PO/AFE)"

SYNTHETIC_ENTRY_DESCRIPTION = "Work performed"

# Employees in these departments never produce service tickets
NON_TICKET_DEPARTMENTS = frozenset({"Panel Shop"})

# Period modes per regime
APPROVER_PERIOD_MODE = GroupingMode(os.environ.get("TICKET_APPROVER_PERIOD_MODE", "bi-weekly"))
PERIOD_MODE = GroupingMode(os.environ.get("TICKET_PERIOD_MODE", "monthly"))

# Local invoiced-marker file used by the CLI
MARKERS_PATH = os.environ.get("TICKET_MARKERS_PATH", "invoiced_markers.json")

# Ticketing front end dev server
DEFAULT_ALLOWED_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")


def allowed_origins(raw: str | None = None) -> list[str]:
    """CORS origins from a comma-separated ALLOWED_ORIGINS value.

    "*" anywhere in the list allows every origin.
    """
    if raw is None:
        raw = os.environ.get("ALLOWED_ORIGINS", "")
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    if "*" in origins:
        return ["*"]
    return origins or list(DEFAULT_ALLOWED_ORIGINS)
