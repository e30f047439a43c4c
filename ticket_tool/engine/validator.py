"""Input data-quality checks.

The engine trusts what it is given; these checks report what looks wrong
before a pass. In strict mode any finding stops processing.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import date
from decimal import Decimal

from ticket_tool.models import (
    AdministrativeRecord,
    StrictValidationError,
    TimeEntry,
)

MAX_HOURS_PER_DAY = Decimal("24")


def check_entries(entries: list[TimeEntry]) -> list[str]:
    errors: list[str] = []

    for entry in entries:
        if not entry.hours.is_finite():
            errors.append(f"Entry {entry.id} on {entry.date}: hours is not finite")
            continue
        if entry.hours < 0:
            errors.append(f"Entry {entry.id} on {entry.date}: negative hours={entry.hours}")
        if entry.hours > MAX_HOURS_PER_DAY:
            errors.append(f"Entry {entry.id} on {entry.date}: hours={entry.hours} > 24")

    daily_totals: dict[tuple[str, date], Decimal] = defaultdict(Decimal)
    for entry in entries:
        if entry.hours.is_finite():
            daily_totals[(entry.employee_id, entry.date)] += entry.hours

    for (employee_id, dt), total in daily_totals.items():
        if total > MAX_HOURS_PER_DAY:
            errors.append(f"Employee {employee_id} on {dt}: aggregated daily total={total} > 24")

    return errors


def check_records(records: list[AdministrativeRecord]) -> list[str]:
    errors: list[str] = []

    for record in records:
        if not record.ticket_number:
            errors.append(f"Record {record.id} on {record.date}: missing ticket number")
        if record.total_hours is not None and record.total_hours < 0:
            errors.append(f"Record {record.id}: negative total_hours={record.total_hours}")

    counts = Counter(r.ticket_number for r in records if r.ticket_number)
    for ticket_number, count in sorted(counts.items()):
        if count > 1:
            errors.append(f"Ticket number {ticket_number} is used by {count} records")

    return errors


def validate_inputs(
    entries: list[TimeEntry],
    records: list[AdministrativeRecord],
    strict: bool = True,
) -> list[str]:
    """Run all checks; raise in strict mode, otherwise return the findings."""
    errors = check_entries(entries) + check_records(records)
    if errors and strict:
        raise StrictValidationError(errors)
    return errors
