"""Record matching: approved records -> reconciled tickets.

Each approved record claims at most one base ticket with the same date,
employee, customer and project whose keys are compatible. A record that
finds nothing becomes a standalone ticket built from its own snapshot.
The claimed set lives only for one ``reconcile`` call.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Sequence

from ticket_tool.config import (
    GROUPING_SENTINEL,
    SYNTHETIC_ENTRY_DESCRIPTION,
    UNASSIGNED_CUSTOMER_ID,
    UNKNOWN_CUSTOMER_NAME,
    UNKNOWN_EMPLOYEE_NAME,
    FALLBACK_INITIALS,
)
from ticket_tool.engine.keys import KeySources, candidate_keys, record_keys, resolve_billing_fields
from ticket_tool.models import (
    DEFAULT_RATES,
    AdministrativeRecord,
    BaseTicket,
    Customer,
    Employee,
    InvariantViolation,
    Project,
    RateType,
    ReconciledTicket,
    TimeEntry,
    empty_hours,
)

logger = logging.getLogger(__name__)


def _to_hours(value: Any) -> Decimal:
    """Coerce one edited-hours value; missing or non-finite counts as zero."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, float) and not math.isfinite(value):
        return Decimal("0")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return result if result.is_finite() else Decimal("0")


def edited_hour_value(value: Any) -> Decimal:
    if isinstance(value, (list, tuple)):
        return sum((_to_hours(v) for v in value), Decimal("0"))
    return _to_hours(value)


def apply_edited_hours(
    hours: Mapping[RateType, Decimal],
    edited: Optional[Mapping[str, Any]],
) -> dict[RateType, Decimal]:
    """New hours map with every known rate type in ``edited`` replaced."""
    result = dict(hours)
    if not edited:
        return result
    known = {rt.value: rt for rt in RateType}
    for raw_type, value in edited.items():
        rate_type = known.get(raw_type)
        if rate_type is not None:
            result[rate_type] = edited_hour_value(value)
    return result


def synthesize_display_entries(
    ticket: BaseTicket,
    hours: Mapping[RateType, Decimal],
) -> tuple[TimeEntry, ...]:
    """One placeholder entry per non-zero rate type, for description lines.

    Entry-level billing fields of the original first entry are carried so
    that the key precedence chain sees the same values as before.
    """
    first = ticket.entries[0] if ticket.entries else None
    synthetic = tuple(
        TimeEntry(
            id=f"syn-{rate_type.value}",
            date=ticket.date,
            hours=h,
            employee_id=ticket.employee_id,
            rate_type=rate_type,
            description=SYNTHETIC_ENTRY_DESCRIPTION,
            project=ticket.project,
            approver=first.approver if first else None,
            po_afe=first.po_afe if first else None,
            cc=first.cc if first else None,
            other=first.other if first else None,
        )
        for rate_type, h in hours.items()
        if h > 0
    )
    return synthetic or ticket.entries


@dataclass(frozen=True)
class _Lookups:
    customers: dict[str, Customer]
    projects: dict[str, Project]
    employees: dict[str, Employee]


def _service_location(record: AdministrativeRecord, project: Optional[Project], customer: Optional[Customer]) -> Optional[str]:
    for value in (
        record.overrides.service_location,
        record.location,
        project.location if project else None,
        customer.service_location if customer else None,
    ):
        if value and value.strip():
            return value.strip()
    return None


def _is_candidate(ticket: BaseTicket, record: AdministrativeRecord) -> bool:
    if ticket.date != record.date or ticket.employee_id != record.employee_id:
        return False
    if ticket.customer_id != record.customer_id and not (
        record.customer_id is None and ticket.customer_id == UNASSIGNED_CUSTOMER_ID
    ):
        return False
    return (ticket.project_id or "") == (record.project_id or "")


def find_match(
    record: AdministrativeRecord,
    base_tickets: Sequence[BaseTicket],
    claimed: set[str],
) -> Optional[BaseTicket]:
    """First unclaimed base ticket the record may take, in ticket order.

    An unset PO/AFE on either side matches anything, so with several
    candidates the first one wins.
    """
    rec_grouping, rec_billing = record_keys(record.overrides)
    for ticket in base_tickets:
        if ticket.id in claimed or not _is_candidate(ticket, record):
            continue
        first = ticket.entries[0] if ticket.entries else None
        bt_grouping, bt_billing = candidate_keys(first, ticket.project, ticket.customer)
        if (
            rec_billing == bt_billing
            or rec_grouping == bt_grouping
            or GROUPING_SENTINEL in (rec_grouping, bt_grouping)
        ):
            return ticket
    return None


def merge_record(
    ticket: BaseTicket,
    record: AdministrativeRecord,
    project: Optional[Project],
) -> ReconciledTicket:
    """Apply a record's number, edited hours and overrides to its base ticket."""
    project = project or ticket.project
    hours = dict(ticket.hours_by_rate_type)
    entries = ticket.entries
    if record.edited_hours:
        hours = apply_edited_hours(ticket.hours_by_rate_type, record.edited_hours)
        entries = synthesize_display_entries(ticket, hours)

    first = entries[0] if entries else None
    billing = resolve_billing_fields(
        KeySources(entry=first, overrides=record.overrides, project=project, customer=ticket.customer)
    )
    return ReconciledTicket(
        id=ticket.id,
        record_id=record.id,
        ticket_number=record.ticket_number,
        date=ticket.date,
        customer_id=ticket.customer_id,
        customer_name=ticket.customer_name,
        customer=ticket.customer,
        employee_id=ticket.employee_id,
        employee_name=ticket.employee_name,
        employee_initials=ticket.employee_initials,
        entries=entries,
        hours_by_rate_type=hours,
        rates=ticket.rates,
        billing=billing,
        project=project,
        project_id=record.project_id or ticket.project_id,
        overrides=record.overrides,
        location=record.location,
        service_location=_service_location(record, project, ticket.customer),
        base_ticket_id=ticket.id,
    )


def standalone_ticket(record: AdministrativeRecord, lookups: _Lookups) -> ReconciledTicket:
    """Ticket built only from the record, for records without matching entries."""
    unresolved: list[str] = []

    customer = lookups.customers.get(record.customer_id) if record.customer_id else None
    if record.customer_id and customer is None:
        unresolved.append(f"customer:{record.customer_id}")
    project = lookups.projects.get(record.project_id) if record.project_id else None
    if record.project_id and project is None:
        unresolved.append(f"project:{record.project_id}")
    employee = lookups.employees.get(record.employee_id)
    if employee is None:
        unresolved.append(f"employee:{record.employee_id}")

    hours = apply_edited_hours(empty_hours(), record.edited_hours)
    if sum(hours.values(), Decimal("0")) == 0 and record.total_hours is not None:
        total = _to_hours(record.total_hours)
        if total > 0:
            hours[RateType.SHOP_TIME] = total

    if unresolved:
        logger.warning(
            "Record %s (%s) has unresolved references: %s",
            record.id, record.ticket_number, ", ".join(unresolved),
        )

    location = record.location or ""
    customer_id = record.customer_id or UNASSIGNED_CUSTOMER_ID
    billing = resolve_billing_fields(KeySources(overrides=record.overrides, project=project, customer=customer))
    return ReconciledTicket(
        id=f"{record.date.isoformat()}-{customer_id}-{record.employee_id}-{location}",
        record_id=record.id,
        ticket_number=record.ticket_number,
        date=record.date,
        customer_id=customer_id,
        customer_name=customer.name if customer else UNKNOWN_CUSTOMER_NAME,
        customer=customer,
        employee_id=record.employee_id,
        employee_name=employee.display_name if employee else UNKNOWN_EMPLOYEE_NAME,
        employee_initials=employee.initials if employee else FALLBACK_INITIALS,
        entries=(),
        hours_by_rate_type=hours,
        rates=employee.rates if employee else DEFAULT_RATES,
        billing=billing,
        project=project,
        project_id=record.project_id,
        overrides=record.overrides,
        location=record.location,
        service_location=_service_location(record, project, customer),
        base_ticket_id=None,
        unresolved=tuple(unresolved),
    )


def reconcile(
    base_tickets: Sequence[BaseTicket],
    records: Sequence[AdministrativeRecord],
    projects: Sequence[Project] = (),
    customers: Sequence[Customer] = (),
    employees: Sequence[Employee] = (),
) -> list[ReconciledTicket]:
    """One reconciled ticket per record, in record order."""
    lookups = _Lookups(
        customers={c.id: c for c in customers},
        projects={p.id: p for p in projects},
        employees={e.id: e for e in employees},
    )
    claimed: set[str] = set()
    result: list[ReconciledTicket] = []

    for record in records:
        match = find_match(record, base_tickets, claimed)
        if match is None:
            result.append(standalone_ticket(record, lookups))
            continue

        if match.id in claimed:
            raise InvariantViolation(f"Base ticket {match.id} claimed twice (record {record.id})")
        claimed.add(match.id)

        project_id = record.project_id or match.project_id
        project = lookups.projects.get(project_id) if project_id else None
        result.append(merge_record(match, record, project))

    logger.info(
        "Reconciled %d record(s): %d matched, %d standalone",
        len(result), len(claimed), len(result) - len(claimed),
    )
    return result
