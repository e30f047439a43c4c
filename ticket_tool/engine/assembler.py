"""Ticket assembly: billable time entries -> one base ticket per (date, customer, employee)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from ticket_tool.config import (
    FALLBACK_INITIALS,
    NON_TICKET_DEPARTMENTS,
    UNASSIGNED_CUSTOMER_ID,
    UNASSIGNED_CUSTOMER_NAME,
    UNKNOWN_EMPLOYEE_NAME,
)
from ticket_tool.models import (
    DEFAULT_RATES,
    BaseTicket,
    Customer,
    Employee,
    Project,
    RateTable,
    RateType,
    TimeEntry,
    empty_hours,
)

logger = logging.getLogger(__name__)

_OVERTIME_FOLD = {
    RateType.SHOP_OVERTIME: RateType.SHOP_TIME,
    RateType.FIELD_OVERTIME: RateType.FIELD_TIME,
}


def ticket_id(ticket_date: date, customer_id: str, employee_id: str) -> str:
    return f"{ticket_date.isoformat()}-{customer_id}-{employee_id}"


def rates_for(employee: Optional[Employee], project: Optional[Project]) -> RateTable:
    """Employee rates (or defaults) with the project's seniority overrides applied."""
    rates = employee.rates if employee is not None else DEFAULT_RATES
    if project is None:
        return rates

    senior = employee is not None and employee.is_senior
    shop = project.shop_senior_rate if senior else project.shop_junior_rate
    field_rate = project.ft_senior_rate if senior else project.ft_junior_rate

    if shop is not None:
        rates = replace(rates, rt=shop)
    if field_rate is not None:
        rates = replace(rates, ft=field_rate)
    if project.travel_rate is not None:
        rates = replace(rates, tt=project.travel_rate)
    return rates


@dataclass
class _Bucket:
    ticket_date: date
    customer_id: str
    customer_name: str
    customer: Optional[Customer]
    employee_id: str
    project: Optional[Project]
    entries: list[TimeEntry] = field(default_factory=list)
    hours: dict[RateType, Decimal] = field(default_factory=empty_hours)


def _resolve_customer(
    project: Optional[Project],
    customers_by_id: dict[str, Customer],
) -> tuple[str, str, Optional[Customer]]:
    if project is None:
        return UNASSIGNED_CUSTOMER_ID, UNASSIGNED_CUSTOMER_NAME, None
    customer = project.customer
    if customer is None and project.customer_id is not None:
        customer = customers_by_id.get(project.customer_id)
    if customer is None:
        return UNASSIGNED_CUSTOMER_ID, UNASSIGNED_CUSTOMER_NAME, None
    return customer.id, customer.name, customer


def assemble(
    entries: Iterable[TimeEntry],
    employees: Sequence[Employee] = (),
    customers: Sequence[Customer] = (),
    fold_overtime: bool = False,
    excluded_departments: frozenset[str] = NON_TICKET_DEPARTMENTS,
) -> list[BaseTicket]:
    """Group entries into base tickets, newest date first.

    Tickets on the same date keep the order in which their first entry
    was seen, so later matching stays deterministic.
    """
    employees_by_id = {e.id: e for e in employees}
    customers_by_id = {c.id: c for c in customers}
    buckets: dict[tuple[date, str, str], _Bucket] = {}

    for entry in entries:
        employee = employees_by_id.get(entry.employee_id)
        if employee is not None and employee.department in excluded_departments:
            continue

        customer_id, customer_name, customer = _resolve_customer(entry.project, customers_by_id)
        key = (entry.date, customer_id, entry.employee_id)

        bucket = buckets.get(key)
        if bucket is None:
            bucket = _Bucket(
                ticket_date=entry.date,
                customer_id=customer_id,
                customer_name=customer_name,
                customer=customer,
                employee_id=entry.employee_id,
                project=entry.project,
            )
            buckets[key] = bucket

        rate_type = RateType.parse(entry.rate_type)
        if fold_overtime:
            rate_type = _OVERTIME_FOLD.get(rate_type, rate_type)

        bucket.entries.append(entry)
        if entry.hours is not None and entry.hours.is_finite():
            bucket.hours[rate_type] += entry.hours

    tickets = [_build_ticket(bucket, employees_by_id.get(bucket.employee_id)) for bucket in buckets.values()]
    tickets.sort(key=lambda t: t.date, reverse=True)

    logger.info("Assembled %d base ticket(s) from %d entry bucket(s)", len(tickets), len(buckets))
    return tickets


def _build_ticket(bucket: _Bucket, employee: Optional[Employee]) -> BaseTicket:
    if employee is not None:
        name = employee.display_name
        initials = employee.initials
        email = employee.email
    else:
        name = UNKNOWN_EMPLOYEE_NAME
        initials = FALLBACK_INITIALS
        email = None

    return BaseTicket(
        id=ticket_id(bucket.ticket_date, bucket.customer_id, bucket.employee_id),
        date=bucket.ticket_date,
        customer_id=bucket.customer_id,
        customer_name=bucket.customer_name,
        employee_id=bucket.employee_id,
        employee_name=name,
        employee_initials=initials,
        employee_email=email,
        entries=tuple(bucket.entries),
        hours_by_rate_type=dict(bucket.hours),
        rates=rates_for(employee, bucket.project),
        customer=bucket.customer,
        project=bucket.project,
    )
