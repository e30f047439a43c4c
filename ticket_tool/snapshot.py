"""JSON snapshot of the ticket data, and an in-memory data source over it.

A snapshot looks like::

    {
      "customers": [{"id": "C1", "name": "Acme", "regime": "approver"}],
      "projects":  [{"id": "P1", "name": "Plant", "customer_id": "C1", "po_afe": "G123"}],
      "employees": [{"id": "U1", "first_name": "Jane", "last_name": "Doe"}],
      "entries":   [{"id": "E1", "date": "2026-02-10", "hours": 4, "rate_type": "Shop Time",
                     "employee_id": "U1", "project_id": "P1"}],
      "records":   [{"id": "R1", "ticket_number": "JD_26001", "date": "2026-02-10",
                     "employee_id": "U1", "customer_id": "C1", "project_id": "P1",
                     "header_overrides": {"po_afe": "G123"}}],
      "expenses":  {"R1": [{"quantity": 1, "rate": 50}]}
    }

``user_id`` is accepted wherever ``employee_id`` is.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional

from ticket_tool.models import (
    AdministrativeRecord,
    Customer,
    Employee,
    Expense,
    GroupingMode,
    HeaderOverrides,
    Project,
    RateType,
    RecordStatus,
    Regime,
    TimeEntry,
)


def _decimal(value: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    if value is None or value == "":
        return default
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a number: {value!r}")


def _date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def parse_customer(data: dict) -> Customer:
    mode = data.get("grouping_mode")
    return Customer(
        id=str(data["id"]),
        name=data.get("name") or "",
        email=data.get("email"),
        phone=data.get("phone"),
        address=data.get("address"),
        city=data.get("city"),
        state=data.get("state"),
        zip_code=data.get("zip_code"),
        country=data.get("country"),
        approver=data.get("approver"),
        po_afe=data.get("po_afe"),
        cc=data.get("cc"),
        other=data.get("other"),
        service_location=data.get("service_location"),
        regime=Regime(data.get("regime") or Regime.PERIOD.value),
        grouping_mode=GroupingMode(mode) if mode else None,
    )


def parse_project(data: dict, customers: dict[str, Customer]) -> Project:
    customer_id = _str(data.get("customer_id"))
    return Project(
        id=str(data["id"]),
        name=data.get("name") or "",
        project_number=data.get("project_number"),
        customer_id=customer_id,
        customer=customers.get(customer_id) if customer_id else None,
        approver=data.get("approver"),
        po_afe=data.get("po_afe"),
        cc=data.get("cc"),
        other=data.get("other"),
        approver_po_afe=data.get("approver_po_afe"),
        location=data.get("location"),
        shop_junior_rate=_decimal(data.get("shop_junior_rate")),
        shop_senior_rate=_decimal(data.get("shop_senior_rate")),
        ft_junior_rate=_decimal(data.get("ft_junior_rate")),
        ft_senior_rate=_decimal(data.get("ft_senior_rate")),
        travel_rate=_decimal(data.get("travel_rate")),
    )


def parse_employee(data: dict) -> Employee:
    return Employee(
        id=str(data.get("user_id") or data["id"]),
        first_name=data.get("first_name") or "",
        last_name=data.get("last_name") or "",
        email=data.get("email"),
        department=data.get("department"),
        position=data.get("position"),
        rt_rate=_decimal(data.get("rt_rate")),
        tt_rate=_decimal(data.get("tt_rate")),
        ft_rate=_decimal(data.get("ft_rate")),
        shop_ot_rate=_decimal(data.get("shop_ot_rate")),
        field_ot_rate=_decimal(data.get("field_ot_rate")),
    )


def parse_entry(data: dict, projects: dict[str, Project]) -> TimeEntry:
    project_id = _str(data.get("project_id"))
    return TimeEntry(
        id=str(data["id"]),
        date=_date(data["date"]),
        hours=_decimal(data.get("hours"), Decimal("0")),
        employee_id=str(data.get("employee_id") or data["user_id"]),
        rate_type=RateType.parse(data.get("rate_type")),
        description=data.get("description"),
        project=projects.get(project_id) if project_id else None,
        approver=data.get("approver"),
        po_afe=data.get("po_afe"),
        cc=data.get("cc"),
        other=data.get("other"),
    )


def parse_overrides(data: Optional[dict]) -> HeaderOverrides:
    data = data or {}
    return HeaderOverrides(
        approver=data.get("approver"),
        po_afe=data.get("po_afe"),
        cc=data.get("cc"),
        other=data.get("other"),
        service_location=data.get("service_location"),
        approver_po_afe=data.get("approver_po_afe"),
    )


def parse_record(data: dict) -> AdministrativeRecord:
    return AdministrativeRecord(
        id=str(data["id"]),
        ticket_number=data.get("ticket_number"),
        date=_date(data["date"]),
        employee_id=str(data.get("employee_id") or data["user_id"]),
        customer_id=_str(data.get("customer_id")),
        project_id=_str(data.get("project_id")),
        location=data.get("location"),
        edited_hours=data.get("edited_hours") or None,
        total_hours=_decimal(data.get("total_hours")),
        overrides=parse_overrides(data.get("header_overrides")),
        is_discarded=bool(data.get("is_discarded", False)),
        status=RecordStatus(data.get("status") or RecordStatus.APPROVED.value),
        rejection_notes=data.get("rejection_notes"),
    )


def parse_expense(data: dict) -> Expense:
    return Expense(
        quantity=_decimal(data.get("quantity"), Decimal("0")),
        rate=_decimal(data.get("rate"), Decimal("0")),
        expense_type=data.get("expense_type"),
        description=data.get("description"),
        unit=data.get("unit"),
    )


@dataclass
class Snapshot:
    """In-memory data source and expense source over loaded data."""
    customers: list[Customer] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    employees: list[Employee] = field(default_factory=list)
    entries: list[TimeEntry] = field(default_factory=list)
    records: list[AdministrativeRecord] = field(default_factory=list)
    expenses: dict[str, list[Expense]] = field(default_factory=dict)

    def get_billable_entries(self, start: date, end: date) -> list[TimeEntry]:
        return [e for e in self.entries if start <= e.date <= end]

    def get_approved_records(self, start: date, end: date) -> list[AdministrativeRecord]:
        return [
            r for r in self.records
            if start <= r.date <= end
            and not r.is_discarded
            and r.status is RecordStatus.APPROVED
        ]

    def get_customers(self) -> list[Customer]:
        return list(self.customers)

    def get_projects(self) -> list[Project]:
        return list(self.projects)

    def get_employees(self) -> list[Employee]:
        return list(self.employees)

    def get_expenses(self, ticket_id: str) -> list[Expense]:
        return list(self.expenses.get(ticket_id, []))


def snapshot_from_dict(data: dict) -> Snapshot:
    customers = [parse_customer(c) for c in data.get("customers", [])]
    customers_by_id = {c.id: c for c in customers}
    projects = [parse_project(p, customers_by_id) for p in data.get("projects", [])]
    projects_by_id = {p.id: p for p in projects}

    return Snapshot(
        customers=customers,
        projects=projects,
        employees=[parse_employee(e) for e in data.get("employees", [])],
        entries=[parse_entry(e, projects_by_id) for e in data.get("entries", [])],
        records=[parse_record(r) for r in data.get("records", [])],
        expenses={
            str(ticket_id): [parse_expense(x) for x in items]
            for ticket_id, items in (data.get("expenses") or {}).items()
        },
    )


def load_snapshot(path: str | Path) -> Snapshot:
    return snapshot_from_dict(json.loads(Path(path).read_text(encoding='utf-8')))
