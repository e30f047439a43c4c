"""Interfaces of the collaborators around the engine.

The engine only sees resolved data; these protocols describe what the
pipeline asks of the data layer, renderers, marker stores and the
accounting integration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from ticket_tool.models import (
    AdministrativeRecord,
    Customer,
    Employee,
    Expense,
    Project,
    ReconciledTicket,
    TimeEntry,
)


class TicketDataSource(Protocol):
    def get_billable_entries(self, start: date, end: date) -> list[TimeEntry]: ...

    def get_approved_records(self, start: date, end: date) -> list[AdministrativeRecord]: ...

    def get_customers(self) -> list[Customer]: ...

    def get_projects(self) -> list[Project]: ...

    def get_employees(self) -> list[Employee]: ...


class ExpenseSource(Protocol):
    def get_expenses(self, ticket_id: str) -> list[Expense]: ...


class TicketRenderer(Protocol):
    def render(self, ticket: ReconciledTicket, expenses: Sequence[Expense]) -> bytes: ...

    def merge(self, documents: Sequence[bytes]) -> bytes: ...


class MarkerStore(Protocol):
    def is_marked(self, group_id: str) -> bool: ...

    def mark(self, group_id: str) -> None: ...

    def unmark(self, group_id: str) -> None: ...


@dataclass(frozen=True)
class InvoiceLine:
    po_afe: str
    tickets: tuple[str, ...]
    total_amount: Decimal


@dataclass(frozen=True)
class InvoiceRequest:
    """What the accounting integration needs to create one invoice."""
    group_id: str
    customer_name: str
    date: date
    line_items: tuple[InvoiceLine, ...] = field(default_factory=tuple)
    customer_email: Optional[str] = None
    customer_po: Optional[str] = None
    reference: Optional[str] = None
    doc_number: Optional[str] = None


class AccountingClient(Protocol):
    def create_invoice(self, request: InvoiceRequest) -> str: ...
