"""Canonical data model for service ticket reconciliation and invoice grouping."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional


class RateType(Enum):
    SHOP_TIME = "Shop Time"
    SHOP_OVERTIME = "Shop Overtime"
    TRAVEL_TIME = "Travel Time"
    FIELD_TIME = "Field Time"
    FIELD_OVERTIME = "Field Overtime"

    @classmethod
    def parse(cls, value: Any) -> "RateType":
        """Map a raw rate type to the enum, unknown values book as Shop Time."""
        if isinstance(value, cls):
            return value
        for member in cls:
            if value == member.value or value == member.name:
                return member
        return cls.SHOP_TIME


class GroupingMode(Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"


class Regime(Enum):
    APPROVER = "approver"
    PERIOD = "period"


class RecordStatus(Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


def empty_hours() -> dict[RateType, Decimal]:
    return {rate_type: Decimal("0") for rate_type in RateType}


@dataclass(frozen=True)
class RateTable:
    """Hourly billing rates for one employee (or the defaults)."""
    rt: Decimal
    tt: Decimal
    ft: Decimal
    shop_ot: Decimal
    field_ot: Decimal

    def __post_init__(self) -> None:
        for name in ("rt", "tt", "ft", "shop_ot", "field_ot"):
            val = getattr(self, name)
            if val < 0:
                raise ValueError(f"Rate '{name}' must not be negative, got {val}")

    def rate_for(self, rate_type: RateType) -> Decimal:
        return {
            RateType.SHOP_TIME: self.rt,
            RateType.SHOP_OVERTIME: self.shop_ot,
            RateType.TRAVEL_TIME: self.tt,
            RateType.FIELD_TIME: self.ft,
            RateType.FIELD_OVERTIME: self.field_ot,
        }[rate_type]


DEFAULT_RATES = RateTable(
    rt=Decimal("110"),
    tt=Decimal("85"),
    ft=Decimal("140"),
    shop_ot=Decimal("165"),
    field_ot=Decimal("165"),
)


@dataclass(frozen=True)
class Customer:
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    approver: Optional[str] = None
    po_afe: Optional[str] = None
    cc: Optional[str] = None
    other: Optional[str] = None
    service_location: Optional[str] = None
    regime: Regime = Regime.PERIOD
    grouping_mode: Optional[GroupingMode] = None


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    project_number: Optional[str] = None
    customer_id: Optional[str] = None
    customer: Optional[Customer] = None
    approver: Optional[str] = None
    po_afe: Optional[str] = None
    cc: Optional[str] = None
    other: Optional[str] = None
    approver_po_afe: Optional[str] = None
    location: Optional[str] = None
    shop_junior_rate: Optional[Decimal] = None
    shop_senior_rate: Optional[Decimal] = None
    ft_junior_rate: Optional[Decimal] = None
    ft_senior_rate: Optional[Decimal] = None
    travel_rate: Optional[Decimal] = None

    @property
    def resolved_customer_id(self) -> Optional[str]:
        if self.customer is not None:
            return self.customer.id
        return self.customer_id


@dataclass(frozen=True)
class Employee:
    id: str
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    rt_rate: Optional[Decimal] = None
    tt_rate: Optional[Decimal] = None
    ft_rate: Optional[Decimal] = None
    shop_ot_rate: Optional[Decimal] = None
    field_ot_rate: Optional[Decimal] = None

    @property
    def display_name(self) -> str:
        full = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return full or self.email or "Unknown"

    @property
    def initials(self) -> str:
        return ((self.first_name or "")[:1] + (self.last_name or "")[:1]).upper() or "XX"

    @property
    def is_senior(self) -> bool:
        return (self.position or "").strip().lower() == "senior"

    @property
    def rates(self) -> RateTable:
        return RateTable(
            rt=self.rt_rate if self.rt_rate is not None else DEFAULT_RATES.rt,
            tt=self.tt_rate if self.tt_rate is not None else DEFAULT_RATES.tt,
            ft=self.ft_rate if self.ft_rate is not None else DEFAULT_RATES.ft,
            shop_ot=self.shop_ot_rate if self.shop_ot_rate is not None else DEFAULT_RATES.shop_ot,
            field_ot=self.field_ot_rate if self.field_ot_rate is not None else DEFAULT_RATES.field_ot,
        )


@dataclass(frozen=True)
class TimeEntry:
    """One billable labor fact, owned by the time-tracking side."""
    id: str
    date: date
    hours: Decimal
    employee_id: str
    rate_type: RateType = RateType.SHOP_TIME
    description: Optional[str] = None
    project: Optional[Project] = None
    approver: Optional[str] = None
    po_afe: Optional[str] = None
    cc: Optional[str] = None
    other: Optional[str] = None

    @property
    def project_id(self) -> Optional[str]:
        return self.project.id if self.project is not None else None


@dataclass(frozen=True)
class HeaderOverrides:
    """Per-ticket header values typed in by an admin."""
    approver: Optional[str] = None
    po_afe: Optional[str] = None
    cc: Optional[str] = None
    other: Optional[str] = None
    service_location: Optional[str] = None
    approver_po_afe: Optional[str] = None


@dataclass(frozen=True)
class AdministrativeRecord:
    """An approved (or in-workflow) service ticket row."""
    id: str
    ticket_number: Optional[str]
    date: date
    employee_id: str
    customer_id: Optional[str] = None
    project_id: Optional[str] = None
    location: Optional[str] = None
    edited_hours: Optional[Mapping[str, Any]] = None
    total_hours: Optional[Decimal] = None
    overrides: HeaderOverrides = field(default_factory=HeaderOverrides)
    is_discarded: bool = False
    status: RecordStatus = RecordStatus.APPROVED
    rejection_notes: Optional[str] = None


@dataclass(frozen=True)
class Expense:
    quantity: Decimal
    rate: Decimal
    expense_type: Optional[str] = None
    description: Optional[str] = None
    unit: Optional[str] = None

    @property
    def amount(self) -> Decimal:
        return self.quantity * self.rate


@dataclass(frozen=True)
class BillingFields:
    """Resolved approver / PO-AFE / coding / other for one ticket."""
    approver: str = ""
    po_afe: str = ""
    cc: str = ""
    other: str = ""

    @property
    def approver_code(self) -> str:
        return self.approver or self.po_afe


@dataclass(frozen=True)
class BaseTicket:
    """Entries of one (date, customer, employee) tuple, before reconciliation."""
    id: str
    date: date
    customer_id: str
    customer_name: str
    employee_id: str
    employee_name: str
    employee_initials: str
    entries: tuple[TimeEntry, ...]
    hours_by_rate_type: dict[RateType, Decimal]
    rates: RateTable
    customer: Optional[Customer] = None
    project: Optional[Project] = None
    employee_email: Optional[str] = None

    @property
    def project_id(self) -> Optional[str]:
        return self.project.id if self.project is not None else None

    @property
    def total_hours(self) -> Decimal:
        return sum(self.hours_by_rate_type.values(), Decimal("0"))


@dataclass(frozen=True)
class ReconciledTicket:
    """A base ticket merged with its approved record, or a standalone one."""
    id: str
    record_id: Optional[str]
    ticket_number: Optional[str]
    date: date
    customer_id: str
    customer_name: str
    employee_id: str
    employee_name: str
    employee_initials: str
    entries: tuple[TimeEntry, ...]
    hours_by_rate_type: dict[RateType, Decimal]
    rates: RateTable
    billing: BillingFields
    customer: Optional[Customer] = None
    project: Optional[Project] = None
    project_id: Optional[str] = None
    overrides: HeaderOverrides = field(default_factory=HeaderOverrides)
    location: Optional[str] = None
    service_location: Optional[str] = None
    base_ticket_id: Optional[str] = None
    unresolved: tuple[str, ...] = ()

    @property
    def is_standalone(self) -> bool:
        return self.base_ticket_id is None

    @property
    def total_hours(self) -> Decimal:
        return sum(self.hours_by_rate_type.values(), Decimal("0"))

    @property
    def project_name(self) -> Optional[str]:
        return self.project.name if self.project is not None else None

    @property
    def project_number(self) -> Optional[str]:
        return self.project.project_number if self.project is not None else None


@dataclass(frozen=True)
class InvoiceGroup:
    """Tickets that end up on one invoice."""
    group_id: str
    regime: Regime
    mode: GroupingMode
    key: tuple[str, ...]
    period_key: str
    period_label: str
    tickets: tuple[ReconciledTicket, ...]
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    project_number: Optional[str] = None
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    approver_code: Optional[str] = None

    @property
    def total_hours(self) -> Decimal:
        return sum((t.total_hours for t in self.tickets), Decimal("0"))


@dataclass(frozen=True)
class IncompleteTicket:
    ticket: ReconciledTicket
    reason: str


@dataclass
class GroupingResult:
    groups: list[InvoiceGroup] = field(default_factory=list)
    incomplete: list[IncompleteTicket] = field(default_factory=list)


@dataclass(frozen=True)
class LineItem:
    """One invoice line: a PO/AFE bucket (or a whole period) of tickets.

    On approver-driven groups the subtotal is the step in the running rounded
    group total, not the bucket amount rounded on its own. Identical buckets
    can therefore show different subtotals, and a bucket worth less than half
    a cent can show 0.00, while the lines always sum to the group total.
    """
    label: str
    po_afe: str
    ticket_numbers: tuple[str, ...]
    ticket_list: str
    subtotal: Decimal


@dataclass(frozen=True)
class GroupBreakdown:
    group_id: str
    line_items: tuple[LineItem, ...]
    group_total: Decimal


class StrictValidationError(Exception):
    """Raised when strict validation fails."""
    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Strict validation failed with {len(errors)} error(s):\n" +
                         "\n".join(f"  - {e}" for e in errors))


class InvariantViolation(RuntimeError):
    """A reconciliation pass broke one of its own guarantees."""
