"""Pydantic request/response models for the Invoice Grouping API."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field


class GroupingRequest(BaseModel):
    start_date: date
    end_date: date
    snapshot: dict = Field(..., description="Entries, records, customers, projects, employees, expenses")
    marked_group_ids: list[str] = Field(default_factory=list, description="Group ids already invoiced (local)")
    shared_marked_group_ids: list[str] = Field(default_factory=list, description="Group ids already invoiced (shared)")
    include_invoiced: bool = False
    strict: bool = False
    fold_overtime: bool = False


class TicketSummary(BaseModel):
    ticket_number: str | None = None
    record_id: str | None = None
    date: str
    employee: str
    customer: str
    project_id: str | None = None
    po_afe: str
    approver: str
    total_hours: float
    standalone: bool
    unresolved: list[str] = []


class LineItemSummary(BaseModel):
    label: str
    po_afe: str
    tickets: str
    subtotal: float


class GroupSummary(BaseModel):
    group_id: str
    regime: str
    period_key: str
    period_label: str
    project_id: str | None = None
    project_name: str | None = None
    customer: str | None = None
    approver_code: str | None = None
    invoiced: bool = False
    line_items: list[LineItemSummary]
    group_total: float
    tickets: list[TicketSummary]


class IncompleteSummary(BaseModel):
    ticket_number: str | None = None
    date: str
    customer: str
    employee: str
    reason: str


class GroupingResponse(BaseModel):
    success: bool
    groups: list[GroupSummary] | None = None
    incomplete: list[IncompleteSummary] | None = None
    issues: list[str] | None = None
    error_type: str | None = None
    errors: list[str] | None = None
