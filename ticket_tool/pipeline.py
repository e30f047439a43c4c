"""End-to-end invoicing pass.

fetch -> assemble -> reconcile -> group -> expenses -> breakdowns, plus the
per-group document export and accounting hand-off. Every call rebuilds
everything from the source, so claims never leak between passes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Sequence

from ticket_tool.engine.assembler import assemble
from ticket_tool.engine.calculator import breakdown, expense_key
from ticket_tool.engine.grouper import group_tickets, mode_from_customers, regime_from_customers
from ticket_tool.engine.matcher import reconcile
from ticket_tool.engine.validator import validate_inputs
from ticket_tool.markers import split_by_marker
from ticket_tool.models import (
    Expense,
    GroupBreakdown,
    IncompleteTicket,
    InvoiceGroup,
    ReconciledTicket,
    Regime,
)
from ticket_tool.ports import (
    AccountingClient,
    ExpenseSource,
    InvoiceLine,
    InvoiceRequest,
    MarkerStore,
    TicketDataSource,
    TicketRenderer,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupFailure:
    group_id: str
    message: str


@dataclass
class InvoicingRun:
    tickets: list[ReconciledTicket] = field(default_factory=list)
    pending: list[InvoiceGroup] = field(default_factory=list)
    invoiced: list[InvoiceGroup] = field(default_factory=list)
    incomplete: list[IncompleteTicket] = field(default_factory=list)
    breakdowns: dict[str, GroupBreakdown] = field(default_factory=dict)
    expenses: dict[str, list[Expense]] = field(default_factory=dict)
    issues: list[str] = field(default_factory=list)

    @property
    def groups(self) -> list[InvoiceGroup]:
        return self.pending + self.invoiced

    @property
    def unresolved(self) -> list[ReconciledTicket]:
        return [t for t in self.tickets if t.unresolved]


@dataclass(frozen=True)
class GroupDocument:
    group_id: str
    filename: str
    content: bytes


@dataclass
class ExportReport:
    documents: list[GroupDocument] = field(default_factory=list)
    failures: list[GroupFailure] = field(default_factory=list)


@dataclass
class AccountingReport:
    created: dict[str, str] = field(default_factory=dict)
    failures: list[GroupFailure] = field(default_factory=list)


def collect_expenses(
    tickets: Sequence[ReconciledTicket],
    source: Optional[ExpenseSource],
) -> dict[str, list[Expense]]:
    """Expenses per ticket; a failed fetch counts as no expenses."""
    expenses: dict[str, list[Expense]] = {}
    if source is None:
        return expenses
    for ticket in tickets:
        if ticket.record_id is None:
            continue
        key = expense_key(ticket)
        try:
            expenses[key] = list(source.get_expenses(key))
        except Exception as e:
            logger.warning("Expense fetch failed for ticket %s: %s", ticket.ticket_number or key, e)
            expenses[key] = []
    return expenses


def build_tickets(
    source: TicketDataSource,
    start: date,
    end: date,
    strict: bool = False,
    fold_overtime: bool = False,
) -> tuple[list[ReconciledTicket], list[str]]:
    entries = source.get_billable_entries(start, end)
    records = source.get_approved_records(start, end)
    customers = source.get_customers()
    projects = source.get_projects()
    employees = source.get_employees()

    issues = validate_inputs(entries, records, strict=strict)
    for issue in issues:
        logger.warning("Input issue: %s", issue)

    base_tickets = assemble(entries, employees, customers, fold_overtime=fold_overtime)
    tickets = reconcile(base_tickets, records, projects, customers, employees)
    return tickets, issues


def run_invoicing(
    source: TicketDataSource,
    start: date,
    end: date,
    expense_source: Optional[ExpenseSource] = None,
    marker_store: Optional[MarkerStore] = None,
    strict: bool = False,
    single_customer: Optional[bool] = None,
    fold_overtime: bool = False,
) -> InvoicingRun:
    """One full pass over the source for [start, end]."""
    tickets, issues = build_tickets(source, start, end, strict=strict, fold_overtime=fold_overtime)

    customers = source.get_customers()
    grouping = group_tickets(
        tickets,
        regime_from_customers(customers),
        mode_from_customers(customers),
        single_customer=single_customer,
    )

    grouped = [t for g in grouping.groups for t in g.tickets]
    expenses = collect_expenses(grouped, expense_source)
    breakdowns = {g.group_id: breakdown(g, expenses) for g in grouping.groups}

    if marker_store is not None:
        pending, invoiced = split_by_marker(grouping.groups, marker_store)
    else:
        pending, invoiced = list(grouping.groups), []

    logger.info(
        "Invoicing pass %s..%s: %d pending group(s), %d invoiced, %d incomplete ticket(s)",
        start, end, len(pending), len(invoiced), len(grouping.incomplete),
    )
    return InvoicingRun(
        tickets=tickets,
        pending=pending,
        invoiced=invoiced,
        incomplete=grouping.incomplete,
        breakdowns=breakdowns,
        expenses=expenses,
        issues=issues,
    )


def document_filename(group: InvoiceGroup, on: date) -> str:
    label = group.approver_code if group.regime is Regime.APPROVER else group.period_key
    return f"Invoices_{label or 'no-approver'}_{on.isoformat()}.pdf"


def render_group(
    group: InvoiceGroup,
    renderer: TicketRenderer,
    expenses: dict[str, list[Expense]],
) -> Optional[bytes]:
    """Render every ticket and merge in group order; failed tickets are skipped."""
    documents: list[bytes] = []
    for ticket in group.tickets:
        try:
            documents.append(renderer.render(ticket, expenses.get(expense_key(ticket), [])))
        except Exception as e:
            logger.warning("Render failed for ticket %s in group %s: %s", ticket.ticket_number, group.group_id, e)
    if not documents:
        return None
    return renderer.merge(documents)


def export_documents(
    groups: Sequence[InvoiceGroup],
    renderer: TicketRenderer,
    expenses: dict[str, list[Expense]],
    on: Optional[date] = None,
) -> ExportReport:
    on = on or date.today()
    report = ExportReport()
    for group in groups:
        try:
            content = render_group(group, renderer, expenses)
        except Exception as e:
            logger.warning("Export failed for group %s: %s", group.group_id, e)
            report.failures.append(GroupFailure(group.group_id, str(e)))
            continue
        if content is None:
            report.failures.append(GroupFailure(group.group_id, "No ticket could be rendered"))
            continue
        report.documents.append(GroupDocument(group.group_id, document_filename(group, on), content))
    return report


def build_invoice_request(group: InvoiceGroup, group_breakdown: GroupBreakdown) -> InvoiceRequest:
    first = group.tickets[0]
    reference = group.approver_code or None
    doc_number = f"INV-{reference}-{first.date.strftime('%Y%m%d')}" if reference else None
    return InvoiceRequest(
        group_id=group.group_id,
        customer_name=first.customer_name,
        customer_email=first.customer.email if first.customer else None,
        customer_po=first.billing.po_afe or None,
        reference=reference,
        date=first.date,
        doc_number=doc_number,
        line_items=tuple(
            InvoiceLine(po_afe=item.po_afe, tickets=item.ticket_numbers, total_amount=item.subtotal)
            for item in group_breakdown.line_items
        ),
    )


def create_invoices(
    groups: Sequence[InvoiceGroup],
    breakdowns: dict[str, GroupBreakdown],
    client: AccountingClient,
) -> AccountingReport:
    """Create one external invoice per group; a failure only drops that group."""
    report = AccountingReport()
    for group in groups:
        try:
            request = build_invoice_request(group, breakdowns[group.group_id])
            report.created[group.group_id] = client.create_invoice(request)
        except Exception as e:
            logger.warning("Accounting call failed for group %s: %s", group.group_id, e)
            report.failures.append(GroupFailure(group.group_id, str(e)))
    return report
