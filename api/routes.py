"""API routes for the Service Ticket Invoicing API."""

from __future__ import annotations

from fastapi import APIRouter

from ticket_tool.markers import MemoryMarkerStore, UnionMarkerStore
from ticket_tool.models import InvoiceGroup, ReconciledTicket, StrictValidationError
from ticket_tool.pipeline import InvoicingRun, run_invoicing
from ticket_tool.snapshot import snapshot_from_dict

from api.schemas import (
    GroupingRequest,
    GroupingResponse,
    GroupSummary,
    IncompleteSummary,
    LineItemSummary,
    TicketSummary,
)

router = APIRouter(prefix="/api/v1")


@router.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}


def _ticket_summary(ticket: ReconciledTicket) -> TicketSummary:
    return TicketSummary(
        ticket_number=ticket.ticket_number,
        record_id=ticket.record_id,
        date=ticket.date.isoformat(),
        employee=ticket.employee_name,
        customer=ticket.customer_name,
        project_id=ticket.project_id,
        po_afe=ticket.billing.po_afe,
        approver=ticket.billing.approver,
        total_hours=float(ticket.total_hours),
        standalone=ticket.is_standalone,
        unresolved=list(ticket.unresolved),
    )


def _group_summary(group: InvoiceGroup, run: InvoicingRun, invoiced: bool) -> GroupSummary:
    group_breakdown = run.breakdowns[group.group_id]
    return GroupSummary(
        group_id=group.group_id,
        regime=group.regime.value,
        period_key=group.period_key,
        period_label=group.period_label,
        project_id=group.project_id,
        project_name=group.project_name,
        customer=group.customer_name,
        approver_code=group.approver_code,
        invoiced=invoiced,
        line_items=[
            LineItemSummary(
                label=item.label,
                po_afe=item.po_afe,
                tickets=item.ticket_list,
                subtotal=float(item.subtotal),
            )
            for item in group_breakdown.line_items
        ],
        group_total=float(group_breakdown.group_total),
        tickets=[_ticket_summary(t) for t in group.tickets],
    )


@router.post("/invoice-groups", response_model=GroupingResponse)
async def invoice_groups(request: GroupingRequest):
    """Reconcile approved tickets in a snapshot and return invoice groups.

    Groups whose id is in either marker list are left out unless
    ``include_invoiced`` is set. Incomplete tickets are always returned
    so the caller can show them separately.
    """
    if request.end_date < request.start_date:
        return GroupingResponse(
            success=False,
            error_type="request_error",
            errors=["end_date is before start_date"],
        )

    try:
        snapshot = snapshot_from_dict(request.snapshot)
    except (KeyError, ValueError, TypeError) as e:
        return GroupingResponse(
            success=False,
            error_type="snapshot_error",
            errors=[f"Invalid snapshot: {e}"],
        )

    store = UnionMarkerStore([
        MemoryMarkerStore(request.marked_group_ids),
        MemoryMarkerStore(request.shared_marked_group_ids),
    ])

    try:
        run = run_invoicing(
            snapshot,
            request.start_date,
            request.end_date,
            expense_source=snapshot,
            marker_store=store,
            strict=request.strict,
            fold_overtime=request.fold_overtime,
        )
    except StrictValidationError as e:
        return GroupingResponse(
            success=False,
            error_type="validation_error",
            errors=e.errors,
        )
    except Exception as e:
        return GroupingResponse(
            success=False,
            error_type="processing_error",
            errors=[str(e)],
        )

    groups = [_group_summary(g, run, invoiced=False) for g in run.pending]
    if request.include_invoiced:
        groups += [_group_summary(g, run, invoiced=True) for g in run.invoiced]

    return GroupingResponse(
        success=True,
        groups=groups,
        incomplete=[
            IncompleteSummary(
                ticket_number=item.ticket.ticket_number,
                date=item.ticket.date.isoformat(),
                customer=item.ticket.customer_name,
                employee=item.ticket.employee_name,
                reason=item.reason,
            )
            for item in run.incomplete
        ],
        issues=run.issues,
    )
