"""Audit output: full traceability JSON for an invoicing pass."""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path

from ticket_tool.engine.calculator import expense_key, ticket_amount
from ticket_tool.models import InvoiceGroup, ReconciledTicket
from ticket_tool.pipeline import InvoicingRun


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal values."""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        return super().default(obj)


def ticket_audit_dict(ticket: ReconciledTicket, run: InvoicingRun) -> dict:
    expenses = run.expenses.get(expense_key(ticket), [])
    return {
        "id": ticket.id,
        "record_id": ticket.record_id,
        "ticket_number": ticket.ticket_number,
        "date": ticket.date.isoformat(),
        "customer": ticket.customer_name,
        "employee": ticket.employee_name,
        "project_id": ticket.project_id,
        "standalone": ticket.is_standalone,
        "hours": {rt.value: float(h) for rt, h in ticket.hours_by_rate_type.items()},
        "total_hours": float(ticket.total_hours),
        "approver": ticket.billing.approver,
        "po_afe": ticket.billing.po_afe,
        "cc": ticket.billing.cc,
        "expenses": [
            {"quantity": float(e.quantity), "rate": float(e.rate), "description": e.description}
            for e in expenses
        ],
        "amount": float(ticket_amount(ticket, expenses)),
        "unresolved": list(ticket.unresolved),
    }


def group_audit_dict(group: InvoiceGroup, run: InvoicingRun) -> dict:
    group_breakdown = run.breakdowns.get(group.group_id)
    return {
        "group_id": group.group_id,
        "regime": group.regime.value,
        "mode": group.mode.value,
        "key": list(group.key),
        "period_key": group.period_key,
        "period_label": group.period_label,
        "project_id": group.project_id,
        "project_name": group.project_name,
        "customer": group.customer_name,
        "approver_code": group.approver_code,
        "total_hours": float(group.total_hours),
        "line_items": [
            {
                "label": item.label,
                "po_afe": item.po_afe,
                "tickets": item.ticket_list,
                "subtotal": float(item.subtotal),
            }
            for item in (group_breakdown.line_items if group_breakdown else ())
        ],
        "group_total": float(group_breakdown.group_total) if group_breakdown else None,
        "tickets": [ticket_audit_dict(t, run) for t in group.tickets],
    }


def generate_audit_dict(run: InvoicingRun) -> dict:
    """Build audit dictionary from an invoicing pass (no file I/O)."""
    return {
        "pending_groups": [group_audit_dict(g, run) for g in run.pending],
        "invoiced_groups": [group_audit_dict(g, run) for g in run.invoiced],
        "incomplete": [
            {
                "ticket_number": item.ticket.ticket_number,
                "date": item.ticket.date.isoformat(),
                "customer": item.ticket.customer_name,
                "employee": item.ticket.employee_name,
                "reason": item.reason,
            }
            for item in run.incomplete
        ],
        "unresolved": [
            {"ticket_number": t.ticket_number, "references": list(t.unresolved)}
            for t in run.unresolved
        ],
        "issues": list(run.issues),
        "summary": {
            "total_tickets": len(run.tickets),
            "pending_groups": len(run.pending),
            "invoiced_groups": len(run.invoiced),
            "incomplete_tickets": len(run.incomplete),
            "pending_total": float(sum(
                (run.breakdowns[g.group_id].group_total for g in run.pending), Decimal("0")
            )),
        },
    }


def generate_audit(run: InvoicingRun, output_path: str | Path) -> Path:
    """Generate audit JSON file from an invoicing pass."""
    output_path = Path(output_path)
    audit = generate_audit_dict(run)
    output_path.write_text(json.dumps(audit, indent=2, cls=DecimalEncoder), encoding='utf-8')
    return output_path
