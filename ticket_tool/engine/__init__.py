"""Reconciliation, grouping and totals engines."""
from ticket_tool.engine.assembler import assemble
from ticket_tool.engine.calculator import breakdown, compress_ticket_numbers, ticket_amount
from ticket_tool.engine.grouper import group_tickets
from ticket_tool.engine.keys import build_billing_key, build_grouping_key, resolve_billing_fields
from ticket_tool.engine.matcher import reconcile
from ticket_tool.engine.periods import period_key, period_label
from ticket_tool.engine.validator import validate_inputs

__all__ = [
    "assemble",
    "breakdown",
    "build_billing_key",
    "build_grouping_key",
    "compress_ticket_numbers",
    "group_tickets",
    "period_key",
    "period_label",
    "reconcile",
    "resolve_billing_fields",
    "ticket_amount",
    "validate_inputs",
]
