"""Breakdown and totals for invoice groups.

All monetary calculations use Decimal. Amounts are only rounded to cents
when summed, never per hour line, so rounding cannot compound.
"""

from __future__ import annotations

import re
from collections import defaultdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Mapping, Optional, Sequence

from ticket_tool.config import NO_PO_AFE_LABEL
from ticket_tool.models import (
    Expense,
    GroupBreakdown,
    InvoiceGroup,
    LineItem,
    ReconciledTicket,
    Regime,
    StrictValidationError,
)

CENT = Decimal("0.01")

_TICKET_NUMBER = re.compile(r"^(.*?)(\d{3,})$")

ExpensesByTicket = Mapping[str, Sequence[Expense]]


def to_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, ROUND_HALF_UP)


def expense_key(ticket: ReconciledTicket) -> str:
    """Key under which a ticket's expenses are looked up."""
    return ticket.record_id or ticket.id


def ticket_amount(ticket: ReconciledTicket, expenses: Sequence[Expense] = ()) -> Decimal:
    """Unrounded labor plus expense amount for one ticket."""
    labor = sum(
        (hours * ticket.rates.rate_for(rate_type) for rate_type, hours in ticket.hours_by_rate_type.items()),
        Decimal("0"),
    )
    return labor + sum((e.amount for e in expenses), Decimal("0"))


def split_ticket_number(ticket_number: str) -> tuple[str, int]:
    """Prefix and trailing number of a ticket number (DB_25001 -> ("DB_", 25001)).

    The number is the trailing run of at least three digits; the prefix may
    be empty. Anything else splits as (ticket_number, 0).
    """
    m = _TICKET_NUMBER.match(ticket_number)
    return (m.group(1), int(m.group(2))) if m else (ticket_number, 0)


def compress_ticket_numbers(ticket_numbers: Sequence[str]) -> str:
    """Collapse consecutive ticket numbers into ranges.

    ["DB_25001", "DB_25002", "DB_25003", "DB_25005"] -> "DB_25001 - DB_25003, DB_25005"
    """
    parsed = []
    for tn in ticket_numbers:
        if not tn:
            continue
        prefix, number = split_ticket_number(tn)
        parsed.append((prefix, number, tn))
    parsed.sort(key=lambda p: (p[0], p[1]))

    parts: list[str] = []
    i = 0
    while i < len(parsed):
        start = i
        while (
            i + 1 < len(parsed)
            and parsed[i + 1][0] == parsed[i][0]
            and parsed[i + 1][1] == parsed[i][1] + 1
        ):
            i += 1
        if i > start:
            parts.append(f"{parsed[start][2]} - {parsed[i][2]}")
        else:
            parts.append(parsed[i][2])
        i += 1
    return ", ".join(parts)


def _ticket_numbers(tickets: Sequence[ReconciledTicket]) -> tuple[str, ...]:
    return tuple(t.ticket_number for t in tickets if t.ticket_number)


def group_total(
    tickets: Sequence[ReconciledTicket],
    expenses_by_ticket: Optional[ExpensesByTicket] = None,
) -> Decimal:
    """Rounded sum of all ticket amounts, computed independently of line items."""
    expenses_by_ticket = expenses_by_ticket or {}
    return to_cents(sum(
        (ticket_amount(t, expenses_by_ticket.get(expense_key(t), ())) for t in tickets),
        Decimal("0"),
    ))


def _po_afe_buckets(tickets: Sequence[ReconciledTicket]) -> list[tuple[str, list[ReconciledTicket]]]:
    buckets: dict[str, list[ReconciledTicket]] = defaultdict(list)
    for ticket in tickets:
        buckets[ticket.billing.po_afe.strip()].append(ticket)
    # blank PO/AFE always goes last
    return sorted(buckets.items(), key=lambda kv: (kv[0] == "", kv[0]))


def breakdown(
    group: InvoiceGroup,
    expenses_by_ticket: Optional[ExpensesByTicket] = None,
) -> GroupBreakdown:
    """Line items and grand total for one invoice group.

    Approver-driven groups get one line per PO/AFE. Subtotals are taken as
    differences of the running rounded total, so they always add up to the
    rounded group total.
    """
    expenses_by_ticket = expenses_by_ticket or {}
    expected_total = group_total(group.tickets, expenses_by_ticket)

    if group.regime is not Regime.APPROVER:
        numbers = _ticket_numbers(group.tickets)
        item = LineItem(
            label=group.period_label,
            po_afe="",
            ticket_numbers=numbers,
            ticket_list=compress_ticket_numbers(numbers),
            subtotal=expected_total,
        )
        return GroupBreakdown(group_id=group.group_id, line_items=(item,), group_total=expected_total)

    items: list[LineItem] = []
    running = Decimal("0")
    booked = Decimal("0")
    for po_afe, tickets in _po_afe_buckets(group.tickets):
        running += sum(
            (ticket_amount(t, expenses_by_ticket.get(expense_key(t), ())) for t in tickets),
            Decimal("0"),
        )
        subtotal = to_cents(running) - booked
        booked += subtotal
        numbers = _ticket_numbers(tickets)
        items.append(LineItem(
            label=po_afe or NO_PO_AFE_LABEL,
            po_afe=po_afe,
            ticket_numbers=numbers,
            ticket_list=compress_ticket_numbers(numbers),
            subtotal=subtotal,
        ))

    # --- Final reconciliation ---
    line_sum = sum((item.subtotal for item in items), Decimal("0"))
    if line_sum != expected_total:
        raise StrictValidationError([
            f"Group {group.group_id}: line items sum to {line_sum}, tickets sum to {expected_total}"
        ])

    return GroupBreakdown(group_id=group.group_id, line_items=tuple(items), group_total=line_sum)
