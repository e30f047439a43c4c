"""Invoice grouping under the two customer regimes.

Approver-driven customers are invoiced per (project, approver code, period),
bi-weekly by default. Everyone else is invoiced per (project, period),
monthly by default, with the customer id added to the key when the pass
spans more than one customer.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Iterable, Optional, Sequence

from ticket_tool import config
from ticket_tool.engine.calculator import split_ticket_number
from ticket_tool.engine.periods import period_key, period_label
from ticket_tool.models import (
    Customer,
    GroupingMode,
    GroupingResult,
    IncompleteTicket,
    InvoiceGroup,
    ReconciledTicket,
    Regime,
)

logger = logging.getLogger(__name__)

RegimeOf = Callable[[ReconciledTicket], Regime]
PeriodModeOf = Callable[[ReconciledTicket], Optional[GroupingMode]]

MISSING_APPROVER_REASON = "No approver code or PO/AFE on ticket, project or customer"


def ticket_number_suffix(ticket_number: Optional[str]) -> int:
    """Trailing run of at least three digits (DB_25001 -> 25001), else 0."""
    if not ticket_number:
        return 0
    return split_ticket_number(ticket_number)[1]


def regime_from_customers(customers: Iterable[Customer]) -> RegimeOf:
    by_id = {c.id: c.regime for c in customers}

    def regime_of(ticket: ReconciledTicket) -> Regime:
        if ticket.customer is not None:
            return ticket.customer.regime
        return by_id.get(ticket.customer_id, Regime.PERIOD)

    return regime_of


def mode_from_customers(customers: Iterable[Customer]) -> PeriodModeOf:
    by_id = {c.id: c.grouping_mode for c in customers}

    def mode_of(ticket: ReconciledTicket) -> Optional[GroupingMode]:
        if ticket.customer is not None and ticket.customer.grouping_mode is not None:
            return ticket.customer.grouping_mode
        return by_id.get(ticket.customer_id)

    return mode_of


def _default_mode(regime: Regime) -> GroupingMode:
    return config.APPROVER_PERIOD_MODE if regime is Regime.APPROVER else config.PERIOD_MODE


def _approver_ticket_sort_key(ticket: ReconciledTicket):
    return (ticket.billing.po_afe, ticket.employee_name, ticket_number_suffix(ticket.ticket_number))


def _period_ticket_sort_key(ticket: ReconciledTicket):
    return (ticket.date, ticket.employee_name, ticket_number_suffix(ticket.ticket_number))


def _ticket_identity(ticket: ReconciledTicket) -> str:
    return ticket.record_id or ticket.id


def _make_group(
    group_id: str,
    regime: Regime,
    mode: GroupingMode,
    key: tuple[str, ...],
    pkey: str,
    tickets: list[ReconciledTicket],
    approver_code: Optional[str] = None,
) -> InvoiceGroup:
    first = tickets[0]
    return InvoiceGroup(
        group_id=group_id,
        regime=regime,
        mode=mode,
        key=key,
        period_key=pkey,
        period_label=period_label(pkey, mode),
        tickets=tuple(tickets),
        project_id=first.project_id,
        project_name=first.project_name,
        project_number=first.project_number,
        customer_id=first.customer_id,
        customer_name=first.customer_name,
        approver_code=approver_code,
    )


def group_approver_driven(
    tickets: Sequence[ReconciledTicket],
    mode_of: PeriodModeOf,
) -> tuple[list[InvoiceGroup], list[IncompleteTicket]]:
    buckets: dict[tuple[str, str, str], list[ReconciledTicket]] = defaultdict(list)
    modes: dict[tuple[str, str, str], GroupingMode] = {}
    incomplete: list[IncompleteTicket] = []

    for ticket in tickets:
        code = ticket.billing.approver_code
        if not code:
            logger.warning(
                "Ticket %s (%s) excluded from invoicing: %s",
                ticket.ticket_number, ticket.id, MISSING_APPROVER_REASON,
            )
            incomplete.append(IncompleteTicket(ticket=ticket, reason=MISSING_APPROVER_REASON))
            continue
        mode = mode_of(ticket) or _default_mode(Regime.APPROVER)
        key = (ticket.project_id or "", code, period_key(ticket.date, mode))
        buckets[key].append(ticket)
        modes.setdefault(key, mode)

    groups = []
    for key in sorted(buckets, key=lambda k: (k[1], k[2], k[0])):
        project_id, code, pkey = key
        members = sorted(buckets[key], key=_approver_ticket_sort_key)
        groups.append(_make_group(
            group_id=f"{project_id}|{code}|{pkey}",
            regime=Regime.APPROVER,
            mode=modes[key],
            key=key,
            pkey=pkey,
            tickets=members,
            approver_code=code,
        ))
    return groups, incomplete


def group_period_driven(
    tickets: Sequence[ReconciledTicket],
    mode_of: PeriodModeOf,
    single_customer: Optional[bool] = None,
) -> list[InvoiceGroup]:
    if single_customer is None:
        single_customer = len({t.customer_id for t in tickets}) <= 1

    buckets: dict[tuple[str, ...], list[ReconciledTicket]] = defaultdict(list)
    modes: dict[tuple[str, ...], GroupingMode] = {}

    for ticket in tickets:
        mode = mode_of(ticket) or _default_mode(Regime.PERIOD)
        pkey = period_key(ticket.date, mode)
        if single_customer:
            key: tuple[str, ...] = (ticket.project_id or "", pkey)
        else:
            key = (ticket.customer_id, ticket.project_id or "", pkey)
        buckets[key].append(ticket)
        modes.setdefault(key, mode)

    groups = []
    for key in sorted(buckets, key="|".join):
        members = sorted(buckets[key], key=_period_ticket_sort_key)
        if single_customer:
            group_id = "|".join(key)
        else:
            group_id = ",".join(sorted(_ticket_identity(t) for t in members))
        groups.append(_make_group(
            group_id=group_id,
            regime=Regime.PERIOD,
            mode=modes[key],
            key=key,
            pkey=key[-1],
            tickets=members,
        ))
    return groups


def group_tickets(
    tickets: Sequence[ReconciledTicket],
    regime_of: RegimeOf,
    mode_of: Optional[PeriodModeOf] = None,
    single_customer: Optional[bool] = None,
) -> GroupingResult:
    """Partition reconciled tickets into invoice groups.

    Approver-driven groups come first, then period-driven ones. Tickets
    without an approver code under the approver regime are returned as
    incomplete instead of being grouped.
    """
    mode_of = mode_of or (lambda ticket: None)

    approver_tickets = [t for t in tickets if regime_of(t) is Regime.APPROVER]
    period_tickets = [t for t in tickets if regime_of(t) is not Regime.APPROVER]

    approver_groups, incomplete = group_approver_driven(approver_tickets, mode_of)
    period_groups = group_period_driven(period_tickets, mode_of, single_customer)

    logger.info(
        "Grouped %d ticket(s) into %d group(s), %d incomplete",
        len(tickets), len(approver_groups) + len(period_groups), len(incomplete),
    )
    return GroupingResult(groups=approver_groups + period_groups, incomplete=incomplete)
