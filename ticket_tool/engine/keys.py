"""Grouping and billing keys, and the precedence chain behind them.

Each of approver, PO/AFE, coding (cc) and other is resolved on its own,
highest priority first:

1. entry-level fields on the ticket's first time entry
2. the approved record's header overrides
3. project defaults
4. customer defaults

A blank value counts as absent, so a ticket can take its PO/AFE from the
project while its coding comes from an entry.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from ticket_tool.config import BILLING_KEY_SEPARATOR, GROUPING_SENTINEL
from ticket_tool.models import (
    BillingFields,
    Customer,
    HeaderOverrides,
    Project,
    TimeEntry,
)

BILLING_FIELDS = ("approver", "po_afe", "cc", "other")

# Legacy "approver_po_afe" free text, e.g. "AC: G829 PO: FC250374-9084 CC: 4410"
_LEGACY_PATTERNS = {
    "approver": (re.compile(r"\bAC\s*[:\-]?\s*([^\s,;]+)"), re.compile(r"\b(G\d{3,})", re.IGNORECASE)),
    "po_afe": (re.compile(r"\bPO\s*[:\-]?\s*([A-Za-z0-9\-]+)"), re.compile(r"\b([A-Z]{2,}\d{4,}-\d{4,})")),
    "cc": (re.compile(r"\bCC\s*[:\-]?\s*([^\s,;]+)"),),
}


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_legacy_approver_po_afe(text: Optional[str]) -> dict[str, str]:
    """Split a legacy combined approver/PO/AFE string into its parts."""
    parsed: dict[str, str] = {}
    if not text:
        return parsed
    for name, patterns in _LEGACY_PATTERNS.items():
        for pattern in patterns:
            m = pattern.search(text)
            if m and m.group(1).strip():
                value = m.group(1).strip()
                parsed[name] = value.upper() if name == "approver" else value
                break
    return parsed


def build_grouping_key(po_afe: Optional[str]) -> str:
    return _clean(po_afe) or GROUPING_SENTINEL


def build_billing_key(approver: Optional[str], po_afe: Optional[str], cc: Optional[str]) -> str:
    return BILLING_KEY_SEPARATOR.join((_clean(approver) or "", _clean(po_afe) or "", _clean(cc) or ""))


@dataclass(frozen=True)
class KeySources:
    """Everything a ticket can inherit billing fields from."""
    entry: Optional[TimeEntry] = None
    overrides: Optional[HeaderOverrides] = None
    project: Optional[Project] = None
    customer: Optional[Customer] = None


FieldResolver = Callable[[KeySources, str], Optional[str]]


def from_entry(sources: KeySources, name: str) -> Optional[str]:
    if sources.entry is None:
        return None
    return _clean(getattr(sources.entry, name, None))


def from_overrides(sources: KeySources, name: str) -> Optional[str]:
    if sources.overrides is None:
        return None
    value = _clean(getattr(sources.overrides, name, None))
    if value is None:
        value = _clean(parse_legacy_approver_po_afe(sources.overrides.approver_po_afe).get(name))
    return value


def from_project(sources: KeySources, name: str) -> Optional[str]:
    if sources.project is None:
        return None
    value = _clean(getattr(sources.project, name, None))
    if value is None:
        value = _clean(parse_legacy_approver_po_afe(sources.project.approver_po_afe).get(name))
    return value


def from_customer(sources: KeySources, name: str) -> Optional[str]:
    if sources.customer is None:
        return None
    return _clean(getattr(sources.customer, name, None))


RESOLVERS: tuple[FieldResolver, ...] = (from_entry, from_overrides, from_project, from_customer)


def resolve_field(
    name: str,
    sources: KeySources,
    resolvers: Sequence[FieldResolver] = RESOLVERS,
) -> str:
    """First present value along the chain, or ''."""
    if name not in BILLING_FIELDS:
        raise ValueError(f"Unknown billing field: {name}")
    for resolver in resolvers:
        value = resolver(sources, name)
        if value is not None:
            return value
    return ""


def resolve_billing_fields(
    sources: KeySources,
    resolvers: Sequence[FieldResolver] = RESOLVERS,
) -> BillingFields:
    return BillingFields(**{name: resolve_field(name, sources, resolvers) for name in BILLING_FIELDS})


def record_keys(overrides: Optional[HeaderOverrides]) -> tuple[str, str]:
    """(grouping key, billing key) of a record from its header overrides alone."""
    fields = resolve_billing_fields(KeySources(overrides=overrides), resolvers=(from_overrides,))
    return build_grouping_key(fields.po_afe), build_billing_key(fields.approver, fields.po_afe, fields.cc)


def candidate_keys(
    entry: Optional[TimeEntry],
    project: Optional[Project],
    customer: Optional[Customer],
) -> tuple[str, str]:
    """(grouping key, billing key) of a base ticket, before any record is applied."""
    fields = resolve_billing_fields(KeySources(entry=entry, project=project, customer=customer))
    return build_grouping_key(fields.po_afe), build_billing_key(fields.approver, fields.po_afe, fields.cc)
