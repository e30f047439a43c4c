"""CLI entry point.

Usage:
    python -m ticket_tool \
        --snapshot "tickets.json" \
        --start 2026-02-01 --end 2026-02-28 \
        --markers "invoiced_markers.json" \
        --audit-out "Audit.json" \
        --strict
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

import typer

from ticket_tool import config
from ticket_tool.models import StrictValidationError


def generate(
    snapshot: str = typer.Option(..., "--snapshot", help="Path to JSON snapshot of entries, records and reference data"),
    start: str = typer.Option(..., "--start", help="First date of the range (YYYY-MM-DD)"),
    end: str = typer.Option(..., "--end", help="Last date of the range (YYYY-MM-DD)"),
    markers: str = typer.Option(config.MARKERS_PATH, "--markers", help="JSON file with invoiced group ids"),
    shared_markers: str = typer.Option(None, "--shared-markers", help="Second (shared) marker file, unioned with --markers"),
    mark: Optional[list[str]] = typer.Option(None, "--mark", help="Mark a group id as invoiced"),
    unmark: Optional[list[str]] = typer.Option(None, "--unmark", help="Remove a group id from the invoiced set"),
    audit_out: str = typer.Option(None, "--audit-out", help="Output audit JSON file path"),
    show_invoiced: bool = typer.Option(False, "--show-invoiced", help="Also list groups already marked invoiced"),
    strict: bool = typer.Option(False, "--strict/--no-strict", help="Stop on input data-quality findings"),
    fold_overtime: bool = typer.Option(False, "--fold-overtime", help="Book overtime hours as regular Shop/Field Time"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log engine details"),
) -> None:
    """Reconcile approved tickets and print invoice groups with line items."""
    from ticket_tool.audit import generate_audit
    from ticket_tool.markers import JsonFileMarkerStore, UnionMarkerStore
    from ticket_tool.pipeline import run_invoicing
    from ticket_tool.snapshot import load_snapshot

    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        start_date = date.fromisoformat(start)
        end_date = date.fromisoformat(end)
    except ValueError as e:
        typer.echo(f"ERROR: Invalid date: {e}", err=True)
        raise typer.Exit(1)

    stores = [JsonFileMarkerStore(markers)]
    if shared_markers:
        stores.append(JsonFileMarkerStore(shared_markers))
    store = UnionMarkerStore(stores)

    for group_id in mark or []:
        store.mark(group_id)
        typer.echo(f"Marked invoiced: {group_id}")
    for group_id in unmark or []:
        store.unmark(group_id)
        typer.echo(f"Unmarked: {group_id}")

    try:
        typer.echo(f"Loading snapshot: {snapshot}")
        data = load_snapshot(snapshot)
        typer.echo(f"  {len(data.entries)} entries, {len(data.records)} records")
        typer.echo(f"Date range: {start_date} to {end_date}")
        typer.echo(f"Strict mode: {strict}")
        typer.echo("")

        run = run_invoicing(
            data, start_date, end_date,
            expense_source=data,
            marker_store=store,
            strict=strict,
            fold_overtime=fold_overtime,
        )

        for issue in run.issues:
            typer.echo(f"WARNING: {issue}", err=True)

        groups = run.groups if show_invoiced else run.pending
        invoiced_ids = {g.group_id for g in run.invoiced}
        for group in groups:
            group_breakdown = run.breakdowns[group.group_id]
            marker = " [INVOICED]" if group.group_id in invoiced_ids else ""
            typer.echo(f"Group {group.group_id}{marker}")
            typer.echo(f"  Customer: {group.customer_name}  Project: {group.project_name or group.project_id or '(none)'}")
            typer.echo(f"  Period:   {group.period_label}")
            for item in group_breakdown.line_items:
                typer.echo(f"    {item.ticket_list}; {item.label}: ${item.subtotal}")
            typer.echo(f"  TOTAL: ${group_breakdown.group_total}")
            typer.echo("")

        if run.incomplete:
            typer.echo(f"INCOMPLETE ({len(run.incomplete)} ticket(s) not invoiced):", err=True)
            for item in run.incomplete:
                typer.echo(f"  {item.ticket.ticket_number} {item.ticket.date} {item.ticket.customer_name}: {item.reason}", err=True)

        for ticket in run.unresolved:
            typer.echo(f"WARNING: {ticket.ticket_number} has unresolved references: {', '.join(ticket.unresolved)}", err=True)

        if audit_out:
            generate_audit(run, audit_out)
            typer.echo(f"Audit file saved to: {audit_out}")

        typer.echo(f"\n{len(run.pending)} pending group(s), {len(run.invoiced)} invoiced.")

    except StrictValidationError as e:
        typer.echo(f"\nSTRICT VALIDATION FAILED:", err=True)
        for error in e.errors:
            typer.echo(f"  ERROR: {error}", err=True)
        raise typer.Exit(1)

    except Exception as e:
        typer.echo(f"\nFATAL ERROR: {e}", err=True)
        raise typer.Exit(1)


def main() -> None:
    typer.run(generate)


if __name__ == "__main__":
    main()
