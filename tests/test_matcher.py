"""Tests for matching approved records to base tickets."""

import pytest
from datetime import date
from decimal import Decimal

from ticket_tool.engine.assembler import assemble
from ticket_tool.engine.keys import build_billing_key
from ticket_tool.engine.matcher import (
    apply_edited_hours,
    edited_hour_value,
    find_match,
    reconcile,
)
from ticket_tool.models import (
    AdministrativeRecord,
    Customer,
    Employee,
    HeaderOverrides,
    InvariantViolation,
    Project,
    RateType,
    TimeEntry,
    empty_hours,
)


DAY = date(2026, 2, 10)
CUSTOMER = Customer(id="C1", name="Acme Energy")
PROJECT = Project(id="P1", name="Compressor Retrofit", customer_id="C1")
JANE = Employee(id="U1", first_name="Jane", last_name="Doe")


def _make_entry(entry_id, hours, rate_type=RateType.SHOP_TIME, **fields) -> TimeEntry:
    return TimeEntry(
        id=entry_id,
        date=DAY,
        hours=Decimal(hours),
        employee_id="U1",
        rate_type=rate_type,
        project=PROJECT,
        **fields,
    )


def _make_record(record_id="R1", ticket_number="JD_26001", **fields) -> AdministrativeRecord:
    defaults = dict(date=DAY, employee_id="U1", customer_id="C1", project_id="P1")
    defaults.update(fields)
    return AdministrativeRecord(id=record_id, ticket_number=ticket_number, **defaults)


def _base_tickets(entries=None):
    if entries is None:
        entries = [
            _make_entry("E1", "4"),
            _make_entry("E2", "2", RateType.TRAVEL_TIME),
        ]
    return assemble(entries, [JANE], [CUSTOMER])


def _reconcile(base, records):
    return reconcile(base, records, projects=[PROJECT], customers=[CUSTOMER], employees=[JANE])


class TestScenario:
    def test_header_po_override(self):
        record = _make_record(overrides=HeaderOverrides(po_afe="G123"))
        [ticket] = _reconcile(_base_tickets(), [record])

        assert not ticket.is_standalone
        assert ticket.ticket_number == "JD_26001"
        assert ticket.hours_by_rate_type[RateType.SHOP_TIME] == Decimal("4")
        assert ticket.hours_by_rate_type[RateType.TRAVEL_TIME] == Decimal("2")
        assert ticket.hours_by_rate_type[RateType.FIELD_TIME] == Decimal("0")
        assert ticket.total_hours == Decimal("6")
        billing = ticket.billing
        assert build_billing_key(billing.approver, billing.po_afe, billing.cc) == "::G123::"


class TestMatching:
    def test_each_base_ticket_claimed_once(self):
        base = _base_tickets()
        records = [_make_record("R1", "JD_26001"), _make_record("R2", "JD_26002")]
        result = _reconcile(base, records)

        assert len(result) == 2
        assert result[0].base_ticket_id == base[0].id
        assert result[1].is_standalone
        # no double counting
        matched_hours = sum((t.total_hours for t in result if not t.is_standalone), Decimal("0"))
        assert matched_hours <= sum((b.total_hours for b in base), Decimal("0"))

    def test_billing_key_match(self):
        entries = [_make_entry("E1", "4", approver="G829", po_afe="FC1", cc="44")]
        record = _make_record(overrides=HeaderOverrides(approver="G829", po_afe="FC1", cc="44"))
        assert find_match(record, _base_tickets(entries), set()) is not None

    def test_grouping_key_match(self):
        entries = [_make_entry("E1", "4", po_afe="FC1", cc="44")]
        record = _make_record(overrides=HeaderOverrides(po_afe="FC1", cc="99"))
        assert find_match(record, _base_tickets(entries), set()) is not None

    def test_different_po_afe_does_not_match(self):
        entries = [_make_entry("E1", "4", po_afe="FC1")]
        record = _make_record(overrides=HeaderOverrides(po_afe="FC2"))
        assert find_match(record, _base_tickets(entries), set()) is None

    def test_unset_record_po_afe_matches_any(self):
        entries = [_make_entry("E1", "4", po_afe="FC1")]
        assert find_match(_make_record(), _base_tickets(entries), set()) is not None

    def test_claimed_ticket_skipped(self):
        base = _base_tickets()
        assert find_match(_make_record(), base, {base[0].id}) is None

    @pytest.mark.parametrize("field,value", [
        ("date", date(2026, 2, 11)),
        ("employee_id", "U2"),
        ("customer_id", "C2"),
        ("project_id", "P2"),
    ])
    def test_tuple_mismatch(self, field, value):
        record = _make_record(**{field: value})
        assert find_match(record, _base_tickets(), set()) is None

    def test_null_customer_matches_unassigned(self):
        entries = [TimeEntry(id="E1", date=DAY, hours=Decimal("3"), employee_id="U1")]
        base = assemble(entries, [JANE])
        record = _make_record(customer_id=None, project_id=None)
        assert find_match(record, base, set()) is base[0]

    def test_service_location_fallback(self):
        project = Project(id="P1", name="Compressor Retrofit", customer_id="C1", location="Bay 3")
        lookups = dict(projects=[project], customers=[CUSTOMER], employees=[JANE])

        [ticket] = reconcile(_base_tickets(), [_make_record()], **lookups)
        assert ticket.service_location == "Bay 3"

        record = _make_record(location="North Yard", overrides=HeaderOverrides(service_location="Gate 7"))
        [ticket] = reconcile(_base_tickets(), [record], **lookups)
        assert ticket.service_location == "Gate 7"

    def test_claimed_set_is_per_call(self):
        base = _base_tickets()
        first = _reconcile(base, [_make_record()])
        second = _reconcile(base, [_make_record()])
        assert not first[0].is_standalone
        assert not second[0].is_standalone

    def test_double_claim_raises(self, monkeypatch):
        base = _base_tickets()
        import ticket_tool.engine.matcher as matcher

        monkeypatch.setattr(matcher, "find_match", lambda record, tickets, claimed: base[0])
        with pytest.raises(InvariantViolation):
            _reconcile(base, [_make_record("R1"), _make_record("R2")])


class TestEditedHours:
    def test_edited_hours_replace_and_synthesize(self):
        record = _make_record(edited_hours={"Shop Time": 3, "Field Time": [1.5, 2]})
        [ticket] = _reconcile(_base_tickets(), [record])

        hours = ticket.hours_by_rate_type
        assert hours[RateType.SHOP_TIME] == Decimal("3")
        assert hours[RateType.TRAVEL_TIME] == Decimal("2")
        assert hours[RateType.FIELD_TIME] == Decimal("3.5")
        assert ticket.total_hours == Decimal("8.5")

        ids = sorted(e.id for e in ticket.entries)
        assert ids == ["syn-Field Time", "syn-Shop Time", "syn-Travel Time"]
        assert all(e.description == "Work performed" for e in ticket.entries)

    def test_unknown_rate_type_ignored(self):
        result = apply_edited_hours(empty_hours(), {"Overtime Bonus": 9})
        assert sum(result.values()) == 0

    def test_non_finite_and_missing_are_zero(self):
        assert edited_hour_value(float("nan")) == Decimal("0")
        assert edited_hour_value(float("inf")) == Decimal("0")
        assert edited_hour_value(None) == Decimal("0")
        assert edited_hour_value([1, None, float("nan"), 2.5]) == Decimal("3.5")

    def test_synthetic_entries_keep_entry_billing_fields(self):
        entries = [_make_entry("E1", "4", po_afe="FC1")]
        record = _make_record(edited_hours={"Shop Time": 5})
        [ticket] = _reconcile(_base_tickets(entries), [record])
        assert ticket.entries[0].po_afe == "FC1"
        assert ticket.billing.po_afe == "FC1"


class TestStandalone:
    def test_built_from_record(self):
        record = _make_record(
            edited_hours={"Field Time": 6},
            location="North Yard",
            overrides=HeaderOverrides(po_afe="FC7"),
        )
        [ticket] = _reconcile([], [record])

        assert ticket.is_standalone
        assert ticket.id == "2026-02-10-C1-U1-North Yard"
        assert ticket.customer_name == "Acme Energy"
        assert ticket.employee_name == "Jane Doe"
        assert ticket.hours_by_rate_type[RateType.FIELD_TIME] == Decimal("6")
        assert ticket.billing.po_afe == "FC7"
        assert ticket.service_location == "North Yard"
        assert ticket.unresolved == ()

    def test_total_hours_fallback(self):
        record = _make_record(total_hours=Decimal("7"))
        [ticket] = _reconcile([], [record])
        assert ticket.hours_by_rate_type[RateType.SHOP_TIME] == Decimal("7")

    def test_unresolved_references_reported(self):
        record = _make_record(customer_id="C404", project_id="P404", employee_id="U404")
        [ticket] = reconcile([], [record])

        assert ticket.customer_name == "Unknown Customer"
        assert ticket.employee_name == "Unknown"
        assert ticket.employee_initials == "XX"
        assert set(ticket.unresolved) == {"customer:C404", "project:P404", "employee:U404"}

    def test_null_customer_is_unassigned(self):
        [ticket] = _reconcile([], [_make_record(customer_id=None)])
        assert ticket.customer_id == "unassigned"
        assert ticket.customer_name == "Unknown Customer"
