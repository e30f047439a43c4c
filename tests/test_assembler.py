"""Tests for building base tickets from time entries."""

from datetime import date
from decimal import Decimal

from ticket_tool.engine.assembler import assemble, rates_for, ticket_id
from ticket_tool.models import DEFAULT_RATES, Customer, Employee, Project, RateType, TimeEntry


CUSTOMER = Customer(id="C1", name="Acme Energy")
PROJECT = Project(id="P1", name="Compressor Retrofit", customer_id="C1")


def _make_entry(entry_id="E1", day=date(2026, 2, 10), hours="4", employee_id="U1",
                rate_type=RateType.SHOP_TIME, project=PROJECT, **fields) -> TimeEntry:
    return TimeEntry(
        id=entry_id,
        date=day,
        hours=Decimal(hours),
        employee_id=employee_id,
        rate_type=rate_type,
        project=project,
        **fields,
    )


def _make_employee(employee_id="U1", **fields) -> Employee:
    defaults = dict(first_name="Jane", last_name="Doe", email="jane@example.com")
    defaults.update(fields)
    return Employee(id=employee_id, **defaults)


class TestAssemble:
    def test_same_day_customer_employee_is_one_ticket(self):
        entries = [
            _make_entry("E1", hours="4"),
            _make_entry("E2", hours="2", rate_type=RateType.TRAVEL_TIME),
            _make_entry("E3", hours="1.5"),
        ]
        tickets = assemble(entries, [_make_employee()], [CUSTOMER])

        assert len(tickets) == 1
        t = tickets[0]
        assert t.id == "2026-02-10-C1-U1"
        assert t.customer_name == "Acme Energy"
        assert t.employee_name == "Jane Doe"
        assert t.employee_initials == "JD"
        assert t.hours_by_rate_type[RateType.SHOP_TIME] == Decimal("5.5")
        assert t.hours_by_rate_type[RateType.TRAVEL_TIME] == Decimal("2")
        assert t.hours_by_rate_type[RateType.FIELD_TIME] == Decimal("0")
        assert t.total_hours == Decimal("7.5")
        assert [e.id for e in t.entries] == ["E1", "E2", "E3"]

    def test_splits_by_employee_and_date(self):
        entries = [
            _make_entry("E1"),
            _make_entry("E2", employee_id="U2"),
            _make_entry("E3", day=date(2026, 2, 11)),
        ]
        tickets = assemble(entries, [_make_employee(), _make_employee("U2", first_name="Sam")], [CUSTOMER])
        assert len(tickets) == 3

    def test_newest_date_first(self):
        entries = [
            _make_entry("E1", day=date(2026, 2, 9)),
            _make_entry("E2", day=date(2026, 2, 11)),
            _make_entry("E3", day=date(2026, 2, 10)),
        ]
        tickets = assemble(entries, [_make_employee()], [CUSTOMER])
        assert [t.date for t in tickets] == [date(2026, 2, 11), date(2026, 2, 10), date(2026, 2, 9)]

    def test_entry_without_project_is_unassigned(self):
        tickets = assemble([_make_entry(project=None)], [_make_employee()])
        assert tickets[0].customer_id == "unassigned"
        assert tickets[0].customer_name == "Unassigned Client"
        assert tickets[0].id == "2026-02-10-unassigned-U1"

    def test_embedded_customer_wins_over_lookup(self):
        embedded = Customer(id="C9", name="Embedded Co")
        project = Project(id="P9", name="Other", customer_id="C1", customer=embedded)
        tickets = assemble([_make_entry(project=project)], [_make_employee()], [CUSTOMER])
        assert tickets[0].customer_id == "C9"
        assert tickets[0].customer_name == "Embedded Co"

    def test_unknown_customer_id_is_unassigned(self):
        project = Project(id="P2", name="Orphan", customer_id="missing")
        tickets = assemble([_make_entry(project=project)], [_make_employee()], [CUSTOMER])
        assert tickets[0].customer_id == "unassigned"

    def test_panel_shop_excluded(self):
        entries = [_make_entry("E1"), _make_entry("E2", employee_id="U2")]
        employees = [_make_employee(), _make_employee("U2", department="Panel Shop")]
        tickets = assemble(entries, employees, [CUSTOMER])
        assert [t.employee_id for t in tickets] == ["U1"]

    def test_unknown_employee_fallbacks(self):
        tickets = assemble([_make_entry(employee_id="ghost")], [], [CUSTOMER])
        assert tickets[0].employee_name == "Unknown"
        assert tickets[0].employee_initials == "XX"
        assert tickets[0].rates == DEFAULT_RATES

    def test_fold_overtime(self):
        entries = [
            _make_entry("E1", hours="8"),
            _make_entry("E2", hours="2", rate_type=RateType.SHOP_OVERTIME),
            _make_entry("E3", hours="3", rate_type=RateType.FIELD_OVERTIME),
        ]
        tickets = assemble(entries, [_make_employee()], [CUSTOMER], fold_overtime=True)
        hours = tickets[0].hours_by_rate_type
        assert hours[RateType.SHOP_TIME] == Decimal("10")
        assert hours[RateType.FIELD_TIME] == Decimal("3")
        assert hours[RateType.SHOP_OVERTIME] == Decimal("0")
        assert hours[RateType.FIELD_OVERTIME] == Decimal("0")

    def test_empty_input(self):
        assert assemble([]) == []

    def test_ticket_id_format(self):
        assert ticket_id(date(2026, 2, 10), "C1", "U1") == "2026-02-10-C1-U1"

    def test_non_finite_hours_count_as_zero(self):
        entries = [_make_entry("E1", hours="4"), _make_entry("E2", hours="NaN")]
        tickets = assemble(entries, [_make_employee()], [CUSTOMER])
        assert tickets[0].total_hours == Decimal("4")
        assert len(tickets[0].entries) == 2


class TestRates:
    def test_defaults_without_employee(self):
        assert rates_for(None, None) == DEFAULT_RATES

    def test_employee_rates(self):
        employee = _make_employee(rt_rate=Decimal("120"))
        rates = rates_for(employee, None)
        assert rates.rt == Decimal("120")
        assert rates.tt == Decimal("85")

    def test_project_junior_override(self):
        project = Project(id="P1", name="X", shop_junior_rate=Decimal("95"), shop_senior_rate=Decimal("130"))
        assert rates_for(_make_employee(), project).rt == Decimal("95")

    def test_project_senior_override(self):
        project = Project(
            id="P1", name="X",
            shop_junior_rate=Decimal("95"), shop_senior_rate=Decimal("130"),
            ft_senior_rate=Decimal("175"), travel_rate=Decimal("70"),
        )
        rates = rates_for(_make_employee(position="Senior"), project)
        assert rates.rt == Decimal("130")
        assert rates.ft == Decimal("175")
        assert rates.tt == Decimal("70")
        assert rates.shop_ot == Decimal("165")

