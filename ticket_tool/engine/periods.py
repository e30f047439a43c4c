"""Calendar periods used to file tickets into invoices.

Keys:
- daily:     ``YYYY-MM-DD``
- weekly:    Monday of the ISO week, ``YYYY-MM-DD``
- bi-weekly: ``YYYY-B##``, counted in 14-day spans from the year's first Monday
- monthly:   ``YYYY-MM``

Labels are derived from keys alone, so a group can be labelled without
keeping one of its dates around.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Union

from ticket_tool.models import GroupingMode

DateLike = Union[date, str]


def _as_date(value: DateLike) -> date:
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    return value


def _as_mode(mode: Union[GroupingMode, str]) -> GroupingMode:
    return mode if isinstance(mode, GroupingMode) else GroupingMode(mode)


def monday_of(d: date) -> date:
    return d - timedelta(days=d.weekday())


def first_monday(year: int) -> date:
    """First Monday on or after Jan 1."""
    jan1 = date(year, 1, 1)
    dow = jan1.isoweekday() % 7  # Sunday=0 ... Saturday=6
    if dow == 0:
        return date(year, 1, 2)
    if dow == 1:
        return jan1
    return date(year, 1, 9 - dow)


def biweek_number(d: date) -> int:
    days = (monday_of(d) - first_monday(d.year)).days
    week = days // 7 + 1
    return -(-week // 2)


def biweek_span(year: int, biweek: int) -> tuple[date, date]:
    start = first_monday(year) + timedelta(days=(biweek - 1) * 14)
    return start, start + timedelta(days=13)


def period_key(value: DateLike, mode: Union[GroupingMode, str]) -> str:
    d = _as_date(value)
    mode = _as_mode(mode)

    if mode is GroupingMode.DAILY:
        return d.isoformat()
    if mode is GroupingMode.WEEKLY:
        return monday_of(d).isoformat()
    if mode is GroupingMode.MONTHLY:
        return f"{d.year:04d}-{d.month:02d}"
    return f"{d.year:04d}-B{biweek_number(d):02d}"


def period_label(key: str, mode: Union[GroupingMode, str]) -> str:
    mode = _as_mode(mode)

    if mode is GroupingMode.DAILY:
        return key
    if mode is GroupingMode.WEEKLY:
        return f"Week of {key}"
    if mode is GroupingMode.MONTHLY:
        year, month = key.split("-")
        return f"{calendar.month_name[int(month)]} {int(year)}"

    year, biweek = key.split("-B")
    start, end = biweek_span(int(year), int(biweek))
    return f"{start.strftime('%d-%m-%Y')} to {end.strftime('%d-%m-%Y')}"
