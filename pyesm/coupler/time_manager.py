from __future__ import annotations

"""
Calendar bookkeeping and periodic callbacks for the coupling loop.

- CouplerDates keeps the start date, the current date and the first day of the
  next month (date1) with a new_month flag.
- HourlyCallback / MonthlyCallback fire a function once the current date
  reaches the next scheduled date; trigger_callback advances the schedule past
  the current date, so a callback fires at most once per coupling step.
- resync_callbacks re-anchors every schedule on the current date after a
  restart.
"""

import calendar
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from .field_exchanger import global_mean_fields


def add_months(date: datetime, n: int) -> datetime:
    month0 = date.month - 1 + int(n)
    year = date.year + month0 // 12
    month = month0 % 12 + 1
    day = min(date.day, calendar.monthrange(year, month)[1])
    return date.replace(year=year, month=month, day=day)


def first_day_of_next_month(date: datetime) -> datetime:
    return add_months(datetime(date.year, date.month, 1), 1)


@dataclass
class CouplerDates:
    date0: datetime
    date: datetime | None = None
    date1: datetime | None = None
    new_month: bool = False

    def __post_init__(self) -> None:
        if self.date is None:
            self.date = self.date0
        if self.date1 is None:
            self.date1 = first_day_of_next_month(self.date0)


def current_date(cs, t: float) -> datetime:
    return cs.dates.date0 + timedelta(seconds=float(t))


@dataclass
class HourlyCallback:
    dt_hours: float
    func: Callable
    ref_date: datetime
    active: bool = True
    name: str = field(default="")

    def next_date(self) -> datetime:
        return self.ref_date + timedelta(hours=float(self.dt_hours))

    def advance(self) -> None:
        self.ref_date = self.next_date()


@dataclass
class MonthlyCallback:
    dt_months: int
    func: Callable
    ref_date: datetime
    active: bool = True
    name: str = field(default="")

    def next_date(self) -> datetime:
        return add_months(self.ref_date, int(self.dt_months))

    def advance(self) -> None:
        self.ref_date = self.next_date()


def trigger_callback(cs, cb) -> bool:
    """Fire `cb` if its next date has been reached; returns whether it fired."""
    if not cb.active:
        return False
    if cs.dates.date >= cb.next_date():
        cb.func(cs)
        _skip_past(cb, cs.dates.date)
        return True
    return False


def _skip_past(cb, date: datetime) -> None:
    while cb.next_date() <= date:
        cb.advance()


def resync_callbacks(cs) -> None:
    """Drop scheduled dates already reached (callbacks at the current date count as fired)."""
    for cb in cs.callbacks:
        _skip_past(cb, cs.dates.date)


def update_firstdayofmonth(cs) -> None:
    """Mark the start of a new month and schedule the next one."""
    dates = cs.dates
    if cs.diag:
        print(f"[Calendar] {dates.date:%Y-%m-%d %H:%M} start of month {dates.date:%Y-%m}")
    dates.date1 = first_day_of_next_month(dates.date)
    dates.new_month = True


def print_diagnostics(cs) -> None:
    if not cs.diag:
        return
    gm = global_mean_fields(cs)
    print(
        f"[Coupler] {cs.dates.date:%Y-%m-%d %H:%M} t={cs.t:.0f}s "
        f"<T_S>={gm['T_S']:.2f} K <F_turb_energy>={gm['F_turb_energy']:.2f} W/m^2 "
        f"<F_radiative>={gm['F_radiative']:.2f} W/m^2"
    )
