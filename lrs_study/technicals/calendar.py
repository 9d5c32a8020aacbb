from __future__ import annotations

from datetime import date, timedelta
from functools import lru_cache
from typing import Callable

import pandas as pd
from pandas.tseries.holiday import (
    AbstractHolidayCalendar,
    GoodFriday,
    Holiday,
    USLaborDay,
    USMartinLutherKingJr,
    USMemorialDay,
    USPresidentsDay,
    USThanksgivingDay,
    nearest_workday,
    sunday_to_monday,
)

TradingDayFn = Callable[[date], bool]

# One-off exchange closures that no recurring rule captures.
_SPECIAL_CLOSURES = (
    date(2012, 10, 29),
    date(2012, 10, 30),
    date(2018, 12, 5),
)


class NYSEHolidayCalendar(AbstractHolidayCalendar):
    """US federal holidays as observed by NYSE: Good Friday added, Columbus and Veterans Day removed."""

    rules = [
        Holiday("New Year's Day", month=1, day=1, observance=sunday_to_monday),
        USMartinLutherKingJr,
        USPresidentsDay,
        GoodFriday,
        USMemorialDay,
        Holiday("Juneteenth", month=6, day=19, start_date="2022-01-01", observance=nearest_workday),
        Holiday("Independence Day", month=7, day=4, observance=nearest_workday),
        USLaborDay,
        USThanksgivingDay,
        Holiday("Christmas Day", month=12, day=25, observance=nearest_workday),
    ]


@lru_cache(maxsize=64)
def _holidays_for_year(year: int) -> frozenset[date]:
    days = NYSEHolidayCalendar().holidays(start=f"{year}-01-01", end=f"{year}-12-31")
    return frozenset(pd.Timestamp(d).date() for d in days) | frozenset(
        d for d in _SPECIAL_CLOSURES if d.year == year
    )


def weekday_trading_day(day: date) -> bool:
    return day.weekday() < 5


def nyse_trading_day(day: date) -> bool:
    return weekday_trading_day(day) and day not in _holidays_for_year(day.year)


def get_trading_day_fn(kind: str) -> TradingDayFn:
    kind = kind.strip().lower()
    if kind == "nyse":
        return nyse_trading_day
    if kind == "weekdays":
        return weekday_trading_day
    raise ValueError(f"Unknown trading calendar: {kind}")


def project_trading_dates(last_date: date, count: int, is_trading_day: TradingDayFn) -> list[date]:
    """The next `count` trading dates strictly after `last_date`."""
    out: list[date] = []
    day = last_date
    # At most ~10 calendar days scanned per requested trading day.
    for _ in range(max(0, int(count)) * 10 + 14):
        if len(out) >= count:
            break
        day = day + timedelta(days=1)
        if is_trading_day(day):
            out.append(day)
    return out
