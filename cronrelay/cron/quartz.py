"""
Parser for the engine-native (Quartz) cron dialect.

Field order: seconds minutes hours day-of-month month day-of-week [year].
Exactly one of day-of-month / day-of-week must be '?'. Supported tokens are
'*', numbers, names (JAN-DEC, SUN-SAT), ranges (wrap-around allowed, e.g.
FRI-MON), lists, '/' increments, 'L' in day-of-month and 'n#k' in
day-of-week. Day-of-week numbers run 1 (SUN) to 7 (SAT).
"""
from __future__ import annotations

import calendar
from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple


class QuartzCronParseError(ValueError):
    """Raised when an expression breaks a Quartz dialect rule."""


@dataclass(frozen=True)
class _Field:
    label: str
    low: int
    high: int
    names: Tuple[str, ...] = ()

    def lookup(self, token: str) -> int:
        upper = token.upper()
        if self.names and upper in self.names:
            return self.names.index(upper) + self.low
        if not token.isdigit():
            raise QuartzCronParseError(f"illegal value {token!r} in {self.label} field")
        value = int(token)
        if not self.low <= value <= self.high:
            raise QuartzCronParseError(
                f"{self.label} values must be between {self.low} and {self.high}, got {value}"
            )
        return value

    @property
    def full(self) -> FrozenSet[int]:
        return frozenset(range(self.low, self.high + 1))


SECONDS = _Field("seconds", 0, 59)
MINUTES = _Field("minutes", 0, 59)
HOURS = _Field("hours", 0, 23)
DAY_OF_MONTH = _Field("day-of-month", 1, 31)
MONTH = _Field(
    "month", 1, 12,
    ("JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"),
)
DAY_OF_WEEK = _Field("day-of-week", 1, 7, ("SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT"))
YEAR = _Field("year", 1970, 2099)

_MAX_DAYS = {1: 31, 2: 29, 3: 31, 4: 30, 5: 31, 6: 30, 7: 31, 8: 31, 9: 30, 10: 31, 11: 30, 12: 31}


@dataclass(frozen=True)
class QuartzCron:
    """A validated engine-native expression expanded into value sets."""

    expression: str
    seconds: FrozenSet[int]
    minutes: FrozenSet[int]
    hours: FrozenSet[int]
    months: FrozenSet[int]
    days_of_month: Optional[FrozenSet[int]] = None  # None when '?' or 'L'
    last_day_of_month: bool = False
    days_of_week: Optional[FrozenSet[int]] = None  # None when '?' or 'n#k'
    nth_day_of_week: Optional[Tuple[int, int]] = None
    years: Optional[FrozenSet[int]] = None  # None means every year

    @property
    def day_of_month_unspecified(self) -> bool:
        return self.days_of_month is None and not self.last_day_of_month

    @property
    def day_of_week_unspecified(self) -> bool:
        return self.days_of_week is None and self.nth_day_of_week is None

    def to_croniter(self) -> str:
        """
        Render as a croniter expression: minute hour dom month dow second.
        croniter counts weekdays 0 (SUN) to 6 (SAT).
        """
        if self.last_day_of_month:
            dom = "L"
        elif self.days_of_month is None:
            dom = "*"
        else:
            dom = _render(self.days_of_month, DAY_OF_MONTH)

        if self.nth_day_of_week is not None:
            day, nth = self.nth_day_of_week
            dow = f"{day - 1}#{nth}"
        elif self.days_of_week is None or self.days_of_week == DAY_OF_WEEK.full:
            dow = "*"
        else:
            dow = ",".join(str(d - 1) for d in sorted(self.days_of_week))

        return " ".join([
            _render(self.minutes, MINUTES),
            _render(self.hours, HOURS),
            dom,
            _render(self.months, MONTH),
            dow,
            _render(self.seconds, SECONDS),
        ])


def _render(values: FrozenSet[int], field: _Field) -> str:
    if values == field.full:
        return "*"
    return ",".join(str(v) for v in sorted(values))


def _expand(text: str, field: _Field) -> FrozenSet[int]:
    values: set[int] = set()
    for part in text.split(","):
        if not part:
            raise QuartzCronParseError(f"empty list item in {field.label} field")
        step = 1
        base = part
        if "/" in part:
            base, _, step_text = part.partition("/")
            if not step_text.isdigit() or int(step_text) == 0:
                raise QuartzCronParseError(f"bad increment {step_text!r} in {field.label} field")
            step = int(step_text)
            if step > field.high:
                raise QuartzCronParseError(
                    f"increment {step} exceeds {field.high} in {field.label} field"
                )
            if not base:
                raise QuartzCronParseError(f"missing start before '/' in {field.label} field")

        if base == "*":
            start, end = field.low, field.high
        elif "-" in base:
            first, _, last = base.partition("-")
            if not first or not last:
                raise QuartzCronParseError(f"bad range {base!r} in {field.label} field")
            start, end = field.lookup(first), field.lookup(last)
        else:
            start = field.lookup(base)
            # "5/15" means every 15 starting at 5
            end = field.high if "/" in part else start

        if start <= end:
            sequence = list(range(start, end + 1))
        else:
            sequence = list(range(start, field.high + 1)) + list(range(field.low, end + 1))
        values.update(sequence[::step])
    return frozenset(values)


def _leap_year_possible(years: Optional[FrozenSet[int]]) -> bool:
    if years is None:
        return True
    return any(calendar.isleap(y) for y in years)


def _check_calendar(days: FrozenSet[int], months: FrozenSet[int], years: Optional[FrozenSet[int]]) -> None:
    for month in months:
        longest = _MAX_DAYS[month]
        if month == 2 and not _leap_year_possible(years):
            longest = 28
        if min(days) <= longest:
            return
    raise QuartzCronParseError(
        "day-of-month {} never occurs in month(s) {}".format(
            ",".join(map(str, sorted(days))), ",".join(map(str, sorted(months)))
        )
    )


def parse_quartz(expression: str) -> QuartzCron:
    if not isinstance(expression, str):
        raise QuartzCronParseError("expression must be a string")
    fields = expression.split()
    if len(fields) not in (6, 7):
        raise QuartzCronParseError(f"expected 6 or 7 fields, got {len(fields)}")

    sec_f, min_f, hour_f, dom_f, month_f, dow_f = fields[:6]
    for label, value in (("seconds", sec_f), ("minutes", min_f), ("hours", hour_f), ("month", month_f)):
        if "?" in value:
            raise QuartzCronParseError(
                f"'?' can only be specified for day-of-month or day-of-week, not {label}"
            )
    if len(fields) == 7 and "?" in fields[6]:
        raise QuartzCronParseError("'?' can only be specified for day-of-month or day-of-week, not year")

    dom_unspecified = dom_f == "?"
    dow_unspecified = dow_f == "?"
    if dom_unspecified and dow_unspecified:
        raise QuartzCronParseError("'?' can only be specified for day-of-month -OR- day-of-week")
    if not dom_unspecified and not dow_unspecified:
        raise QuartzCronParseError(
            "specifying both a day-of-week AND a day-of-month parameter is not supported"
        )

    years = _expand(fields[6], YEAR) if len(fields) == 7 and fields[6] != "*" else None
    months = _expand(month_f, MONTH)

    days_of_month = None
    last_day = False
    if not dom_unspecified:
        if dom_f.upper() == "L":
            last_day = True
        elif "W" in dom_f.upper() or "L" in dom_f.upper():
            raise QuartzCronParseError(f"day-of-month modifier in {dom_f!r} is not supported")
        else:
            days_of_month = _expand(dom_f, DAY_OF_MONTH)
            _check_calendar(days_of_month, months, years)

    days_of_week = None
    nth = None
    if not dow_unspecified:
        if "#" in dow_f:
            day_text, _, nth_text = dow_f.partition("#")
            day = DAY_OF_WEEK.lookup(day_text)
            if not nth_text.isdigit() or not 1 <= int(nth_text) <= 5:
                raise QuartzCronParseError("the value following '#' must be between 1 and 5")
            nth = (day, int(nth_text))
        elif "L" in dow_f.upper():
            raise QuartzCronParseError(f"day-of-week modifier in {dow_f!r} is not supported")
        else:
            days_of_week = _expand(dow_f, DAY_OF_WEEK)

    return QuartzCron(
        expression=expression,
        seconds=_expand(sec_f, SECONDS),
        minutes=_expand(min_f, MINUTES),
        hours=_expand(hour_f, HOURS),
        months=months,
        days_of_month=days_of_month,
        last_day_of_month=last_day,
        days_of_week=days_of_week,
        nth_day_of_week=nth,
        years=years,
    )
