"""ISO calendar week keys for the weekly utilization series."""

from __future__ import annotations

import re
from datetime import date, timedelta
from typing import NamedTuple

_LABEL_RE = re.compile(r"^\s*(\d{2}|\d{4})\s*/\s*(\d{1,2})\s*$")


class IsoWeek(NamedTuple):
    year: int
    week: int

    @classmethod
    def from_date(cls, value: date) -> IsoWeek:
        iso = value.isocalendar()
        return cls(iso[0], iso[1])

    @classmethod
    def parse(cls, label: str) -> IsoWeek:
        """Parse ``YY/WW`` (e.g. ``25/12``) or ``YYYY/WW`` week labels."""
        match = _LABEL_RE.match(label)
        if match is None:
            raise ValueError(f"Invalid week label: {label!r}")
        year = int(match.group(1))
        if year < 100:
            year += 2000
        week = int(match.group(2))
        # Raises ValueError for weeks the ISO year does not have (e.g. 53).
        date.fromisocalendar(year, week, 1)
        return cls(year, week)

    @property
    def monday(self) -> date:
        return date.fromisocalendar(self.year, self.week, 1)

    def shift(self, weeks: int) -> IsoWeek:
        return IsoWeek.from_date(self.monday + timedelta(weeks=weeks))

    @property
    def label(self) -> str:
        return f"{self.year % 100:02d}/{self.week:02d}"


def trailing_weeks(current: IsoWeek, count: int) -> list[IsoWeek]:
    """The ``count`` completed weeks before ``current``, oldest first."""
    return [current.shift(-offset) for offset in range(count, 0, -1)]


def leading_weeks(current: IsoWeek, count: int) -> list[IsoWeek]:
    """The ``count`` weeks starting the week after ``current``."""
    return [current.shift(offset) for offset in range(1, count + 1)]
