from dataclasses import dataclass
from datetime import date, timedelta


@dataclass
class PeriodCursor:
    """The currently selected (year, month, day) of the overview.

    month is 0-based (0 = January) and the triple always names a real
    calendar date.
    """

    year: int
    month: int
    day: int

    def __post_init__(self):
        # raises ValueError on an impossible date
        date(self.year, self.month + 1, self.day)

    @classmethod
    def today(cls) -> "PeriodCursor":
        return cls.from_date(date.today())

    @classmethod
    def from_date(cls, d: date) -> "PeriodCursor":
        return cls(year=d.year, month=d.month - 1, day=d.day)

    def as_date(self) -> date:
        return date(self.year, self.month + 1, self.day)

    def step_day(self, delta: int) -> "PeriodCursor":
        moved = self.as_date() + timedelta(days=delta)
        self.year, self.month, self.day = moved.year, moved.month - 1, moved.day
        return self

    def step_month(self, delta: int) -> "PeriodCursor":
        # day goes back to 1 so Jan 31 -> Feb never lands on a missing day
        year, month = divmod(self.year * 12 + self.month + delta, 12)
        self.year, self.month, self.day = year, month, 1
        return self

    def label(self) -> str:
        d = self.as_date()
        return f"{d.strftime('%B')} {d.day}, {d.year}"

    def month_label(self) -> str:
        return self.as_date().strftime("%B %Y")
