from calendar import monthrange
from dataclasses import dataclass
from datetime import datetime, time
from decimal import Decimal
from functools import lru_cache, reduce
from typing import Iterable, Tuple

from tracker.cursor import PeriodCursor
from tracker.domain import EXPENSE, INCOME, Transaction

DAY = "day"
MONTH = "month"

ZERO = Decimal("0")


@dataclass(frozen=True)
class Overview:
    start: datetime
    end: datetime
    transactions: Tuple[Transaction, ...]
    total_income: Decimal
    total_expenses: Decimal
    balance: Decimal

    @property
    def is_negative(self) -> bool:
        return self.balance < 0

    @property
    def balance_magnitude(self) -> Decimal:
        return abs(self.balance)


def window_bounds(cursor: PeriodCursor, kind: str = DAY) -> Tuple[datetime, datetime]:
    """Closed [start, end] interval covered by the cursor.

    A day window runs to 23:59:59.999, a month window to 23:59:59 of the
    last day of the month.
    """
    if kind == DAY:
        d = cursor.as_date()
        return (
            datetime.combine(d, time(0, 0, 0)),
            datetime.combine(d, time(23, 59, 59, 999000)),
        )
    if kind == MONTH:
        last_day = monthrange(cursor.year, cursor.month + 1)[1]
        return (
            datetime(cursor.year, cursor.month + 1, 1, 0, 0, 0),
            datetime(cursor.year, cursor.month + 1, last_day, 23, 59, 59),
        )
    raise ValueError(f"Unknown window kind: {kind!r}")


def by_window(start: datetime, end: datetime):
    def _filter(t: Transaction) -> bool:
        return start <= t.date <= end

    return _filter


def filter_window(
    trans: Iterable[Transaction], start: datetime, end: datetime
) -> Tuple[Transaction, ...]:
    return tuple(filter(by_window(start, end), trans))


def compute_totals(trans: Iterable[Transaction]) -> Tuple[Decimal, Decimal, Decimal]:
    """Return (total_income, total_expenses, balance)."""
    trans = tuple(trans)
    income = reduce(
        lambda acc, t: acc + t.amount if t.type == INCOME else acc, trans, ZERO
    )
    expenses = reduce(
        lambda acc, t: acc + t.amount if t.type == EXPENSE else acc, trans, ZERO
    )
    return income, expenses, income - expenses


@lru_cache(maxsize=128)
def _summarize(
    trans: Tuple[Transaction, ...], start: datetime, end: datetime
) -> Overview:
    selected = filter_window(trans, start, end)
    income, expenses, balance = compute_totals(selected)
    return Overview(
        start=start,
        end=end,
        transactions=selected,
        total_income=income,
        total_expenses=expenses,
        balance=balance,
    )


def build_overview(
    trans: Iterable[Transaction], cursor: PeriodCursor, kind: str = DAY
) -> Overview:
    start, end = window_bounds(cursor, kind)
    return _summarize(tuple(trans), start, end)


def balance_display(balance: Decimal) -> Tuple[Decimal, bool]:
    """Magnitude to show and whether to flag the balance as negative."""
    return abs(balance), balance < 0
