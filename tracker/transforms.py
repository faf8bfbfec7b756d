import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from tracker.domain import INCOME, Transaction, TransactionEntry

FRAME_COLUMNS = ["id", "date", "type", "category", "amount", "signed_amount"]


def to_store_timestamp(value: datetime) -> datetime:
    # naive datetimes are local time
    return value.astimezone(timezone.utc)


def from_store_timestamp(value) -> datetime:
    """Convert a store timestamp into a naive local datetime.

    Accepts datetimes (aware or naive), objects exposing ``to_datetime()``
    and epoch milliseconds.
    """
    if hasattr(value, "to_datetime"):
        value = value.to_datetime()
    if isinstance(value, (int, float)):
        value = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if not isinstance(value, datetime):
        raise TypeError(f"Unsupported timestamp: {value!r}")
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def to_document(entry: TransactionEntry, created_at: Optional[datetime] = None) -> dict:
    return {
        "type": entry.type,
        "amount": float(entry.amount),
        "category": entry.category,
        "date": to_store_timestamp(entry.date),
        "createdAt": created_at or datetime.now(timezone.utc),
    }


def from_document(doc_id: str, data: dict) -> Transaction:
    amount = Decimal(str(data["amount"]))
    if not amount.is_finite():
        raise ValueError(f"Non-finite amount: {amount}")
    created = data.get("createdAt")
    return Transaction(
        id=doc_id,
        type=data["type"],
        amount=amount,
        category=data.get("category", ""),
        date=from_store_timestamp(data["date"]),
        created_at=from_store_timestamp(created) if created is not None else None,
    )


def sort_by_date_desc(trans: Iterable[Transaction]) -> Tuple[Transaction, ...]:
    return tuple(sorted(trans, key=lambda t: t.date, reverse=True))


def load_seed(path: str) -> Tuple[TransactionEntry, ...]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    return tuple(
        TransactionEntry(
            type=t["type"],
            amount=Decimal(str(t["amount"])),
            category=t["category"],
            date=datetime.fromisoformat(t["date"]),
        )
        for t in data["transactions"]
    )


def transactions_to_frame(trans: Iterable[Transaction]) -> pd.DataFrame:
    rows = [
        {
            "id": t.id,
            "date": pd.Timestamp(t.date),
            "type": t.type,
            "category": t.category,
            "amount": float(t.amount),
        }
        for t in trans
    ]
    if not rows:
        return pd.DataFrame(columns=FRAME_COLUMNS)
    df = pd.DataFrame(rows)
    df["signed_amount"] = np.where(df["type"] == INCOME, df["amount"], -df["amount"])
    return df[FRAME_COLUMNS]


def daily_totals(df: pd.DataFrame, year: int, month: int) -> pd.DataFrame:
    """Income and expense per calendar day of a month (month is 0-based).

    Every day of the month gets a row, days without transactions are zero.
    """
    start = pd.Timestamp(year=year, month=month + 1, day=1)
    days = pd.date_range(start=start, end=start + pd.offsets.MonthEnd(0), freq="D")

    if df.empty:
        zeros = np.zeros(len(days))
        return pd.DataFrame({"income": zeros, "expense": zeros}, index=days)

    frame = df.assign(day=pd.to_datetime(df["date"]).dt.normalize())
    income = frame[frame["type"] == INCOME].groupby("day")["amount"].sum()
    expense = frame[frame["type"] != INCOME].groupby("day")["amount"].sum()
    return pd.DataFrame(
        {
            "income": income.reindex(days, fill_value=0.0),
            "expense": expense.reindex(days, fill_value=0.0),
        },
        index=days,
    )
