from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

INCOME = "income"
EXPENSE = "expense"
TRANSACTION_TYPES = (INCOME, EXPENSE)


@dataclass(frozen=True)
class Transaction:
    id: str            # assigned by the document store
    type: str          # "income" or "expense"
    amount: Decimal    # always > 0, the sign comes from type
    category: str
    date: datetime     # naive local time
    created_at: Optional[datetime] = None


# A validated entry that has not been stored yet
@dataclass(frozen=True)
class TransactionEntry:
    type: str
    amount: Decimal
    category: str
    date: datetime


@dataclass(frozen=True)
class Identity:
    uid: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None

    @property
    def display_label(self) -> str:
        return self.display_name or "Guest User"

    @property
    def initial(self) -> str:
        return self.display_name[0] if self.display_name else "U"
