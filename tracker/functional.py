from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import TypeVar, Generic, Callable, Optional

from tracker.domain import TRANSACTION_TYPES, TransactionEntry

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')

FORM_ERROR_MESSAGE = "Please fill all fields with valid values."


class Maybe(Generic[T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        pass

    @abstractmethod
    def bind(self, f: Callable[[T], 'Maybe[U]']) -> 'Maybe[U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_none(self) -> bool:
        pass


class Some(Generic[T], Maybe[T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Some(f(self._value))

    def bind(self, f: Callable[[T], 'Maybe[U]']) -> 'Maybe[U]':
        return f(self._value)

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_none(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"Some({self._value})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Some) and self._value == other._value


class Nothing(Generic[T], Maybe[T]):

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Nothing()

    def bind(self, f: Callable[[T], 'Maybe[U]']) -> 'Maybe[U]':
        return Nothing()

    def get_or_else(self, default: T) -> T:
        return default

    def is_none(self) -> bool:
        return True

    def __repr__(self) -> str:
        return "Nothing()"

    def __eq__(self, other) -> bool:
        return isinstance(other, Nothing)


class Either(Generic[E, T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        pass

    @abstractmethod
    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_right(self) -> bool:
        pass

    @abstractmethod
    def is_left(self) -> bool:
        pass

    @abstractmethod
    def get_error(self) -> E:
        pass


class Right(Generic[E, T], Either[E, T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        return Right(f(self._value))

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return f(self._value)

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_right(self) -> bool:
        return True

    def is_left(self) -> bool:
        return False

    def get_error(self) -> E:
        raise ValueError("Cannot get error from Right")

    def __repr__(self) -> str:
        return f"Right({self._value})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Right) and self._value == other._value


class Left(Generic[E, T], Either[E, T]):

    def __init__(self, error: E):
        self._error = error

    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        return Left(self._error)

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return Left(self._error)

    def get_or_else(self, default: T) -> T:
        return default

    def is_right(self) -> bool:
        return False

    def is_left(self) -> bool:
        return True

    def get_error(self) -> E:
        return self._error

    def __repr__(self) -> str:
        return f"Left({self._error})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Left) and self._error == other._error


def _to_decimal(raw) -> Maybe[Decimal]:
    if raw is None or isinstance(raw, bool):
        return Nothing()
    try:
        return Some(Decimal(str(raw).strip()))
    except InvalidOperation:
        return Nothing()


def parse_amount(raw) -> Maybe[Decimal]:
    """Parse user input into a positive, finite Decimal."""
    return _to_decimal(raw).bind(
        lambda value: Some(value) if value.is_finite() and value > 0 else Nothing()
    )


def _as_datetime(value) -> Maybe[datetime]:
    if isinstance(value, datetime):
        return Some(value)
    if isinstance(value, date):
        return Some(datetime(value.year, value.month, value.day))
    if isinstance(value, str) and value.strip():
        try:
            return Some(datetime.fromisoformat(value.strip()))
        except ValueError:
            return Nothing()
    return Nothing()


def _invalid(error: str, message: str = FORM_ERROR_MESSAGE) -> Left:
    return Left({"error": error, "message": message})


def _required(value: Maybe[T], error: str) -> Either[dict, T]:
    return value.map(Right).get_or_else(_invalid(error))


def _check_type(tx_type: str) -> Either[dict, str]:
    if tx_type not in TRANSACTION_TYPES:
        return _invalid("invalid_type", f"Unknown transaction type: {tx_type}")
    return Right(tx_type)


def _check_category(tx_type: str, category: Optional[str], categories) -> Either[dict, str]:
    if not category:
        return _invalid("missing_category")
    if category not in categories.for_type(tx_type):
        return _invalid(
            "category_type_mismatch",
            f"Category {category} is not a {tx_type} category",
        )
    return Right(category)


def validate_entry(
    tx_type: str,
    amount,
    category: Optional[str],
    when,
    categories,
) -> Either[dict, TransactionEntry]:
    """Check a new transaction before anything is sent to the store.

    categories is the CategorySet of the signed-in identity; the category
    must belong to the list that matches tx_type. Checks run in order and the
    first failure is returned.
    """
    return (
        _check_type(tx_type)
        .bind(lambda _: _required(parse_amount(amount), "invalid_amount"))
        .bind(lambda value: _check_category(tx_type, category, categories).map(
            lambda label: (value, label)))
        .bind(lambda fields: _required(_as_datetime(when), "missing_date").map(
            lambda day: TransactionEntry(
                type=tx_type, amount=fields[0], category=fields[1], date=day
            )))
    )
