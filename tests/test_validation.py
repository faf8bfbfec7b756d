from datetime import date, datetime
from decimal import Decimal

from tracker.categories import CategorySet
from tracker.domain import EXPENSE, INCOME, TransactionEntry
from tracker.functional import (
    FORM_ERROR_MESSAGE,
    Right,
    Some,
    parse_amount,
    validate_entry,
)


def test_parsed_amount_feeds_later_steps():
    assert parse_amount("20").map(lambda a: a * 2) == Some(Decimal("40"))
    assert parse_amount("abc").map(lambda a: a * 2).get_or_else(Decimal("0")) == Decimal("0")


def test_first_failure_wins():
    # bad type, amount and category together: the type is reported
    result = validate_entry("transfer", "", "", None, CategorySet())
    assert result.get_error()["error"] == "invalid_type"
    # bad amount and date: the amount is reported
    result = validate_entry(EXPENSE, "-1", "Food", None, CategorySet())
    assert result.get_error()["error"] == "invalid_amount"
    # bad category and date: the category is reported
    result = validate_entry(EXPENSE, "5", "Salary", None, CategorySet())
    assert result.get_error()["error"] == "category_type_mismatch"


def test_parse_amount():
    assert parse_amount("50.00") == Some(Decimal("50.00"))
    assert parse_amount(" 0.01 ") == Some(Decimal("0.01"))
    assert parse_amount(12) == Some(Decimal("12"))
    for bad in ["", "  ", "abc", "0", "-5", None, "NaN", "Infinity", True]:
        assert parse_amount(bad).is_none(), bad


def test_valid_entry():
    result = validate_entry(EXPENSE, "120.50", "Food", date(2025, 7, 1), CategorySet())
    assert result.is_right()
    assert result == Right(TransactionEntry(
        type=EXPENSE, amount=Decimal("120.50"), category="Food", date=datetime(2025, 7, 1)
    ))


def test_iso_string_date_is_accepted():
    result = validate_entry(INCOME, "500", "Salary", "2025-07-01", CategorySet())
    assert result.get_or_else(None).date == datetime(2025, 7, 1)


def test_invalid_amounts_rejected():
    for amount in ["", "0", "-1", "x"]:
        result = validate_entry(INCOME, amount, "Salary", date(2025, 7, 1), CategorySet())
        assert result.is_left()
        assert result.get_error() == {"error": "invalid_amount", "message": FORM_ERROR_MESSAGE}


def test_missing_category_rejected():
    result = validate_entry(INCOME, "10", "", date(2025, 7, 1), CategorySet())
    assert result.get_error()["error"] == "missing_category"
    assert result.get_error()["message"] == FORM_ERROR_MESSAGE


def test_category_must_match_type():
    result = validate_entry(INCOME, "10", "Food", date(2025, 7, 1), CategorySet())
    assert result.get_error()["error"] == "category_type_mismatch"


def test_missing_date_rejected():
    for when in [None, "", "not-a-date"]:
        result = validate_entry(EXPENSE, "10", "Food", when, CategorySet())
        assert result.get_error()["error"] == "missing_date"


def test_unknown_type_rejected():
    result = validate_entry("transfer", "10", "Food", date(2025, 7, 1), CategorySet())
    assert result.get_error()["error"] == "invalid_type"


def test_custom_category_accepted():
    cats = CategorySet().with_added("Pets", EXPENSE)
    assert validate_entry(EXPENSE, "10", "Pets", date(2025, 7, 1), cats).is_right()
