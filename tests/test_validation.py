"""
Validators: amount, description, date, email.

Dates are checked against a fixed reference day so nothing depends on the
machine clock.
"""
from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from finbot.services.validation import (
    format_validation_error, validate_amount, validate_date, validate_description,
    validate_email,
)

REF = date(2026, 2, 10)


# ===========================================================================
# Amount
# ===========================================================================

@pytest.mark.parametrize("raw, expected", [
    ("50", "50.00"),
    ("$1,234.5", "1234.50"),
    ("₹50", "50.00"),
    ("€ 12.345", "12.35"),
    ("  £0.005 ", "0.01"),
    ("1 000", "1000.00"),
    ("1000000000", "1000000000.00"),
])
def test_amount_strips_symbols_and_rounds(raw: str, expected: str) -> None:
    res = validate_amount(raw)
    assert res.valid
    assert res.value == Decimal(expected)
    assert res.error is None


@pytest.mark.parametrize("raw", ["0", "-5", "$-1", "0.00", "-0.01", "0.004", "-1e40"])
def test_amount_rejects_zero_and_negative(raw: str) -> None:
    res = validate_amount(raw)
    assert not res.valid
    assert res.error == "Amount must be greater than 0"


@pytest.mark.parametrize("raw", ["", "abc", "12abc", "NaN", "Infinity", "$"])
def test_amount_rejects_non_numeric(raw: str) -> None:
    res = validate_amount(raw)
    assert not res.valid
    assert "valid number" in res.error


def test_amount_rejects_too_large() -> None:
    res = validate_amount("1000000000.01")
    assert not res.valid
    assert res.error == "Amount is too large"


# ===========================================================================
# Description
# ===========================================================================

def test_description_is_trimmed() -> None:
    assert validate_description("  Lunch at cafe ").value == "Lunch at cafe"


@pytest.mark.parametrize("raw", ["", "   ", "\n\t"])
def test_description_rejects_empty(raw: str) -> None:
    assert validate_description(raw).error == "Description cannot be empty"


def test_description_length_limit() -> None:
    assert validate_description("x" * 200).valid
    res = validate_description("x" * 201)
    assert not res.valid
    assert "max 200" in res.error


# ===========================================================================
# Date
# ===========================================================================

def test_today_and_yesterday_resolve_against_reference() -> None:
    assert validate_date("today", REF).value == REF
    assert validate_date("Yesterday ", REF).value == REF - timedelta(days=1)


@pytest.mark.parametrize("raw, expected", [
    ("2026-02-05", date(2026, 2, 5)),
    ("2026-02-10", REF),
    ("05/02/2026", date(2026, 2, 5)),
    ("5/2/2026", date(2026, 2, 5)),
    ("09-01-2026", date(2026, 1, 9)),
    ("31/12/2025", date(2025, 12, 31)),
])
def test_accepted_formats(raw: str, expected: date) -> None:
    res = validate_date(raw, REF)
    assert res.valid, res.error
    assert res.value == expected


def test_two_part_numbers_are_day_first() -> None:
    # 01/02 is the 1st of February, never the 2nd of January
    assert validate_date("01/02/2026", REF).value == date(2026, 2, 1)


@pytest.mark.parametrize("days_ahead", [1, 2, 30, 365])
def test_future_dates_rejected(days_ahead: int) -> None:
    future = REF + timedelta(days=days_ahead)
    for raw in (future.isoformat(), future.strftime("%d/%m/%Y")):
        res = validate_date(raw, REF)
        assert not res.valid
        assert res.error == "Date cannot be in the future"


@pytest.mark.parametrize("raw", ["", "tomorrow", "2026-2-5", "2026-02-30", "31/02/2026", "13/13/2026", "10.02.2026"])
def test_unparseable_dates_rejected(raw: str) -> None:
    res = validate_date(raw, REF)
    assert not res.valid
    assert res.error


# ===========================================================================
# Email + error formatting
# ===========================================================================

def test_email() -> None:
    assert validate_email(" John@Example.com ").value == "john@example.com"
    assert not validate_email("john@example").valid
    assert not validate_email("not an email").valid


def test_format_validation_error() -> None:
    assert format_validation_error("Amount", "Amount is too large") == (
        "❌ Amount: Amount is too large\n\nPlease try again."
    )
