# finbot/services/validation.py
"""
Validation of what the user types during manual entry.

Every validator is pure: raw text in, ValidationResult out. Invalid input is
an ordinary result with an error message for the re-prompt, never an
exception.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

MAX_AMOUNT = Decimal("1000000000")
MAX_DESCRIPTION = 200

_CURRENCY_RE = re.compile(r"[$€£¥₹₽,'\s]")
_ISO_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
# day first: 05/02/2026 is the 5th of February
_DMY_RE = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    value: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, value: Any) -> "ValidationResult":
        return cls(True, value=value)

    @classmethod
    def fail(cls, error: str) -> "ValidationResult":
        return cls(False, error=error)


def validate_amount(text: str) -> ValidationResult:
    cleaned = _CURRENCY_RE.sub("", text or "")
    try:
        num = Decimal(cleaned)
    except InvalidOperation:
        return ValidationResult.fail("Please enter a valid number (e.g., 50 or 123.45)")
    if not num.is_finite():
        return ValidationResult.fail("Please enter a valid number (e.g., 50 or 123.45)")
    if num > MAX_AMOUNT:
        return ValidationResult.fail("Amount is too large")
    if num > 0:
        num = num.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    # checked after rounding: "0.004" is zero cents
    if num <= 0:
        return ValidationResult.fail("Amount must be greater than 0")
    return ValidationResult.ok(num)


def validate_description(text: str) -> ValidationResult:
    trimmed = (text or "").strip()
    if not trimmed:
        return ValidationResult.fail("Description cannot be empty")
    if len(trimmed) > MAX_DESCRIPTION:
        return ValidationResult.fail(f"Description is too long (max {MAX_DESCRIPTION} characters)")
    return ValidationResult.ok(trimmed)


def _calendar_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def validate_date(text: str, today: date) -> ValidationResult:
    """
    "today" | "yesterday" | YYYY-MM-DD | DD/MM/YYYY (or DD-MM-YYYY).
    Dates after `today` are rejected; comparison is by calendar date.
    """
    s = (text or "").strip().lower()

    if s == "today":
        return ValidationResult.ok(today)
    if s == "yesterday":
        return ValidationResult.ok(today - timedelta(days=1))

    m = _ISO_RE.match(s)
    if m:
        d = _calendar_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        if d is None:
            return ValidationResult.fail("Invalid date format. Use YYYY-MM-DD (e.g., 2026-02-05)")
    else:
        m = _DMY_RE.match(s)
        if not m:
            return ValidationResult.fail('Invalid date format. Use "today", "yesterday", YYYY-MM-DD or DD/MM/YYYY')
        d = _calendar_date(int(m.group(3)), int(m.group(2)), int(m.group(1)))
        if d is None:
            return ValidationResult.fail("Invalid date. Use DD/MM/YYYY or YYYY-MM-DD")

    if d > today:
        return ValidationResult.fail("Date cannot be in the future")
    return ValidationResult.ok(d)


def validate_email(text: str) -> ValidationResult:
    s = (text or "").strip()
    if not _EMAIL_RE.match(s):
        return ValidationResult.fail("Please enter a valid email address, e.g. john@example.com")
    return ValidationResult.ok(s.lower())


def format_validation_error(field: str, error: str) -> str:
    return f"❌ {field}: {error}\n\nPlease try again."
