# practica/validation.py
from __future__ import annotations
import re
from re import Pattern
from typing import Any
from collections.abc import Callable
from datetime import date, datetime

from .config import CONTRACT_MONTHS
from .utils import DATE_FORMAT_STORAGE, MONTH_NAMES

# --- Type Aliases ---
ValidationResult = tuple[bool, str]
# The validator gets the value and the entire form_data dict for context
ValidatorFunc = Callable[[Any | None, dict[str, Any]], ValidationResult]

# --- Regex Patterns (centralized) ---
NON_DIGIT_PATTERN: Pattern[str] = re.compile(r'\D')
PHONE_PATTERN: Pattern[str] = re.compile(r'^\d{10}$')
EMAIL_PATTERN: Pattern[str] = re.compile(r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$")

PHONE_ERROR: str = 'El número debe tener exactamente 10 dígitos'
START_DATE_FIRST_ERROR: str = 'Debe seleccionar primero la fecha de inicio'
END_DATE_MISSING_ERROR: str = 'Debe seleccionar la fecha de fin del contrato'
END_NOT_AFTER_START_ERROR: str = 'La fecha de fin debe ser posterior a la de inicio'

# ===================================================================
# GENERIC VALIDATOR GENERATORS
# ===================================================================

def is_blank(value: Any | None) -> bool:
    """True for None, False, 0, empty/whitespace strings and empty containers."""
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (int, float)):
        return value == 0
    if isinstance(value, (list, dict, tuple, bytes)):
        return not value
    return False

def required(message: str = "Este campo es obligatorio.") -> ValidatorFunc:
    """Ensures a value is present. Ids of 0 count as 'not chosen'."""
    def validator(value: Any | None, form_data: dict[str, Any]) -> ValidationResult:
        if is_blank(value):
            return False, message
        return True, ""
    return validator

def match_pattern(pattern: Pattern[str], message: str) -> ValidatorFunc:
    """Ensures a string value matches a regex pattern."""
    def validator(value: Any | None, form_data: dict[str, Any]) -> ValidationResult:
        # Empty values are `required`'s job.
        if not value or not isinstance(value, str):
            return True, ""
        if not pattern.match(value.strip()):
            return False, message
        return True, ""
    return validator

def max_length(limit: int, message: str) -> ValidatorFunc:
    """Ensures a string value does not exceed `limit` characters."""
    def validator(value: Any | None, form_data: dict[str, Any]) -> ValidationResult:
        if isinstance(value, str) and len(value) > limit:
            return False, message
        return True, ""
    return validator

# ===================================================================
# PHONE
# ===================================================================

def normalize_phone(value: str | int | None) -> str:
    """Strips every non-digit character: '310-293-6537' -> '3102936537'."""
    if value is None:
        return ''
    return NON_DIGIT_PATTERN.sub('', str(value))

def validate_phone(value: str | int | None) -> str:
    """Returns an error message, or an empty string when the phone is valid."""
    if not PHONE_PATTERN.match(normalize_phone(value)):
        return PHONE_ERROR
    return ''

# ===================================================================
# CONTRACT DATES
# ===================================================================

def parse_date(value: Any) -> date | None:
    """Accepts a date, a datetime or a 'YYYY-MM-DD' string; anything else is None."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.strptime(value.strip(), DATE_FORMAT_STORAGE).date()
        except ValueError:
            return None
    return None

def shift_month(year: int, month: int, months: int) -> tuple[int, int]:
    """Adds `months` calendar months to (year, month)."""
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1

def expected_end_month(start: date) -> tuple[int, int]:
    """The (year, month) the contract must end in."""
    return shift_month(start.year, start.month, CONTRACT_MONTHS)

def validate_end_date(start: date | None, end: date | None) -> str:
    """
    Checks the contract window. Returns an error message or an empty string.

    The end date must fall in the calendar month that is exactly
    CONTRACT_MONTHS after the start month, and strictly after the start.
    """
    if start is None:
        return START_DATE_FIRST_ERROR
    if end is None:
        return END_DATE_MISSING_ERROR

    exp_year, exp_month = expected_end_month(start)
    if (end.year, end.month) != (exp_year, exp_month):
        return (
            f"La fecha de fin debe ser en {MONTH_NAMES[exp_month - 1]} de {exp_year} "
            f"({CONTRACT_MONTHS} meses después de {MONTH_NAMES[start.month - 1]})"
        )
    if end <= start:
        return END_NOT_AFTER_START_ERROR
    return ''

# ===================================================================
# FORM-LEVEL VALIDATORS
# ===================================================================

def valid_phone() -> ValidatorFunc:
    """validate_phone in ValidatorFunc form. Blank values are `required`'s job."""
    def validator(value: Any | None, form_data: dict[str, Any]) -> ValidationResult:
        if is_blank(value):
            return True, ""
        error = validate_phone(value)
        return not error, error
    return validator

def valid_contract_end(start_key: str) -> ValidatorFunc:
    """Checks the end date against the start date stored under `start_key`."""
    def validator(value: Any | None, form_data: dict[str, Any]) -> ValidationResult:
        error = validate_end_date(parse_date(form_data.get(start_key)), parse_date(value))
        return not error, error
    return validator
