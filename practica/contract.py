# practica/contract.py
from __future__ import annotations
import calendar
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import Any

from .catalogs import Modality
from .config import CONTRACT_MODALITY_TERM
from .validation import expected_end_month, parse_date, validate_end_date


@dataclass
class ContractWindow:
    start_date: date | None = None
    end_date: date | None = None
    required: bool = False


def is_contract_modality(modality_id: int | None, catalog: Iterable[Modality]) -> bool:
    """
    True when the modality's name contains "contrato", ignoring case.
    The backend has no stable type code for it, so the name is the rule.
    """
    if not modality_id:
        return False
    modality = next((m for m in catalog if m.id == modality_id), None)
    if modality is None:
        return False
    return CONTRACT_MODALITY_TERM in modality.name.lower()


def end_date_bounds(start: date | None) -> tuple[date, date] | None:
    """First and last day of the month the contract has to end in."""
    if start is None:
        return None
    year, month = expected_end_month(start)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


class ContractController:
    """Keeps the contract dates in step with the selected modality."""

    def __init__(self, window: ContractWindow | None = None) -> None:
        self.window = window or ContractWindow()

    def set_modality(self, modality_id: int | None, catalog: Iterable[Modality]) -> bool:
        self.window.required = is_contract_modality(modality_id, catalog)
        if not self.window.required:
            self.clear_dates()
        return self.window.required

    def clear_dates(self) -> None:
        self.window.start_date = None
        self.window.end_date = None

    def set_start_date(self, value: Any) -> None:
        self.window.start_date = parse_date(value)

    def set_end_date(self, value: Any) -> None:
        self.window.end_date = parse_date(value)

    def end_date_bounds(self) -> tuple[date, date] | None:
        return end_date_bounds(self.window.start_date)

    def validation_error(self) -> str:
        """'' when the window is fine or not required at all."""
        if not self.window.required:
            return ''
        return validate_end_date(self.window.start_date, self.window.end_date)

    def reset(self) -> None:
        self.window.required = False
        self.clear_dates()
