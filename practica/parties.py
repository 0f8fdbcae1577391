# practica/parties.py
from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

from .errors import ReferenceLoadError, StaleResponseError
from .form_data_builder import (
    PARTY_TEMPLATES, PartyRecord, PartyType,
    display_fields_for, empty_display_fields, option_label,
)
from .utils import PartyMode

logger = logging.getLogger(__name__)

PARTY_MODES: tuple[PartyMode, ...] = ('select', 'create')
DEPENDENT_PARTIES: tuple[PartyType, ...] = (PartyType.BOSS, PartyType.HUMAN_TALENT)


@dataclass
class PartyResolution:
    """Everything the form holds about one party."""
    mode: PartyMode = 'create'
    selected_id: int = 0
    catalog: list[PartyRecord] = field(default_factory=list)
    display_fields: dict[str, str] = field(default_factory=dict)
    loading: bool = False
    error: str | None = None


class PartySource(Protocol):
    async def load_enterprises(self) -> list[PartyRecord]: ...
    async def load_bosses_by_enterprise(self, enterprise_id: int) -> list[PartyRecord]: ...
    async def load_human_talent_by_enterprise(self, enterprise_id: int) -> list[PartyRecord]: ...


def load_error_message(party: PartyType) -> str:
    return f"Error al cargar la lista de {PARTY_TEMPLATES[party]['name'].lower()}"


class EntityResolution:
    """
    Enterprise, boss and human talent, each either picked from a catalog
    ('select') or typed in full ('create').

    Boss and human-talent catalogs are scoped to the selected enterprise.
    Every enterprise change resets them synchronously; `reload_dependents`
    then fetches the new ones and drops any answer that arrives for an
    enterprise that is no longer selected.
    """

    def __init__(self, source: PartySource) -> None:
        self.source = source
        self.parties: dict[PartyType, PartyResolution] = {
            party: PartyResolution(display_fields=empty_display_fields(party))
            for party in PartyType
        }

    def __getitem__(self, party: PartyType) -> PartyResolution:
        return self.parties[party]

    # --- Synchronous transitions ---

    def set_mode(self, party: PartyType, mode: PartyMode) -> None:
        """Switches the mode and blanks the selection and every display field."""
        if mode not in PARTY_MODES:
            raise ValueError(f"unknown party mode: {mode!r}")
        state = self.parties[party]
        state.mode = mode
        state.selected_id = 0
        state.display_fields = empty_display_fields(party)
        if party is PartyType.ENTERPRISE:
            self._reset_dependents()

    def set_selected_id(self, party: PartyType, selected_id: int | None) -> None:
        """Picks a catalog record; the display fields are derived from it."""
        state = self.parties[party]
        state.selected_id = selected_id or 0
        record = self.find_record(party, state.selected_id)
        if record is None:
            state.display_fields = empty_display_fields(party)
        else:
            state.display_fields = display_fields_for(party, record.raw)
        if party is PartyType.ENTERPRISE:
            self._reset_dependents()

    def set_display_field(self, party: PartyType, key: str, value: str) -> None:
        """Typed input. Only 'create' mode owns its fields; select mode derives them."""
        state = self.parties[party]
        if state.mode != 'create':
            logger.debug(f"Ignoring typed '{key}' for {party.name} in select mode")
            return
        if key not in state.display_fields:
            raise KeyError(f"{key} is not a field of {party.name}")
        state.display_fields[key] = value

    def _reset_dependents(self) -> None:
        for party in DEPENDENT_PARTIES:
            state = self.parties[party]
            state.selected_id = 0
            state.catalog = []
            state.error = None
            state.loading = False
            if state.mode == 'select':
                state.display_fields = empty_display_fields(party)

    # --- Queries ---

    def find_record(self, party: PartyType, record_id: int) -> PartyRecord | None:
        if not record_id:
            return None
        return next((r for r in self.parties[party].catalog if r.id == record_id), None)

    def current_enterprise_id(self) -> int:
        """The enterprise the dependent catalogs are scoped to, 0 when there is none."""
        enterprise = self.parties[PartyType.ENTERPRISE]
        return enterprise.selected_id if enterprise.mode == 'select' else 0

    def catalog_for(self, party: PartyType, parent_enterprise_id: int | None = None) -> list[PartyRecord]:
        """
        The records offered for `party`. For boss and human talent the
        catalog only counts while it still belongs to `parent_enterprise_id`
        (defaults to the current enterprise).
        """
        if party in DEPENDENT_PARTIES:
            current = self.current_enterprise_id()
            parent = current if parent_enterprise_id is None else parent_enterprise_id
            if not parent or parent != current:
                return []
        return self.parties[party].catalog

    def options(self, party: PartyType) -> dict[int, str]:
        return {record.id: option_label(party, record.raw) for record in self.catalog_for(party)}

    # --- Async loads ---

    async def load_enterprises(self) -> None:
        state = self.parties[PartyType.ENTERPRISE]
        state.loading = True
        state.error = None
        try:
            state.catalog = await self.source.load_enterprises()
        except ReferenceLoadError as e:
            logger.warning(f"Could not load enterprises: {e}")
            state.catalog = []
            state.error = load_error_message(PartyType.ENTERPRISE)
        else:
            logger.info(f"Loaded {len(state.catalog)} enterprises.")
        state.loading = False

    def _ensure_current(self, enterprise_id: int) -> None:
        if self.current_enterprise_id() != enterprise_id:
            raise StaleResponseError(
                f"records for enterprise {enterprise_id} arrived after switching to {self.current_enterprise_id()}")

    async def _fetch_dependent(self, party: PartyType, enterprise_id: int) -> list[PartyRecord]:
        if party is PartyType.BOSS:
            loader = self.source.load_bosses_by_enterprise
        else:
            loader = self.source.load_human_talent_by_enterprise
        try:
            records = await loader(enterprise_id)
        except ReferenceLoadError:
            self._ensure_current(enterprise_id)
            raise
        self._ensure_current(enterprise_id)
        return records

    async def _load_dependent(self, party: PartyType, enterprise_id: int) -> None:
        state = self.parties[party]
        state.loading = True
        state.error = None
        try:
            records = await self._fetch_dependent(party, enterprise_id)
        except StaleResponseError as e:
            logger.debug(f"Discarding stale {party.name} response: {e}")
            return
        except ReferenceLoadError as e:
            logger.warning(f"Could not load {party.name} for enterprise {enterprise_id}: {e}")
            state.catalog = []
            state.error = load_error_message(party)
        else:
            state.catalog = records
        state.loading = False

    async def reload_dependents(self) -> None:
        """Fetches boss and human talent for the current enterprise, concurrently."""
        enterprise_id = self.current_enterprise_id()
        if not enterprise_id:
            self._reset_dependents()
            return
        await asyncio.gather(*(self._load_dependent(party, enterprise_id) for party in DEPENDENT_PARTIES))

    async def change_mode(self, party: PartyType, mode: PartyMode) -> None:
        self.set_mode(party, mode)
        if party is PartyType.ENTERPRISE:
            await self.reload_dependents()

    async def select(self, party: PartyType, selected_id: int | None) -> None:
        self.set_selected_id(party, selected_id)
        if party is PartyType.ENTERPRISE:
            await self.reload_dependents()

    def reset(self) -> None:
        """Back to the initial create-mode blanks; loaded catalogs are kept."""
        for party in PartyType:
            self.set_mode(party, 'create')
