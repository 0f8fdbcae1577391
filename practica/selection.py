# practica/selection.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Protocol

from .catalogs import Center, Cohort, Headquarters, ReferenceData
from .errors import ReferenceLoadError, StaleResponseError

logger = logging.getLogger(__name__)

COHORT_LOAD_ERROR: str = 'Error al cargar las fichas del programa'


@dataclass
class SelectionState:
    """Ids chosen in the dependent selects. 0 means 'not chosen'."""
    regional_id: int = 0
    center_id: int = 0
    headquarters_id: int = 0
    program_id: int = 0
    cohort_id: int = 0
    modality_id: int = 0


class CohortSource(Protocol):
    async def load_cohorts(self, program_id: int) -> list[Cohort]: ...


class CascadingSelection:
    """
    Regional -> center -> headquarters and program -> cohort chains.

    Every setter clears the children of what it changes before returning,
    so the invariants hold after each call, not only after a reload.
    """

    def __init__(self, reference: ReferenceData, source: CohortSource, state: SelectionState | None = None) -> None:
        self.reference = reference
        self.source = source
        self.state = state or SelectionState()
        self.cohorts: list[Cohort] = []
        self.cohorts_loading: bool = False
        self.cohort_error: str | None = None

    # --- Location chain ---

    def set_regional(self, regional_id: int | None) -> None:
        self.state.regional_id = regional_id or 0
        self.state.center_id = 0
        self.state.headquarters_id = 0

    def set_center(self, center_id: int | None) -> None:
        self.state.center_id = center_id or 0
        self.state.headquarters_id = 0

    def set_headquarters(self, headquarters_id: int | None) -> None:
        self.state.headquarters_id = headquarters_id or 0

    def centers_for(self, regional_id: int) -> list[Center]:
        if not regional_id:
            return []
        return [c for c in self.reference.centers if c.regional_id == regional_id and c.active]

    def headquarters_for(self, center_id: int) -> list[Headquarters]:
        if not center_id:
            return []
        return [h for h in self.reference.headquarters if h.center_id == center_id and h.active]

    # --- Program chain ---

    def set_program(self, program_id: int | None) -> None:
        """Changes the program and drops the cohort list of the previous one."""
        self.state.program_id = program_id or 0
        self.state.cohort_id = 0
        self.cohorts = []
        self.cohort_error = None

    def set_cohort(self, cohort_id: int | None) -> None:
        self.state.cohort_id = cohort_id or 0

    async def select_program(self, program_id: int | None) -> None:
        """set_program followed by the on-demand cohort fetch for it."""
        self.set_program(program_id)
        await self.load_cohorts()

    def _ensure_current(self, program_id: int) -> None:
        if self.state.program_id != program_id:
            raise StaleResponseError(
                f"cohorts for program {program_id} arrived after switching to {self.state.program_id}")

    async def cohorts_for(self, program_id: int) -> list[Cohort]:
        """
        Fetches the active cohorts of `program_id`.

        Raises:
            StaleResponseError: the program changed while the fetch was in flight.
            ReferenceLoadError: the fetch itself failed.
        """
        if not program_id:
            return []
        try:
            cohorts = await self.source.load_cohorts(program_id)
        except ReferenceLoadError:
            self._ensure_current(program_id)
            raise
        self._ensure_current(program_id)
        return [c for c in cohorts if c.active]

    async def load_cohorts(self) -> None:
        """Loads the cohorts of the current program into `self.cohorts`."""
        program_id = self.state.program_id
        if not program_id:
            self.cohorts = []
            self.cohorts_loading = False
            return

        self.cohorts_loading = True
        self.cohort_error = None
        try:
            cohorts = await self.cohorts_for(program_id)
        except StaleResponseError as e:
            logger.debug(f"Discarding stale cohort response: {e}")
            return
        except ReferenceLoadError as e:
            logger.warning(f"Could not load cohorts for program {program_id}: {e}")
            self.cohorts = []
            self.cohort_error = COHORT_LOAD_ERROR
        else:
            self.cohorts = cohorts
        self.cohorts_loading = False

    async def retry_cohorts(self) -> None:
        await self.load_cohorts()
