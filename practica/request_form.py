# practica/request_form.py
from __future__ import annotations
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from .attachment import PdfAttachment
from .catalogs import Cohort, Modality, ReferenceData
from .contract import ContractController
from .errors import ValidationError
from .form_data_builder import PARTY_TEMPLATES, PartyRecord, PartyType, resolve_field, resolve_id
from .parties import EntityResolution
from .section_definitions import CONTRACT_REQUIRED_KEY, audit_missing_fields, check_formats, mode_key
from .selection import CascadingSelection, SelectionState
from .utils import AppSchema

logger = logging.getLogger(__name__)

MISSING_FIELDS_TITLE: str = 'Campos faltantes'
FORMAT_ERRORS_TITLE: str = 'Errores de validación'


@dataclass(frozen=True)
class ApprenticeIdentity:
    """The logged-in apprentice. Read-only for the whole form."""
    apprentice_id: int
    full_name: str = ''
    document_type: str = ''
    document_number: str = ''
    email: str = ''
    phone: str = ''

    @classmethod
    def from_storage(cls, raw: Any) -> ApprenticeIdentity | None:
        """Builds the identity from the session record, or None when it has no usable id."""
        if not isinstance(raw, Mapping):
            return None
        apprentice_id = resolve_id(raw, ('apprentice_id', 'id'))
        if apprentice_id is None:
            return None
        name_parts = (
            resolve_field(raw, ('full_name', 'name')),
            resolve_field(raw, ('first_last_name',)),
            resolve_field(raw, ('second_last_name',)),
        )
        return cls(
            apprentice_id=apprentice_id,
            full_name=' '.join(part for part in name_parts if part),
            document_type=resolve_field(raw, ('document_type', 'type_identification')),
            document_number=resolve_field(raw, ('document_number', 'number_identificacion')),
            email=resolve_field(raw, ('email',)),
            phone=resolve_field(raw, ('phone_number', 'phone')),
        )


class DraftSource(Protocol):
    async def load_cohorts(self, program_id: int) -> list[Cohort]: ...
    async def load_enterprises(self) -> list[PartyRecord]: ...
    async def load_bosses_by_enterprise(self, enterprise_id: int) -> list[PartyRecord]: ...
    async def load_human_talent_by_enterprise(self, enterprise_id: int) -> list[PartyRecord]: ...


class RequestDraft:
    """
    The request being assembled: the cascading selects, the three parties,
    the contract window, the PDF and the terms checkbox, around a fixed
    apprentice identity.
    """

    def __init__(self, reference: ReferenceData, source: DraftSource, apprentice: ApprenticeIdentity | None) -> None:
        self.apprentice = apprentice
        self.reference = reference
        self.selection = CascadingSelection(reference, source)
        self.parties = EntityResolution(source)
        self.contract = ContractController()
        self.attachment: PdfAttachment | None = None
        self.terms_accepted: bool = False

    @property
    def state(self) -> SelectionState:
        return self.selection.state

    def set_modality(self, modality_id: int | None) -> None:
        """Stores the modality and recomputes the contract requirement in the same call."""
        self.state.modality_id = modality_id or 0
        self.contract.set_modality(self.state.modality_id, self.reference.modalities)

    def selected_modality(self) -> Modality | None:
        return next((m for m in self.reference.modalities if m.id == self.state.modality_id), None)

    def attach_pdf(self, attachment: PdfAttachment) -> None:
        self.attachment = attachment
        logger.info(f"PDF '{attachment.filename}' attached ({attachment.size} bytes).")

    def clear_pdf(self) -> None:
        self.attachment = None

    def set_terms_accepted(self, accepted: bool) -> None:
        self.terms_accepted = bool(accepted)

    def form_data(self) -> dict[str, Any]:
        """Flat view of the draft keyed by field key, the shape the validators read."""
        window = self.contract.window
        data: dict[str, Any] = {
            AppSchema.APPRENTICE.key: self.apprentice.apprentice_id if self.apprentice else 0,
            AppSchema.REGIONAL.key: self.state.regional_id,
            AppSchema.CENTER.key: self.state.center_id,
            AppSchema.HEADQUARTERS.key: self.state.headquarters_id,
            AppSchema.PROGRAM.key: self.state.program_id,
            AppSchema.COHORT.key: self.state.cohort_id,
            AppSchema.MODALITY.key: self.state.modality_id,
            AppSchema.CONTRACT_START.key: window.start_date,
            AppSchema.CONTRACT_END.key: window.end_date,
            CONTRACT_REQUIRED_KEY: window.required,
            AppSchema.PDF_FILE.key: self.attachment,
            AppSchema.TERMS.key: self.terms_accepted,
        }
        for party in PartyType:
            resolution = self.parties[party]
            data[mode_key(party)] = resolution.mode
            data[PARTY_TEMPLATES[party]['select_field'].key] = resolution.selected_id
            data.update(resolution.display_fields)
        return data

    def validate(self) -> None:
        """
        Raises ValidationError listing every missing field at once, or,
        when nothing is missing, every format problem at once.
        """
        form_data = self.form_data()
        missing = audit_missing_fields(form_data)
        if missing:
            labels = ', '.join(f.label for f in missing)
            raise ValidationError([f"Faltan los siguientes campos: {labels}"], title=MISSING_FIELDS_TITLE)
        errors = check_formats(form_data)
        if errors:
            raise ValidationError(['Errores encontrados:\n' + '\n'.join(errors)], title=FORMAT_ERRORS_TITLE)

    def reset(self) -> None:
        """Clears everything the user entered. Identity and loaded catalogs stay."""
        self.selection.state = SelectionState()
        self.selection.cohorts = []
        self.selection.cohort_error = None
        self.parties.reset()
        self.contract.reset()
        self.attachment = None
        self.terms_accepted = False
