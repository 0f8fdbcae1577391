# tests/test_submission.py
from __future__ import annotations

import sys
import asyncio
from pathlib import Path
from datetime import date
from typing import Any

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from practica.api_client import CreateRequestResponse, UploadPdfResponse
from practica.attachment import PdfAttachment
from practica.catalogs import Center, Headquarters, Modality, Program, ReferenceData, Regional
from practica.errors import PdfUploadError, RequestCreationError
from practica.form_data_builder import PartyType
from practica.request_form import FORMAT_ERRORS_TITLE, MISSING_FIELDS_TITLE, ApprenticeIdentity, RequestDraft
from practica.submission import (
    MISSING_ID_MESSAGE, MISSING_PDF_MESSAGE, SUCCESS_MESSAGE, UNEXPECTED_ERROR_MESSAGE,
    SubmissionOrchestrator, SubmissionState, build_payload,
)
from practica.utils import AppSchema
from practica.validation import PHONE_ERROR

PDF = PdfAttachment('carta.pdf', 'application/pdf', b'%PDF-1.4 test')


class FakeClient:
    """Records the two-phase calls; every response and error is configurable."""

    def __init__(
        self,
        create_response: CreateRequestResponse | None = None,
        create_error: Exception | None = None,
        upload_response: UploadPdfResponse | None = None,
        upload_error: Exception | None = None,
    ) -> None:
        self.create_response = create_response or CreateRequestResponse(id=42)
        self.create_error = create_error
        self.upload_response = upload_response or UploadPdfResponse(success=True)
        self.upload_error = upload_error
        self.created: list[dict[str, Any]] = []
        self.uploads: list[tuple[PdfAttachment, int]] = []
        self.create_gate: asyncio.Event | None = None

    async def create_request(self, payload: dict[str, Any]) -> CreateRequestResponse:
        self.created.append(payload)
        if self.create_gate is not None:
            await self.create_gate.wait()
        if self.create_error is not None:
            raise self.create_error
        return self.create_response

    async def upload_pdf(self, attachment: PdfAttachment, request_id: int) -> UploadPdfResponse:
        self.uploads.append((attachment, request_id))
        if self.upload_error is not None:
            raise self.upload_error
        return self.upload_response

    # The draft also needs the catalog side of the backend.
    async def load_cohorts(self, program_id: int) -> list:
        return []

    async def load_enterprises(self) -> list:
        return []

    async def load_bosses_by_enterprise(self, enterprise_id: int) -> list:
        return []

    async def load_human_talent_by_enterprise(self, enterprise_id: int) -> list:
        return []


def fill_party(draft: RequestDraft, party: PartyType, values: dict[str, str]) -> None:
    for key, value in values.items():
        draft.parties.set_display_field(party, key, value)


def complete_draft(client: FakeClient, apprentice: ApprenticeIdentity | None = None) -> RequestDraft:
    """A draft that passes every check, with all parties in create mode."""
    reference = ReferenceData(client)  # type: ignore[arg-type]
    reference.regionals = [Regional(1, 'Antioquia')]
    reference.centers = [Center(10, 'CTMA', 1)]
    reference.headquarters = [Headquarters(100, 'Sede Norte', 10)]
    reference.programs = [Program(5, 'ADSO')]
    reference.modalities = [Modality(1, 'Contrato de aprendizaje'), Modality(2, 'Vínculo laboral')]

    draft = RequestDraft(reference, client, apprentice or ApprenticeIdentity(5, 'Laura Pérez'))
    draft.selection.set_regional(1)
    draft.selection.set_center(10)
    draft.selection.set_headquarters(100)
    draft.selection.set_program(5)
    draft.selection.set_cohort(7)
    draft.set_modality(2)
    fill_party(draft, PartyType.ENTERPRISE, {
        AppSchema.Enterprise.NAME.key: 'Acme SAS',
        AppSchema.Enterprise.NIT.key: '900123456',
        AppSchema.Enterprise.LOCATION.key: 'Medellín',
        AppSchema.Enterprise.EMAIL.key: 'info@acme.co',
    })
    fill_party(draft, PartyType.BOSS, {
        AppSchema.Boss.NAME.key: 'Ana',
        AppSchema.Boss.PHONE.key: '310-293-6537',
        AppSchema.Boss.EMAIL.key: 'ana@acme.co',
        AppSchema.Boss.POSITION.key: 'Líder de talento',
    })
    fill_party(draft, PartyType.HUMAN_TALENT, {
        AppSchema.HumanTalent.NAME.key: 'Marta',
        AppSchema.HumanTalent.EMAIL.key: 'marta@acme.co',
        AppSchema.HumanTalent.PHONE.key: '3001234567',
    })
    draft.attach_pdf(PDF)
    draft.set_terms_accepted(True)
    return draft


def submit(orchestrator: SubmissionOrchestrator) -> Any:
    assert orchestrator.request_submit()
    return asyncio.run(orchestrator.confirm())


def test_nothing_is_sent_without_confirmation() -> None:
    client = FakeClient()
    orchestrator = SubmissionOrchestrator(complete_draft(client), client)

    assert asyncio.run(orchestrator.confirm()) is None, "confirm() needs an open confirmation gate"

    orchestrator.request_submit()
    orchestrator.cancel_confirmation()
    assert asyncio.run(orchestrator.confirm()) is None
    assert client.created == []
    assert orchestrator.state is SubmissionState.IDLE

def test_two_phase_submission_uses_created_id() -> None:
    client = FakeClient(create_response=CreateRequestResponse(id=42))
    redirects: list[str] = []
    draft = complete_draft(client)
    orchestrator = SubmissionOrchestrator(draft, client, on_success=lambda: redirects.append('/home'))

    outcome = submit(orchestrator)

    assert outcome.state is SubmissionState.SUCCEEDED
    assert client.uploads == [(PDF, 42)], "The upload uses the id returned by the create call"
    assert outcome.result.request_id == 42
    assert outcome.result.pdf_uploaded
    assert outcome.notification.type == 'success'
    assert outcome.notification.message == SUCCESS_MESSAGE
    assert redirects == [], "Nothing happens until the user acknowledges"

    orchestrator.acknowledge()
    orchestrator.acknowledge()
    assert redirects == ['/home'], "The redirect fires exactly once"
    assert orchestrator.state is SubmissionState.IDLE
    assert draft.attachment is None, "A successful submission clears the draft"
    assert draft.state.headquarters_id == 0

def test_backend_confirmation_text_is_preferred() -> None:
    client = FakeClient(create_response=CreateRequestResponse(id=42, message='Solicitud registrada'))
    outcome = submit(SubmissionOrchestrator(complete_draft(client), client))
    assert outcome.notification.message == 'Solicitud registrada'

def test_missing_id_skips_upload_and_is_partial_failure() -> None:
    client = FakeClient(create_response=CreateRequestResponse(id=None))
    redirects: list[str] = []
    orchestrator = SubmissionOrchestrator(complete_draft(client), client, on_success=lambda: redirects.append('/home'))

    outcome = submit(orchestrator)

    assert outcome.state is SubmissionState.PARTIAL_FAILURE
    assert client.uploads == [], "uploadPdf must never run without an id"
    assert outcome.notification.message == MISSING_ID_MESSAGE
    assert 'ID de solicitud' in outcome.notification.message

    orchestrator.acknowledge()
    assert redirects == []

def test_create_failure_preserves_draft() -> None:
    client = FakeClient(create_error=RequestCreationError('El aprendiz ya tiene una solicitud activa', 400))
    draft = complete_draft(client)
    before = draft.form_data()
    orchestrator = SubmissionOrchestrator(draft, client)

    outcome = submit(orchestrator)

    assert outcome.state is SubmissionState.FAILED
    assert outcome.notification.message == 'El aprendiz ya tiene una solicitud activa'
    assert client.uploads == []

    orchestrator.acknowledge()
    assert orchestrator.state is SubmissionState.IDLE
    assert draft.form_data() == before, "The user can resubmit without re-entering data"

def test_upload_failure_reports_request_id() -> None:
    client = FakeClient(upload_error=PdfUploadError('Archivo rechazado', 500))
    orchestrator = SubmissionOrchestrator(complete_draft(client), client)

    outcome = submit(orchestrator)

    assert outcome.state is SubmissionState.PARTIAL_FAILURE
    assert '42' in outcome.notification.message, "The user must learn the request exists"
    assert outcome.result.request_id == 42
    assert not outcome.result.pdf_uploaded

def test_upload_rejected_by_backend_is_partial_failure() -> None:
    client = FakeClient(upload_response=UploadPdfResponse(success=False))
    outcome = submit(SubmissionOrchestrator(complete_draft(client), client))
    assert outcome.state is SubmissionState.PARTIAL_FAILURE
    assert '42' in outcome.notification.message

def test_upload_failure_with_backend_text_says_request_exists() -> None:
    client = FakeClient(upload_error=PdfUploadError('El archivo excede el tamaño permitido', 413))
    outcome = submit(SubmissionOrchestrator(complete_draft(client), client))

    assert outcome.state is SubmissionState.PARTIAL_FAILURE
    assert outcome.notification.message == (
        'La solicitud 42 fue creada, pero el PDF no se adjuntó: El archivo excede el tamaño permitido'
    )

def test_unexpected_create_error_fails_and_frees_the_form() -> None:
    client = FakeClient(create_error=RuntimeError('boom'))
    draft = complete_draft(client)
    before = draft.form_data()
    orchestrator = SubmissionOrchestrator(draft, client)

    outcome = submit(orchestrator)

    assert outcome.state is SubmissionState.FAILED
    assert outcome.notification.message == UNEXPECTED_ERROR_MESSAGE
    assert not orchestrator.is_busy
    assert client.uploads == []

    orchestrator.acknowledge()
    assert orchestrator.request_submit(), "The user can try again"
    assert draft.form_data() == before

def test_unexpected_upload_error_is_partial_failure() -> None:
    client = FakeClient(upload_error=RuntimeError('stream closed'))
    orchestrator = SubmissionOrchestrator(complete_draft(client), client)

    outcome = submit(orchestrator)

    assert outcome.state is SubmissionState.PARTIAL_FAILURE
    assert outcome.result.request_id == 42
    assert 'La solicitud 42 fue creada' in outcome.notification.message
    assert not orchestrator.is_busy

def test_missing_attachment_never_reaches_the_backend(monkeypatch) -> None:
    client = FakeClient()
    draft = complete_draft(client)
    draft.clear_pdf()
    monkeypatch.setattr(draft, 'validate', lambda: None)
    orchestrator = SubmissionOrchestrator(draft, client)

    outcome = submit(orchestrator)

    assert outcome.state is SubmissionState.FAILED
    assert outcome.notification.message == MISSING_PDF_MESSAGE
    assert orchestrator.state is SubmissionState.IDLE
    assert client.created == []

def test_missing_fields_are_reported_together() -> None:
    client = FakeClient()
    draft = complete_draft(client)
    draft.selection.set_headquarters(None)
    draft.set_modality(None)
    orchestrator = SubmissionOrchestrator(draft, client)

    outcome = submit(orchestrator)

    assert outcome.notification.title == MISSING_FIELDS_TITLE
    assert AppSchema.HEADQUARTERS.label in outcome.notification.message
    assert AppSchema.MODALITY.label in outcome.notification.message
    assert orchestrator.state is SubmissionState.IDLE, "Validation failures go straight back to idle"
    assert client.created == []

def test_missing_identity_pdf_and_terms_block_submission() -> None:
    client = FakeClient()
    draft = complete_draft(client)
    draft.apprentice = None
    draft.clear_pdf()
    draft.set_terms_accepted(False)

    outcome = submit(SubmissionOrchestrator(draft, client))

    for field in (AppSchema.APPRENTICE, AppSchema.PDF_FILE, AppSchema.TERMS):
        assert field.label in outcome.notification.message

def test_party_requirements_follow_the_mode() -> None:
    client = FakeClient()
    draft = complete_draft(client)
    draft.parties.set_mode(PartyType.BOSS, 'select')

    outcome = submit(SubmissionOrchestrator(draft, client))

    message = outcome.notification.message
    assert AppSchema.Boss.SELECT.label in message, "Select mode needs a chosen record"
    assert AppSchema.Boss.NAME.label not in message, "Create-mode fields are not required in select mode"

def test_format_errors_after_audit() -> None:
    client = FakeClient()
    draft = complete_draft(client)
    draft.parties.set_display_field(PartyType.BOSS, AppSchema.Boss.PHONE.key, '12345')

    outcome = submit(SubmissionOrchestrator(draft, client))

    assert outcome.notification.title == FORMAT_ERRORS_TITLE
    assert PHONE_ERROR in outcome.notification.message
    assert client.created == []

def test_contract_dates_required_for_contract_modality() -> None:
    client = FakeClient()
    draft = complete_draft(client)
    draft.set_modality(1)

    outcome = submit(SubmissionOrchestrator(draft, client))
    assert AppSchema.CONTRACT_START.label in outcome.notification.message
    assert AppSchema.CONTRACT_END.label in outcome.notification.message

    draft.contract.set_start_date(date(2025, 1, 15))
    draft.contract.set_end_date(date(2025, 6, 30))
    outcome = submit(SubmissionOrchestrator(draft, client))
    assert outcome.notification.title == FORMAT_ERRORS_TITLE
    assert 'julio de 2025' in outcome.notification.message

def test_payload_in_create_mode() -> None:
    client = FakeClient()
    payload = build_payload(complete_draft(client))

    assert payload['request'] == {
        'apprentice': 5, 'ficha': 7, 'sede': 100, 'modality_productive_stage': 2,
    }, "No contract dates outside the contract modality"
    assert payload['enterprise'] == {
        'id': None, 'name': 'Acme SAS', 'tax_id': '900123456', 'address': 'Medellín',
        'email': 'info@acme.co', 'phone': '',
    }
    assert payload['boss'] == {
        'id': None, 'name': 'Ana', 'phone': '3102936537', 'email': 'ana@acme.co', 'position': 'Líder de talento',
    }
    assert payload['human_talent'] == {'id': None, 'name': 'Marta', 'email': 'marta@acme.co', 'phone': '3001234567'}

def test_payload_in_select_mode_with_contract_dates() -> None:
    client = FakeClient()
    draft = complete_draft(client)
    draft.parties.set_mode(PartyType.ENTERPRISE, 'select')
    draft.parties.set_selected_id(PartyType.ENTERPRISE, 9)
    draft.parties.set_mode(PartyType.BOSS, 'select')
    draft.parties.set_selected_id(PartyType.BOSS, 31)
    draft.set_modality(1)
    draft.contract.set_start_date(date(2025, 1, 15))
    draft.contract.set_end_date(date(2025, 7, 10))

    payload = build_payload(draft)

    assert payload['enterprise'] == {'id': 9}
    assert payload['boss'] == {'id': 31}
    assert payload['human_talent']['id'] is None
    assert payload['request']['contract_start_date'] == '2025-01-15'
    assert payload['request']['contract_end_date'] == '2025-07-10'

def test_submission_blocks_reentry_while_in_flight() -> None:
    async def scenario() -> tuple[list[Any], SubmissionOrchestrator, FakeClient]:
        client = FakeClient()
        client.create_gate = asyncio.Event()
        orchestrator = SubmissionOrchestrator(complete_draft(client), client)
        observed: list[Any] = []

        orchestrator.request_submit()
        running = asyncio.create_task(orchestrator.confirm())
        await asyncio.sleep(0)

        observed.append(orchestrator.state)
        observed.append(orchestrator.is_busy)
        observed.append(orchestrator.busy_message)
        observed.append(orchestrator.request_submit())
        observed.append(await orchestrator.confirm())

        client.create_gate.set()
        await running
        observed.append(orchestrator.request_submit())
        return observed, orchestrator, client

    observed, orchestrator, client = asyncio.run(scenario())
    state, busy, message, reopened, second_run, after_terminal = observed
    assert state is SubmissionState.SUBMITTING_REQUEST
    assert busy
    assert message == 'Enviando solicitud...'
    assert not reopened, "The confirmation gate stays shut while submitting"
    assert second_run is None
    assert not after_terminal, "A terminal outcome must be acknowledged first"
    assert len(client.created) == 1
    assert orchestrator.state is SubmissionState.SUCCEEDED
