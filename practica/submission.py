# practica/submission.py
"""
Two-phase submission of an assignment request.

The orchestrator is a small state machine:

    IDLE -> VALIDATING -> SUBMITTING_REQUEST -> UPLOADING_PDF
         -> SUCCEEDED | PARTIAL_FAILURE | FAILED

Nothing runs until the user confirms. A validation failure goes straight
back to IDLE with the draft untouched; network outcomes stay put until the
user acknowledges the notification.
"""
from __future__ import annotations
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from .api_client import CreateRequestResponse, UploadPdfResponse
from .attachment import PdfAttachment
from .errors import PdfUploadError, RequestCreationError, ValidationError
from .form_data_builder import PARTY_TEMPLATES, PartyType
from .request_form import RequestDraft
from .utils import Notification
from .validation import normalize_phone

logger = logging.getLogger(__name__)

CONFIRM_TITLE: str = '¿Confirmar envío de solicitud?'
CONFIRM_MESSAGE: str = '¿Estás seguro de que deseas enviar el formulario?'
SUCCESS_TITLE: str = 'Solicitud enviada'
SUCCESS_MESSAGE: str = 'La solicitud fue enviada exitosamente.'
CREATE_FAILED_TITLE: str = 'Error al enviar solicitud'
MISSING_ID_TITLE: str = 'PDF no subido'
MISSING_ID_MESSAGE: str = 'ID de solicitud no disponible para subir el PDF.'
UPLOAD_FAILED_TITLE: str = 'Error al subir PDF'
UPLOAD_FAILED_MESSAGE: str = 'el servidor rechazó el archivo.'
UNEXPECTED_ERROR_MESSAGE: str = 'Ocurrió un error inesperado. Intenta de nuevo más tarde.'
MISSING_PDF_MESSAGE: str = 'Debes adjuntar el archivo PDF antes de enviar.'

# Attributes the backend expects in create mode that the form does not ask for.
EXTRA_CREATE_ATTRIBUTES: dict[PartyType, dict[str, Any]] = {
    PartyType.ENTERPRISE: {'phone': ''},
}


class SubmissionState(Enum):
    IDLE = 'idle'
    VALIDATING = 'validating'
    SUBMITTING_REQUEST = 'submitting_request'
    UPLOADING_PDF = 'uploading_pdf'
    SUCCEEDED = 'succeeded'
    PARTIAL_FAILURE = 'partial_failure'
    FAILED = 'failed'


BUSY_MESSAGES: dict[SubmissionState, str] = {
    SubmissionState.VALIDATING: 'Enviando solicitud...',
    SubmissionState.SUBMITTING_REQUEST: 'Enviando solicitud...',
    SubmissionState.UPLOADING_PDF: 'Subiendo PDF...',
}


@dataclass(frozen=True)
class SubmissionResult:
    request_id: int | None
    message: str
    pdf_uploaded: bool


@dataclass(frozen=True)
class SubmissionOutcome:
    state: SubmissionState
    notification: Notification
    result: SubmissionResult | None = None


class SubmissionClient(Protocol):
    async def create_request(self, payload: dict[str, Any]) -> CreateRequestResponse: ...
    async def upload_pdf(self, attachment: PdfAttachment, request_id: int) -> UploadPdfResponse: ...


# ===================================================================
# PAYLOAD
# ===================================================================

def party_payload(draft: RequestDraft, party: PartyType) -> dict[str, Any]:
    """{'id': n} for a picked record, {'id': None, ...attributes} for a new one."""
    resolution = draft.parties[party]
    if resolution.mode == 'select':
        return {'id': resolution.selected_id}

    body: dict[str, Any] = {'id': None}
    for field in PARTY_TEMPLATES[party]['create_fields']:
        value = resolution.display_fields.get(field.key, '').strip()
        if field.ui_type == 'phone':
            value = normalize_phone(value)
        body[field.payload_key or field.key] = value
    for key, value in EXTRA_CREATE_ATTRIBUTES.get(party, {}).items():
        body.setdefault(key, value)
    return body

def build_payload(draft: RequestDraft) -> dict[str, Any]:
    state = draft.state
    window = draft.contract.window
    request: dict[str, Any] = {
        'apprentice': draft.apprentice.apprentice_id if draft.apprentice else None,
        'ficha': state.cohort_id,
        'sede': state.headquarters_id,
        'modality_productive_stage': state.modality_id,
    }
    if window.required:
        request['contract_start_date'] = window.start_date.isoformat() if window.start_date else None
        request['contract_end_date'] = window.end_date.isoformat() if window.end_date else None

    payload: dict[str, Any] = {
        PARTY_TEMPLATES[party]['payload_key']: party_payload(draft, party)
        for party in PartyType
    }
    payload['request'] = request
    return payload


# ===================================================================
# ORCHESTRATOR
# ===================================================================

class SubmissionOrchestrator:
    def __init__(
        self,
        draft: RequestDraft,
        client: SubmissionClient,
        on_success: Callable[[], None] | None = None,
    ) -> None:
        self.draft = draft
        self.client = client
        self.on_success = on_success
        self.state = SubmissionState.IDLE
        self.confirmation_open: bool = False
        self.outcome: SubmissionOutcome | None = None

    @property
    def is_busy(self) -> bool:
        return self.state in BUSY_MESSAGES

    @property
    def busy_message(self) -> str | None:
        return BUSY_MESSAGES.get(self.state)

    # --- Confirmation gate ---

    def request_submit(self) -> bool:
        """Opens the confirmation dialog. Returns False while a submission is pending."""
        if self.state is not SubmissionState.IDLE:
            return False
        self.confirmation_open = True
        return True

    def cancel_confirmation(self) -> None:
        self.confirmation_open = False

    # --- Protocol ---

    async def confirm(self) -> SubmissionOutcome | None:
        """
        Runs validation, the create call and the PDF upload, in that order.
        Returns None when there is nothing to confirm or a run is in progress.
        """
        if not self.confirmation_open or self.state is not SubmissionState.IDLE:
            return None
        self.confirmation_open = False
        self.state = SubmissionState.VALIDATING

        try:
            self.draft.validate()
            attachment = self.draft.attachment
            if attachment is None:
                raise ValidationError([MISSING_PDF_MESSAGE])
        except ValidationError as e:
            logger.info(f"Submission blocked by validation: {e.messages}")
            self.state = SubmissionState.IDLE
            self.outcome = SubmissionOutcome(
                state=SubmissionState.FAILED,
                notification=Notification('warning', e.title, '\n'.join(e.messages)),
            )
            return self.outcome
        except Exception:
            logger.exception('Unexpected error while validating the request.')
            self.state = SubmissionState.IDLE
            self.outcome = SubmissionOutcome(
                state=SubmissionState.FAILED,
                notification=Notification('warning', CREATE_FAILED_TITLE, UNEXPECTED_ERROR_MESSAGE),
            )
            return self.outcome

        self.state = SubmissionState.SUBMITTING_REQUEST
        try:
            created = await self.client.create_request(build_payload(self.draft))
        except RequestCreationError as e:
            logger.error(f"Request creation failed (status {e.status_code}): {e.message}")
            return self._finish(SubmissionState.FAILED, Notification('warning', CREATE_FAILED_TITLE, e.message))
        except Exception:
            logger.exception('Unexpected error while creating the request.')
            return self._finish(
                SubmissionState.FAILED, Notification('warning', CREATE_FAILED_TITLE, UNEXPECTED_ERROR_MESSAGE),
            )

        if created.id is None:
            logger.warning('Request created but the response carried no id; skipping PDF upload.')
            return self._finish(
                SubmissionState.PARTIAL_FAILURE,
                Notification('warning', MISSING_ID_TITLE, MISSING_ID_MESSAGE),
                SubmissionResult(request_id=None, message=MISSING_ID_MESSAGE, pdf_uploaded=False),
            )
        logger.info(f"Request {created.id} created.")

        self.state = SubmissionState.UPLOADING_PDF
        try:
            uploaded = await self.client.upload_pdf(attachment, created.id)
        except PdfUploadError as e:
            logger.warning(f"PDF upload for request {created.id} failed: {e.message}")
            return self._partial_upload_failure(created.id, e.message)
        except Exception:
            logger.exception(f"Unexpected error while uploading the PDF for request {created.id}.")
            return self._partial_upload_failure(created.id, UNEXPECTED_ERROR_MESSAGE)
        if not uploaded.success:
            logger.warning(f"Backend rejected the PDF for request {created.id}: {uploaded.message}")
            return self._partial_upload_failure(created.id, uploaded.message or UPLOAD_FAILED_MESSAGE)

        logger.info(f"PDF uploaded for request {created.id}.")
        message = created.message or uploaded.message or SUCCESS_MESSAGE
        return self._finish(
            SubmissionState.SUCCEEDED,
            Notification('success', SUCCESS_TITLE, message),
            SubmissionResult(request_id=created.id, message=message, pdf_uploaded=True),
        )

    def _partial_upload_failure(self, request_id: int, detail: str) -> SubmissionOutcome:
        message = f"La solicitud {request_id} fue creada, pero el PDF no se adjuntó: {detail}"
        return self._finish(
            SubmissionState.PARTIAL_FAILURE,
            Notification('warning', UPLOAD_FAILED_TITLE, message),
            SubmissionResult(request_id=request_id, message=message, pdf_uploaded=False),
        )

    def _finish(
        self,
        state: SubmissionState,
        notification: Notification,
        result: SubmissionResult | None = None,
    ) -> SubmissionOutcome:
        self.state = state
        self.outcome = SubmissionOutcome(state=state, notification=notification, result=result)
        return self.outcome

    def acknowledge(self) -> None:
        """
        Closes the outcome notification. A success fires `on_success` (the
        redirect) once and clears the draft; any other outcome keeps the
        draft so the user can fix it and resubmit.
        """
        if self.is_busy:
            return
        succeeded = self.state is SubmissionState.SUCCEEDED
        self.state = SubmissionState.IDLE
        self.outcome = None
        if succeeded:
            self.draft.reset()
            if self.on_success is not None:
                self.on_success()
