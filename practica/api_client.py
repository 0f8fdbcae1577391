"""
Async client for the assignment-request REST backend.

Every method decodes the response before returning it, so the engines only
ever see typed records or one of the errors in `practica.errors`.
"""
from __future__ import annotations
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx

from .attachment import PdfAttachment
from .catalogs import (
    Center, Cohort, Headquarters, Modality, Program, Regional, decode_rows,
)
from .config import API_BASE_URL, HTTP_TIMEOUT_SECONDS
from .errors import PdfUploadError, ReferenceLoadError, RequestCreationError
from .form_data_builder import PARTY_TEMPLATES, PartyRecord, PartyType, resolve_id

logger = logging.getLogger(__name__)

RecordT = TypeVar('RecordT')

# Paths relative to API_BASE_URL.
ENDPOINTS: dict[str, str] = {
    'regionals': 'general/regionals/',
    'centers': 'general/centers/',
    'headquarters': 'general/sedes/',
    'programs': 'general/programs/',
    'cohorts': 'general/programs/{id}/fichas/',
    'modalities': 'assign/modality_productive_stage/',
    'enterprises': 'assign/enterprise/',
    'bosses_by_enterprise': 'assign/boss/by-enterprise/',
    'human_talent_by_enterprise': 'assign/human_talent/by-enterprise/',
    'create_request': 'assign/request_asignation/form-request/',
    'upload_pdf': 'assign/form-requests/upload-pdf/',
}

GENERIC_CREATE_ERROR: str = 'Ocurrió un error inesperado al enviar la solicitud.'
GENERIC_UPLOAD_ERROR: str = 'La solicitud fue enviada pero hubo un error al subir el archivo PDF.'


@dataclass(frozen=True)
class CreateRequestResponse:
    id: int | None
    message: str | None = None


@dataclass(frozen=True)
class UploadPdfResponse:
    success: bool
    message: str | None = None


def unwrap_list(body: Any) -> list[Any]:
    """The backend answers either a bare list or {'data': [...]}."""
    if isinstance(body, list):
        return body
    if isinstance(body, Mapping):
        data = body.get('data')
        if isinstance(data, list):
            return data
    return []


def backend_message(body: Any) -> str | None:
    """The human-readable message of a response body, if it has one."""
    if not isinstance(body, Mapping):
        return None
    data = body.get('data')
    for source in (data, body):
        if isinstance(source, Mapping):
            for key in ('message', 'detail', 'error'):
                value = source.get(key)
                if isinstance(value, str) and value.strip():
                    return value.strip()
    return None


def extract_request_id(body: Any) -> int | None:
    """Request id from `data.id`, falling back to a top-level `id`."""
    if not isinstance(body, Mapping):
        return None
    data = body.get('data')
    if isinstance(data, Mapping):
        nested = resolve_id(data, ('id',))
        if nested is not None:
            return nested
    return resolve_id(body, ('id',))


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


class PracticaApiClient:
    """Client for the endpoints the request page talks to."""

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: Base URL of the API, e.g. http://django:8000/api/
            timeout: Seconds before the transport gives up on a call
            transport: Optional transport, used by tests to fake the backend
        """
        self.base_url = base_url.rstrip('/') + '/'
        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> PracticaApiClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    # --- Reference catalogs ---------------------------------------------

    async def _get_list(self, catalog: str, path: str, params: dict[str, str] | None = None) -> list[Any]:
        try:
            response = await self.client.get(path, params=params)
        except httpx.HTTPError as e:
            raise ReferenceLoadError(catalog, f"network error: {e}") from e
        if response.status_code >= 400:
            body = _json_or_none(response)
            message = backend_message(body) or f"status {response.status_code}"
            raise ReferenceLoadError(catalog, message)
        return unwrap_list(_json_or_none(response))

    async def _load(self, catalog: str, decoder: Callable[[Any], RecordT], path: str | None = None) -> list[RecordT]:
        rows = await self._get_list(catalog, path or ENDPOINTS[catalog])
        return decode_rows(catalog, rows, decoder)

    async def load_regionals(self) -> list[Regional]:
        return await self._load('regionals', Regional.from_dict)

    async def load_centers(self) -> list[Center]:
        return await self._load('centers', Center.from_dict)

    async def load_headquarters(self) -> list[Headquarters]:
        return await self._load('headquarters', Headquarters.from_dict)

    async def load_programs(self) -> list[Program]:
        return await self._load('programs', Program.from_dict)

    async def load_cohorts(self, program_id: int) -> list[Cohort]:
        path = ENDPOINTS['cohorts'].format(id=program_id)
        return await self._load('cohorts', Cohort.from_dict, path)

    async def load_modalities(self) -> list[Modality]:
        return await self._load('modalities', Modality.from_dict)

    # --- Parties -----------------------------------------------------------

    async def _load_parties(self, party: PartyType, catalog: str, params: dict[str, str] | None = None) -> list[PartyRecord]:
        rows = await self._get_list(catalog, ENDPOINTS[catalog], params)
        id_keys = PARTY_TEMPLATES[party]['id_keys']
        records: list[PartyRecord] = []
        for row in rows:
            record_id = resolve_id(row, id_keys)
            if record_id is None:
                logger.warning(f"Skipping {catalog} row without an id: {row!r}")
                continue
            records.append(PartyRecord(id=record_id, raw=row))
        return records

    async def load_enterprises(self) -> list[PartyRecord]:
        return await self._load_parties(PartyType.ENTERPRISE, 'enterprises')

    async def load_bosses_by_enterprise(self, enterprise_id: int) -> list[PartyRecord]:
        return await self._load_parties(
            PartyType.BOSS, 'bosses_by_enterprise', {'enterprise_id': str(enterprise_id)})

    async def load_human_talent_by_enterprise(self, enterprise_id: int) -> list[PartyRecord]:
        return await self._load_parties(
            PartyType.HUMAN_TALENT, 'human_talent_by_enterprise', {'enterprise_id': str(enterprise_id)})

    # --- Two-phase submission ----------------------------------------------

    async def create_request(self, payload: dict[str, Any]) -> CreateRequestResponse:
        """
        Creates the request record.

        Raises:
            RequestCreationError: on a transport error or a non-2xx status,
                carrying the backend message when the body has one.
        """
        try:
            response = await self.client.post(ENDPOINTS['create_request'], json=payload)
        except httpx.HTTPError as e:
            raise RequestCreationError(GENERIC_CREATE_ERROR) from e
        body = _json_or_none(response)
        if response.status_code >= 400:
            raise RequestCreationError(backend_message(body) or GENERIC_CREATE_ERROR, response.status_code)
        return CreateRequestResponse(id=extract_request_id(body), message=backend_message(body))

    async def upload_pdf(self, attachment: PdfAttachment, request_id: int) -> UploadPdfResponse:
        """
        Attaches the PDF to an existing request.

        Raises:
            ValueError: when called without a valid request id.
            PdfUploadError: on a transport error or a non-2xx status.
        """
        if not request_id or request_id <= 0:
            raise ValueError('upload_pdf requires the id of a created request')
        files = {'pdf_file': (attachment.filename, attachment.data, attachment.content_type)}
        form = {'request_id': str(request_id)}
        try:
            response = await self.client.post(ENDPOINTS['upload_pdf'], files=files, data=form)
        except httpx.HTTPError as e:
            raise PdfUploadError(GENERIC_UPLOAD_ERROR) from e
        body = _json_or_none(response)
        if response.status_code >= 400:
            raise PdfUploadError(backend_message(body) or GENERIC_UPLOAD_ERROR, response.status_code)
        success = body.get('success', True) if isinstance(body, Mapping) else True
        return UploadPdfResponse(success=bool(success), message=backend_message(body))
