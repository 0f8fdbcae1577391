# ===================================================================
# 1. IMPORTS
# ===================================================================
import logging
from typing import Any, cast

from nicegui import app, ui

# Local application imports
from .api_client import PracticaApiClient
from .attachment import PdfAttachment, count_pdf_pages
from .catalogs import ReferenceData
from .config import HOME_ROUTE, PORT, REQUEST_ROUTE, STORAGE_SECRET
from .errors import ValidationError
from .form_data_builder import PARTY_TEMPLATES, PartyType
from .request_form import ApprenticeIdentity, RequestDraft
from .submission import CONFIRM_MESSAGE, CONFIRM_TITLE, SubmissionOrchestrator
from .utils import APPRENTICE_STORAGE_KEY, AppSchema, FormField, Notification

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

MODE_OPTIONS: dict[str, str] = {'select': 'Seleccionar existente', 'create': 'Registrar nuevo'}
NOTIFICATION_COLORS: dict[str, str] = {'info': 'primary', 'warning': 'warning', 'success': 'positive'}
MISSING_APPRENTICE = Notification(
    'warning', 'Datos de aprendiz no encontrados',
    'No se encontraron los datos del aprendiz en la sesión. Inicia sesión nuevamente.',
)

# ===================================================================
# 2. SESSION HELPERS
# ===================================================================

def get_apprentice() -> ApprenticeIdentity | None:
    """Reads the apprentice stored at login. The form never writes it back."""
    user_storage = cast(dict[str, Any], app.storage.user)
    return ApprenticeIdentity.from_storage(user_storage.get(APPRENTICE_STORAGE_KEY))

# ===================================================================
# 3. FIELD WIDGETS
# ===================================================================

def _select(f: FormField, options: dict[int, str], value: int, on_change: Any, enabled: bool = True) -> ui.select:
    element = ui.select(options=options, label=f.label, value=value or None, on_change=on_change)
    element.props('outlined dense').classes('w-full')
    element.set_enabled(enabled and bool(options))
    return element

def _readonly(f: FormField, value: str) -> ui.input:
    return ui.input(label=f.label, value=value).props('outlined dense readonly').classes('w-full')

def _text(f: FormField, value: str, on_change: Any) -> ui.input:
    element = ui.input(label=f.label, value=value, on_change=on_change)
    props_list: list[str] = ['outlined', 'dense']
    if f.max_length and f.ui_type != 'phone':
        props_list.append(f"maxlength={f.max_length}")
    if f.ui_type == 'email':
        props_list.append('type=email')
    element.props(' '.join(props_list)).classes('w-full')
    return element

# ===================================================================
# 4. PAGE ROUTING
# ===================================================================

@ui.page(REQUEST_ROUTE)
async def request_page() -> None:
    client = PracticaApiClient()
    ui.context.client.on_disconnect(client.aclose)

    apprentice = get_apprentice()
    reference = ReferenceData(client)
    draft = RequestDraft(reference, client, apprentice)
    orchestrator = SubmissionOrchestrator(draft, client, on_success=lambda: ui.navigate.to(HOME_ROUTE))
    selection = draft.selection
    parties = draft.parties
    contract = draft.contract

    # --- Notification dialog (one for every outcome) ---
    current_notice: dict[str, Notification | None] = {'value': None}

    @ui.refreshable
    def notice_body() -> None:
        notice = current_notice['value']
        if notice is None:
            return
        ui.label(notice.title).classes(f"text-h6 text-{NOTIFICATION_COLORS[notice.type]}")
        ui.label(notice.message).classes('whitespace-pre-line')

    def show_notification(notice: Notification) -> None:
        current_notice['value'] = notice
        notice_body.refresh()
        notice_dialog.open()

    def close_notification() -> None:
        notice_dialog.close()
        current_notice['value'] = None
        if orchestrator.outcome is not None:
            orchestrator.acknowledge()
            refresh_form()

    with ui.dialog().props('persistent') as notice_dialog, ui.card().classes('q-pa-md'):
        notice_body()
        ui.button('Aceptar', on_click=close_notification).props('color=primary').classes('self-end')

    # --- Loading overlay ---
    with ui.dialog().props('persistent') as loading_dialog, ui.card().classes('items-center q-pa-lg'):
        ui.spinner(size='lg')
        ui.label().bind_text_from(orchestrator, 'busy_message', backward=lambda m: m or '')

    # --- Confirmation gate ---
    async def run_submission() -> None:
        confirm_dialog.close()
        loading_dialog.open()
        try:
            outcome = await orchestrator.confirm()
        finally:
            loading_dialog.close()
        if outcome is not None:
            show_notification(outcome.notification)

    def cancel_submission() -> None:
        orchestrator.cancel_confirmation()
        confirm_dialog.close()

    with ui.dialog().props('persistent') as confirm_dialog, ui.card().classes('q-pa-md'):
        ui.label(CONFIRM_TITLE).classes('text-h6')
        ui.label(CONFIRM_MESSAGE)
        with ui.row().classes('w-full justify-end'):
            ui.button('Cancelar', on_click=cancel_submission).props('flat')
            ui.button('Sí, enviar', on_click=run_submission).props('color=primary')

    def open_confirmation() -> None:
        if orchestrator.request_submit():
            confirm_dialog.open()

    # --- Sections ---
    def apprentice_section() -> None:
        ui.label('Datos del aprendiz').classes('text-h6')
        if apprentice is None:
            ui.label(MISSING_APPRENTICE.message).classes('text-negative')
            return
        with ui.grid(columns=2).classes('w-full'):
            ui.input('Nombre', value=apprentice.full_name).props('outlined dense readonly')
            ui.input('Tipo de documento', value=apprentice.document_type).props('outlined dense readonly')
            ui.input('Número de documento', value=apprentice.document_number).props('outlined dense readonly')
            ui.input('Correo', value=apprentice.email).props('outlined dense readonly')

    @ui.refreshable
    def reference_banner() -> None:
        if not reference.errors:
            return

        async def retry() -> None:
            await reference.retry_failed()
            refresh_form()

        with ui.row().classes('w-full items-center bg-orange-1 q-pa-sm rounded-borders'):
            ui.label('No se pudieron cargar algunos catálogos: ' + ', '.join(sorted(reference.errors)))
            ui.button('Reintentar', on_click=retry).props('flat dense color=warning')

    @ui.refreshable
    def location_section() -> None:
        state = selection.state
        ready = reference.ready

        def on_regional(e: Any) -> None:
            selection.set_regional(e.value)
            location_section.refresh()

        def on_center(e: Any) -> None:
            selection.set_center(e.value)
            location_section.refresh()

        ui.label('Ubicación').classes('text-h6')
        with ui.grid(columns=3).classes('w-full'):
            _select(AppSchema.REGIONAL, {r.id: r.name for r in reference.active_regionals()},
                    state.regional_id, on_regional, enabled=ready)
            _select(AppSchema.CENTER, {c.id: c.name for c in selection.centers_for(state.regional_id)},
                    state.center_id, on_center, enabled=ready)
            _select(AppSchema.HEADQUARTERS, {h.id: h.name for h in selection.headquarters_for(state.center_id)},
                    state.headquarters_id, lambda e: selection.set_headquarters(e.value), enabled=ready)

    @ui.refreshable
    def training_section() -> None:
        state = selection.state
        ready = reference.ready

        async def on_program(e: Any) -> None:
            selection.set_program(e.value)
            training_section.refresh()
            await selection.load_cohorts()
            training_section.refresh()

        async def retry_cohorts() -> None:
            await selection.retry_cohorts()
            training_section.refresh()

        def on_modality(e: Any) -> None:
            draft.set_modality(e.value)
            training_section.refresh()

        def on_start(e: Any) -> None:
            contract.set_start_date(e.value)
            training_section.refresh()

        def on_end(e: Any) -> None:
            contract.set_end_date(e.value)
            training_section.refresh()

        ui.label('Formación y modalidad').classes('text-h6')
        with ui.grid(columns=3).classes('w-full'):
            _select(AppSchema.PROGRAM, {p.id: p.name for p in reference.active_programs()},
                    state.program_id, on_program, enabled=ready)
            _select(AppSchema.COHORT, {c.id: c.file_number for c in selection.cohorts},
                    state.cohort_id, lambda e: selection.set_cohort(e.value),
                    enabled=ready and not selection.cohorts_loading)
            _select(AppSchema.MODALITY, {m.id: m.name for m in reference.active_modalities()},
                    state.modality_id, on_modality, enabled=ready)
        if selection.cohorts_loading:
            ui.label('Cargando fichas...').classes('text-caption')
        if selection.cohort_error:
            with ui.row().classes('items-center'):
                ui.label(selection.cohort_error).classes('text-negative')
                ui.button('Reintentar', on_click=retry_cohorts).props('flat dense')

        window = contract.window
        if not window.required:
            return
        with ui.grid(columns=2).classes('w-full'):
            start_value = window.start_date.isoformat() if window.start_date else ''
            ui.input(AppSchema.CONTRACT_START.label, value=start_value, on_change=on_start) \
                .props('outlined dense type=date stack-label').classes('w-full')
            end_input = ui.input(AppSchema.CONTRACT_END.label,
                                 value=window.end_date.isoformat() if window.end_date else '',
                                 on_change=on_end).props('outlined dense type=date stack-label').classes('w-full')
            bounds = contract.end_date_bounds()
            if bounds is None:
                end_input.disable()
            else:
                end_input.props(f"min={bounds[0].isoformat()} max={bounds[1].isoformat()}")
        if window.end_date is not None:
            error = contract.validation_error()
            if error:
                ui.label(error).classes('text-negative')

    def party_block(party: PartyType) -> None:
        template = PARTY_TEMPLATES[party]
        resolution = parties[party]
        scoped_to_enterprise = party is not PartyType.ENTERPRISE

        async def on_mode(e: Any) -> None:
            await parties.change_mode(party, e.value)
            parties_section.refresh()

        async def on_selected(e: Any) -> None:
            parties.set_selected_id(party, e.value)
            parties_section.refresh()
            if not scoped_to_enterprise:
                await parties.reload_dependents()
                parties_section.refresh()

        def on_typed(key: str) -> Any:
            return lambda e: parties.set_display_field(party, key, e.value or '')

        ui.label(template['name']).classes('text-h6')
        ui.radio(MODE_OPTIONS, value=resolution.mode, on_change=on_mode).props('inline')
        if resolution.mode == 'select':
            enabled = not resolution.loading and (not scoped_to_enterprise or bool(parties.current_enterprise_id()))
            _select(template['select_field'], parties.options(party), resolution.selected_id, on_selected, enabled=enabled)
            if resolution.error:
                ui.label(resolution.error).classes('text-negative')
            if scoped_to_enterprise and not parties.current_enterprise_id():
                ui.label('Seleccione primero una empresa registrada.').classes('text-caption')
        with ui.grid(columns=2).classes('w-full'):
            for f in template['create_fields']:
                value = resolution.display_fields.get(f.key, '')
                if resolution.mode == 'select':
                    _readonly(f, value)
                else:
                    _text(f, value, on_typed(f.key))

    @ui.refreshable
    def parties_section() -> None:
        for party in PartyType:
            party_block(party)

    async def handle_upload(e: Any) -> None:
        data = e.content.read()
        try:
            attachment = PdfAttachment.from_upload(e.name, e.type, data)
            page_count = count_pdf_pages(data)
        except ValidationError as err:
            logger.info(f"Rejected upload '{e.name}': {err.messages}")
            draft.clear_pdf()
            upload.reset()
            show_notification(Notification('warning', err.title, '\n'.join(err.messages)))
            return
        draft.attach_pdf(attachment)
        ui.notify(f"{attachment.filename}: {page_count} página(s)", type='positive')

    def documents_section() -> None:
        ui.label(AppSchema.PDF_FILE.label).classes('text-h6')
        ui.label('Solo archivos PDF de máximo 1MB.').classes('text-caption')

    def refresh_form() -> None:
        reference_banner.refresh()
        location_section.refresh()
        training_section.refresh()
        parties_section.refresh()
        terms_checkbox.set_value(draft.terms_accepted)
        if draft.attachment is None:
            upload.reset()

    # --- Layout ---
    ui.query('body').style('background-color: #f0f2f5;')
    with ui.header(elevated=True).classes('bg-primary text-white q-pa-sm items-center'):
        ui.label('Solicitud de asignación de etapa práctica').classes('text-h5')
        ui.space()
        ui.button('Inicio', on_click=lambda: ui.navigate.to(HOME_ROUTE), icon='home').props('flat dense color=white')

    with ui.column().classes('w-full items-center'):
        with ui.card().classes('q-pa-md shadow-4').style('width: 95%; max-width: 900px;'):
            with ui.column().classes('w-full'):
                apprentice_section()
                reference_banner()
                location_section()
                training_section()
                parties_section()
                documents_section()
                upload = ui.upload(on_upload=handle_upload, auto_upload=True, max_files=1) \
                    .props('accept=application/pdf').classes('w-full')
                terms_checkbox = ui.checkbox(
                    'Acepto los términos y condiciones del proceso de etapa práctica',
                    value=draft.terms_accepted,
                    on_change=lambda e: draft.set_terms_accepted(e.value),
                )
                ui.button('Enviar solicitud', on_click=open_confirmation) \
                    .props('color=primary').classes('self-end') \
                    .bind_enabled_from(orchestrator, 'is_busy', backward=lambda busy: not busy)

    # Reference data loads once the browser is attached, so the selects can render disabled first.
    await ui.context.client.connected()
    if apprentice is None:
        show_notification(MISSING_APPRENTICE)
    await reference.load()
    await parties.load_enterprises()
    refresh_form()


@ui.page('/')
@ui.page(HOME_ROUTE)
def home_page() -> None:
    with ui.column().classes('w-full h-screen items-center justify-center'):
        with ui.card().classes('q-pa-md shadow-4'):
            ui.label('Etapa práctica').classes('text-h5')
            ui.button('Nueva solicitud', on_click=lambda: ui.navigate.to(REQUEST_ROUTE)).props('color=primary')


if __name__ in {"__main__", "__mp_main__"}:
    ui.run(
        host='0.0.0.0',
        port=PORT,
        title='Solicitud de etapa práctica',
        storage_secret=STORAGE_SECRET,
    )
