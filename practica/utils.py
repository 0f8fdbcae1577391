# practica/utils.py
from __future__ import annotations
from typing import Any, Literal, TypeAlias
from dataclasses import dataclass

# ===================================================================
# 1. CORE DATA STRUCTURES & TYPE ALIASES
# ===================================================================

PartyMode: TypeAlias = Literal['select', 'create']
NotificationType: TypeAlias = Literal['info', 'warning', 'success']

@dataclass(frozen=True)
class FormField:
    """Defines everything about a form field in one place."""
    key: str
    label: str
    ui_type: str = 'text'
    default_value: Any = ''
    max_length: int | None = None
    payload_key: str | None = None  # attribute name in the nested request body

@dataclass(frozen=True)
class Notification:
    """The single presentation every user-facing outcome resolves to."""
    type: NotificationType
    title: str
    message: str

# ===================================================================
# 2. THE REQUEST SCHEMA (Single Source of Truth)
# ===================================================================

class AppSchema:
    """
    Defines all fields of the assignment request. Party fields are grouped
    in nested classes, the same way the form groups them in sections.
    """
    class Enterprise:
        SELECT = FormField(key='enterprise_id', label='Empresa', ui_type='select', default_value=None)
        NAME = FormField(key='enterprise_name', label='Nombre de la empresa', max_length=100, payload_key='name')
        NIT = FormField(key='enterprise_nit', label='NIT de la empresa', max_length=20, payload_key='tax_id')
        LOCATION = FormField(key='enterprise_location', label='Ubicación de la empresa', max_length=150, payload_key='address')
        EMAIL = FormField(key='enterprise_email', label='Correo de la empresa', ui_type='email', max_length=100, payload_key='email')

    class Boss:
        SELECT = FormField(key='boss_id', label='Jefe inmediato', ui_type='select', default_value=None)
        NAME = FormField(key='boss_name', label='Nombre del jefe', max_length=100, payload_key='name')
        PHONE = FormField(key='boss_phone', label='Teléfono del jefe', ui_type='phone', max_length=10, payload_key='phone')
        EMAIL = FormField(key='boss_email', label='Correo del jefe', ui_type='email', max_length=100, payload_key='email')
        POSITION = FormField(key='boss_position', label='Cargo del jefe', max_length=100, payload_key='position')

    class HumanTalent:
        SELECT = FormField(key='human_talent_id', label='Talento humano', ui_type='select', default_value=None)
        NAME = FormField(key='human_talent_name', label='Nombre de talento humano', max_length=100, payload_key='name')
        EMAIL = FormField(key='human_talent_email', label='Correo de talento humano', ui_type='email', max_length=100, payload_key='email')
        PHONE = FormField(key='human_talent_phone', label='Teléfono de talento humano', ui_type='phone', max_length=10, payload_key='phone')

    APPRENTICE = FormField(key='apprentice', label='Aprendiz', ui_type='identity', default_value=None)
    REGIONAL = FormField(key='regional', label='Regional', ui_type='select', default_value=0)
    CENTER = FormField(key='center', label='Centro de formación', ui_type='select', default_value=0)
    HEADQUARTERS = FormField(key='sede', label='Sede', ui_type='select', default_value=0)
    PROGRAM = FormField(key='program', label='Programa de formación', ui_type='select', default_value=0)
    COHORT = FormField(key='ficha', label='Ficha', ui_type='select', default_value=0)
    MODALITY = FormField(key='modality_productive_stage', label='Modalidad de etapa productiva', ui_type='select', default_value=0)
    CONTRACT_START = FormField(key='date_start_contract', label='Fecha de inicio de contrato', ui_type='date', default_value=None)
    CONTRACT_END = FormField(key='date_end_contract', label='Fecha de fin de contrato', ui_type='date', default_value=None)
    PDF_FILE = FormField(key='pdf_file', label='Documento PDF', ui_type='file', default_value=None)
    TERMS = FormField(key='terms_accepted', label='Aceptación de términos', ui_type='checkbox', default_value=False)

    @classmethod
    def get_all_fields(cls) -> list[FormField]:
        fields = [
            field_instance for field_instance in cls.__dict__.values()
            if isinstance(field_instance, FormField)
        ]
        for group in (cls.Enterprise, cls.Boss, cls.HumanTalent):
            fields.extend(f for f in group.__dict__.values() if isinstance(f, FormField))
        return fields

# ===================================================================
# 3. CENTRALIZED CONSTANTS & SESSION KEYS
# ===================================================================

APPRENTICE_STORAGE_KEY: str = 'apprentice'
DATE_FORMAT_STORAGE: str = '%Y-%m-%d'
MONTH_NAMES: tuple[str, ...] = (
    'enero', 'febrero', 'marzo', 'abril', 'mayo', 'junio',
    'julio', 'agosto', 'septiembre', 'octubre', 'noviembre', 'diciembre',
)
