# practica/section_definitions.py
from __future__ import annotations
from collections.abc import Callable
from typing import Any, TypedDict

from .form_data_builder import PARTY_TEMPLATES, PartyType
from .utils import AppSchema, FormField, PartyMode
from .validation import (
    EMAIL_PATTERN, ValidatorFunc, is_blank, match_pattern, max_length,
    valid_contract_end, valid_phone,
)

# Decides, from the form data, whether a field blocks submission when blank.
RequirementFunc = Callable[[dict[str, Any]], bool]

CONTRACT_REQUIRED_KEY: str = 'contract_required'
EMAIL_ERROR: str = 'El correo electrónico no es válido'


def mode_key(party: PartyType) -> str:
    """form_data key holding the mode of a party, e.g. 'boss_mode'."""
    return f"{PARTY_TEMPLATES[party]['payload_key']}_mode"


class FieldConfig(TypedDict):
    field: FormField
    required_when: RequirementFunc
    # Format checks; they run only once nothing is missing.
    validators: list[ValidatorFunc]


class SectionDefinition(TypedDict):
    id: int
    name: str
    title: str
    fields: list[FieldConfig]


def always(form_data: dict[str, Any]) -> bool:
    return True

def when_contract(form_data: dict[str, Any]) -> bool:
    return bool(form_data.get(CONTRACT_REQUIRED_KEY))

def when_mode(party: PartyType, mode: PartyMode) -> RequirementFunc:
    def requirement(form_data: dict[str, Any]) -> bool:
        return form_data.get(mode_key(party)) == mode
    return requirement


def _format_validators(field: FormField) -> list[ValidatorFunc]:
    validators: list[ValidatorFunc] = []
    if field.ui_type == 'phone':
        validators.append(valid_phone())
    elif field.ui_type == 'email':
        validators.append(match_pattern(EMAIL_PATTERN, EMAIL_ERROR))
    # Phones are checked on their digits, so the typed length does not matter.
    if field.max_length and field.ui_type != 'phone':
        validators.append(max_length(field.max_length, f"No puede superar {field.max_length} caracteres"))
    return validators

def _party_section(section_id: int, party: PartyType) -> SectionDefinition:
    template = PARTY_TEMPLATES[party]
    fields: list[FieldConfig] = [
        {'field': template['select_field'], 'required_when': when_mode(party, 'select'), 'validators': []},
    ]
    fields.extend(
        {'field': f, 'required_when': when_mode(party, 'create'), 'validators': _format_validators(f)}
        for f in template['create_fields']
    )
    return {'id': section_id, 'name': template['payload_key'], 'title': template['name'], 'fields': fields}


SECTIONS: list[SectionDefinition] = [
    {
        'id': 1, 'name': 'apprentice', 'title': 'Datos del aprendiz',
        'fields': [{'field': AppSchema.APPRENTICE, 'required_when': always, 'validators': []}],
    },
    {
        'id': 2, 'name': 'location', 'title': 'Ubicación',
        'fields': [
            {'field': AppSchema.REGIONAL, 'required_when': always, 'validators': []},
            {'field': AppSchema.CENTER, 'required_when': always, 'validators': []},
            {'field': AppSchema.HEADQUARTERS, 'required_when': always, 'validators': []},
        ],
    },
    {
        'id': 3, 'name': 'training', 'title': 'Formación y modalidad',
        'fields': [
            {'field': AppSchema.PROGRAM, 'required_when': always, 'validators': []},
            {'field': AppSchema.COHORT, 'required_when': always, 'validators': []},
            {'field': AppSchema.MODALITY, 'required_when': always, 'validators': []},
            {'field': AppSchema.CONTRACT_START, 'required_when': when_contract, 'validators': []},
            {'field': AppSchema.CONTRACT_END, 'required_when': when_contract,
             'validators': [valid_contract_end(AppSchema.CONTRACT_START.key)]},
        ],
    },
    _party_section(4, PartyType.ENTERPRISE),
    _party_section(5, PartyType.BOSS),
    _party_section(6, PartyType.HUMAN_TALENT),
    {
        'id': 7, 'name': 'documents', 'title': 'Documentos',
        'fields': [
            {'field': AppSchema.PDF_FILE, 'required_when': always, 'validators': []},
            {'field': AppSchema.TERMS, 'required_when': always, 'validators': []},
        ],
    },
]


def audit_missing_fields(form_data: dict[str, Any]) -> list[FormField]:
    """Every field that is required right now and blank, in form order."""
    return [
        config['field']
        for section in SECTIONS
        for config in section['fields']
        if config['required_when'](form_data) and is_blank(form_data.get(config['field'].key))
    ]


def check_formats(form_data: dict[str, Any]) -> list[str]:
    """Runs the format validators of every applicable field, collecting all errors."""
    errors: list[str] = []
    for section in SECTIONS:
        for config in section['fields']:
            if not config['required_when'](form_data):
                continue
            value = form_data.get(config['field'].key)
            for validator in config['validators']:
                is_valid, message = validator(value, form_data)
                if not is_valid:
                    errors.append(f"{config['field'].label}: {message}")
                    break
    return errors
