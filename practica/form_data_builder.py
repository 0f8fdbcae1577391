from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, TypedDict

from .utils import AppSchema, FormField

# ===================================================================
# 1. DEFINE THE PARTIES ATTACHED TO A REQUEST
# ===================================================================

class PartyType(Enum):
    ENTERPRISE = auto()
    BOSS = auto()
    HUMAN_TALENT = auto()

@dataclass(frozen=True)
class PartyRecord:
    """A backend party row: its id plus the raw fields, kept for tolerant mapping."""
    id: int
    raw: Mapping[str, Any]

# ===================================================================
# 2. DEFINE THE "BLUEPRINT" FOR EACH PARTY
# ===================================================================

class PartyTemplate(TypedDict):
    """How one party is read from the backend and written to the request."""
    name: str
    # Key under which the party sub-object goes in the nested payload.
    payload_key: str
    select_field: FormField
    # Fields the user types in 'create' mode, in display order.
    create_fields: list[FormField]
    # Candidate id keys, first match wins.
    id_keys: tuple[str, ...]
    # Field key -> backend keys, most specific spelling first, generic last.
    display_keys: dict[str, tuple[str, ...]]

# ===================================================================
# 3. THE REGISTRY OF ALL BLUEPRINTS
# ===================================================================

PARTY_TEMPLATES: dict[PartyType, PartyTemplate] = {
    PartyType.ENTERPRISE: {
        'name': 'Empresa',
        'payload_key': 'enterprise',
        'select_field': AppSchema.Enterprise.SELECT,
        'create_fields': [
            AppSchema.Enterprise.NAME, AppSchema.Enterprise.NIT,
            AppSchema.Enterprise.LOCATION, AppSchema.Enterprise.EMAIL,
        ],
        'id_keys': ('id', 'pk', 'enterprise_id', 'id_enterprise'),
        'display_keys': {
            AppSchema.Enterprise.NAME.key: ('name_enterprise', 'empresa_nombre', 'name'),
            AppSchema.Enterprise.NIT.key: ('nit_enterprise', 'enterprise_nit', 'empresa_nit'),
            AppSchema.Enterprise.LOCATION.key: ('locate', 'enterprise_location', 'empresa_ubicacion'),
            AppSchema.Enterprise.EMAIL.key: ('email_enterprise', 'enterprise_email', 'empresa_correo'),
        },
    },
    PartyType.BOSS: {
        'name': 'Jefe inmediato',
        'payload_key': 'boss',
        'select_field': AppSchema.Boss.SELECT,
        'create_fields': [
            AppSchema.Boss.NAME, AppSchema.Boss.PHONE,
            AppSchema.Boss.EMAIL, AppSchema.Boss.POSITION,
        ],
        'id_keys': ('id', 'pk', 'id_boss'),
        'display_keys': {
            AppSchema.Boss.NAME.key: ('name_boss', 'nombre_jefe', 'name', 'first_name'),
            AppSchema.Boss.EMAIL.key: ('email_boss', 'boss_email', 'email'),
            AppSchema.Boss.PHONE.key: ('phone_boss', 'phone_number', 'phone'),
            AppSchema.Boss.POSITION.key: ('position_boss', 'position', 'cargo'),
        },
    },
    PartyType.HUMAN_TALENT: {
        'name': 'Talento humano',
        'payload_key': 'human_talent',
        'select_field': AppSchema.HumanTalent.SELECT,
        'create_fields': [
            AppSchema.HumanTalent.NAME, AppSchema.HumanTalent.EMAIL,
            AppSchema.HumanTalent.PHONE,
        ],
        'id_keys': ('id', 'pk', 'id_human_talent'),
        'display_keys': {
            AppSchema.HumanTalent.NAME.key: ('name_human_talent', 'name', 'first_name'),
            AppSchema.HumanTalent.EMAIL.key: ('email_human_talent', 'email'),
            AppSchema.HumanTalent.PHONE.key: ('phone_human_talent', 'phone_number', 'phone'),
        },
    },
}

# ===================================================================
# 4. TOLERANT FIELD MAPPING
# ===================================================================

def _as_text(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (str, int, float)):
        return str(value).strip()
    return ''

def resolve_field(record: Any, keys: tuple[str, ...]) -> str:
    """
    Returns the first non-blank value found under `keys`, in order, as text.
    Never raises: a non-mapping record or a record with none of the keys
    yields an empty string.
    """
    if not isinstance(record, Mapping):
        return ''
    for key in keys:
        text = _as_text(record.get(key))
        if text:
            return text
    return ''

def resolve_id(record: Any, keys: tuple[str, ...]) -> int | None:
    """Extracts a positive integer id, or None when no key carries one."""
    text = resolve_field(record, keys)
    try:
        value = int(text)
    except ValueError:
        return None
    return value if value > 0 else None

def display_fields_for(party: PartyType, record: Any) -> dict[str, str]:
    """Maps a backend record to the read-only display fields of a party."""
    template = PARTY_TEMPLATES[party]
    return {
        field_key: resolve_field(record, keys)
        for field_key, keys in template['display_keys'].items()
    }

def empty_display_fields(party: PartyType) -> dict[str, str]:
    return {field.key: '' for field in PARTY_TEMPLATES[party]['create_fields']}

def option_label(party: PartyType, record: Any) -> str:
    """Label for the select option of one record."""
    template = PARTY_TEMPLATES[party]
    name_field = template['create_fields'][0]
    label = resolve_field(record, template['display_keys'][name_field.key])
    # A bare first_name reads better with the surname next to it.
    if label and isinstance(record, Mapping) and label == _as_text(record.get('first_name')):
        surname = _as_text(record.get('first_last_name'))
        if surname:
            label = f"{label} {surname}"
    if not label:
        record_id = resolve_id(record, template['id_keys'])
        label = str(record_id) if record_id is not None else ''
    return label
