# practica/catalogs.py
from __future__ import annotations
import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from .errors import DecodeError, ReferenceLoadError

logger = logging.getLogger(__name__)

# ===================================================================
# 1. TYPED REFERENCE RECORDS (decoded at the collaborator boundary)
# ===================================================================

def _int_field(raw: Mapping[str, Any], *keys: str) -> int:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.strip().isdigit():
            return int(value)
        if isinstance(value, Mapping):
            # Some endpoints nest the parent: {"regional": {"id": 3, ...}}
            nested = value.get('id')
            if isinstance(nested, int) and not isinstance(nested, bool):
                return nested
    raise DecodeError(f"missing integer field {'/'.join(keys)} in {dict(raw)!r}")

def _optional_int_field(raw: Mapping[str, Any], *keys: str) -> int:
    try:
        return _int_field(raw, *keys)
    except DecodeError:
        return 0

def _text_field(raw: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = raw.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ''

def _active(raw: Mapping[str, Any]) -> bool:
    value = raw.get('active', True)
    return value if isinstance(value, bool) else bool(value)

def _mapping(raw: Any) -> Mapping[str, Any]:
    if not isinstance(raw, Mapping):
        raise DecodeError(f"expected an object, got {type(raw).__name__}")
    return raw

@dataclass(frozen=True)
class Regional:
    id: int
    name: str
    active: bool = True

    @classmethod
    def from_dict(cls, raw: Any) -> Regional:
        row = _mapping(raw)
        return cls(id=_int_field(row, 'id'), name=_text_field(row, 'name'), active=_active(row))

@dataclass(frozen=True)
class Center:
    id: int
    name: str
    regional_id: int
    active: bool = True

    @classmethod
    def from_dict(cls, raw: Any) -> Center:
        row = _mapping(raw)
        return cls(
            id=_int_field(row, 'id'), name=_text_field(row, 'name'),
            regional_id=_int_field(row, 'regional', 'regional_id'), active=_active(row),
        )

@dataclass(frozen=True)
class Headquarters:
    id: int
    name: str
    center_id: int
    active: bool = True

    @classmethod
    def from_dict(cls, raw: Any) -> Headquarters:
        row = _mapping(raw)
        return cls(
            id=_int_field(row, 'id'), name=_text_field(row, 'name'),
            center_id=_int_field(row, 'center', 'center_id'), active=_active(row),
        )

@dataclass(frozen=True)
class Program:
    id: int
    name: str
    active: bool = True

    @classmethod
    def from_dict(cls, raw: Any) -> Program:
        row = _mapping(raw)
        return cls(id=_int_field(row, 'id'), name=_text_field(row, 'name'), active=_active(row))

@dataclass(frozen=True)
class Cohort:
    id: int
    file_number: str
    program_id: int
    active: bool = True

    @classmethod
    def from_dict(cls, raw: Any) -> Cohort:
        row = _mapping(raw)
        return cls(
            id=_int_field(row, 'id'), file_number=_text_field(row, 'file_number', 'numero_ficha'),
            program_id=_optional_int_field(row, 'program', 'program_id'), active=_active(row),
        )

@dataclass(frozen=True)
class Modality:
    id: int
    name: str
    active: bool = True

    @classmethod
    def from_dict(cls, raw: Any) -> Modality:
        row = _mapping(raw)
        return cls(
            id=_int_field(row, 'id'), name=_text_field(row, 'name_modality', 'name'),
            active=_active(row),
        )

RecordT = TypeVar('RecordT')

def decode_rows(catalog: str, rows: Iterable[Any], decoder: Callable[[Any], RecordT]) -> list[RecordT]:
    """Decodes every row it can; undecodable rows are logged and dropped."""
    decoded: list[RecordT] = []
    for row in rows:
        try:
            decoded.append(decoder(row))
        except DecodeError as e:
            logger.warning(f"Skipping malformed {catalog} row: {e}")
    return decoded

# ===================================================================
# 2. THE REFERENCE DATA LOADER
# ===================================================================

class ReferenceSource(Protocol):
    async def load_regionals(self) -> list[Regional]: ...
    async def load_centers(self) -> list[Center]: ...
    async def load_headquarters(self) -> list[Headquarters]: ...
    async def load_programs(self) -> list[Program]: ...
    async def load_modalities(self) -> list[Modality]: ...

CATALOG_NAMES: tuple[str, ...] = ('regionals', 'centers', 'headquarters', 'programs', 'modalities')

class ReferenceData:
    """
    The option universe for the cascading selects.

    The five catalogs load concurrently. A catalog that fails is accepted as
    empty and its error is recorded; `ready` turns true only once every
    catalog has settled, so the UI never offers a half-loaded list.
    """

    def __init__(self, source: ReferenceSource) -> None:
        self._source = source
        self.regionals: list[Regional] = []
        self.centers: list[Center] = []
        self.headquarters: list[Headquarters] = []
        self.programs: list[Program] = []
        self.modalities: list[Modality] = []
        self.errors: dict[str, ReferenceLoadError] = {}
        self._settled: set[str] = set()

    @property
    def ready(self) -> bool:
        return self._settled.issuperset(CATALOG_NAMES)

    def is_settled(self, catalog: str) -> bool:
        return catalog in self._settled

    def _loader_for(self, catalog: str) -> Callable[[], Awaitable[list[Any]]]:
        return getattr(self._source, f"load_{catalog}")

    async def _load_one(self, catalog: str) -> None:
        try:
            records = await self._loader_for(catalog)()
        except ReferenceLoadError as e:
            logger.warning(f"Reference catalog '{catalog}' failed to load: {e}")
            self.errors[catalog] = e
            records = []
        else:
            self.errors.pop(catalog, None)
            logger.info(f"Loaded {len(records)} {catalog}.")
        setattr(self, catalog, records)
        self._settled.add(catalog)

    async def load(self) -> None:
        """Loads every catalog concurrently."""
        self._settled.clear()
        await asyncio.gather(*(self._load_one(name) for name in CATALOG_NAMES))

    async def retry_failed(self) -> None:
        """Reloads only the catalogs that failed last time."""
        failed = [name for name in CATALOG_NAMES if name in self.errors]
        for name in failed:
            self._settled.discard(name)
        await asyncio.gather(*(self._load_one(name) for name in failed))

    # --- Option lists (inactive records are never offered) ---
    def active_regionals(self) -> list[Regional]:
        return [r for r in self.regionals if r.active]

    def active_programs(self) -> list[Program]:
        return [p for p in self.programs if p.active]

    def active_modalities(self) -> list[Modality]:
        return [m for m in self.modalities if m.active]
