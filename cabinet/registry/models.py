"""Entity model for merged machine metadata.

A Machine is keyed by its MAME shortname. Manufacturers, categories, series
and languages are dimension entities keyed by exact name; machines refer to
them by name.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Dict, FrozenSet, Optional, Set, Tuple


class FieldPolicy(Enum):
    """How a field reacts to values from more than one record."""
    PRIMARY = "primary"            # first writer wins
    SUPPLEMENTAL = "supplemental"  # last writer wins (single known source)
    REFERENCE = "reference"        # first writer wins, links a dimension entity
    MULTI = "multi"                # set union


# Dimension kind -> relational table name
DIMENSIONS: Dict[str, str] = {
    'manufacturer': 'manufacturers',
    'series': 'series',
    'category': 'categories',
    'language': 'languages',
}

MACHINE_FLAGS = (
    'is_bios',
    'is_device',
    'is_mechanical',
    'runnable',
    'is_mature',
    'is_casino',
)


@dataclass(frozen=True)
class BiosSet:
    """A selectable BIOS of a machine (``<biosset>``)."""
    name: str
    description: Optional[str] = None


@dataclass(frozen=True)
class Rom:
    """One ROM dump a machine needs (``<rom>``)."""
    name: str
    size: Optional[int] = None
    merge: Optional[str] = None
    status: Optional[str] = None
    crc: Optional[str] = None
    sha1: Optional[str] = None


@dataclass(frozen=True)
class Disk:
    """One CHD disk image a machine needs (``<disk>``)."""
    name: str
    sha1: Optional[str] = None
    merge: Optional[str] = None
    status: Optional[str] = None
    region: Optional[str] = None


@dataclass(frozen=True)
class HistorySection:
    """A titled part of a history entry; order follows the history.xml layout."""
    order: int
    name: str
    text: str


@dataclass
class Machine:
    """Represents one arcade machine merged from every dataset."""
    name: str  # shortname
    description: Optional[str] = None
    year: Optional[str] = None
    manufacturer: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    series: Optional[str] = None
    clone_of: Optional[str] = None
    rom_of: Optional[str] = None
    sample_of: Optional[str] = None
    source_file: Optional[str] = None
    driver_status: Optional[str] = None
    players_min: Optional[int] = None
    players_max: Optional[int] = None
    player_modes: Optional[Tuple[str, ...]] = None
    buttons: Optional[int] = None
    is_bios: Optional[bool] = None
    is_device: Optional[bool] = None
    is_mechanical: Optional[bool] = None
    runnable: Optional[bool] = None
    is_mature: Optional[bool] = None
    is_casino: Optional[bool] = None
    languages: Set[str] = field(default_factory=set)
    resources: Set[str] = field(default_factory=set)
    bios_sets: Set[BiosSet] = field(default_factory=set)
    roms: Set[Rom] = field(default_factory=set)
    disks: Set[Disk] = field(default_factory=set)
    device_refs: Set[str] = field(default_factory=set)
    software_lists: Set[str] = field(default_factory=set)
    samples: Set[str] = field(default_factory=set)
    history: Optional[str] = None
    history_sections: Optional[Tuple[HistorySection, ...]] = None
    rating: Optional[float] = None

    def is_parent(self) -> bool:
        """A machine with no clone-of reference is a parent."""
        return self.clone_of is None

    def is_clone(self) -> bool:
        return self.clone_of is not None or self.rom_of is not None

    def copy(self) -> 'Machine':
        """Return a detached copy (sets are duplicated)."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        for name, value in values.items():
            if isinstance(value, set):
                values[name] = set(value)
        return Machine(**values)


FIELD_POLICIES: Dict[str, FieldPolicy] = {
    'description': FieldPolicy.PRIMARY,
    'year': FieldPolicy.PRIMARY,
    'manufacturer': FieldPolicy.REFERENCE,
    'category': FieldPolicy.REFERENCE,
    'subcategory': FieldPolicy.PRIMARY,
    'series': FieldPolicy.REFERENCE,
    'clone_of': FieldPolicy.PRIMARY,
    'rom_of': FieldPolicy.PRIMARY,
    'sample_of': FieldPolicy.PRIMARY,
    'source_file': FieldPolicy.PRIMARY,
    'driver_status': FieldPolicy.PRIMARY,
    'players_min': FieldPolicy.PRIMARY,
    'players_max': FieldPolicy.PRIMARY,
    'player_modes': FieldPolicy.PRIMARY,
    'buttons': FieldPolicy.PRIMARY,
    'is_bios': FieldPolicy.PRIMARY,
    'is_device': FieldPolicy.PRIMARY,
    'is_mechanical': FieldPolicy.PRIMARY,
    'runnable': FieldPolicy.PRIMARY,
    'is_mature': FieldPolicy.PRIMARY,
    'is_casino': FieldPolicy.PRIMARY,
    'languages': FieldPolicy.MULTI,
    'resources': FieldPolicy.MULTI,
    'bios_sets': FieldPolicy.MULTI,
    'roms': FieldPolicy.MULTI,
    'disks': FieldPolicy.MULTI,
    'device_refs': FieldPolicy.MULTI,
    'software_lists': FieldPolicy.MULTI,
    'samples': FieldPolicy.MULTI,
    'history': FieldPolicy.SUPPLEMENTAL,
    'history_sections': FieldPolicy.SUPPLEMENTAL,
    'rating': FieldPolicy.SUPPLEMENTAL,
}

# Reference and multi-valued fields that link dimension entities
DIMENSION_FIELDS: Dict[str, str] = {
    'manufacturer': 'manufacturer',
    'category': 'category',
    'series': 'series',
    'languages': 'language',
}

# Export field order, shared by every encoding
EXPORT_FIELDS: Tuple[str, ...] = tuple(f.name for f in fields(Machine))

# Machine field -> child table. Tabular encodings write these as separate
# tables keyed by machine name instead of machine columns.
CHILD_TABLES: Dict[str, str] = {
    'bios_sets': 'bios_sets',
    'roms': 'roms',
    'disks': 'disks',
    'device_refs': 'device_refs',
    'software_lists': 'softwares',
    'samples': 'samples',
    'history_sections': 'history_sections',
}

# Structured child entry type per child field; the others hold plain names
CHILD_TYPES = {
    'bios_sets': BiosSet,
    'roms': Rom,
    'disks': Disk,
    'history_sections': HistorySection,
}

# Fields stored on the machine row itself
ROW_FIELDS: Tuple[str, ...] = tuple(name for name in EXPORT_FIELDS if name not in CHILD_TABLES)


@dataclass(frozen=True)
class DimensionEntity:
    """A manufacturer, category, series or language with its live machine count."""
    kind: str
    name: str
    machine_count: int = 0


@dataclass(frozen=True)
class RegistrySnapshot:
    """Quiescent copy of the registry consumed by exporters."""
    machines: Tuple[Machine, ...]
    dimensions: Dict[str, Tuple[DimensionEntity, ...]]

    def dimension_names(self, kind: str) -> FrozenSet[str]:
        return frozenset(entity.name for entity in self.dimensions.get(kind, ()))
