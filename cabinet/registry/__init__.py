"""Entity registry, merge policy and removal filters."""

from .models import (
    CHILD_TABLES,
    CHILD_TYPES,
    DIMENSIONS,
    EXPORT_FIELDS,
    FIELD_POLICIES,
    MACHINE_FLAGS,
    ROW_FIELDS,
    BiosSet,
    DimensionEntity,
    Disk,
    FieldPolicy,
    HistorySection,
    Machine,
    RegistrySnapshot,
    Rom,
)
from .extended import ExtendedData, describe_players, display_year, normalize_name
from .entity_registry import EntityRegistry, RegistryGate
from .merge_resolver import MergeOutcome, MergeResolver, MergeStats
from .filter_engine import (
    CompositionMode,
    FilterEngine,
    FilterResult,
    PredicateKind,
    RemovalPredicate,
    RemovalSpec,
)

__all__ = [
    "CHILD_TABLES",
    "CHILD_TYPES",
    "DIMENSIONS",
    "EXPORT_FIELDS",
    "FIELD_POLICIES",
    "MACHINE_FLAGS",
    "ROW_FIELDS",
    "BiosSet",
    "DimensionEntity",
    "Disk",
    "FieldPolicy",
    "HistorySection",
    "Machine",
    "RegistrySnapshot",
    "Rom",
    "ExtendedData",
    "describe_players",
    "display_year",
    "normalize_name",
    "EntityRegistry",
    "RegistryGate",
    "MergeOutcome",
    "MergeResolver",
    "MergeStats",
    "CompositionMode",
    "FilterEngine",
    "FilterResult",
    "PredicateKind",
    "RemovalPredicate",
    "RemovalSpec",
]
