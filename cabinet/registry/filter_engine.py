"""Removal of machines matching a removal specification.

A specification is a list of typed predicates plus an explicit composition
mode. The whole specification is validated before the registry is touched,
and the pass runs with exclusive registry access.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Tuple

from ..errors import FilterSpecError
from .entity_registry import EntityRegistry
from .models import DIMENSIONS, MACHINE_FLAGS, Machine

logger = logging.getLogger(__name__)


class PredicateKind(Enum):
    """Kinds of removal predicates."""
    CATEGORY = "category"
    MANUFACTURER = "manufacturer"
    SERIES = "series"
    FLAG = "flag"
    IDENTITY = "identity"
    CLONE = "clone"
    MODIFIED = "modified"


class CompositionMode(Enum):
    """How predicate matches combine."""
    ANY = "any"  # OR: any match removes
    ALL = "all"  # AND: every predicate must match

    @classmethod
    def parse(cls, value: Any) -> 'CompositionMode':
        if isinstance(value, CompositionMode):
            return value
        aliases = {'any': cls.ANY, 'or': cls.ANY, 'all': cls.ALL, 'and': cls.ALL}
        mode = aliases.get(str(value).lower()) if value is not None else None
        if mode is None:
            raise FilterSpecError(f"Unknown composition mode: {value!r} (use 'any' or 'all')")
        return mode


# Predicate kinds that take no values
VALUELESS_KINDS = {PredicateKind.CLONE, PredicateKind.MODIFIED}

MODIFIED_KEYWORDS = ('bootleg', 'playchoice-10', 'nintendo super system', 'prototype')
INVALID_MANUFACTURERS = ('unknown', 'bootleg')
INVALID_PLAYER_MODES = ('bios', 'device', 'non-arcade')


@dataclass(frozen=True)
class RemovalPredicate:
    """One typed predicate, e.g. category in {"Casino", "Quiz"}."""
    kind: PredicateKind
    values: FrozenSet[str] = frozenset()

    def __post_init__(self):
        if not isinstance(self.kind, PredicateKind):
            raise FilterSpecError(f"Unknown predicate kind: {self.kind!r}")
        if self.kind in VALUELESS_KINDS:
            if self.values:
                raise FilterSpecError(f"Predicate '{self.kind.value}' takes no values")
            return
        if not self.values:
            raise FilterSpecError(f"Predicate '{self.kind.value}' needs at least one value")
        if any(not isinstance(value, str) or not value for value in self.values):
            raise FilterSpecError(f"Predicate '{self.kind.value}' values must be non-empty strings")
        if self.kind == PredicateKind.FLAG:
            unknown = self.values - set(MACHINE_FLAGS)
            if unknown:
                raise FilterSpecError(
                    f"Unknown flag(s) {sorted(unknown)}; valid flags: {', '.join(MACHINE_FLAGS)}"
                )

    @property
    def label(self) -> str:
        if not self.values:
            return self.kind.value
        return f"{self.kind.value}:{','.join(sorted(self.values))}"

    def matches(self, machine: Machine) -> bool:
        if self.kind in (PredicateKind.CATEGORY, PredicateKind.MANUFACTURER, PredicateKind.SERIES):
            return getattr(machine, self.kind.value) in self.values
        if self.kind == PredicateKind.FLAG:
            return any(getattr(machine, flag) is True for flag in self.values)
        if self.kind == PredicateKind.IDENTITY:
            return machine.name in self.values
        if self.kind == PredicateKind.CLONE:
            return machine.is_clone()
        return is_modified_machine(machine)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'RemovalPredicate':
        if not isinstance(data, Mapping):
            raise FilterSpecError(f"Predicate must be a mapping, got {type(data).__name__}")
        raw_kind = data.get('kind')
        try:
            kind = PredicateKind(raw_kind)
        except ValueError:
            valid = ', '.join(k.value for k in PredicateKind)
            raise FilterSpecError(f"Unknown predicate kind: {raw_kind!r} (valid: {valid})")

        values = data.get('values', [])
        if isinstance(values, str):
            values = [values]
        if not isinstance(values, (list, tuple, set, frozenset)):
            raise FilterSpecError(f"Predicate '{kind.value}' values must be a list")
        try:
            values = frozenset(values)
        except TypeError:
            raise FilterSpecError(f"Predicate '{kind.value}' values must be strings")
        return cls(kind=kind, values=values)


def is_modified_machine(machine: Machine) -> bool:
    """Bootlegs, prototypes, hacks and non-arcade entries."""
    description = (machine.description or '').lower()
    if any(keyword in description for keyword in MODIFIED_KEYWORDS):
        return True

    manufacturer = (machine.manufacturer or '').lower()
    if any(invalid in manufacturer for invalid in INVALID_MANUFACTURERS):
        return True

    modes = ' '.join(machine.player_modes or ()).lower()
    return any(invalid in modes for invalid in INVALID_PLAYER_MODES)


@dataclass(frozen=True)
class RemovalSpec:
    """
    Removal specification

    Attributes:
        predicates: Predicates to evaluate
        mode: Composition mode, always supplied by the caller
        cascade: Remove manufacturers/categories/series/languages left without machines
    """
    predicates: Tuple[RemovalPredicate, ...]
    mode: CompositionMode
    cascade: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'RemovalSpec':
        """
        Build and validate a specification from config data

        Example:
            RemovalSpec.from_dict({
                'mode': 'any',
                'cascade': True,
                'predicates': [{'kind': 'category', 'values': ['Casino']}],
            })

        Raises:
            FilterSpecError: If any part of the specification is malformed
        """
        if not isinstance(data, Mapping):
            raise FilterSpecError("Filter specification must be a mapping")
        if 'mode' not in data:
            raise FilterSpecError("Filter specification requires an explicit 'mode' ('any' or 'all')")

        mode = CompositionMode.parse(data['mode'])
        raw_predicates = data.get('predicates') or []
        if not isinstance(raw_predicates, list):
            raise FilterSpecError("'predicates' must be a list")
        cascade = data.get('cascade', False)
        if not isinstance(cascade, bool):
            raise FilterSpecError("'cascade' must be a boolean")

        predicates = tuple(RemovalPredicate.from_dict(item) for item in raw_predicates)
        return cls(predicates=predicates, mode=mode, cascade=cascade)


@dataclass
class FilterResult:
    """Outcome of one filter pass"""
    removed: List[str] = field(default_factory=list)
    per_predicate: Dict[RemovalPredicate, int] = field(default_factory=dict)
    orphans_removed: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def total_removed(self) -> int:
        return len(self.removed)


class FilterEngine:
    """Removes machines matching a RemovalSpec from a registry."""

    def __init__(self, registry: EntityRegistry):
        self.registry = registry

    def apply(self, spec: RemovalSpec) -> FilterResult:
        """
        Run one filter pass

        Args:
            spec: Validated removal specification

        Returns:
            FilterResult with removed shortnames and per-predicate counts

        Raises:
            FilterSpecError: If spec is not a RemovalSpec or has no explicit mode
        """
        self._validate(spec)
        result = FilterResult(per_predicate={predicate: 0 for predicate in spec.predicates})

        if not spec.predicates:
            logger.info("Empty filter specification, nothing to remove")
            return result

        with self.registry.gate.exclusive():
            for machine in self.registry._machine_list():
                matched = [predicate for predicate in spec.predicates if predicate.matches(machine)]
                if not self._should_remove(spec, matched):
                    continue
                result.removed.append(machine.name)
                for predicate in matched:
                    result.per_predicate[predicate] += 1

            self.registry.remove_machines(result.removed)

            if spec.cascade:
                result.orphans_removed = self._remove_orphans()

        logger.info(f"Filter ({spec.mode.value}) removed {result.total_removed} machines")
        for predicate, count in result.per_predicate.items():
            logger.info(f"  - {predicate.label}: {count}")
        for kind, names in result.orphans_removed.items():
            if names:
                logger.info(f"  - removed {len(names)} orphaned {DIMENSIONS[kind]}")

        return result

    @staticmethod
    def _validate(spec: RemovalSpec) -> None:
        if not isinstance(spec, RemovalSpec):
            raise FilterSpecError(f"Expected RemovalSpec, got {type(spec).__name__}")
        if not isinstance(spec.mode, CompositionMode):
            raise FilterSpecError(f"Unknown composition mode: {spec.mode!r}")
        for predicate in spec.predicates:
            if not isinstance(predicate, RemovalPredicate):
                raise FilterSpecError(f"Unknown predicate: {predicate!r}")

    @staticmethod
    def _should_remove(spec: RemovalSpec, matched: Iterable[RemovalPredicate]) -> bool:
        matched = list(matched)
        if spec.mode == CompositionMode.ANY:
            return bool(matched)
        return len(matched) == len(spec.predicates)

    def _remove_orphans(self) -> Dict[str, List[str]]:
        orphans: Dict[str, List[str]] = {}
        for kind in DIMENSIONS:
            names = [entity.name for entity in self.registry._dimension_list(kind) if entity.machine_count == 0]
            for name in names:
                self.registry.remove_dimension(kind, name)
            orphans[kind] = names
        return orphans
