"""
Merge Resolver - Applies partial records to the entity registry

Field policies:
- primary: first writer wins; a differing later value is a conflict
- supplemental: last writer wins (history, rating have a single source)
- reference: first writer wins and links a manufacturer/category/series
- multi: set union (languages, resources)
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from ..errors import MergeConflictWarning
from ..sources.records import PartialRecord
from .entity_registry import EntityRegistry
from .models import DIMENSION_FIELDS, FIELD_POLICIES, FieldPolicy

logger = logging.getLogger(__name__)


class MergeOutcome(Enum):
    """Effect of applying one record."""
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    CONFLICT = "conflict"


@dataclass
class MergeStats:
    """Counts for a batch of applied records"""
    applied: int = 0
    unchanged: int = 0
    conflicts: List[MergeConflictWarning] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.applied + self.unchanged + len(self.conflicts)


class MergeResolver:
    """
    Applies PartialRecord objects to an EntityRegistry under the fixed field policy

    Safe to call from several threads: every record is applied inside the
    registry's machine scope for its identity.

    Example:
        resolver = MergeResolver(registry)
        for record in reader.read(stream):
            resolver.apply(record)
    """

    def __init__(self, registry: EntityRegistry):
        """
        Initialize merge resolver

        Args:
            registry: Registry receiving the merged facts
        """
        self.registry = registry
        self._conflicts: List[MergeConflictWarning] = []
        self._conflicts_lock = threading.Lock()

    @property
    def conflicts(self) -> List[MergeConflictWarning]:
        """Conflicts recorded so far, across all sources."""
        with self._conflicts_lock:
            return list(self._conflicts)

    def apply(self, record: PartialRecord) -> MergeOutcome:
        """
        Apply one record

        Args:
            record: Fact to merge

        Returns:
            MergeOutcome describing the effect

        Raises:
            ValueError: If the record names an unknown field
        """
        outcome, _ = self._apply(record)
        return outcome

    def _apply(self, record: PartialRecord) -> Tuple[MergeOutcome, Optional[MergeConflictWarning]]:
        policy = FIELD_POLICIES.get(record.field)
        if policy is None:
            raise ValueError(f"Unknown machine field: {record.field}")

        with self.registry.machine_scope(record.machine) as machine:
            current = getattr(machine, record.field)

            if policy == FieldPolicy.MULTI:
                if record.value in current:
                    return MergeOutcome.UNCHANGED, None
                self._link(record)
                current.add(record.value)
                if record.field in DIMENSION_FIELDS:
                    self.registry.invalidate_counts()
                return MergeOutcome.APPLIED, None

            if current == record.value:
                return MergeOutcome.UNCHANGED, None

            if policy == FieldPolicy.SUPPLEMENTAL or current is None:
                self._link(record)
                setattr(machine, record.field, record.value)
                if policy == FieldPolicy.REFERENCE:
                    self.registry.invalidate_counts()
                return MergeOutcome.APPLIED, None

        # Primary or reference field already populated by an earlier source
        conflict = MergeConflictWarning(
            record.machine, record.field, kept=current, rejected=record.value, source=record.source
        )
        with self._conflicts_lock:
            self._conflicts.append(conflict)
        logger.warning(f"Merge conflict: {conflict}")
        return MergeOutcome.CONFLICT, conflict

    def apply_all(self, records: Iterable[PartialRecord]) -> MergeStats:
        """
        Apply records in order

        Args:
            records: Records from one source, in source order

        Returns:
            MergeStats for the batch
        """
        stats = MergeStats()
        for record in records:
            outcome, conflict = self._apply(record)
            if outcome == MergeOutcome.APPLIED:
                stats.applied += 1
            elif outcome == MergeOutcome.UNCHANGED:
                stats.unchanged += 1
            else:
                stats.conflicts.append(conflict)
        return stats

    def _link(self, record: PartialRecord) -> None:
        """Upsert the dimension entity a reference or language record points at."""
        kind = DIMENSION_FIELDS.get(record.field)
        if kind is not None:
            self.registry.ensure_dimension(kind, record.value)
