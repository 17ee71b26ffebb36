"""Shared store of machines and dimension entities.

The registry is an explicitly owned object handed to the merge resolver,
the filter engine and the exporters. It provides the locking primitives:

- merges hold the gate in shared mode plus the lock shard of their machine
  identity, so merges for different machines run in parallel while merges
  for the same machine are serialized;
- filter passes and snapshots hold the gate exclusively, so no reader sees a
  half-applied filter and exports only ever see a quiescent registry.
"""

import logging
import threading
import zlib
from collections import Counter
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional

from ..errors import DanglingReferenceWarning
from .models import DIMENSIONS, DimensionEntity, Machine, RegistrySnapshot

logger = logging.getLogger(__name__)


class RegistryGate:
    """Writer-preferring shared/exclusive lock."""

    def __init__(self):
        self._cond = threading.Condition()
        self._shared = 0
        self._exclusive = False
        self._exclusive_waiting = 0

    @contextmanager
    def shared(self) -> Iterator[None]:
        with self._cond:
            while self._exclusive or self._exclusive_waiting:
                self._cond.wait()
            self._shared += 1
        try:
            yield
        finally:
            with self._cond:
                self._shared -= 1
                if self._shared == 0:
                    self._cond.notify_all()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        with self._cond:
            self._exclusive_waiting += 1
            try:
                while self._exclusive or self._shared:
                    self._cond.wait()
            finally:
                self._exclusive_waiting -= 1
            self._exclusive = True
        try:
            yield
        finally:
            with self._cond:
                self._exclusive = False
                self._cond.notify_all()


class EntityRegistry:
    """Machines keyed by shortname plus manufacturer/category/series/language entities."""

    def __init__(self, shard_count: int = 64):
        """
        Initialize an empty registry

        Args:
            shard_count: Number of per-identity lock shards
        """
        self.gate = RegistryGate()
        self._shards = [threading.Lock() for _ in range(shard_count)]
        self._machines: Dict[str, Machine] = {}
        self._machines_lock = threading.Lock()
        self._dimensions: Dict[str, Dict[str, DimensionEntity]] = {kind: {} for kind in DIMENSIONS}
        self._dimension_lock = threading.Lock()
        self._count_cache: Optional[Dict[str, Counter]] = None
        self._version = 0

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def _shard_for(self, identity: str) -> threading.Lock:
        return self._shards[zlib.crc32(identity.encode('utf-8')) % len(self._shards)]

    @contextmanager
    def machine_scope(self, identity: str) -> Iterator[Machine]:
        """Serialize access to one machine, creating it if unknown.

        Holds the gate in shared mode and the identity's lock shard.
        """
        with self.gate.shared(), self._shard_for(identity):
            with self._machines_lock:
                machine = self._machines.get(identity)
                created = machine is None
                if created:
                    machine = Machine(name=identity)
                    self._machines[identity] = machine
            if created:
                self.invalidate_counts()
            yield machine

    # ------------------------------------------------------------------
    # Mutation (called by MergeResolver / FilterEngine only)
    # ------------------------------------------------------------------

    def ensure_dimension(self, kind: str, name: str) -> None:
        """Create a dimension entity on first reference."""
        with self._dimension_lock:
            entities = self._dimensions[kind]
            if name not in entities:
                entities[name] = DimensionEntity(kind=kind, name=name)
                logger.debug(f"Created {kind} '{name}'")
            self._invalidate()

    def invalidate_counts(self) -> None:
        """Drop cached machine counts after a machine field changed."""
        with self._dimension_lock:
            self._invalidate()

    def _invalidate(self) -> None:
        self._version += 1
        self._count_cache = None

    def remove_machines(self, identities: Iterable[str]) -> int:
        """Remove machines. Caller must hold the gate exclusively."""
        removed = 0
        with self._machines_lock:
            for identity in identities:
                if self._machines.pop(identity, None) is not None:
                    removed += 1
        self.invalidate_counts()
        return removed

    def remove_dimension(self, kind: str, name: str) -> bool:
        """Remove a dimension entity. Caller must hold the gate exclusively."""
        with self._dimension_lock:
            removed = self._dimensions[kind].pop(name, None) is not None
            self._invalidate()
        return removed

    # ------------------------------------------------------------------
    # Queries
    #
    # Public queries take the gate in shared mode. Holders of the exclusive
    # gate use the underscored variants (the gate is not reentrant).
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        with self.gate.shared():
            return len(self._machines)

    def __contains__(self, identity: str) -> bool:
        with self.gate.shared():
            return identity in self._machines

    def get_machine(self, identity: str) -> Optional[Machine]:
        with self.gate.shared():
            return self._machines.get(identity)

    def machines(self) -> List[Machine]:
        """Live machine objects sorted by shortname."""
        with self.gate.shared():
            return self._machine_list()

    def dimension_names(self, kind: str) -> List[str]:
        with self.gate.shared():
            with self._dimension_lock:
                return sorted(self._dimensions[kind])

    def machine_count(self, kind: str, name: str) -> int:
        """Number of live machines linked to a dimension entity."""
        with self.gate.shared():
            return self._counts()[kind].get(name, 0)

    def dimensions(self, kind: str) -> List[DimensionEntity]:
        """Dimension entities of one kind with fresh machine counts."""
        with self.gate.shared():
            return self._dimension_list(kind)

    def dangling_references(self) -> List[DanglingReferenceWarning]:
        """clone_of / rom_of references to machines absent from the registry."""
        warnings = []
        with self.gate.shared(), self._machines_lock:
            for name in sorted(self._machines):
                machine = self._machines[name]
                for field_name in ('clone_of', 'rom_of'):
                    target = getattr(machine, field_name)
                    if target is not None and target not in self._machines:
                        warnings.append(DanglingReferenceWarning(name, field_name, target))
        return warnings

    def snapshot(self) -> RegistrySnapshot:
        """Copy the registry while no merge or filter pass is in flight."""
        with self.gate.exclusive():
            machines = tuple(machine.copy() for machine in self._machine_list())
            dimensions = {kind: tuple(self._dimension_list(kind)) for kind in DIMENSIONS}
        return RegistrySnapshot(machines=machines, dimensions=dimensions)

    # Ungated variants; the caller holds the gate

    def _machine_list(self) -> List[Machine]:
        with self._machines_lock:
            return [self._machines[name] for name in sorted(self._machines)]

    def _dimension_list(self, kind: str) -> List[DimensionEntity]:
        counts = self._counts()[kind]
        with self._dimension_lock:
            names = sorted(self._dimensions[kind])
        return [DimensionEntity(kind=kind, name=name, machine_count=counts.get(name, 0)) for name in names]

    def _counts(self) -> Dict[str, Counter]:
        with self._dimension_lock:
            if self._count_cache is not None:
                return self._count_cache
            version = self._version

        counts: Dict[str, Counter] = {kind: Counter() for kind in DIMENSIONS}
        with self._machines_lock:
            for machine in self._machines.values():
                for kind in ('manufacturer', 'category', 'series'):
                    value = getattr(machine, kind)
                    if value is not None:
                        counts[kind][value] += 1
                for language in tuple(machine.languages):
                    counts['language'][language] += 1

        with self._dimension_lock:
            # A mutation during the scan makes the result stale; hand it out uncached
            if self._version == version:
                self._count_cache = counts
        return counts
