"""
Shared exporter behaviour.

Exporters are pure projections: they take a quiescent snapshot of the
registry and fully re-create their target artifact on every call.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import astuple, asdict, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..errors import ExportError
from ..registry.entity_registry import EntityRegistry
from ..registry.extended import ExtendedData
from ..registry.models import CHILD_TYPES, EXPORT_FIELDS, Machine, RegistrySnapshot

logger = logging.getLogger(__name__)

# Sets of plain names, exported as sorted lists
NAME_SET_FIELDS = ('languages', 'resources', 'device_refs', 'software_lists', 'samples')

# Derived columns appended to tabular exports
EXTENDED_COLUMNS: Tuple[str, ...] = tuple(f'extended_{f.name}' for f in fields(ExtendedData))


def child_entries(machine: Machine, field_name: str) -> List[Any]:
    """
    Entries of a child field in stable order.

    History sections keep text order, structured sets sort by name and
    name sets sort alphabetically.
    """
    value = getattr(machine, field_name)
    if field_name == 'history_sections':
        return list(value or ())
    if field_name in CHILD_TYPES:
        return sorted(value, key=lambda entry: (entry.name, repr(entry)))
    return sorted(value)


def child_columns(field_name: str) -> Tuple[str, ...]:
    """Column names of a child table: the owning machine, then the entry fields."""
    entry_type = CHILD_TYPES.get(field_name)
    if entry_type is None:
        return ('machine', 'name')
    return ('machine',) + tuple(f.name for f in fields(entry_type))


def child_rows(snapshot: RegistrySnapshot, field_name: str) -> List[Tuple[Any, ...]]:
    """One row per (machine, entry) pair of a child field."""
    rows = []
    for machine in snapshot.machines:
        for entry in child_entries(machine, field_name):
            values = astuple(entry) if field_name in CHILD_TYPES else (entry,)
            rows.append((machine.name,) + values)
    return rows


def extended_values(machine: Machine) -> Dict[str, Any]:
    return asdict(ExtendedData.from_machine(machine))


def machine_values(machine: Machine) -> Dict[str, Any]:
    """
    Field values of a machine in stable export order.

    Name sets become sorted lists, structured child entries become lists
    of objects and player modes keep source order. Absent player modes or
    history sections become an empty list.
    """
    values = {}
    for name in EXPORT_FIELDS:
        value = getattr(machine, name)
        if name in NAME_SET_FIELDS:
            value = sorted(value)
        elif name in CHILD_TYPES:
            value = [asdict(entry) for entry in child_entries(machine, name)]
        elif name == 'player_modes':
            value = list(value or ())
        values[name] = value
    return values


class Exporter(ABC):
    """
    Base class for registry exporters.

    Attributes:
        encoding: Short name of the produced encoding ('json', 'csv', 'sqlite')
    """

    encoding: str

    def export(self, source: Union[EntityRegistry, RegistrySnapshot], target: Path) -> int:
        """
        Write the registry to target, replacing any existing artifact.

        Args:
            source: Registry (snapshotted here) or an existing snapshot
            target: Output file path

        Returns:
            Number of machines written

        Raises:
            ExportError: If the artifact cannot be written
        """
        snapshot = source.snapshot() if isinstance(source, EntityRegistry) else source
        target = Path(target)

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            self._write(snapshot, target)
        except ExportError:
            raise
        except (OSError, ValueError) as e:
            raise ExportError(target, self.encoding, str(e)) from e

        logger.info(f"Exported {len(snapshot.machines)} machines to {target} ({self.encoding})")
        return len(snapshot.machines)

    @abstractmethod
    def _write(self, snapshot: RegistrySnapshot, target: Path) -> None:
        ...


def split_joined(value: Optional[str], delimiter: str) -> List[str]:
    """Inverse of delimiter-joining a multi-valued field."""
    if not value:
        return []
    return [part for part in value.split(delimiter) if part]
