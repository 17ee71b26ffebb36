"""Dataset kinds and the partial records readers produce."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class DatasetKind(Enum):
    """Closed set of community dataset formats."""
    MAME = "mame"
    CATVER = "catver"
    SERIES = "series"
    LANGUAGES = "languages"
    NPLAYERS = "nplayers"
    HISTORY = "history"
    RESOURCES = "resources"
    BESTGAMES = "bestgames"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PartialRecord:
    """One fact about one machine: ``machine.field = value``.

    Attributes:
        machine: Machine shortname (identity)
        field: Machine field name (see ``FIELD_POLICIES``)
        value: Field value; for multi-valued fields a single member
        source: Dataset kind that supplied the fact (None for re-imports)
    """
    machine: str
    field: str
    value: Any
    source: Optional[DatasetKind] = None
