"""Event types for ingestion progress.

Events are immutable dataclasses emitted by the ingest coordinator, one
stream per dataset kind. Every attempted dataset receives exactly one
terminal event: FinishEvent or ErrorEvent.
"""

from dataclasses import dataclass
from typing import Optional, Union

from ..sources.records import DatasetKind


@dataclass(frozen=True)
class InfoEvent:
    """Informational message about a dataset.

    Attributes:
        kind: Dataset kind
        message: Human-readable message
    """
    kind: DatasetKind
    message: str


@dataclass(frozen=True)
class ProgressEvent:
    """Emitted while a dataset stream is consumed.

    Attributes:
        kind: Dataset kind
        current: Bytes consumed so far
        total: Stream size in bytes, if known
    """
    kind: DatasetKind
    current: int
    total: Optional[int] = None

    @property
    def fraction(self) -> Optional[float]:
        if not self.total:
            return None
        return min(1.0, self.current / self.total)


@dataclass(frozen=True)
class FinishEvent:
    """Terminal event for a dataset merged without error.

    Attributes:
        kind: Dataset kind
        message: Summary (records applied, entries skipped, conflicts)
    """
    kind: DatasetKind
    message: str


@dataclass(frozen=True)
class ErrorEvent:
    """Terminal event for a dataset that failed.

    Attributes:
        kind: Dataset kind
        message: Error description
        error_type: Exception class name (e.g., 'FormatError')
    """
    kind: DatasetKind
    message: str
    error_type: str = 'Error'


IngestEvent = Union[InfoEvent, ProgressEvent, FinishEvent, ErrorEvent]

TERMINAL_EVENTS = (FinishEvent, ErrorEvent)
