"""Error taxonomy for ingestion, filtering and export."""

from typing import Any, Optional


class CabinetError(Exception):
    """Base exception for cabinet errors."""
    pass


class RetrievalError(CabinetError):
    """A collaborator could not provide the byte stream for a dataset."""

    def __init__(self, kind: Any, message: str):
        self.kind = kind
        super().__init__(f"{kind}: {message}")


class FormatError(CabinetError):
    """A dataset stream is structurally unparsable."""

    def __init__(self, kind: Any, offset: int, message: str = "unparsable stream"):
        self.kind = kind
        self.offset = offset
        super().__init__(f"{kind}: {message} (at byte {offset})")


class ExportError(CabinetError):
    """Writing an export artifact failed."""

    def __init__(self, target: Any, encoding: str, message: str):
        self.target = target
        self.encoding = encoding
        super().__init__(f"Failed to write {encoding} export {target}: {message}")


class FilterSpecError(CabinetError):
    """A removal specification is malformed. Raised before any mutation."""
    pass


class MergeConflictWarning(UserWarning):
    """A later source supplied a different value for an already populated field."""

    def __init__(self, machine: str, field: str, kept: Any, rejected: Any, source: Optional[Any] = None):
        self.machine = machine
        self.field = field
        self.kept = kept
        self.rejected = rejected
        self.source = source
        super().__init__(
            f"{machine}.{field}: kept {kept!r}, rejected {rejected!r}"
            + (f" from {source}" if source is not None else "")
        )


class DanglingReferenceWarning(UserWarning):
    """A machine still references an unknown machine after all sources merged."""

    def __init__(self, machine: str, field: str, target: str):
        self.machine = machine
        self.field = field
        self.target = target
        super().__init__(f"{machine}.{field} -> {target} (not found)")
