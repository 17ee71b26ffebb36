"""
Collaborators that supply dataset byte streams.

The core only sees ``ResourceProvider.fetch(kind)`` and
``ArchiveAccessor.open_member(handle)``. The implementations here locate
already downloaded files on disk; network retrieval is out of scope.
"""

import logging
import zipfile
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional, Protocol, Union

from ..errors import RetrievalError
from ..sources.data_types import ARCHIVE_PATTERNS, DATA_FILE_PATTERNS
from ..sources.records import DatasetKind
from .coordinator import IngestSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArchiveHandle:
    """A member inside an archive file."""
    archive: Path
    member: str


class ResourceProvider(Protocol):
    def fetch(self, kind: DatasetKind) -> BinaryIO:
        """Open the byte stream for a dataset. Raises RetrievalError."""
        ...


class ArchiveAccessor(Protocol):
    def members(self, archive: Path) -> List[str]:
        ...

    def open_member(self, handle: ArchiveHandle) -> BinaryIO:
        """Open one archive member as a byte stream. Raises RetrievalError."""
        ...


class ZipArchiveAccessor:
    """Opens members of zip archives."""

    def members(self, archive: Path) -> List[str]:
        try:
            with zipfile.ZipFile(archive, 'r') as zip_ref:
                return [info.filename for info in zip_ref.infolist() if not info.is_dir()]
        except (zipfile.BadZipFile, OSError) as e:
            raise RetrievalError(archive.name, f"cannot read archive: {e}") from e

    def open_member(self, handle: ArchiveHandle) -> BinaryIO:
        try:
            # The member stream keeps the archive file open after the ZipFile closes
            with zipfile.ZipFile(handle.archive, 'r') as zip_ref:
                return zip_ref.open(handle.member, 'r')
        except KeyError as e:
            raise RetrievalError(handle.archive.name, f"no member {handle.member!r}") from e
        except (zipfile.BadZipFile, OSError) as e:
            raise RetrievalError(handle.archive.name, f"cannot open {handle.member!r}: {e}") from e


class DirectoryResourceProvider:
    """
    Finds dataset files under a workspace directory.

    For each dataset kind the data file is searched recursively by its
    filename pattern. When no extracted file exists, a matching archive is
    opened through the archive accessor instead.

    Example:
        provider = DirectoryResourceProvider(Path('workspace'))
        stream = provider.fetch(DatasetKind.CATVER)
    """

    def __init__(self, root: Path, archive_accessor: Optional[ArchiveAccessor] = None):
        """
        Initialize provider

        Args:
            root: Workspace directory holding extracted files and/or archives
            archive_accessor: Accessor for archives (zip by default)
        """
        self.root = Path(root)
        self.archive_accessor = archive_accessor or ZipArchiveAccessor()

    def locate(self, kind: DatasetKind) -> Union[Path, ArchiveHandle]:
        """
        Find the data file for a dataset kind

        Returns:
            Path of an extracted data file, or a handle into an archive

        Raises:
            RetrievalError: If neither a data file nor an archive is found
        """
        if not self.root.is_dir():
            raise RetrievalError(kind, f"workspace directory not found: {self.root}")

        data_pattern = DATA_FILE_PATTERNS[kind]
        data_file = self._find(data_pattern, kind)
        if data_file is not None:
            return data_file

        archive = self._find(ARCHIVE_PATTERNS[kind], kind)
        if archive is not None:
            for member in self.archive_accessor.members(archive):
                if data_pattern.search(Path(member).name):
                    return ArchiveHandle(archive=archive, member=member)
            raise RetrievalError(kind, f"no data file inside {archive.name}")

        raise RetrievalError(kind, f"no data file matching {data_pattern.pattern!r} in {self.root}")

    def fetch(self, kind: DatasetKind) -> BinaryIO:
        location = self.locate(kind)
        if isinstance(location, ArchiveHandle):
            logger.debug(f"Opening {location.member} from {location.archive.name}")
            return self.archive_accessor.open_member(location)

        logger.debug(f"Opening {location}")
        try:
            return open(location, 'rb')
        except OSError as e:
            raise RetrievalError(kind, f"cannot open {location}: {e}") from e

    def _find(self, pattern, kind: DatasetKind) -> Optional[Path]:
        # Prefer a folder named after the dataset kind (workspace/extracted/<kind>)
        candidates = sorted(self.root.rglob('*'), key=lambda path: (kind.value not in path.parts, str(path)))
        for path in candidates:
            if path.is_file() and pattern.search(path.name):
                return path
        return None


def sources_from_provider(provider: ResourceProvider, kinds: Optional[Iterable[DatasetKind]] = None) -> List[IngestSource]:
    """
    Build one IngestSource per dataset kind from a resource provider.

    Streams are opened lazily by the coordinator, so retrieval failures are
    reported per dataset.
    """
    selected = list(kinds) if kinds is not None else list(DatasetKind)
    return [IngestSource(kind=kind, open_stream=partial(provider.fetch, kind)) for kind in selected]
