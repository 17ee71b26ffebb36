"""Shared machinery for dataset readers.

Readers consume a binary stream and lazily yield PartialRecord objects. They
never touch the registry.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import BinaryIO, Iterator, Optional, Tuple

from lxml import etree

from ..errors import FormatError
from .records import DatasetKind, PartialRecord

logger = logging.getLogger(__name__)

SHORTNAME_PATTERN = re.compile(r'^[a-z0-9_]+$')


def normalize_shortname(raw: Optional[str]) -> Optional[str]:
    """Lowercase and validate a machine shortname.

    Returns:
        Normalized shortname, or None if it is empty or contains illegal characters
    """
    if raw is None:
        return None
    shortname = raw.strip().lower()
    if not shortname or not SHORTNAME_PATTERN.match(shortname):
        return None
    return shortname


class CountingStream:
    """File-like wrapper that tracks how many bytes were consumed."""

    def __init__(self, stream: BinaryIO):
        self._stream = stream
        self.offset = 0

    def read(self, size: int = -1) -> bytes:
        data = self._stream.read(size)
        self.offset += len(data)
        return data

    def __iter__(self) -> Iterator[bytes]:
        for line in self._stream:
            self.offset += len(line)
            yield line


class SourceReader(ABC):
    """Base class for dataset readers.

    Attributes:
        kind: Dataset kind handled by the reader
        processed: Entries turned into records so far
        skipped: Malformed entries skipped so far
    """

    kind: DatasetKind

    def __init__(self):
        self.processed = 0
        self.skipped = 0
        self._counter: Optional[CountingStream] = None

    @property
    def offset(self) -> int:
        """Bytes consumed from the current stream."""
        return self._counter.offset if self._counter else 0

    def read(self, stream: BinaryIO) -> Iterator[PartialRecord]:
        """Lazily yield partial records from a byte stream.

        Raises:
            FormatError: If the stream is structurally unparsable
        """
        self._counter = CountingStream(stream)
        return self._read(self._counter)

    @abstractmethod
    def _read(self, stream: CountingStream) -> Iterator[PartialRecord]:
        ...

    def _record(self, machine: str, field: str, value) -> PartialRecord:
        return PartialRecord(machine=machine, field=field, value=value, source=self.kind)

    def _skip(self, reason: str) -> None:
        self.skipped += 1
        logger.debug(f"{self.kind}: skipped entry at byte {self.offset} ({reason})")


class LineReader(SourceReader):
    """Base class for the INI-style readers.

    Handles decoding, comments, section headers and the folder settings
    sections shared by the progettosnaps and arcadebelgium files.
    """

    IGNORED_SECTIONS = {'FOLDER_SETTINGS', 'ROOT_FOLDER'}

    def _read(self, stream: CountingStream) -> Iterator[PartialRecord]:
        for section, line in self._lines(stream):
            yield from self._parse_line(section, line)

    def _lines(self, stream: CountingStream) -> Iterator[Tuple[Optional[str], str]]:
        """Yield (section, line) pairs for content lines outside ignored sections."""
        section = None
        for raw in stream:
            if b'\x00' in raw:
                raise FormatError(self.kind, stream.offset - len(raw), "binary content in text dataset")

            line = self._decode(raw).strip()

            # Skip empty lines and comments
            if not line or line.startswith(';'):
                continue

            # Check for section header [SectionName]
            if line.startswith('[') and line.endswith(']'):
                section = line[1:-1].strip()
                continue

            if section in self.IGNORED_SECTIONS:
                continue

            yield section, line

    @staticmethod
    def _decode(raw: bytes) -> str:
        try:
            return raw.decode('utf-8')
        except UnicodeDecodeError:
            return raw.decode('latin-1')

    @staticmethod
    def _split_key_value(line: str) -> Tuple[str, str]:
        key, _, value = line.partition('=')
        return key.strip(), value.strip()

    @abstractmethod
    def _parse_line(self, section: Optional[str], line: str) -> Iterator[PartialRecord]:
        ...


class SectionListReader(LineReader):
    """Reader for files where the section names the value and lines list shortnames."""

    field_name: str

    def _parse_line(self, section: Optional[str], line: str) -> Iterator[PartialRecord]:
        if section is None:
            self._skip("entry outside any section")
            return

        # Folder settings leak into some sections as key=value pairs
        if '=' in line:
            return

        value = self._section_value(section)
        if value is None:
            self._skip(f"section [{section}] carries no value")
            return

        shortname = normalize_shortname(line)
        if shortname is None:
            self._skip(f"invalid shortname {line!r}")
            return

        self.processed += 1
        yield self._record(shortname, self.field_name, value)

    def _section_value(self, section: str):
        return section


class XMLReader(SourceReader):
    """Base class for the XML datasets, streamed with ``lxml.etree.iterparse``."""

    tags: Tuple[str, ...]

    def _read(self, stream: CountingStream) -> Iterator[PartialRecord]:
        try:
            for _, element in etree.iterparse(
                stream, events=('end',), tag=self.tags, huge_tree=True, resolve_entities=False
            ):
                yield from self._parse_element(element)

                # Free consumed elements to keep memory flat on 200MB+ files
                element.clear()
                parent = element.getparent()
                if parent is not None:
                    while element.getprevious() is not None:
                        del parent[0]
        except etree.XMLSyntaxError as e:
            raise FormatError(self.kind, stream.offset, f"malformed XML: {e}") from e

    @abstractmethod
    def _parse_element(self, element) -> Iterator[PartialRecord]:
        ...

    @staticmethod
    def _child_text(element, tag: str) -> Optional[str]:
        child = element.find(tag)
        if child is None or child.text is None:
            return None
        text = child.text.strip()
        return text or None
