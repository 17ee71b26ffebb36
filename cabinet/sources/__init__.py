"""Dataset readers.

One reader per community dataset kind. Readers turn a byte stream into a lazy
sequence of PartialRecord objects and never mutate the registry.
"""

from .records import DatasetKind, PartialRecord
from .base import SourceReader
from .mame_xml_parser import MAMEXMLReader
from .ini_parser import CatverReader, SeriesReader, LanguagesReader, NPlayersReader, BestGamesReader
from .history_parser import HistoryReader
from .resources_reader import ResourcesReader
from .data_types import READERS, DATA_FILE_PATTERNS, ARCHIVE_PATTERNS, create_reader

__all__ = [
    "DatasetKind",
    "PartialRecord",
    "SourceReader",
    "MAMEXMLReader",
    "CatverReader",
    "SeriesReader",
    "LanguagesReader",
    "NPlayersReader",
    "BestGamesReader",
    "HistoryReader",
    "ResourcesReader",
    "READERS",
    "DATA_FILE_PATTERNS",
    "ARCHIVE_PATTERNS",
    "create_reader",
]
