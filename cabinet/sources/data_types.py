"""Static lookup from dataset kind to reader and data file patterns.

The mapping must cover every DatasetKind; a missing entry fails at import.
"""

import re
from typing import Dict, Pattern, Type

from .base import SourceReader
from .history_parser import HistoryReader
from .ini_parser import BestGamesReader, CatverReader, LanguagesReader, NPlayersReader, SeriesReader
from .mame_xml_parser import MAMEXMLReader
from .records import DatasetKind
from .resources_reader import ResourcesReader

READERS: Dict[DatasetKind, Type[SourceReader]] = {
    DatasetKind.MAME: MAMEXMLReader,
    DatasetKind.CATVER: CatverReader,
    DatasetKind.SERIES: SeriesReader,
    DatasetKind.LANGUAGES: LanguagesReader,
    DatasetKind.NPLAYERS: NPlayersReader,
    DatasetKind.HISTORY: HistoryReader,
    DatasetKind.RESOURCES: ResourcesReader,
    DatasetKind.BESTGAMES: BestGamesReader,
}

# Data file inside the extracted folder or archive
DATA_FILE_PATTERNS: Dict[DatasetKind, Pattern] = {
    DatasetKind.MAME: re.compile(r'MAME\s+[0-9]*\.[0-9]+\.dat$|^mame[0-9]*\.xml$', re.IGNORECASE),
    DatasetKind.CATVER: re.compile(r'^catver\.ini$', re.IGNORECASE),
    DatasetKind.SERIES: re.compile(r'^series\.ini$', re.IGNORECASE),
    DatasetKind.LANGUAGES: re.compile(r'^languages\.ini$', re.IGNORECASE),
    DatasetKind.NPLAYERS: re.compile(r'^nplayers\.ini$', re.IGNORECASE),
    DatasetKind.HISTORY: re.compile(r'^history\.xml$', re.IGNORECASE),
    DatasetKind.RESOURCES: re.compile(r'^pS_AllProject_\d{8}_\d+_\([a-zA-Z]+\)\.dat$'),
    DatasetKind.BESTGAMES: re.compile(r'^bestgames\.ini$', re.IGNORECASE),
}

# Downloaded archive holding the data file
ARCHIVE_PATTERNS: Dict[DatasetKind, Pattern] = {
    DatasetKind.MAME: re.compile(r'^MAME_Dats_\d+\.zip$'),
    DatasetKind.CATVER: re.compile(r'^pS_CatVer_\d+\.zip$'),
    DatasetKind.SERIES: re.compile(r'^pS_Series_\d+\.zip$'),
    DatasetKind.LANGUAGES: re.compile(r'^pS_Languages_\d+\.zip$'),
    DatasetKind.NPLAYERS: re.compile(r'^nplayers0\d+\.zip$'),
    DatasetKind.HISTORY: re.compile(r'^history\d+\.zip$'),
    DatasetKind.RESOURCES: re.compile(r'^pS_AllProject_\d{8}_\d+_\([a-zA-Z]+\)\.zip$'),
    DatasetKind.BESTGAMES: re.compile(r'^pS_BestGames_\d+\.zip$'),
}

for _table in (READERS, DATA_FILE_PATTERNS, ARCHIVE_PATTERNS):
    _missing = set(DatasetKind) - set(_table)
    if _missing:
        raise ImportError(f"No entry for dataset kinds: {sorted(k.value for k in _missing)}")


def create_reader(kind: DatasetKind) -> SourceReader:
    """Create a fresh reader for a dataset kind."""
    return READERS[kind]()
