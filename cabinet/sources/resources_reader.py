"""Reader for the progettosnaps AllProject resource dat.

Each ``<machine name="snap">`` section is one resource type; its ``<rom>``
entries are named ``snap\\pacman.png`` and mark artwork that exists for a
machine.
"""

import logging
from typing import Iterator

from .base import XMLReader, normalize_shortname
from .records import DatasetKind, PartialRecord

logger = logging.getLogger(__name__)


class ResourcesReader(XMLReader):
    """Reader for resource availability dats."""

    kind = DatasetKind.RESOURCES
    tags = ('machine',)

    def _parse_element(self, element) -> Iterator[PartialRecord]:
        section = element.get('name')
        if not section:
            self._skip("resource section without name")
            return

        seen = set()
        for rom_elem in element.iter('rom'):
            path = (rom_elem.get('name') or '').replace('/', '\\')
            resource_type, _, filename = path.partition('\\')

            if not filename or resource_type != section:
                self._skip(f"resource {path!r} outside section {section!r}")
                continue

            shortname = normalize_shortname(filename.split('.')[0])
            if shortname is None:
                self._skip(f"invalid shortname in {path!r}")
                continue

            self.processed += 1
            if shortname in seen:
                continue
            seen.add(shortname)
            yield self._record(shortname, 'resources', section)
