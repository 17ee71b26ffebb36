"""Reader for the arcade-history history.xml file.

Each ``<entry>`` lists the machines it describes under ``<systems>`` and
carries the history text in ``<text>``. The text is divided by header
lines such as ``- TRIVIA -``; text before the first header is the
description.
"""

import logging
from typing import Iterator, List, Tuple

from ..registry.models import HistorySection
from .base import XMLReader, normalize_shortname
from .records import DatasetKind, PartialRecord

logger = logging.getLogger(__name__)

# Section header line -> display order
SECTION_HEADERS = {
    '- DESCRIPTION -': 1,
    '- TECHNICAL -': 2,
    '- TRIVIA -': 3,
    '- UPDATES -': 4,
    '- SCORING -': 5,
    '- TIPS AND TRICKS -': 6,
    '- SERIES -': 7,
    '- STAFF -': 8,
    '- PORTS -': 9,
    '- CONTRIBUTE -': 10,
}

DEFAULT_SECTION = 'description'


def section_name(header: str) -> str:
    """'- TIPS AND TRICKS -' -> 'tips and tricks'"""
    return header.replace('-', '').strip().lower()


def parse_sections(text: str) -> Tuple[HistorySection, ...]:
    """
    Split history text at its section headers.

    Args:
        text: Full entry text

    Returns:
        Sections in text order; sections with no text are dropped
    """
    sections: List[HistorySection] = []
    name, order = DEFAULT_SECTION, SECTION_HEADERS['- DESCRIPTION -']
    lines: List[str] = []

    def close():
        body = '\n'.join(lines).strip()
        if body:
            sections.append(HistorySection(order=order, name=name, text=body))

    for line in text.splitlines():
        header = line.strip()
        if header in SECTION_HEADERS:
            close()
            name, order, lines = section_name(header), SECTION_HEADERS[header], []
        else:
            lines.append(line)
    close()

    return tuple(sections)


class HistoryReader(XMLReader):
    """Reader for history.xml."""

    kind = DatasetKind.HISTORY
    tags = ('entry',)

    def _parse_element(self, element) -> Iterator[PartialRecord]:
        # Look for <text> child for description
        text_elem = element.find('text')
        text = self._get_element_text(text_elem).strip() if text_elem is not None else ''
        if not text:
            self._skip("entry without text")
            return

        systems_elem = element.find('systems')
        names = [] if systems_elem is None else [
            system_elem.get('name') for system_elem in systems_elem.findall('system')
        ]
        shortnames = [name for name in map(normalize_shortname, names) if name]
        if not shortnames:
            self._skip("entry without systems")
            return

        self.processed += 1
        sections = parse_sections(text)
        for shortname in shortnames:
            yield self._record(shortname, 'history', text)
            if sections:
                yield self._record(shortname, 'history_sections', sections)

    def _get_element_text(self, element) -> str:
        """Extract all text content from an element and its children."""
        text_parts = []

        if element.text:
            text_parts.append(element.text)

        for child in element:
            child_text = self._get_element_text(child)
            if child_text:
                text_parts.append(child_text)

            # Include tail text after child element
            if child.tail:
                text_parts.append(child.tail)

        return "".join(text_parts)
