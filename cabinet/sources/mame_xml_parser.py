"""Reader for MAME XML (``-listxml`` output and progettosnaps MAME dats).

Extracts machine descriptions, clone/parent relationships, driver status,
control button counts and machine type flags, plus the sets a machine
needs: BIOS sets, ROMs, disks, devices, software lists and samples.
"""

import logging
from typing import Iterator, Optional

from ..registry.models import BiosSet, Disk, Rom
from .base import XMLReader, normalize_shortname
from .records import DatasetKind, PartialRecord

logger = logging.getLogger(__name__)


class MAMEXMLReader(XMLReader):
    """Reader for MAME XML files."""

    kind = DatasetKind.MAME
    tags = ('machine', 'game')

    # XML attribute -> machine flag
    FLAG_ATTRIBUTES = {
        'isbios': 'is_bios',
        'isdevice': 'is_device',
        'ismechanical': 'is_mechanical',
        'runnable': 'runnable',
    }

    # Child element -> machine field holding its name attribute
    NAME_ELEMENTS = {
        'device_ref': 'device_refs',
        'softwarelist': 'software_lists',
        'sample': 'samples',
    }

    # XML attribute -> machine reference field
    REFERENCE_ATTRIBUTES = {
        'cloneof': 'clone_of',
        'romof': 'rom_of',
        'sampleof': 'sample_of',
        'sourcefile': 'source_file',
    }

    def _parse_element(self, element) -> Iterator[PartialRecord]:
        shortname = normalize_shortname(element.get('name'))
        if shortname is None:
            self._skip(f"invalid machine name {element.get('name')!r}")
            return

        self.processed += 1

        # Text children
        description = self._child_text(element, 'description')
        year = self._child_text(element, 'year')
        manufacturer = self._child_text(element, 'manufacturer')

        if description:
            yield self._record(shortname, 'description', description)
        if year:
            yield self._record(shortname, 'year', year)
        if manufacturer:
            yield self._record(shortname, 'manufacturer', manufacturer)

        # Attributes
        for attribute, field_name in self.REFERENCE_ATTRIBUTES.items():
            value = element.get(attribute)
            if attribute != 'sourcefile':
                value = normalize_shortname(value)
            if value:
                yield self._record(shortname, field_name, value)

        for attribute, field_name in self.FLAG_ATTRIBUTES.items():
            default = 'yes' if attribute == 'runnable' else 'no'
            yield self._record(shortname, field_name, element.get(attribute, default) == 'yes')

        # Driver status
        driver_elem = element.find('driver')
        if driver_elem is not None and driver_elem.get('status'):
            yield self._record(shortname, 'driver_status', driver_elem.get('status'))

        buttons = self._get_buttons(element)
        if buttons is not None:
            yield self._record(shortname, 'buttons', buttons)

        yield from self._parse_children(shortname, element)

    def _parse_children(self, shortname: str, element) -> Iterator[PartialRecord]:
        """Records for the BIOS sets, ROMs, disks and named parts of a machine."""
        for child in element:
            if not isinstance(child.tag, str):
                continue
            name = child.get('name')
            if not name:
                continue
            if child.tag == 'biosset':
                yield self._record(shortname, 'bios_sets', BiosSet(name, child.get('description')))
            elif child.tag == 'rom':
                size = child.get('size')
                yield self._record(shortname, 'roms', Rom(
                    name=name,
                    size=int(size) if size and size.isdigit() else None,
                    merge=child.get('merge'),
                    status=child.get('status'),
                    crc=child.get('crc'),
                    sha1=child.get('sha1'),
                ))
            elif child.tag == 'disk':
                yield self._record(shortname, 'disks', Disk(
                    name=name,
                    sha1=child.get('sha1'),
                    merge=child.get('merge'),
                    status=child.get('status'),
                    region=child.get('region'),
                ))
            elif child.tag in self.NAME_ELEMENTS:
                yield self._record(shortname, self.NAME_ELEMENTS[child.tag], name)

    @staticmethod
    def _get_buttons(element) -> Optional[int]:
        """Get the button count from ``<input buttons>`` or the busiest ``<control>``.

        Older dats carry the count on ``<input>``; current MAME moved it to
        each ``<control>`` child.
        """
        input_elem = element.find('input')
        if input_elem is None:
            return None

        raw_values = [input_elem.get('buttons')]
        raw_values.extend(control.get('buttons') for control in input_elem.findall('control'))

        counts = [int(value) for value in raw_values if value and value.isdigit()]
        return max(counts) if counts else None
