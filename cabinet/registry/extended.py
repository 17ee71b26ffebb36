"""Display-oriented values derived from a merged machine.

Extended data is never stored in the registry. Exporters compute it from
the machine at export time, so it always agrees with the merged fields.
"""

import html
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from .models import Machine

# nplayers player mode -> readable description
PLAYER_MODE_DESCRIPTIONS = {
    '1P': 'Single-player game',
    '2P alt': 'Alternate two-player mode',
    '2P sim': 'Simultaneous two-player mode',
    '3P alt': 'Alternate three-player mode',
    '3P sim': 'Simultaneous three-player mode',
    '4P alt': 'Alternate four-player mode',
    '4P sim': 'Simultaneous four-player mode',
    '5P alt': 'Alternate five-player mode',
    '6P alt': 'Alternate six-player mode',
    '6P sim': 'Simultaneous six-player mode',
    '8P alt': 'Alternate eight-player mode',
    '8P sim': 'Simultaneous eight-player mode',
    '9P alt': 'Alternate nine-player mode',
    '???': 'Unknown or unspecified number of players',
    'BIOS': 'BIOS',
    'Device': 'Non-playable device',
    'Non-arcade': 'Non-arcade game',
}

UNKNOWN_YEAR = 'Unknown'

_WORD_START = re.compile(r'(^|\s)(\S)')


def normalize_name(description: Optional[str]) -> Optional[str]:
    """
    Title from a MAME description.

    Decodes HTML entities, drops '?' characters and everything from the
    first '(' on, then capitalizes each word: 'Pac-Man (Midway)' -> 'Pac-Man'.
    """
    if description is None:
        return None
    title = html.unescape(description).replace('?', '').split('(', 1)[0]
    return _WORD_START.sub(lambda m: m.group(1) + m.group(2).upper(), title).strip()


def describe_players(player_modes: Optional[Iterable[str]]) -> Optional[str]:
    """Readable player modes joined with ', '; unknown modes pass through."""
    if not player_modes:
        return None
    return ', '.join(PLAYER_MODE_DESCRIPTIONS.get(mode.strip(), mode.strip()) for mode in player_modes)


def display_year(year: Optional[str]) -> Optional[str]:
    """'Unknown' for partial ('198?') or empty years."""
    if year is None:
        return None
    if not year.strip() or '?' in year:
        return UNKNOWN_YEAR
    return year


@dataclass(frozen=True)
class ExtendedData:
    """Derived display values of one machine."""
    name: Optional[str]
    players: Optional[str]
    is_parent: bool
    year: Optional[str]

    @classmethod
    def from_machine(cls, machine: Machine) -> 'ExtendedData':
        return cls(
            name=normalize_name(machine.description),
            players=describe_players(machine.player_modes),
            # Machines sharing ROMs with another set are not parents either
            is_parent=not machine.is_clone(),
            year=display_year(machine.year),
        )
