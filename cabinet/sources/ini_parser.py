"""Readers for the MAME folder INI files (catver, series, languages, nplayers, bestgames).

These files either use ``shortname=value`` lines or a folder-based structure
where each ``[Section]`` names a value shared by the shortnames listed below it.
"""

import logging
import re
from typing import Iterator, Optional, Tuple

from .base import LineReader, SectionListReader, normalize_shortname
from .records import DatasetKind, PartialRecord

logger = logging.getLogger(__name__)


class CatverReader(LineReader):
    """Reader for catver.ini with category, subcategory and maturity extraction."""

    kind = DatasetKind.CATVER

    MATURE_MARKER = '* Mature *'
    CASINO_CATEGORIES = {'Casino', 'Slot Machine', 'Gambling'}
    IGNORED_SECTIONS = LineReader.IGNORED_SECTIONS | {'VerAdded'}

    def _parse_line(self, section: Optional[str], line: str) -> Iterator[PartialRecord]:
        if '=' not in line:
            self._skip("missing '='")
            return

        key, value = self._split_key_value(line)
        shortname = normalize_shortname(key)
        if shortname is None or not value:
            self._skip(f"malformed entry {line!r}")
            return

        is_mature = value.endswith(self.MATURE_MARKER)
        if is_mature:
            value = value[:-len(self.MATURE_MARKER)].strip()

        parts = [part.strip() for part in value.split(' / ')]
        category = parts[0]
        if not category:
            self._skip(f"empty category in {line!r}")
            return

        self.processed += 1
        yield self._record(shortname, 'category', category)
        if len(parts) > 1 and parts[1]:
            yield self._record(shortname, 'subcategory', ' / '.join(parts[1:]))
        yield self._record(shortname, 'is_mature', is_mature)
        yield self._record(shortname, 'is_casino', category in self.CASINO_CATEGORIES)


class SeriesReader(SectionListReader):
    """Reader for series.ini: ``[Series Name]`` followed by shortnames."""

    kind = DatasetKind.SERIES
    field_name = 'series'


class LanguagesReader(SectionListReader):
    """Reader for languages.ini: ``[Language]`` followed by shortnames."""

    kind = DatasetKind.LANGUAGES
    field_name = 'languages'

    def _section_value(self, section: str) -> Optional[str]:
        # Combined sections such as [English/Japanese] are groupings, not languages
        if '/' in section:
            return None
        return section


class BestGamesReader(SectionListReader):
    """Reader for bestgames.ini with rating extraction."""

    kind = DatasetKind.BESTGAMES
    field_name = 'rating'

    # Rating tier mappings (category name pattern -> rating value)
    RATING_TIERS = {
        r'\b90\s+to\s+100\b': 0.95,
        r'\b80\s+to\s+90\b': 0.85,
        r'\b70\s+to\s+80\b': 0.75,
        r'\b60\s+to\s+70\b': 0.65,
        r'\b50\s+to\s+60\b': 0.55,
        r'\b40\s+to\s+50\b': 0.45,
        r'\b30\s+to\s+40\b': 0.35,
        r'\b20\s+to\s+30\b': 0.25,
        r'\b10\s+to\s+20\b': 0.15,
        r'\b0\s+to\s+10\b': 0.05,
    }

    def _section_value(self, section: str) -> Optional[float]:
        for pattern, rating in self.RATING_TIERS.items():
            if re.search(pattern, section, re.IGNORECASE):
                return rating
        return None


class NPlayersReader(LineReader):
    """Reader for nplayers.ini with player count extraction.

    Values look like ``2P sim``, ``4P alt / 2P sim``, ``???`` or ``BIOS``.
    """

    kind = DatasetKind.NPLAYERS

    PLAYER_COUNT = re.compile(r'(\d+)P\b', re.IGNORECASE)

    def _parse_line(self, section: Optional[str], line: str) -> Iterator[PartialRecord]:
        if '=' not in line:
            self._skip("missing '='")
            return

        key, value = self._split_key_value(line)
        shortname = normalize_shortname(key)
        if shortname is None or not value:
            self._skip(f"malformed entry {line!r}")
            return

        modes = tuple(part.strip() for part in value.split('/') if part.strip())
        if not modes:
            self._skip(f"no player modes in {line!r}")
            return

        self.processed += 1
        yield self._record(shortname, 'player_modes', modes)

        player_range = self.player_range(modes)
        if player_range:
            yield self._record(shortname, 'players_min', player_range[0])
            yield self._record(shortname, 'players_max', player_range[1])

    @classmethod
    def player_range(cls, modes: Tuple[str, ...]) -> Optional[Tuple[int, int]]:
        """Get the (min, max) player range for a set of player modes.

        Returns:
            (1, highest player count), or None when no mode names a count
        """
        counts = [
            int(match.group(1))
            for mode in modes
            for match in [cls.PLAYER_COUNT.search(mode)]
            if match
        ]
        if not counts:
            return None
        return 1, max(counts)
