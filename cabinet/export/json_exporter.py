"""Hierarchical export: a JSON array with one object per machine."""

import json
from pathlib import Path

from ..registry.models import RegistrySnapshot
from .base import Exporter, extended_values, machine_values


class JsonExporter(Exporter):
    """
    Writes machines as a top-level JSON array.

    References are plain names, multi-valued fields are arrays, BIOS sets,
    ROMs, disks and history sections are nested arrays of objects and
    missing values are null. Each object ends with its derived
    ``extended_data``.
    """

    encoding = 'json'

    def __init__(self, indent: int = 2):
        self.indent = indent

    def _write(self, snapshot: RegistrySnapshot, target: Path) -> None:
        records = []
        for machine in snapshot.machines:
            record = machine_values(machine)
            record['extended_data'] = extended_values(machine)
            records.append(record)

        # Write to temporary file first
        temp_file = target.with_suffix(target.suffix + '.tmp')
        try:
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump(records, f, indent=self.indent, ensure_ascii=False)
            temp_file.replace(target)
        finally:
            if temp_file.exists():
                temp_file.unlink()
