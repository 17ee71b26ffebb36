"""Tabular export: one CSV row per machine, plus one CSV per child table."""

import csv
from pathlib import Path
from typing import Any, Iterable, Sequence

from ..registry.models import CHILD_TABLES, ROW_FIELDS, RegistrySnapshot
from .base import EXTENDED_COLUMNS, Exporter, child_columns, child_rows, extended_values, machine_values

# Header of the machines file
CSV_COLUMNS = ROW_FIELDS + EXTENDED_COLUMNS


def child_table_path(target: Path, table: str) -> Path:
    """machines.csv -> machines_roms.csv"""
    return target.with_name(f"{target.stem}_{table}{target.suffix}")


class CsvExporter(Exporter):
    """
    Writes a header row of field names followed by one row per machine.

    Multi-valued fields are joined with ``delimiter`` (default ``;``),
    booleans are written as ``true``/``false`` and missing values are empty.
    BIOS sets, ROMs, disks, device references, software lists, samples and
    history sections go to side files named after the target
    (``machines_roms.csv``) with one row per machine and entry.
    """

    encoding = 'csv'

    def __init__(self, delimiter: str = ';', column_separator: str = ','):
        if not delimiter:
            raise ValueError("Multi-value delimiter must not be empty")
        if delimiter == column_separator:
            raise ValueError("Multi-value delimiter must differ from the column separator")
        self.delimiter = delimiter
        self.column_separator = column_separator

    def _write(self, snapshot: RegistrySnapshot, target: Path) -> None:
        rows = []
        for machine in snapshot.machines:
            values = machine_values(machine)
            values.update(
                (f'extended_{name}', value) for name, value in extended_values(machine).items()
            )
            rows.append([values[name] for name in CSV_COLUMNS])
        self._write_table(target, CSV_COLUMNS, rows)

        for field_name, table in CHILD_TABLES.items():
            self._write_table(
                child_table_path(target, table),
                child_columns(field_name),
                child_rows(snapshot, field_name),
            )

    def _write_table(self, path: Path, header: Sequence[str], rows: Iterable[Sequence[Any]]) -> None:
        with open(path, 'w', encoding='utf-8', newline='') as f:
            writer = csv.writer(f, delimiter=self.column_separator)
            writer.writerow(header)
            for row in rows:
                writer.writerow([self._format(value) for value in row])

    def _format(self, value: Any) -> str:
        if value is None:
            return ''
        if isinstance(value, bool):
            return 'true' if value else 'false'
        if isinstance(value, list):
            return self.delimiter.join(value)
        return str(value)
