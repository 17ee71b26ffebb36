"""
Relational export to a SQLite database.

Tables:
- manufacturers, series, categories, languages: ``name`` primary key plus
  the derived ``machine_count``
- machines: one row per machine; manufacturer/category/series are foreign
  keys by name
- machine_languages: (machine, language) association
- bios_sets, roms, disks, device_refs, softwares, samples,
  history_sections: child rows keyed by machine
- extended_data: derived display values, one row per machine

Dimension tables are written first, then machines, then the tables that
refer to machines.
"""

import logging
import sqlite3
from pathlib import Path
from collections import defaultdict
from typing import Any, Dict, List, Tuple

from ..errors import ExportError
from ..registry.entity_registry import EntityRegistry
from ..registry.merge_resolver import MergeResolver
from ..registry.models import CHILD_TABLES, CHILD_TYPES, DIMENSIONS, MACHINE_FLAGS, Machine, RegistrySnapshot
from ..sources.records import PartialRecord
from .base import Exporter, child_columns, child_rows, extended_values, split_joined

logger = logging.getLogger(__name__)

PLAYER_MODE_SEPARATOR = '/'
RESOURCE_SEPARATOR = ';'

# Column name -> SQL type, in table order
MACHINE_COLUMNS: List[Tuple[str, str]] = [
    ('name', 'TEXT PRIMARY KEY'),
    ('description', 'TEXT'),
    ('year', 'TEXT'),
    ('manufacturer', 'TEXT REFERENCES manufacturers(name)'),
    ('category', 'TEXT REFERENCES categories(name)'),
    ('subcategory', 'TEXT'),
    ('series', 'TEXT REFERENCES series(name)'),
    ('clone_of', 'TEXT'),
    ('rom_of', 'TEXT'),
    ('sample_of', 'TEXT'),
    ('source_file', 'TEXT'),
    ('driver_status', 'TEXT'),
    ('players_min', 'INTEGER'),
    ('players_max', 'INTEGER'),
    ('player_modes', 'TEXT'),
    ('buttons', 'INTEGER'),
    ('is_bios', 'INTEGER'),
    ('is_device', 'INTEGER'),
    ('is_mechanical', 'INTEGER'),
    ('runnable', 'INTEGER'),
    ('is_mature', 'INTEGER'),
    ('is_casino', 'INTEGER'),
    ('resources', 'TEXT'),
    ('history', 'TEXT'),
    ('rating', 'REAL'),
]

MACHINE_COLUMN_NAMES = [name for name, _ in MACHINE_COLUMNS]

# Integer columns of child tables; the rest are TEXT
INTEGER_CHILD_COLUMNS = ('size', 'order')

EXTENDED_COLUMNS: List[Tuple[str, str]] = [
    ('machine', 'TEXT PRIMARY KEY REFERENCES machines(name)'),
    ('name', 'TEXT'),
    ('players', 'TEXT'),
    ('is_parent', 'INTEGER NOT NULL'),
    ('year', 'TEXT'),
]


def _quoted(columns) -> str:
    # 'order' is an SQL keyword
    return ', '.join(f'"{column}"' for column in columns)


def _machine_row(machine: Machine) -> Tuple[Any, ...]:
    row = []
    for column in MACHINE_COLUMN_NAMES:
        value = getattr(machine, column)
        if column == 'player_modes':
            value = PLAYER_MODE_SEPARATOR.join(value) if value else None
        elif column == 'resources':
            value = RESOURCE_SEPARATOR.join(sorted(value)) if value else None
        elif column in MACHINE_FLAGS and value is not None:
            value = int(value)
        row.append(value)
    return tuple(row)


class SqliteExporter(Exporter):
    """Writes the registry as a relational SQLite database."""

    encoding = 'sqlite'

    def _write(self, snapshot: RegistrySnapshot, target: Path) -> None:
        # Full re-creation, never an incremental update
        if target.exists():
            target.unlink()

        try:
            conn = sqlite3.connect(str(target))
        except sqlite3.Error as e:
            raise ExportError(target, self.encoding, str(e)) from e

        try:
            conn.execute("PRAGMA foreign_keys = ON")
            with conn:
                self._create_schema(conn)
                self._write_dimensions(conn, snapshot)
                conn.executemany(
                    f"INSERT INTO machines ({', '.join(MACHINE_COLUMN_NAMES)}) "
                    f"VALUES ({', '.join('?' for _ in MACHINE_COLUMN_NAMES)})",
                    [_machine_row(machine) for machine in snapshot.machines],
                )
                conn.executemany(
                    "INSERT INTO machine_languages (machine, language) VALUES (?, ?)",
                    [
                        (machine.name, language)
                        for machine in snapshot.machines
                        for language in sorted(machine.languages)
                    ],
                )
                self._write_children(conn, snapshot)
                self._write_extended(conn, snapshot)
        except sqlite3.Error as e:
            raise ExportError(target, self.encoding, str(e)) from e
        finally:
            conn.close()

    @staticmethod
    def _create_schema(conn: sqlite3.Connection) -> None:
        for table in DIMENSIONS.values():
            conn.execute(
                f"CREATE TABLE {table} (name TEXT PRIMARY KEY, machine_count INTEGER NOT NULL)"
            )
        columns = ', '.join(f"{name} {sql_type}" for name, sql_type in MACHINE_COLUMNS)
        conn.execute(f"CREATE TABLE machines ({columns})")
        conn.execute(
            "CREATE TABLE machine_languages ("
            "machine TEXT NOT NULL REFERENCES machines(name), "
            "language TEXT NOT NULL REFERENCES languages(name), "
            "PRIMARY KEY (machine, language))"
        )

        for field_name, table in CHILD_TABLES.items():
            definitions = ['"machine" TEXT NOT NULL REFERENCES machines(name)']
            for column in child_columns(field_name)[1:]:
                sql_type = 'INTEGER' if column in INTEGER_CHILD_COLUMNS else 'TEXT'
                definitions.append(f'"{column}" {sql_type}')
            if field_name not in CHILD_TYPES:
                definitions.append('PRIMARY KEY ("machine", "name")')
            conn.execute(f"CREATE TABLE {table} ({', '.join(definitions)})")
            conn.execute(f"CREATE INDEX idx_{table}_machine ON {table} (machine)")

        columns = ', '.join(f"{name} {sql_type}" for name, sql_type in EXTENDED_COLUMNS)
        conn.execute(f"CREATE TABLE extended_data ({columns})")

    @staticmethod
    def _write_dimensions(conn: sqlite3.Connection, snapshot: RegistrySnapshot) -> None:
        for kind, table in DIMENSIONS.items():
            conn.executemany(
                f"INSERT INTO {table} (name, machine_count) VALUES (?, ?)",
                [(entity.name, entity.machine_count) for entity in snapshot.dimensions.get(kind, ())],
            )

    @staticmethod
    def _write_children(conn: sqlite3.Connection, snapshot: RegistrySnapshot) -> None:
        for field_name, table in CHILD_TABLES.items():
            columns = child_columns(field_name)
            conn.executemany(
                f"INSERT INTO {table} ({_quoted(columns)}) VALUES ({', '.join('?' for _ in columns)})",
                child_rows(snapshot, field_name),
            )

    @staticmethod
    def _write_extended(conn: sqlite3.Connection, snapshot: RegistrySnapshot) -> None:
        rows = []
        for machine in snapshot.machines:
            extended = extended_values(machine)
            rows.append((
                machine.name,
                extended['name'],
                extended['players'],
                int(extended['is_parent']),
                extended['year'],
            ))
        conn.executemany(
            "INSERT INTO extended_data (machine, name, players, is_parent, year) VALUES (?, ?, ?, ?, ?)",
            rows,
        )


def read_sqlite(path: Path) -> EntityRegistry:
    """
    Re-import a database written by SqliteExporter into a fresh registry.

    Derived extended data is not read back; exporters compute it again.

    Args:
        path: Database file

    Returns:
        Registry with the same machines, field values and dimension entities

    Raises:
        ExportError: If the database cannot be read
    """
    path = Path(path)
    if not path.exists():
        raise ExportError(path, SqliteExporter.encoding, "database not found")

    registry = EntityRegistry()
    resolver = MergeResolver(registry)

    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    try:
        # Dimensions first so zero-count entities survive the round trip
        for kind, table in DIMENSIONS.items():
            for row in conn.execute(f"SELECT name FROM {table} ORDER BY name"):
                registry.ensure_dimension(kind, row['name'])

        for row in conn.execute("SELECT * FROM machines ORDER BY name"):
            name = row['name']
            with registry.machine_scope(name):
                pass
            for record in _row_records(name, row):
                resolver.apply(record)

        for row in conn.execute("SELECT machine, language FROM machine_languages ORDER BY machine, language"):
            resolver.apply(PartialRecord(row['machine'], 'languages', row['language']))

        for record in _child_records(conn):
            resolver.apply(record)
    except sqlite3.Error as e:
        raise ExportError(path, SqliteExporter.encoding, str(e)) from e
    finally:
        conn.close()

    logger.info(f"Re-imported {len(registry)} machines from {path}")
    return registry


def _row_records(name: str, row: sqlite3.Row) -> List[PartialRecord]:
    records = []
    values: Dict[str, Any] = {column: row[column] for column in MACHINE_COLUMN_NAMES[1:]}
    for column, value in values.items():
        if value is None:
            continue
        if column == 'player_modes':
            value = tuple(split_joined(value, PLAYER_MODE_SEPARATOR))
        elif column in MACHINE_FLAGS:
            value = bool(value)
        elif column == 'resources':
            records.extend(
                PartialRecord(name, 'resources', resource)
                for resource in split_joined(value, RESOURCE_SEPARATOR)
            )
            continue
        records.append(PartialRecord(name, column, value))
    return records


def _child_records(conn: sqlite3.Connection) -> List[PartialRecord]:
    records = []
    for field_name, table in CHILD_TABLES.items():
        columns = child_columns(field_name)
        entry_type = CHILD_TYPES.get(field_name)
        # rowid keeps history sections in text order
        rows = conn.execute(f"SELECT {_quoted(columns)} FROM {table} ORDER BY rowid")

        if field_name == 'history_sections':
            sections = defaultdict(list)
            for machine, *values in map(tuple, rows):
                sections[machine].append(entry_type(*values))
            records.extend(
                PartialRecord(machine, field_name, tuple(entries))
                for machine, entries in sections.items()
            )
        elif entry_type is not None:
            records.extend(
                PartialRecord(machine, field_name, entry_type(*values)) for machine, *values in map(tuple, rows)
            )
        else:
            records.extend(PartialRecord(row[0], field_name, row[1]) for row in rows)
    return records
