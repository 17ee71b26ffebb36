"""Exporters projecting the registry into JSON, CSV and SQLite artifacts."""

from .base import Exporter, machine_values
from .json_exporter import JsonExporter
from .csv_exporter import CsvExporter
from .sqlite_exporter import SqliteExporter, read_sqlite

# Export format name -> exporter class
EXPORTERS = {
    'json': JsonExporter,
    'csv': CsvExporter,
    'sqlite': SqliteExporter,
}

__all__ = [
    "Exporter",
    "machine_values",
    "JsonExporter",
    "CsvExporter",
    "SqliteExporter",
    "read_sqlite",
    "EXPORTERS",
]
