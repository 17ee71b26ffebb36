import sqlite3

import pytest

from cabinet.errors import ExportError
from cabinet.export import SqliteExporter, read_sqlite
from cabinet.registry import (
    BiosSet,
    CompositionMode,
    Disk,
    FilterEngine,
    HistorySection,
    PredicateKind,
    RemovalPredicate,
    RemovalSpec,
    Rom,
)
from cabinet.sources import DatasetKind

MAME = DatasetKind.MAME


@pytest.fixture
def populated(merge):
    return merge([
        ("pacman", "description", "Pac-Man (Midway)", MAME),
        ("pacman", "year", "1980", MAME),
        ("pacman", "manufacturer", "Namco (Midway license)", MAME),
        ("pacman", "clone_of", "puckman", MAME),
        ("pacman", "rom_of", "puckman", MAME),
        ("pacman", "runnable", True, MAME),
        ("pacman", "is_bios", False, MAME),
        ("pacman", "category", "Maze", DatasetKind.CATVER),
        ("pacman", "subcategory", "Collect", DatasetKind.CATVER),
        ("pacman", "series", "Pac-Man", DatasetKind.SERIES),
        ("pacman", "languages", "English", DatasetKind.LANGUAGES),
        ("pacman", "languages", "Japanese", DatasetKind.LANGUAGES),
        ("pacman", "player_modes", ("4P alt", "2P sim"), DatasetKind.NPLAYERS),
        ("pacman", "players_min", 1, DatasetKind.NPLAYERS),
        ("pacman", "players_max", 4, DatasetKind.NPLAYERS),
        ("pacman", "resources", "snap", DatasetKind.RESOURCES),
        ("pacman", "resources", "titles", DatasetKind.RESOURCES),
        ("pacman", "history", "Pac-Man (c) 1980 Namco.\n\nEat every dot.", DatasetKind.HISTORY),
        ("pacman", "history_sections", (
            HistorySection(1, "description", "Pac-Man (c) 1980 Namco."),
            HistorySection(5, "scoring", "Eat every dot."),
        ), DatasetKind.HISTORY),
        ("pacman", "rating", 0.95, DatasetKind.BESTGAMES),
        ("pacman", "roms", Rom("pacman.6e", 4096, merge="pm1_prg1.6e", crc="c1e6ab10"), MAME),
        ("pacman", "device_refs", "z80", MAME),
        ("puckman", "sample_of", "puckman", MAME),
        ("puckman", "samples", "pacdie", MAME),
        ("puckman", "bios_sets", BiosSet("euro", "Europe MVS"), MAME),
        ("puckman", "software_lists", "neogeo", MAME),
        ("sf2", "disks", Disk("sf2ce", status="nodump", region="ide:0:hdd"), MAME),
        ("puckman", "description", "Puck Man (Japan set 1)", MAME),
        ("puckman", "manufacturer", "Namco", MAME),
        ("puckman", "category", "Maze", DatasetKind.CATVER),
        ("puckman", "buttons", 1, MAME),
        ("sf2", "description", "Street Fighter II", MAME),
        ("sf2", "category", "Fighter", DatasetKind.CATVER),
        ("sf2", "is_mature", False, DatasetKind.CATVER),
    ])


def table_rows(path, query):
    conn = sqlite3.connect(str(path))
    try:
        return conn.execute(query).fetchall()
    finally:
        conn.close()


@pytest.mark.unit
def test_sqlite_export_writes_all_tables(populated, tmp_path):
    target = tmp_path / "machines.sqlite"

    SqliteExporter().export(populated, target)

    tables = {row[0] for row in table_rows(target, "SELECT name FROM sqlite_master WHERE type='table'")}
    assert tables == {
        "machines", "manufacturers", "series", "categories", "languages", "machine_languages",
        "bios_sets", "roms", "disks", "device_refs", "softwares", "samples", "history_sections",
        "extended_data",
    }
    assert table_rows(target, "SELECT name, machine_count FROM categories ORDER BY name") == [
        ("Fighter", 1),
        ("Maze", 2),
    ]
    assert table_rows(target, "SELECT machine, language FROM machine_languages ORDER BY language") == [
        ("pacman", "English"),
        ("pacman", "Japanese"),
    ]
    assert table_rows(target, "SELECT manufacturer, series FROM machines WHERE name='pacman'") == [
        ("Namco (Midway license)", "Pac-Man"),
    ]


@pytest.mark.unit
def test_sqlite_foreign_keys_resolve(populated, tmp_path):
    target = tmp_path / "machines.sqlite"
    SqliteExporter().export(populated, target)

    conn = sqlite3.connect(str(target))
    try:
        assert conn.execute("PRAGMA foreign_key_check").fetchall() == []
    finally:
        conn.close()


@pytest.mark.integration
def test_sqlite_round_trip_reproduces_machines(populated, tmp_path):
    target = tmp_path / "machines.sqlite"
    SqliteExporter().export(populated, target)

    reimported = read_sqlite(target)

    assert reimported.snapshot() == populated.snapshot()


@pytest.mark.integration
def test_sqlite_round_trip_keeps_zero_count_dimensions(populated, tmp_path):
    removal = RemovalSpec(
        predicates=(RemovalPredicate(PredicateKind.CATEGORY, frozenset({"Fighter"})),),
        mode=CompositionMode.ANY,
    )
    FilterEngine(populated).apply(removal)
    target = tmp_path / "machines.sqlite"
    SqliteExporter().export(populated, target)

    reimported = read_sqlite(target)

    assert reimported.machine_count("category", "Fighter") == 0
    assert reimported.snapshot() == populated.snapshot()


@pytest.mark.unit
def test_sqlite_export_replaces_existing_database(populated, tmp_path):
    target = tmp_path / "machines.sqlite"
    SqliteExporter().export(populated, target)

    with populated.gate.exclusive():
        populated.remove_machines(["sf2"])
    SqliteExporter().export(populated, target)

    assert table_rows(target, "SELECT name FROM machines ORDER BY name") == [("pacman",), ("puckman",)]


@pytest.mark.unit
def test_read_sqlite_missing_file_raises(tmp_path):
    with pytest.raises(ExportError):
        read_sqlite(tmp_path / "missing.sqlite")


@pytest.mark.unit
def test_sqlite_export_writes_child_tables(populated, tmp_path):
    target = tmp_path / "machines.sqlite"

    SqliteExporter().export(populated, target)

    assert table_rows(target, 'SELECT machine, "order", name, text FROM history_sections ORDER BY rowid') == [
        ("pacman", 1, "description", "Pac-Man (c) 1980 Namco."),
        ("pacman", 5, "scoring", "Eat every dot."),
    ]
    assert table_rows(target, "SELECT machine, name, size, merge, crc FROM roms") == [
        ("pacman", "pacman.6e", 4096, "pm1_prg1.6e", "c1e6ab10"),
    ]
    assert table_rows(target, "SELECT machine, name, status, region FROM disks") == [
        ("sf2", "sf2ce", "nodump", "ide:0:hdd"),
    ]
    assert table_rows(target, "SELECT machine, name FROM softwares") == [("puckman", "neogeo")]
    assert table_rows(target, "SELECT sample_of FROM machines WHERE name='puckman'") == [("puckman",)]


@pytest.mark.unit
def test_sqlite_export_writes_extended_data(populated, tmp_path):
    target = tmp_path / "machines.sqlite"

    SqliteExporter().export(populated, target)

    assert table_rows(target, "SELECT machine, name, players, is_parent, year FROM extended_data ORDER BY machine") == [
        ("pacman", "Pac-Man", "Alternate four-player mode, Simultaneous two-player mode", 0, "1980"),
        ("puckman", "Puck Man", None, 1, None),
        ("sf2", "Street Fighter II", None, 1, None),
    ]
