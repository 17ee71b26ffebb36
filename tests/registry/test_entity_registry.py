import threading
import time

import pytest

from cabinet.errors import DanglingReferenceWarning
from cabinet.registry import DimensionEntity, EntityRegistry, RegistryGate
from cabinet.sources import DatasetKind, PartialRecord

MAME = DatasetKind.MAME


@pytest.mark.unit
def test_dimensions_created_lazily(registry):
    assert registry.dimension_names("category") == []

    registry.ensure_dimension("category", "Maze")
    registry.ensure_dimension("category", "Maze")

    assert registry.dimension_names("category") == ["Maze"]
    assert registry.dimensions("category") == [DimensionEntity("category", "Maze", 0)]


@pytest.mark.unit
def test_machine_counts_follow_mutations(merge):
    registry = merge([
        ("m1", "category", "Maze", DatasetKind.CATVER),
        ("m2", "category", "Maze", DatasetKind.CATVER),
    ])
    assert registry.machine_count("category", "Maze") == 2

    with registry.gate.exclusive():
        registry.remove_machines(["m1"])

    assert registry.machine_count("category", "Maze") == 1


@pytest.mark.unit
def test_machines_sorted_by_identity(merge):
    registry = merge([("zaxxon", "year", "1982", MAME), ("alpine", "year", "1983", MAME)])

    assert [machine.name for machine in registry.machines()] == ["alpine", "zaxxon"]


@pytest.mark.unit
def test_snapshot_is_detached(merge):
    registry = merge([("m1", "languages", "English", DatasetKind.LANGUAGES)])

    snapshot = registry.snapshot()
    registry.get_machine("m1").languages.add("French")

    assert snapshot.machines[0].languages == {"English"}
    assert snapshot.dimension_names("language") == frozenset({"English"})


@pytest.mark.unit
def test_dangling_references_reported(merge):
    registry = merge([
        ("pacman", "clone_of", "puckman", MAME),
        ("puckman", "year", "1980", MAME),
        ("mspacmnf", "clone_of", "mspacman", MAME),
        ("mspacmnf", "rom_of", "mspacman", MAME),
    ])

    dangling = registry.dangling_references()

    assert all(isinstance(warning, DanglingReferenceWarning) for warning in dangling)
    assert [(w.machine, w.field, w.target) for w in dangling] == [
        ("mspacmnf", "clone_of", "mspacman"),
        ("mspacmnf", "rom_of", "mspacman"),
    ]
    # Flagged, never removed or altered
    assert registry.get_machine("mspacmnf").clone_of == "mspacman"


@pytest.mark.unit
def test_gate_exclusive_waits_for_shared_holders():
    gate = RegistryGate()
    order = []
    shared_entered = threading.Event()

    def reader():
        with gate.shared():
            shared_entered.set()
            time.sleep(0.05)
            order.append("shared done")

    thread = threading.Thread(target=reader)
    thread.start()
    shared_entered.wait()

    with gate.exclusive():
        order.append("exclusive")
    thread.join()

    assert order == ["shared done", "exclusive"]


@pytest.mark.unit
def test_gate_prefers_waiting_writer():
    gate = RegistryGate()
    order = []
    first_shared = threading.Event()
    release_first = threading.Event()

    def long_reader():
        with gate.shared():
            first_shared.set()
            release_first.wait()
        order.append("reader 1 done")

    def writer():
        with gate.exclusive():
            order.append("writer")

    def late_reader():
        with gate.shared():
            order.append("reader 2")

    t1 = threading.Thread(target=long_reader)
    t1.start()
    first_shared.wait()

    t2 = threading.Thread(target=writer)
    t2.start()
    # Let the writer register as waiting before the second reader arrives
    time.sleep(0.05)
    t3 = threading.Thread(target=late_reader)
    t3.start()
    time.sleep(0.05)
    release_first.set()

    for thread in (t1, t2, t3):
        thread.join()

    assert order.index("writer") < order.index("reader 2")


@pytest.mark.unit
def test_count_cache_invalidated_on_every_mutation(registry, resolver):
    resolver.apply(PartialRecord("m1", "series", "Pac-Man", DatasetKind.SERIES))
    assert registry.machine_count("series", "Pac-Man") == 1

    resolver.apply(PartialRecord("m2", "series", "Pac-Man", DatasetKind.SERIES))
    assert registry.machine_count("series", "Pac-Man") == 2

    with registry.gate.exclusive():
        registry.remove_machines(["m1", "m2"])
    assert registry.machine_count("series", "Pac-Man") == 0
    assert registry.dimension_names("series") == ["Pac-Man"]


@pytest.mark.unit
def test_empty_registry_snapshot():
    snapshot = EntityRegistry().snapshot()

    assert snapshot.machines == ()
    assert all(entities == () for entities in snapshot.dimensions.values())
