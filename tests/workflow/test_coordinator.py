import asyncio
import io
import threading
from collections import Counter

import pytest

from cabinet.errors import RetrievalError
from cabinet.registry import EntityRegistry
from cabinet.sources import DatasetKind
from cabinet.ui.events import TERMINAL_EVENTS, ErrorEvent, FinishEvent, ProgressEvent
from cabinet.workflow import IngestSource, ParallelIngestCoordinator


class RecordingSink:
    """Collects every event it receives."""

    def __init__(self):
        self.events = []

    def handle(self, event):
        self.events.append(event)

    def terminal(self):
        return [event for event in self.events if isinstance(event, TERMINAL_EVENTS)]


def memory_source(kind, text):
    data = text.encode("utf-8")
    return IngestSource(kind=kind, open_stream=lambda: io.BytesIO(data))


def fixture_sources(open_dataset):
    return [
        IngestSource(kind=kind, open_stream=lambda kind=kind: open_dataset(kind))
        for kind in DatasetKind
    ]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_ingest_all_fixture_datasets(registry, open_dataset):
    sink = RecordingSink()
    coordinator = ParallelIngestCoordinator(registry, sink, max_workers=4)

    summary = await coordinator.ingest(fixture_sources(open_dataset))

    assert summary.succeeded
    assert set(summary.reports) == set(DatasetKind)
    assert len(registry) == 6
    assert len(registry.dimension_names("manufacturer")) == 5
    assert registry.dimension_names("category") == ["Fighter", "Maze", "Slot Machine", "System"]
    assert registry.dimension_names("series") == ["Pac-Man", "Street Fighter"]
    assert registry.dimension_names("language") == ["English", "Japanese"]
    assert [(w.machine, w.field, w.target) for w in summary.dangling] == [
        ("mspacmnf", "clone_of", "mspacman"),
    ]

    pacman = registry.get_machine("pacman")
    assert pacman.category == "Maze"
    assert pacman.series == "Pac-Man"
    assert pacman.rating == 0.95
    assert pacman.resources == {"snap", "titles"}
    assert [section.name for section in pacman.history_sections] == ["description", "trivia", "scoring"]
    assert {rom.name for rom in registry.get_machine("puckman").roms} == {"pm1_prg1.6e", "pm1_prg2.6k"}
    assert registry.get_machine("neogeo").software_lists == {"neogeo"}
    assert summary.reports[DatasetKind.CATVER].skipped == 2


@pytest.mark.integration
@pytest.mark.asyncio
async def test_parallel_category_and_series_merge():
    registry = EntityRegistry()
    catver = memory_source(DatasetKind.CATVER, "[Category]\nm1=CatA\nm2=CatA\nm3=CatB\n")
    series = memory_source(DatasetKind.SERIES, "[S1]\nm1\n")

    summary = await ParallelIngestCoordinator(registry, max_workers=2).ingest([catver, series])

    assert summary.succeeded
    assert len(registry) == 3
    assert registry.machine_count("category", "CatA") == 2
    assert registry.machine_count("category", "CatB") == 1
    assert registry.dimension_names("series") == ["S1"]
    m1 = registry.get_machine("m1")
    assert (m1.category, m1.series) == ("CatA", "S1")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failed_datasets_do_not_abort_others(registry):
    def unavailable():
        raise RetrievalError(DatasetKind.HISTORY, "history.xml not found")

    sources = [
        memory_source(DatasetKind.CATVER, "[Category]\nm1=Maze\n"),
        IngestSource(kind=DatasetKind.HISTORY, open_stream=unavailable),
        IngestSource(kind=DatasetKind.SERIES, open_stream=lambda: io.BytesIO(b"[S1]\nm1\n\x00\x00\n")),
    ]
    sink = RecordingSink()

    summary = await ParallelIngestCoordinator(registry, sink, max_workers=3).ingest(sources)

    assert sorted(kind.value for kind in summary.failed) == ["history", "series"]
    assert summary.reports[DatasetKind.HISTORY].error_type == "RetrievalError"
    assert summary.reports[DatasetKind.SERIES].error_type == "FormatError"
    assert summary.reports[DatasetKind.CATVER].succeeded
    assert registry.get_machine("m1").category == "Maze"

    errors = {event.kind: event for event in sink.events if isinstance(event, ErrorEvent)}
    assert set(errors) == {DatasetKind.HISTORY, DatasetKind.SERIES}
    assert errors[DatasetKind.SERIES].error_type == "FormatError"
    assert [event.kind for event in sink.events if isinstance(event, FinishEvent)] == [DatasetKind.CATVER]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_exactly_one_terminal_event_per_dataset(registry, open_dataset):
    sink = RecordingSink()

    await ParallelIngestCoordinator(registry, sink, max_workers=8).ingest(fixture_sources(open_dataset))

    assert Counter(event.kind for event in sink.terminal()) == Counter(DatasetKind)
    for kind in DatasetKind:
        kind_events = [event for event in sink.events if event.kind == kind]
        assert isinstance(kind_events[-1], TERMINAL_EVENTS)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_progress_reports_bytes_of_known_size(registry):
    text = "[Category]\n" + "".join(f"m{i}=Maze\n" for i in range(200))
    sink = RecordingSink()
    coordinator = ParallelIngestCoordinator(registry, sink, progress_interval=256)

    await coordinator.ingest([memory_source(DatasetKind.CATVER, text)])

    progress = [event for event in sink.events if isinstance(event, ProgressEvent)]
    assert len(progress) > 2
    assert all(event.total == len(text) for event in progress)
    assert progress[-1].current == len(text)
    assert [event.current for event in progress] == sorted(event.current for event in progress)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stop_before_ingest_starts_nothing(registry, open_dataset):
    sink = RecordingSink()
    coordinator = ParallelIngestCoordinator(registry, sink)
    coordinator.stop()

    summary = await coordinator.ingest(fixture_sources(open_dataset))

    assert summary.reports == {}
    assert summary.not_attempted == list(DatasetKind)
    assert sink.events == []
    assert len(registry) == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stop_lets_in_flight_dataset_finish(registry):
    class StoppingSink(RecordingSink):
        def handle(self, event):
            super().handle(event)
            if isinstance(event, FinishEvent):
                coordinator.stop()

    sink = StoppingSink()
    coordinator = ParallelIngestCoordinator(registry, sink, max_workers=1)
    sources = [
        memory_source(DatasetKind.CATVER, "[Category]\nm1=Maze\n"),
        memory_source(DatasetKind.SERIES, "[S1]\nm1\n"),
        memory_source(DatasetKind.LANGUAGES, "[English]\nm1\n"),
    ]

    summary = await coordinator.ingest(sources)

    assert list(summary.reports) == [DatasetKind.CATVER]
    assert summary.not_attempted == [DatasetKind.SERIES, DatasetKind.LANGUAGES]
    assert [event.kind for event in sink.terminal()] == [DatasetKind.CATVER]
    assert registry.get_machine("m1").series is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_duplicate_dataset_kinds_rejected(registry):
    sources = [
        memory_source(DatasetKind.CATVER, "[Category]\nm1=Maze\n"),
        memory_source(DatasetKind.CATVER, "[Category]\nm1=Fighter\n"),
    ]

    with pytest.raises(ValueError):
        await ParallelIngestCoordinator(registry).ingest(sources)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failing_sink_does_not_fail_dataset(registry):
    class BrokenSink:
        def handle(self, event):
            raise RuntimeError("display gone")

    summary = await ParallelIngestCoordinator(registry, BrokenSink()).ingest(
        [memory_source(DatasetKind.CATVER, "[Category]\nm1=Maze\n")]
    )

    assert summary.succeeded
    assert "m1" in registry


@pytest.mark.unit
def test_max_workers_must_be_positive(registry):
    with pytest.raises(ValueError):
        ParallelIngestCoordinator(registry, max_workers=0)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancelled_ingest_stops_queued_datasets(registry):
    started = threading.Event()
    release = threading.Event()

    def open_slow_series():
        started.set()
        release.wait(5)
        return io.BytesIO(b"[S1]\nm1\n")

    sink = RecordingSink()
    coordinator = ParallelIngestCoordinator(registry, sink, max_workers=1)
    sources = [
        IngestSource(kind=DatasetKind.SERIES, open_stream=open_slow_series),
        memory_source(DatasetKind.CATVER, "[Category]\nm2=Maze\n"),
    ]

    task = asyncio.create_task(coordinator.ingest(sources))
    assert await asyncio.get_running_loop().run_in_executor(None, started.wait, 5)
    # Leaving the worker pool waits for the in-flight dataset
    threading.Timer(0.2, release.set).start()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert coordinator.stopped
    assert registry.get_machine("m1").series == "S1"
    assert "m2" not in registry
    assert [event.kind for event in sink.terminal()] == [DatasetKind.SERIES]
    assert all(event.kind == DatasetKind.SERIES for event in sink.events)
