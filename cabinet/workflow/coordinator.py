"""
Parallel ingest coordinator

Runs one reader+merge pipeline per dataset file on a bounded worker pool
and reports per-dataset events to a progress sink.
"""

import asyncio
import io
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import BinaryIO, Callable, Dict, Iterable, Iterator, List, Optional

from ..errors import DanglingReferenceWarning, FormatError, MergeConflictWarning, RetrievalError
from ..registry.entity_registry import EntityRegistry
from ..registry.merge_resolver import MergeResolver
from ..sources.base import SourceReader
from ..sources.data_types import create_reader
from ..sources.records import DatasetKind, PartialRecord
from ..ui.events import ErrorEvent, FinishEvent, InfoEvent, IngestEvent, ProgressEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestSource:
    """
    One dataset to ingest.

    Attributes:
        kind: Dataset kind, selects the reader
        open_stream: Opens the byte stream; may raise RetrievalError
        size: Stream size in bytes if known up front
    """
    kind: DatasetKind
    open_stream: Callable[[], BinaryIO]
    size: Optional[int] = None


@dataclass
class DatasetReport:
    """Outcome of one dataset pipeline"""
    kind: DatasetKind
    processed: int = 0
    skipped: int = 0
    applied: int = 0
    unchanged: int = 0
    bytes_read: int = 0
    conflicts: List[MergeConflictWarning] = field(default_factory=list)
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def describe(self) -> str:
        return (
            f"{self.processed} entries, {self.applied} fields applied, "
            f"{self.skipped} skipped, {len(self.conflicts)} conflicts"
        )


@dataclass
class IngestSummary:
    """Result of an ingest run"""
    reports: Dict[DatasetKind, DatasetReport] = field(default_factory=dict)
    not_attempted: List[DatasetKind] = field(default_factory=list)
    dangling: List[DanglingReferenceWarning] = field(default_factory=list)

    @property
    def failed(self) -> List[DatasetKind]:
        return [kind for kind, report in self.reports.items() if not report.succeeded]

    @property
    def conflicts(self) -> List[MergeConflictWarning]:
        return [conflict for report in self.reports.values() for conflict in report.conflicts]

    @property
    def succeeded(self) -> bool:
        return not self.failed and not self.not_attempted


def _stream_size(stream: BinaryIO) -> Optional[int]:
    """Size of a stream when it can be learned without reading it."""
    if isinstance(stream, io.BytesIO):
        return stream.getbuffer().nbytes
    try:
        return os.fstat(stream.fileno()).st_size
    except (AttributeError, OSError, io.UnsupportedOperation):
        return None


class ParallelIngestCoordinator:
    """
    Fans dataset pipelines out over a thread pool driven from asyncio.

    Every pipeline streams records from its reader into one shared
    MergeResolver; per-identity serialization is provided by the registry.
    Sink calls are serialized, and each attempted dataset receives exactly
    one FinishEvent or ErrorEvent.

    Example:
        coordinator = ParallelIngestCoordinator(registry, sink, max_workers=4)
        summary = await coordinator.ingest(sources)
    """

    def __init__(
        self,
        registry: EntityRegistry,
        sink=None,
        max_workers: int = 4,
        progress_interval: int = 1024 * 1024
    ):
        """
        Initialize coordinator

        Args:
            registry: Registry receiving all merges
            sink: Progress sink (``handle(event)``), optional
            max_workers: Worker pool size
            progress_interval: Bytes between progress events
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        self.registry = registry
        self.resolver = MergeResolver(registry)
        self.sink = sink
        self.max_workers = max_workers
        self.progress_interval = max(1, progress_interval)

        self._shutdown_event = threading.Event()
        self._sink_lock = threading.Lock()

    @property
    def stopped(self) -> bool:
        return self._shutdown_event.is_set()

    def stop(self) -> None:
        """Stop scheduling new datasets; in-flight datasets run to completion."""
        if not self._shutdown_event.is_set():
            logger.info("Stop requested, no new datasets will be started")
        self._shutdown_event.set()

    async def ingest(self, sources: Iterable[IngestSource]) -> IngestSummary:
        """
        Ingest all sources in parallel

        Args:
            sources: Datasets to ingest, at most one per dataset kind

        Returns:
            IngestSummary with per-dataset reports and dangling references

        Raises:
            ValueError: If a dataset kind appears more than once
        """
        sources = list(sources)
        kinds = [source.kind for source in sources]
        duplicates = sorted({str(kind) for kind in kinds if kinds.count(kind) > 1})
        if duplicates:
            raise ValueError(f"Duplicate dataset kinds: {', '.join(duplicates)}")

        logger.info(f"Ingesting {len(sources)} datasets with {self.max_workers} worker(s)")

        loop = asyncio.get_running_loop()
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix='ingest') as executor:
            futures = [loop.run_in_executor(executor, self._run_pipeline, source) for source in sources]
            try:
                results = await asyncio.gather(*futures)
            except asyncio.CancelledError:
                # Queued datasets must not start; leaving the executor waits for in-flight ones
                self.stop()
                raise

        summary = IngestSummary()
        for source, report in zip(sources, results):
            if report is None:
                summary.not_attempted.append(source.kind)
            else:
                summary.reports[source.kind] = report

        summary.dangling = self.registry.dangling_references()
        for warning in summary.dangling:
            logger.warning(f"Dangling reference: {warning}")

        logger.info(
            f"Ingest complete: {len(self.registry)} machines, "
            f"{len(summary.reports) - len(summary.failed)} datasets merged, "
            f"{len(summary.failed)} failed, {len(summary.not_attempted)} not started, "
            f"{len(summary.dangling)} dangling references"
        )
        return summary

    def _run_pipeline(self, source: IngestSource) -> Optional[DatasetReport]:
        """Read and merge one dataset. Runs on a worker thread."""
        if self._shutdown_event.is_set():
            logger.debug(f"Not starting {source.kind}: coordinator stopped")
            return None

        kind = source.kind
        report = DatasetReport(kind=kind)
        reader = create_reader(kind)
        self._emit(InfoEvent(kind, f"Reading {kind} dataset"))

        try:
            stream = source.open_stream()
            with stream:
                total = source.size if source.size is not None else _stream_size(stream)
                self._emit(ProgressEvent(kind, 0, total))
                stats = self.resolver.apply_all(self._tracked(reader, stream, total))
                report.bytes_read = reader.offset
                self._emit(ProgressEvent(kind, reader.offset, total))

            report.applied = stats.applied
            report.unchanged = stats.unchanged
            report.conflicts = stats.conflicts
        except (RetrievalError, FormatError, OSError) as e:
            self._fail(report, e)
        except Exception as e:
            logger.exception(f"Unexpected error while ingesting {kind}")
            self._fail(report, e)
        finally:
            report.processed = reader.processed
            report.skipped = reader.skipped
            report.bytes_read = reader.offset

        if report.succeeded:
            logger.info(f"Merged {kind}: {report.describe()}")
            self._emit(FinishEvent(kind, report.describe()))
        else:
            self._emit(ErrorEvent(kind, report.error, report.error_type))
        return report

    def _tracked(self, reader: SourceReader, stream: BinaryIO, total: Optional[int]) -> Iterator[PartialRecord]:
        """Yield records from reader, emitting progress every progress_interval bytes."""
        last_reported = 0
        for record in reader.read(stream):
            yield record
            if reader.offset - last_reported >= self.progress_interval:
                last_reported = reader.offset
                self._emit(ProgressEvent(reader.kind, reader.offset, total))

    def _fail(self, report: DatasetReport, error: Exception) -> None:
        report.error = str(error)
        report.error_type = type(error).__name__
        logger.error(f"Failed to ingest {report.kind}: {error}")

    def _emit(self, event: IngestEvent) -> None:
        if self.sink is None:
            return
        with self._sink_lock:
            try:
                self.sink.handle(event)
            except Exception as e:
                logger.error(f"Progress sink failed on {type(event).__name__}: {e}")
