"""
Progress sinks receiving ingestion events.

The coordinator calls ``sink.handle(event)`` synchronously and never
concurrently, so sinks need no locking of their own.
"""

import logging
from typing import Dict, Optional, Protocol

from rich.console import Console
from rich.progress import BarColumn, DownloadColumn, Progress, SpinnerColumn, TaskID, TextColumn

from ..sources.records import DatasetKind
from .events import ErrorEvent, FinishEvent, InfoEvent, IngestEvent, ProgressEvent

logger = logging.getLogger(__name__)


class ProgressSink(Protocol):
    """Anything with a ``handle(event)`` method."""

    def handle(self, event: IngestEvent) -> None:
        ...


class HeadlessProgressSink:
    """
    Minimal sink for headless/CI environments.

    Logs dataset start/finish and errors, and progress in coarse steps
    (every 25%) instead of drawing progress bars.
    """

    PROGRESS_STEP = 0.25

    def __init__(self):
        self.stats = {'finished': 0, 'failed': 0}
        self._last_step: Dict[DatasetKind, int] = {}

    def start(self) -> None:
        logger.info("Running in headless mode (minimal output)")

    def stop(self) -> None:
        logger.info(f"Ingestion complete: {self.stats['finished']} finished, {self.stats['failed']} failed")

    def handle(self, event: IngestEvent) -> None:
        if isinstance(event, InfoEvent):
            logger.info(f"[{event.kind}] {event.message}")
        elif isinstance(event, ProgressEvent):
            self._log_progress(event)
        elif isinstance(event, FinishEvent):
            self.stats['finished'] += 1
            logger.info(f"[{event.kind}] finished: {event.message}")
        elif isinstance(event, ErrorEvent):
            self.stats['failed'] += 1
            logger.error(f"[{event.kind}] failed ({event.error_type}): {event.message}")

    def _log_progress(self, event: ProgressEvent) -> None:
        fraction = event.fraction
        if fraction is None:
            logger.debug(f"[{event.kind}] {event.current} bytes read")
            return
        step = int(fraction / self.PROGRESS_STEP)
        if step > self._last_step.get(event.kind, 0):
            self._last_step[event.kind] = step
            logger.info(f"[{event.kind}] {fraction:.0%}")


class RichProgressSink:
    """
    Rich progress display with one task per dataset kind.

    Example:
        sink = RichProgressSink()
        sink.start()
        summary = await coordinator.ingest(sources)
        sink.stop()
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            DownloadColumn(),
            console=self.console
        )
        self._tasks: Dict[DatasetKind, TaskID] = {}

    def start(self) -> None:
        self.progress.start()

    def stop(self) -> None:
        self.progress.stop()

    def handle(self, event: IngestEvent) -> None:
        task_id = self._task_for(event.kind)

        if isinstance(event, InfoEvent):
            self.progress.console.log(f"[cyan]{event.kind}[/cyan] {event.message}")
        elif isinstance(event, ProgressEvent):
            self.progress.update(task_id, completed=event.current, total=event.total)
        elif isinstance(event, FinishEvent):
            task = self.progress.tasks[self._task_index(task_id)]
            total = task.total if task.total is not None else task.completed
            self.progress.update(
                task_id,
                description=f"[green]✓ {event.kind}",
                completed=total,
                total=total,
            )
            self.progress.console.log(f"[green]{event.kind}[/green] {event.message}")
        elif isinstance(event, ErrorEvent):
            self.progress.update(task_id, description=f"[red]✗ {event.kind}")
            self.progress.stop_task(task_id)
            self.progress.console.log(f"[red]{event.kind} failed:[/red] {event.message}")

    def _task_for(self, kind: DatasetKind) -> TaskID:
        if kind not in self._tasks:
            self._tasks[kind] = self.progress.add_task(str(kind), total=None)
        return self._tasks[kind]

    def _task_index(self, task_id: TaskID) -> int:
        for index, task in enumerate(self.progress.tasks):
            if task.id == task_id:
                return index
        raise KeyError(task_id)
