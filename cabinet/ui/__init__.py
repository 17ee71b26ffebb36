"""Progress events and sinks."""

from .events import ErrorEvent, FinishEvent, InfoEvent, IngestEvent, ProgressEvent, TERMINAL_EVENTS
from .progress_sink import HeadlessProgressSink, ProgressSink, RichProgressSink

__all__ = [
    "ErrorEvent",
    "FinishEvent",
    "InfoEvent",
    "IngestEvent",
    "ProgressEvent",
    "TERMINAL_EVENTS",
    "HeadlessProgressSink",
    "ProgressSink",
    "RichProgressSink",
]
