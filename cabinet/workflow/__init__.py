"""Parallel ingestion and the stream-providing collaborators."""

from .coordinator import DatasetReport, IngestSource, IngestSummary, ParallelIngestCoordinator
from .providers import (
    ArchiveAccessor,
    ArchiveHandle,
    DirectoryResourceProvider,
    ResourceProvider,
    ZipArchiveAccessor,
    sources_from_provider,
)

__all__ = [
    "DatasetReport",
    "IngestSource",
    "IngestSummary",
    "ParallelIngestCoordinator",
    "ArchiveAccessor",
    "ArchiveHandle",
    "DirectoryResourceProvider",
    "ResourceProvider",
    "ZipArchiveAccessor",
    "sources_from_provider",
]
