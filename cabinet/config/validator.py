"""Configuration validation."""

import logging
from typing import Dict, Any, List

from ..errors import FilterSpecError
from ..export import EXPORTERS
from ..registry.filter_engine import RemovalSpec
from ..sources.records import DatasetKind

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Configuration validation errors."""
    pass


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and values.

    Args:
        config: Configuration dictionary from loader

    Raises:
        ValidationError: If configuration is invalid
    """
    errors = []

    for name in ('sources', 'ingest', 'export', 'logging'):
        if not isinstance(config.get(name, {}), dict):
            errors.append(f"{name} must be a mapping")
    if errors:
        raise ValidationError(
            "Configuration validation failed:\n  - " + "\n  - ".join(errors)
        )

    errors.extend(_validate_sources(config.get('sources', {})))
    errors.extend(_validate_ingest(config.get('ingest', {})))
    errors.extend(_validate_filter(config.get('filter')))
    errors.extend(_validate_export(config.get('export', {})))
    errors.extend(_validate_logging(config.get('logging', {})))

    if errors:
        raise ValidationError(
            "Configuration validation failed:\n  - " + "\n  - ".join(errors)
        )


def _validate_sources(section: Dict[str, Any]) -> List[str]:
    """Validate sources section."""
    errors = []

    if not section.get('workspace'):
        errors.append("sources.workspace is required")
    elif not isinstance(section['workspace'], str):
        errors.append("sources.workspace must be a string path")

    if 'datasets' in section:
        datasets = section['datasets']
        valid = [kind.value for kind in DatasetKind]
        if not isinstance(datasets, list):
            errors.append("sources.datasets must be a list")
        else:
            for name in datasets:
                if name not in valid:
                    errors.append(f"sources.datasets: unknown dataset '{name}' (valid: {', '.join(valid)})")

    return errors


def _validate_ingest(section: Dict[str, Any]) -> List[str]:
    """Validate ingest section."""
    errors = []

    workers = section.get('max_workers', 4)
    if not isinstance(workers, int) or isinstance(workers, bool) or workers < 1:
        errors.append("ingest.max_workers must be a positive integer")

    interval = section.get('progress_interval', 1024 * 1024)
    if not isinstance(interval, int) or isinstance(interval, bool) or interval < 1:
        errors.append("ingest.progress_interval must be a positive integer (bytes)")

    return errors


def _validate_filter(section: Any) -> List[str]:
    """Validate optional filter section by building the removal specification."""
    if section is None:
        return []
    try:
        RemovalSpec.from_dict(section)
    except FilterSpecError as e:
        return [f"filter: {e}"]
    return []


def _validate_export(section: Dict[str, Any]) -> List[str]:
    """Validate export section."""
    errors = []

    formats = section.get('formats', ['json'])
    if not isinstance(formats, list) or not formats:
        errors.append("export.formats must be a non-empty list")
    else:
        for name in formats:
            if name not in EXPORTERS:
                errors.append(f"export.formats: unknown format '{name}' (valid: {', '.join(EXPORTERS)})")

    if not section.get('output_dir', 'output') or not isinstance(section.get('output_dir', 'output'), str):
        errors.append("export.output_dir must be a string path")

    basename = section.get('basename', 'machines')
    if not isinstance(basename, str) or not basename or '/' in basename:
        errors.append("export.basename must be a plain file name")

    delimiter = section.get('csv_delimiter', ';')
    if not isinstance(delimiter, str) or not delimiter:
        errors.append("export.csv_delimiter must be a non-empty string")
    elif delimiter == ',':
        errors.append("export.csv_delimiter must differ from the CSV column separator ','")

    return errors


def _validate_logging(section: Dict[str, Any]) -> List[str]:
    """Validate logging options section."""
    errors = []

    # Validate level
    level = section.get('level', 'INFO')
    valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR']
    if level not in valid_levels:
        errors.append(f"logging.level must be one of: {', '.join(valid_levels)}")

    # Validate console flag
    console = section.get('console', True)
    if not isinstance(console, bool):
        errors.append("logging.console must be a boolean")

    # Validate optional log file
    if 'file' in section and section['file'] is not None:
        if not isinstance(section['file'], str):
            errors.append("logging.file must be a string path or null")

    return errors
