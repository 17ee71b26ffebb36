"""Command-line interface for cabinet."""

import sys
import logging
import argparse
import asyncio
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

from cabinet import __version__
from cabinet.config.loader import DEFAULT_CONFIG_NAME, load_config, get_config_value, ConfigError
from cabinet.config.validator import validate_config, ValidationError
from cabinet.errors import ExportError
from cabinet.export import EXPORTERS, CsvExporter
from cabinet.registry import EntityRegistry, FilterEngine, RemovalSpec
from cabinet.sources import DatasetKind
from cabinet.ui import HeadlessProgressSink, RichProgressSink
from cabinet.workflow import DirectoryResourceProvider, IngestSummary, ParallelIngestCoordinator, sources_from_provider

# Export format -> file extension
EXTENSIONS = {
    'json': '.json',
    'csv': '.csv',
    'sqlite': '.sqlite',
}


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        prog='cabinet',
        description='Merge MAME community datasets into JSON, CSV and SQLite exports',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Ingest, filter and export using ./cabinet.yaml
  cabinet

  # Use custom config file
  cabinet --config /path/to/cabinet.yaml

  # Ingest only some datasets from a workspace, without a config file
  cabinet --workspace ./workspace --datasets mame catver languages

  # Export only SQLite, skip the configured filter
  cabinet --formats sqlite --no-filter

  # Minimal logging for CI/automation
  cabinet --ui headless

For configuration file format, see cabinet.yaml.example
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=Path,
        metavar='PATH',
        help=f'Path to {DEFAULT_CONFIG_NAME} (default: ./{DEFAULT_CONFIG_NAME})'
    )

    parser.add_argument(
        '--workspace',
        type=Path,
        metavar='PATH',
        help='Directory holding the dataset files or archives. Overrides config.'
    )

    parser.add_argument(
        '--datasets',
        nargs='+',
        choices=[kind.value for kind in DatasetKind],
        metavar='DATASET',
        help='Datasets to ingest (e.g., mame catver). Overrides config.'
    )

    parser.add_argument(
        '--output-dir',
        type=Path,
        metavar='PATH',
        help='Directory for exported files. Overrides config.'
    )

    parser.add_argument(
        '--formats',
        nargs='+',
        choices=list(EXPORTERS),
        metavar='FORMAT',
        help='Export formats: json csv sqlite. Overrides config.'
    )

    parser.add_argument(
        '--workers',
        type=int,
        metavar='N',
        help='Number of datasets ingested in parallel. Overrides config.'
    )

    parser.add_argument(
        '--no-filter',
        action='store_true',
        help='Skip the configured removal filter'
    )

    parser.add_argument(
        '--ui',
        choices=['rich', 'headless'],
        default='rich',
        help='UI mode: rich (progress bars, default) or headless (minimal logging for CI/automation)'
    )

    return parser


def _setup_logging(config: dict) -> None:
    """
    Setup logging configuration from config.

    Args:
        config: Configuration dictionary
    """
    logging_config = config.get('logging', {})

    # Get log level
    level_str = logging_config.get('level', 'INFO').upper()
    level = getattr(logging, level_str, logging.INFO)

    handlers = []

    if logging_config.get('console', True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
        handlers.append(console_handler)

    # File handler (if configured)
    log_file = logging_config.get('file')
    if log_file:
        try:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(level)
            formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
        except OSError as e:
            print(f"Error: Could not create log file '{log_file}': {e}", file=sys.stderr)
            sys.exit(1)

    # Configure root logger
    logging.basicConfig(
        level=level,
        handlers=handlers,
        force=True  # Override any existing configuration
    )


def apply_cli_overrides(config: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    """Apply command-line argument overrides to config.

    Args:
        config: Configuration dictionary
        args: Parsed arguments

    Returns:
        Updated configuration dictionary
    """
    for section in ('sources', 'ingest', 'export'):
        config.setdefault(section, {})

    if args.workspace:
        config['sources']['workspace'] = str(args.workspace)
    if args.datasets:
        config['sources']['datasets'] = args.datasets
    if args.output_dir:
        config['export']['output_dir'] = str(args.output_dir)
    if args.formats:
        config['export']['formats'] = args.formats
    if args.workers is not None:
        config['ingest']['max_workers'] = args.workers
    if args.no_filter:
        config.pop('filter', None)

    return config


def _load(args: argparse.Namespace) -> Dict[str, Any]:
    """Load --config, else ./cabinet.yaml; a missing default file is fine when --workspace is given."""
    if args.config is not None:
        return load_config(args.config)
    default_path = Path.cwd() / DEFAULT_CONFIG_NAME
    if args.workspace and not default_path.exists():
        return {}
    return load_config(default_path)


def build_coordinator(config: Dict[str, Any], sink) -> ParallelIngestCoordinator:
    """Create the registry and the coordinator that fills it."""
    return ParallelIngestCoordinator(
        EntityRegistry(),
        sink,
        max_workers=get_config_value(config, 'ingest.max_workers', 4),
        progress_interval=get_config_value(config, 'ingest.progress_interval', 1024 * 1024),
    )


async def run_pipeline(config: Dict[str, Any], coordinator: ParallelIngestCoordinator) -> int:
    """
    Ingest, filter and export according to config.

    Returns:
        Exit code (0 if every dataset merged and every export was written)
    """
    registry = coordinator.registry

    provider = DirectoryResourceProvider(Path(config['sources']['workspace']).expanduser())
    datasets = get_config_value(config, 'sources.datasets')
    kinds = [DatasetKind(name) for name in datasets] if datasets else None
    sources = sources_from_provider(provider, kinds)

    summary = await coordinator.ingest(sources)
    _log_summary(summary)

    if config.get('filter') is not None:
        result = FilterEngine(registry).apply(RemovalSpec.from_dict(config['filter']))
        logger.info(f"Removed {result.total_removed} machines, {len(registry)} remain")

    export_failed = False
    output_dir = Path(get_config_value(config, 'export.output_dir', 'output')).expanduser()
    basename = get_config_value(config, 'export.basename', 'machines')
    snapshot = registry.snapshot()
    for name in get_config_value(config, 'export.formats', ['json']):
        if name == 'csv':
            exporter = CsvExporter(delimiter=get_config_value(config, 'export.csv_delimiter', ';'))
        else:
            exporter = EXPORTERS[name]()
        try:
            exporter.export(snapshot, output_dir / f"{basename}{EXTENSIONS[name]}")
        except ExportError as e:
            logger.error(str(e))
            export_failed = True

    return 1 if summary.failed or export_failed else 0


def _log_summary(summary: IngestSummary) -> None:
    for kind, report in summary.reports.items():
        if report.succeeded:
            logger.info(f"  {kind}: {report.describe()}")
        else:
            logger.error(f"  {kind}: failed ({report.error_type}: {report.error})")
    if summary.conflicts:
        logger.warning(f"{len(summary.conflicts)} merge conflicts (first value kept)")
    if summary.dangling:
        logger.warning(f"{len(summary.dangling)} dangling clone/rom references")


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for cabinet CLI.

    Args:
        argv: Command-line arguments (default: sys.argv)

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Load and validate configuration
    try:
        config = apply_cli_overrides(_load(args), args)
        validate_config(config)
    except (ConfigError, ValidationError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    _setup_logging(config)

    sink = HeadlessProgressSink() if args.ui == 'headless' else RichProgressSink()
    coordinator = build_coordinator(config, sink)
    sink.start()
    try:
        return asyncio.run(run_pipeline(config, coordinator))
    except KeyboardInterrupt:
        coordinator.stop()
        print("\n\nIngestion interrupted by user.", file=sys.stderr)
        return 130
    finally:
        sink.stop()


if __name__ == '__main__':
    sys.exit(main())
