"""
Shared pytest fixtures and utilities for the cabinet test suite.
"""

import shutil
from pathlib import Path
from typing import Any, Callable, Dict, Iterable

import pytest
import yaml

from cabinet.registry import EntityRegistry, MergeResolver
from cabinet.sources import DatasetKind, PartialRecord


@pytest.fixture
def project_root() -> Path:
    """
    Repository root path for locating fixtures and sample data.
    """
    return Path(__file__).resolve().parent.parent


@pytest.fixture
def data_dir(project_root: Path) -> Path:
    """
    Path to shared static test fixtures.
    """
    return project_root / "tests" / "data"


@pytest.fixture
def datasets_dir(data_dir: Path) -> Path:
    """
    Small but realistic copies of every community dataset.
    """
    return data_dir / "datasets"


@pytest.fixture
def workspace(tmp_path: Path, datasets_dir: Path) -> Path:
    """
    Copy the fixture datasets into a temp workspace.
    """
    dest = tmp_path / "workspace"
    shutil.copytree(datasets_dir, dest)
    return dest


@pytest.fixture
def registry() -> EntityRegistry:
    return EntityRegistry()


@pytest.fixture
def resolver(registry: EntityRegistry) -> MergeResolver:
    return MergeResolver(registry)


@pytest.fixture
def merge() -> Callable[..., EntityRegistry]:
    """
    Build a registry from (machine, field, value[, source]) tuples.

    Usage:
        registry = merge([("m1", "category", "CatA", DatasetKind.CATVER)])
    """

    def _builder(facts: Iterable[tuple], registry: EntityRegistry = None) -> EntityRegistry:
        registry = registry if registry is not None else EntityRegistry()
        resolver = MergeResolver(registry)
        for fact in facts:
            resolver.apply(PartialRecord(*fact))
        return registry

    return _builder


@pytest.fixture
def make_config(tmp_path: Path, workspace: Path) -> Callable[[Dict[str, Any]], Path]:
    """
    Create a minimal cabinet.yaml in a temp directory.

    Usage:
        path = make_config({"export": {"formats": ["csv"]}})
    """

    def _builder(overrides: Dict[str, Any] = None) -> Path:
        base = {
            "sources": {"workspace": str(workspace)},
            "ingest": {"max_workers": 2},
            "export": {
                "output_dir": str(tmp_path / "output"),
                "formats": ["json"],
            },
            "logging": {"level": "INFO", "console": False},
        }
        if overrides:
            base = merge_dicts(base, overrides)

        cfg_path = tmp_path / "cabinet.yaml"
        cfg_path.write_text(yaml.safe_dump(base))
        return cfg_path

    return _builder


def merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shallow+deep merge helper for fixture config dictionaries.
    """
    result: Dict[str, Any] = dict(base)
    for key, value in override.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


DATASET_FILES = {
    DatasetKind.MAME: "mame.xml",
    DatasetKind.CATVER: "catver.ini",
    DatasetKind.SERIES: "series.ini",
    DatasetKind.LANGUAGES: "languages.ini",
    DatasetKind.NPLAYERS: "nplayers.ini",
    DatasetKind.HISTORY: "history.xml",
    DatasetKind.RESOURCES: "pS_AllProject_20240101_262_(mame).dat",
    DatasetKind.BESTGAMES: "bestgames.ini",
}


@pytest.fixture
def open_dataset(datasets_dir: Path) -> Callable[[DatasetKind], Any]:
    """
    Open the fixture file for a dataset kind in binary mode.
    """

    def _open(kind: DatasetKind):
        return open(datasets_dir / DATASET_FILES[kind], "rb")

    return _open
