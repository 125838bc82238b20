"""Loading plugin manifests from disk.

A plugin directory holds one manifest per plugin, either as a top-level
``<id>.yaml`` / ``<id>.yml`` / ``<id>.json`` file or as ``<id>/plugin.yaml``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml
from pydantic import ValidationError

from stackforge.blueprint.executor import BlueprintExecutor

from .base import BlueprintPlugin, PluginManifest

MANIFEST_SUFFIXES = (".yaml", ".yml", ".json")
MANIFEST_NAMES = tuple(f"plugin{suffix}" for suffix in MANIFEST_SUFFIXES)


class PluginLoadError(Exception):
    """Raised when a manifest cannot be read or does not validate."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


@dataclass
class DiscoveryResult:
    plugins: list[BlueprintPlugin] = field(default_factory=list)
    errors: list[PluginLoadError] = field(default_factory=list)


def read_manifest_data(path: Path) -> dict[str, Any]:
    """Parse a YAML or JSON manifest into a mapping."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise PluginLoadError(path, f"cannot read manifest: {exc}") from exc
    try:
        if path.suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise PluginLoadError(path, f"invalid manifest syntax: {exc}") from exc
    if not isinstance(data, dict):
        raise PluginLoadError(path, "manifest root must be a mapping")
    return data


def load_manifest(path: str | Path) -> PluginManifest:
    path = Path(path)
    data = read_manifest_data(path)
    try:
        return PluginManifest.model_validate(data)
    except ValidationError as exc:
        raise PluginLoadError(path, f"invalid manifest: {exc}") from exc


def load_plugin(path: str | Path, executor: Optional[BlueprintExecutor] = None) -> BlueprintPlugin:
    path = Path(path)
    return BlueprintPlugin(load_manifest(path), executor=executor, source=path)


def find_manifests(directory: Path) -> list[Path]:
    """Manifest files directly in *directory* or one level below, sorted."""
    if not directory.is_dir():
        return []
    found: list[Path] = []
    for entry in sorted(directory.iterdir()):
        if entry.is_file() and entry.suffix in MANIFEST_SUFFIXES:
            found.append(entry)
        elif entry.is_dir():
            for name in MANIFEST_NAMES:
                candidate = entry / name
                if candidate.is_file():
                    found.append(candidate)
                    break
    return found


def discover_plugins(
    directories: Iterable[str | Path],
    executor: Optional[BlueprintExecutor] = None,
) -> DiscoveryResult:
    """Load every manifest found under *directories*.

    Broken manifests are collected in ``errors`` instead of aborting the scan.
    """
    result = DiscoveryResult()
    for directory in directories:
        for path in find_manifests(Path(directory)):
            try:
                result.plugins.append(load_plugin(path, executor))
            except PluginLoadError as exc:
                result.errors.append(exc)
    return result
