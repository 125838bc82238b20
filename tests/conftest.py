"""Shared pytest fixtures for the stackforge test suite.

Provides reusable fixtures for:
- Temporary project directories with and without a package.json
- Plugin contexts wired to an in-memory logger
- A factory for declarative blueprint plugins
- Mock subprocess helpers
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from stackforge.blueprint.models import Blueprint
from stackforge.plugins.base import BlueprintPlugin, PluginManifest
from stackforge.plugins.context import PluginContext
from stackforge.plugins.registry import PluginRegistry
from stackforge.utils import RecordingLogger


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Temporary directory for generated projects (auto-cleanup)."""
    project_dir = tmp_path / "test-project"
    project_dir.mkdir()
    yield project_dir


@pytest.fixture
def package_json() -> dict[str, Any]:
    return {
        "name": "test-project",
        "version": "0.1.0",
        "private": True,
        "scripts": {"dev": "next dev"},
        "dependencies": {"next": "14.2.0"},
    }


@pytest.fixture
def project_with_manifest(tmp_project_dir: Path, package_json: dict[str, Any]) -> Path:
    """Project directory that already holds a package.json."""
    (tmp_project_dir / "package.json").write_text(
        json.dumps(package_json, indent=2) + "\n", encoding="utf-8"
    )
    return tmp_project_dir


# ---------------------------------------------------------------------------
# Contexts
# ---------------------------------------------------------------------------

@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def plugin_context(tmp_project_dir: Path, recording_logger: RecordingLogger) -> PluginContext:
    """Context for a project that never runs the package manager."""
    return PluginContext(
        project_path=tmp_project_dir,
        project_name="test-project",
        logger=recording_logger,
        skip_install=True,
        command_timeout=30,
    )


@pytest.fixture
def manifest_context(
    project_with_manifest: Path, recording_logger: RecordingLogger
) -> PluginContext:
    """Like ``plugin_context`` but the project already has a package.json."""
    return PluginContext(
        project_path=project_with_manifest,
        project_name="test-project",
        logger=recording_logger,
        skip_install=True,
        command_timeout=30,
    )


# ---------------------------------------------------------------------------
# Plugins
# ---------------------------------------------------------------------------

def make_blueprint(blueprint_id: str, actions: list[dict[str, Any]]) -> Blueprint:
    return Blueprint.model_validate({"id": blueprint_id, "actions": actions})


@pytest.fixture
def make_plugin() -> Callable[..., BlueprintPlugin]:
    """Factory for blueprint plugins.

    Usage:
        def test_x(make_plugin):
            db = make_plugin("drizzle", category="orm", dependencies=["neon"])
    """
    def factory(
        plugin_id: str,
        category: str = "other",
        dependencies: Optional[list[str]] = None,
        conflicts: Optional[list[str]] = None,
        actions: Optional[list[dict[str, Any]]] = None,
        **extra: Any,
    ) -> BlueprintPlugin:
        if actions is None:
            actions = [
                {
                    "type": "CREATE_FILE",
                    "path": f"src/plugins/{plugin_id}.ts",
                    "content": f"export const plugin = '{plugin_id}';\n",
                }
            ]
        manifest = PluginManifest(
            id=plugin_id,
            name=extra.pop("name", plugin_id.replace("-", " ").title()),
            category=category,
            dependencies=dependencies or [],
            conflicts=conflicts or [],
            blueprints=[make_blueprint(f"{plugin_id}-setup", actions)],
            **extra,
        )
        return BlueprintPlugin(manifest)

    return factory


@pytest.fixture
def registry() -> PluginRegistry:
    return PluginRegistry()


# ---------------------------------------------------------------------------
# Mock Subprocess (generic)
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", return_value=proc):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory
