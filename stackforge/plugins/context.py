"""Execution context handed to plugins, agents and blueprint executors."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Protocol

from stackforge.config import EngineConfig, PackageManager
from stackforge.utils import ConsoleLogger

if TYPE_CHECKING:
    from .models import PluginMetadata


class Logger(Protocol):
    """The logger sink every component writes to."""

    def info(self, message: str) -> None: ...

    def warn(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def success(self, message: str) -> None: ...


@dataclass
class PluginContext:
    """Everything a plugin needs to know about the project it is installed into.

    ``state`` is a mutable store shared by every phase of one orchestration
    run (for example the chosen sub-configuration of a plugin, or the list of
    plugins installed so far).  ``parameters`` holds user-supplied settings per
    plugin id and is merged over each plugin's default configuration.
    """

    project_path: Path
    project_name: str = ""
    description: str = ""
    package_manager: PackageManager = PackageManager.NPM
    logger: Logger = field(default_factory=ConsoleLogger)
    state: dict[str, Any] = field(default_factory=dict)
    parameters: dict[str, dict[str, Any]] = field(default_factory=dict)
    skip_install: bool = False
    command_timeout: int = 600
    manifest_file: str = "package.json"
    env_file: str = ".env.local"

    def __post_init__(self) -> None:
        self.project_path = Path(self.project_path).resolve()
        if not self.project_name:
            self.project_name = self.project_path.name

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        logger: Optional[Logger] = None,
        parameters: Optional[dict[str, dict[str, Any]]] = None,
    ) -> "PluginContext":
        """Build a context from the engine configuration."""
        return cls(
            project_path=config.project_path,
            project_name=config.project_name,
            package_manager=config.package_manager,
            logger=logger or ConsoleLogger(),
            parameters=dict(parameters or {}),
            skip_install=config.skip_install,
            command_timeout=config.command_timeout,
            manifest_file=config.manifest_file,
            env_file=config.env_file,
        )

    @property
    def manifest_path(self) -> Path:
        return self.project_path / self.manifest_file

    def parameters_for(self, plugin_id: str) -> dict[str, Any]:
        """User-supplied parameters for *plugin_id* (empty when none)."""
        return dict(self.parameters.get(plugin_id, {}))

    def template_variables(
        self,
        plugin: Optional["PluginMetadata"] = None,
        parameters: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Variables available to ``{{ ... }}`` placeholders in blueprint actions."""
        module: dict[str, Any] = {"parameters": dict(parameters or {})}
        if plugin is not None:
            module.update(
                id=plugin.id,
                name=plugin.name,
                category=plugin.category.value,
                version=plugin.version,
            )
        env = dict(os.environ)
        env.setdefault("NODE_ENV", "development")
        return {
            "project": {
                "name": self.project_name,
                "path": str(self.project_path),
                "description": self.description,
                "package_manager": self.package_manager.value,
            },
            "module": module,
            "env": env,
            "state": self.state,
        }
