"""stackforge configuration.

Centralised, typed configuration for the scaffolding engine. All settings use
Pydantic v2 models so they can be validated at construction time and serialised
to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from stackforge.utils import ensure_dir


class PackageManager(str, Enum):
    """Supported JavaScript package managers."""

    NPM = "npm"
    YARN = "yarn"
    PNPM = "pnpm"
    BUN = "bun"


# Commands used to add packages to the project, per package manager.
INSTALL_COMMANDS: dict[PackageManager, dict[str, list[str]]] = {
    PackageManager.NPM: {
        "install": ["npm", "install"],
        "install_dev": ["npm", "install", "--save-dev"],
    },
    PackageManager.YARN: {
        "install": ["yarn", "add"],
        "install_dev": ["yarn", "add", "--dev"],
    },
    PackageManager.PNPM: {
        "install": ["pnpm", "add"],
        "install_dev": ["pnpm", "add", "--save-dev"],
    },
    PackageManager.BUN: {
        "install": ["bun", "add"],
        "install_dev": ["bun", "add", "--dev"],
    },
}


class EngineConfig(BaseModel):
    """Global stackforge configuration.

    Holds every tuneable parameter and derived path used by the engine.
    Instances are typically created once by the CLI entry point and then used
    to build the ``PluginContext`` that flows through the rest of the system.
    """

    project_name: str = Field(default="")
    project_path: Path = Field(default=Path("./output"))
    package_manager: PackageManager = Field(default=PackageManager.NPM)
    skip_install: bool = Field(
        default=False,
        description="Record packages in the manifest without running the package manager",
    )
    command_timeout: int = Field(
        default=600, ge=1, description="Per-command subprocess timeout in seconds"
    )
    manifest_file: str = Field(default="package.json")
    env_file: str = Field(default=".env.local")
    state_dir: str = Field(default=".stackforge")
    plugin_dirs: list[Path] = Field(default_factory=list)

    # ------------------------------------------------------------------
    # Derived paths (read-only properties)
    # ------------------------------------------------------------------

    @property
    def manifest_path(self) -> Path:
        """Path to the project's ``package.json``."""
        return self.project_path / self.manifest_file

    @property
    def env_path(self) -> Path:
        """Default env file that ``ADD_ENV_VAR`` actions write to."""
        return self.project_path / self.env_file

    @property
    def state_path(self) -> Path:
        """Root of the ``.stackforge/`` metadata directory inside the project."""
        return self.project_path / self.state_dir

    @property
    def run_report_path(self) -> Path:
        """Path to the persisted orchestration run report."""
        return self.state_path / "orchestration-state.json"

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path | None = None) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file. Defaults to ``<state_path>/config.json``.

        Returns:
            The resolved path where the file was written.
        """
        target = path or (self.state_path / "config.json")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "EngineConfig":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build an ``EngineConfig`` from environment variables.

        Recognised variables (all optional):
            STACKFORGE_PROJECT_NAME, STACKFORGE_PROJECT_PATH,
            STACKFORGE_PACKAGE_MANAGER, STACKFORGE_SKIP_INSTALL,
            STACKFORGE_COMMAND_TIMEOUT, STACKFORGE_ENV_FILE,
            STACKFORGE_PLUGIN_DIRS (``os.pathsep`` separated).
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("STACKFORGE_PROJECT_NAME"):
            kwargs["project_name"] = os.environ["STACKFORGE_PROJECT_NAME"]
        if os.environ.get("STACKFORGE_PROJECT_PATH"):
            kwargs["project_path"] = Path(os.environ["STACKFORGE_PROJECT_PATH"])
        if os.environ.get("STACKFORGE_PACKAGE_MANAGER"):
            kwargs["package_manager"] = PackageManager(os.environ["STACKFORGE_PACKAGE_MANAGER"])
        if os.environ.get("STACKFORGE_SKIP_INSTALL"):
            kwargs["skip_install"] = os.environ["STACKFORGE_SKIP_INSTALL"].lower() in (
                "1",
                "true",
                "yes",
            )
        if os.environ.get("STACKFORGE_COMMAND_TIMEOUT"):
            kwargs["command_timeout"] = int(os.environ["STACKFORGE_COMMAND_TIMEOUT"])
        if os.environ.get("STACKFORGE_ENV_FILE"):
            kwargs["env_file"] = os.environ["STACKFORGE_ENV_FILE"]

        dirs_str = os.environ.get("STACKFORGE_PLUGIN_DIRS", "")
        kwargs["plugin_dirs"] = [Path(d) for d in dirs_str.split(os.pathsep) if d.strip()]

        return cls(**kwargs)

    def ensure_directories(self) -> None:
        """Create the project and metadata directories."""
        for directory in (self.project_path, self.state_path):
            ensure_dir(directory)
