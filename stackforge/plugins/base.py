"""Plugin contract and the declarative blueprint plugin.

The core only ever talks to plugins through the :class:`Plugin` protocol.
:class:`BlueprintPlugin` is the stock implementation: it is built from a
:class:`PluginManifest` (usually loaded from YAML) and installs itself by
running its blueprints through the :class:`BlueprintExecutor`.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from stackforge.blueprint.executor import BlueprintExecutor
from stackforge.blueprint.models import (
    AddScriptAction,
    Blueprint,
    CreateFileAction,
    InstallPackagesAction,
)
from stackforge.templates import TemplateRenderError
from stackforge.utils import deep_merge

from .context import PluginContext
from .models import (
    ErrorCode,
    PluginArtifact,
    PluginCategory,
    PluginMetadata,
    PluginResult,
    ValidationResult,
)


@runtime_checkable
class Plugin(Protocol):
    """The fixed interface every plugin implements."""

    @property
    def metadata(self) -> PluginMetadata: ...

    def get_dependencies(self) -> list[str]: ...

    def get_conflicts(self) -> list[str]: ...

    async def validate(self, context: PluginContext) -> ValidationResult: ...

    async def install(self, context: PluginContext) -> PluginResult: ...

    async def uninstall(self, context: PluginContext) -> PluginResult: ...

    async def update(self, context: PluginContext) -> PluginResult: ...

    def get_default_config(self) -> dict[str, Any]: ...

    def get_config_schema(self) -> dict[str, Any]: ...


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------

class PluginManifest(BaseModel):
    """Declarative description of a blueprint plugin."""

    id: str = Field(..., min_length=1)
    name: str = ""
    version: str = "0.1.0"
    description: str = ""
    category: PluginCategory = PluginCategory.OTHER
    tags: list[str] = Field(default_factory=list)
    author: str = ""
    license: str = "MIT"

    dependencies: list[str] = Field(default_factory=list)
    conflicts: list[str] = Field(default_factory=list)
    default_config: dict[str, Any] = Field(default_factory=dict)
    config_schema: dict[str, Any] = Field(default_factory=dict)
    required_parameters: list[str] = Field(
        default_factory=list, description="Config keys that must be set before install"
    )
    blueprints: list[Blueprint] = Field(default_factory=list)

    def to_metadata(self) -> PluginMetadata:
        return PluginMetadata(
            id=self.id,
            name=self.name,
            version=self.version,
            description=self.description,
            category=self.category,
            tags=self.tags,
            author=self.author,
            license=self.license,
        )


# ---------------------------------------------------------------------------
# Blueprint plugin
# ---------------------------------------------------------------------------

class BlueprintPlugin:
    """A plugin whose behaviour is entirely described by its blueprints."""

    def __init__(
        self,
        manifest: PluginManifest,
        executor: Optional[BlueprintExecutor] = None,
        source: Optional[Path] = None,
    ) -> None:
        self.manifest = manifest
        self.executor = executor or BlueprintExecutor()
        self.source = source
        self._metadata = manifest.to_metadata()

    def __repr__(self) -> str:
        return f"BlueprintPlugin({self._metadata.id!r})"

    @property
    def metadata(self) -> PluginMetadata:
        return self._metadata

    def get_dependencies(self) -> list[str]:
        return list(self.manifest.dependencies)

    def get_conflicts(self) -> list[str]:
        return list(self.manifest.conflicts)

    def get_default_config(self) -> dict[str, Any]:
        return dict(self.manifest.default_config)

    def get_config_schema(self) -> dict[str, Any]:
        return dict(self.manifest.config_schema)

    def effective_config(self, context: PluginContext) -> dict[str, Any]:
        """Default config with the user's parameters merged over it."""
        return deep_merge(self.get_default_config(), context.parameters_for(self._metadata.id))

    # -- Lifecycle ---------------------------------------------------------

    async def validate(self, context: PluginContext) -> ValidationResult:
        result = ValidationResult()
        if not context.project_path.is_dir():
            result.add_error(
                f"Project directory does not exist: {context.project_path}",
                field="project_path",
            )
        elif not context.manifest_path.is_file():
            result.warnings.append(
                f"{context.manifest_file} not found; it must be created before packages can be added"
            )

        config = self.effective_config(context)
        for key in self.manifest.required_parameters:
            if config.get(key) in (None, ""):
                result.add_error(
                    f"Required configuration field '{key}' is missing",
                    code=ErrorCode.VALIDATION_ERROR,
                    field=f"config.{key}",
                )
        return result

    async def install(self, context: PluginContext) -> PluginResult:
        start = time.monotonic()
        plugin_id = self._metadata.id
        config = self.effective_config(context)
        variables = context.template_variables(self._metadata, config)
        result = PluginResult(plugin_id=plugin_id, config=config)

        for blueprint in self.manifest.blueprints:
            outcome = await self.executor.execute(blueprint, context, variables)
            result.warnings.extend(outcome.warnings)
            result.artifacts.extend(PluginArtifact(path=path) for path in outcome.files)
            if not outcome.success:
                result.success = False
                result.errors.extend(str(failure) for failure in outcome.errors)
                break
            self._collect_declarations(blueprint, variables, result)

        if result.success:
            context.state.setdefault("plugins", {})[plugin_id] = config
        result.duration = time.monotonic() - start
        return result

    async def uninstall(self, context: PluginContext) -> PluginResult:
        """Remove the files this plugin's ``CREATE_FILE`` actions produce."""
        start = time.monotonic()
        plugin_id = self._metadata.id
        config = self.effective_config(context)
        variables = context.template_variables(self._metadata, config)
        result = PluginResult(plugin_id=plugin_id)

        for blueprint in self.manifest.blueprints:
            for action in blueprint.actions:
                if not isinstance(action, CreateFileAction):
                    continue
                try:
                    instances = self.executor.expand(action, variables)
                except TemplateRenderError as exc:
                    result.warnings.append(f"Cannot resolve path of {action.path}: {exc}")
                    continue
                for instance in instances:
                    target = context.project_path / instance.path
                    if target.is_file():
                        target.unlink()
                        result.artifacts.append(PluginArtifact(path=str(target)))

        context.state.get("plugins", {}).pop(plugin_id, None)
        result.duration = time.monotonic() - start
        return result

    async def update(self, context: PluginContext) -> PluginResult:
        # Re-running install overwrites what the previous install produced.
        return await self.install(context)

    # -- Helpers -----------------------------------------------------------

    def _collect_declarations(
        self,
        blueprint: Blueprint,
        variables: dict[str, Any],
        result: PluginResult,
    ) -> None:
        for action in blueprint.actions:
            if not isinstance(action, (InstallPackagesAction, AddScriptAction)):
                continue
            for instance in self.executor.expand(action, variables):
                if isinstance(instance, InstallPackagesAction):
                    result.dependencies.extend(
                        p for p in instance.packages if p not in result.dependencies
                    )
                else:
                    result.scripts[instance.name] = instance.command
