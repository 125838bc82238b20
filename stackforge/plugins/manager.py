"""Plugin lifecycle management.

The manager looks plugins up in the registry, validates them against the
project context and drives ``install`` / ``uninstall`` / ``update``.  Plugin
exceptions are converted into failed :class:`PluginResult` objects so they
never cross plugin boundaries.

Batch semantics:

* :meth:`PluginManager.install_plugins` resolves the batch first and refuses
  to start when resolution reports missing plugins, conflicts or cycles.  It
  then installs in dependency order and stops at the first failure.  With
  ``rollback=True`` the plugins already installed by the batch are
  uninstalled again, newest first.
* :meth:`PluginManager.uninstall_plugins` is best-effort and attempts every id.
"""

from __future__ import annotations

import re
import time
from pathlib import Path
from typing import Any, Iterable, Optional

from stackforge.utils import ConsoleLogger

from .base import Plugin
from .context import Logger, PluginContext
from .loader import discover_plugins as load_plugins
from .models import ErrorCode, PluginResult, ValidationResult
from .registry import PluginRegistry
from .resolver import DependencyResolver

_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+(?:[-+].+)?$")


class PluginManager:
    """Drives plugin lifecycles against a :class:`PluginRegistry`.

    Args:
        registry: Catalog of available plugins.
        resolver: Dependency resolver; built from *registry* when omitted.
        plugin_dirs: Directories scanned by :meth:`discover_plugins`.
        logger: Sink for manager-level messages (discovery, configuration).
    """

    def __init__(
        self,
        registry: PluginRegistry,
        resolver: Optional[DependencyResolver] = None,
        plugin_dirs: Optional[Iterable[str | Path]] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self.registry = registry
        self.resolver = resolver or DependencyResolver(registry)
        self.plugin_dirs = [Path(d) for d in plugin_dirs or ()]
        self.logger = logger or ConsoleLogger()
        self._configs: dict[str, dict[str, Any]] = {}
        self._installed: list[str] = []

    # ------------------------------------------------------------------
    # Single plugin lifecycle
    # ------------------------------------------------------------------

    async def install_plugin(self, plugin_id: str, context: PluginContext) -> PluginResult:
        start = time.monotonic()
        context.logger.info(f"Installing plugin: {plugin_id}")

        plugin = self.registry.get(plugin_id)
        if plugin is None:
            return self._not_found(context, plugin_id, start)

        if plugin_id in self._configs and plugin_id not in context.parameters:
            context.parameters[plugin_id] = dict(self._configs[plugin_id])

        try:
            validation = await plugin.validate(context)
            if not validation.valid:
                messages = ", ".join(issue.message for issue in validation.errors)
                return self._error(
                    context, plugin_id, f"Plugin validation failed: {messages}", start,
                    warnings=validation.warnings,
                )
            result = await plugin.install(context)
        except Exception as exc:
            return self._error(context, plugin_id, f"Plugin {plugin_id} raised: {exc}", start)

        result.plugin_id = plugin_id
        result.warnings = [*validation.warnings, *result.warnings]
        result.duration = time.monotonic() - start
        if result.success:
            self._configs[plugin_id] = dict(result.config) or plugin.get_default_config()
            if plugin_id not in self._installed:
                self._installed.append(plugin_id)
            context.logger.success(f"Installed plugin: {plugin_id}")
        else:
            for error in result.errors:
                context.logger.error(error)
        return result

    async def uninstall_plugin(self, plugin_id: str, context: PluginContext) -> PluginResult:
        start = time.monotonic()
        context.logger.info(f"Uninstalling plugin: {plugin_id}")

        plugin = self.registry.get(plugin_id)
        if plugin is None:
            return self._not_found(context, plugin_id, start)

        try:
            result = await plugin.uninstall(context)
        except Exception as exc:
            return self._error(context, plugin_id, f"Plugin {plugin_id} raised: {exc}", start)

        result.plugin_id = plugin_id
        result.duration = time.monotonic() - start
        if result.success:
            self._configs.pop(plugin_id, None)
            if plugin_id in self._installed:
                self._installed.remove(plugin_id)
            context.logger.success(f"Uninstalled plugin: {plugin_id}")
        return result

    async def update_plugin(self, plugin_id: str, context: PluginContext) -> PluginResult:
        start = time.monotonic()
        context.logger.info(f"Updating plugin: {plugin_id}")

        plugin = self.registry.get(plugin_id)
        if plugin is None:
            return self._not_found(context, plugin_id, start)

        try:
            result = await plugin.update(context)
        except Exception as exc:
            return self._error(context, plugin_id, f"Plugin {plugin_id} raised: {exc}", start)

        result.plugin_id = plugin_id
        result.duration = time.monotonic() - start
        if result.success:
            context.logger.success(f"Updated plugin: {plugin_id}")
        return result

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------

    async def install_plugins(
        self,
        plugin_ids: Iterable[str],
        context: PluginContext,
        rollback: bool = False,
    ) -> list[PluginResult]:
        """Install a batch of plugins in dependency order.

        Returns:
            One result per attempted plugin.  When resolution fails, one
            failed result per requested id and nothing is installed.
        """
        resolution = self.resolver.resolve(plugin_ids)
        context.logger.info(
            f"Installing {len(resolution.plugins)} plugin(s): {', '.join(resolution.plugins)}"
        )

        if resolution.has_errors:
            reason = "Dependency resolution failed: " + "; ".join(resolution.error_messages())
            context.logger.error(reason)
            return [PluginResult.failure(pid, reason) for pid in resolution.plugins]

        if resolution.added:
            context.logger.info(f"Adding required plugin(s): {', '.join(resolution.added)}")

        results: list[PluginResult] = []
        installed: list[str] = []
        for plugin_id in resolution.order:
            result = await self.install_plugin(plugin_id, context)
            results.append(result)
            if not result.success:
                context.logger.error(
                    f"Failed to install plugin {plugin_id}, stopping batch installation"
                )
                if rollback and installed:
                    await self._rollback(installed, context)
                break
            installed.append(plugin_id)
        return results

    async def uninstall_plugins(
        self, plugin_ids: Iterable[str], context: PluginContext
    ) -> list[PluginResult]:
        """Uninstall every id, collecting all results regardless of failures."""
        ids = list(plugin_ids)
        context.logger.info(f"Uninstalling {len(ids)} plugin(s): {', '.join(ids)}")
        return [await self.uninstall_plugin(pid, context) for pid in ids]

    async def _rollback(self, installed: list[str], context: PluginContext) -> None:
        context.logger.warn(f"Rolling back {len(installed)} plugin(s): {', '.join(reversed(installed))}")
        for plugin_id in reversed(installed):
            result = await self.uninstall_plugin(plugin_id, context)
            if not result.success:
                context.logger.warn(f"Rollback of {plugin_id} failed: {'; '.join(result.errors)}")

    # ------------------------------------------------------------------
    # Discovery and validation
    # ------------------------------------------------------------------

    def discover_plugins(self) -> list[Plugin]:
        """Register manifests found under ``plugin_dirs``; returns all plugins."""
        if self.plugin_dirs:
            self.logger.info(
                f"Discovering plugins in {', '.join(str(d) for d in self.plugin_dirs)}"
            )
        discovery = load_plugins(self.plugin_dirs)
        for error in discovery.errors:
            self.logger.warn(f"Skipping plugin manifest {error}")
        for plugin in discovery.plugins:
            plugin_id = plugin.metadata.id
            if plugin_id in self.registry:
                self.logger.warn(f"Plugin {plugin_id} is already registered; skipping {plugin.source}")
                continue
            validation = self.validate_plugin(plugin)
            if not validation.valid:
                messages = ", ".join(issue.message for issue in validation.errors)
                self.logger.warn(f"Skipping invalid plugin {plugin_id}: {messages}")
                continue
            self.registry.register(plugin)
        return self.registry.get_all()

    def validate_plugin(self, plugin: Plugin) -> ValidationResult:
        """Check that a plugin's metadata and declarations are complete."""
        result = ValidationResult()
        metadata = plugin.metadata
        for field_name in ("id", "name", "version"):
            if not getattr(metadata, field_name):
                result.add_error(
                    f"Plugin metadata is incomplete: missing {field_name}",
                    field=f"metadata.{field_name}",
                )
        if metadata.version and not _VERSION_RE.match(metadata.version):
            result.warnings.append(f"Version '{metadata.version}' is not semantic (x.y.z)")

        dependencies = set(plugin.get_dependencies())
        conflicts = set(plugin.get_conflicts())
        if metadata.id in dependencies:
            result.add_error("Plugin depends on itself", ErrorCode.CYCLE, "dependencies")
        if metadata.id in conflicts:
            result.add_error("Plugin conflicts with itself", ErrorCode.CONFLICT, "conflicts")
        for both in sorted(dependencies & conflicts):
            result.add_error(
                f"Plugin both depends on and conflicts with {both}",
                ErrorCode.CONFLICT,
                "conflicts",
            )
        return result

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_plugin_config(self, plugin_id: str) -> dict[str, Any]:
        return dict(self._configs.get(plugin_id, {}))

    def set_plugin_config(self, plugin_id: str, config: dict[str, Any]) -> None:
        self._configs[plugin_id] = dict(config)
        self.logger.info(f"Updated configuration for plugin: {plugin_id}")

    @property
    def installed_plugins(self) -> list[str]:
        """Ids installed through this manager, in installation order."""
        return list(self._installed)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _error(
        context: PluginContext,
        plugin_id: str,
        message: str,
        start: float,
        warnings: Optional[list[str]] = None,
    ) -> PluginResult:
        context.logger.error(message)
        result = PluginResult.failure(plugin_id, message, duration=time.monotonic() - start)
        result.warnings = list(warnings or [])
        return result

    @classmethod
    def _not_found(cls, context: PluginContext, plugin_id: str, start: float) -> PluginResult:
        return cls._error(
            context,
            plugin_id,
            f"{ErrorCode.PLUGIN_NOT_FOUND.value}: Plugin {plugin_id} not found",
            start,
        )
