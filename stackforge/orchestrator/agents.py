"""Phase agents.

An agent is the unit of work a phase delegates to.  Agents are looked up by
name from the phase's ``agents`` list, so new ones can be registered with the
planner without touching it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from stackforge.plugins.context import PluginContext
from stackforge.plugins.manager import PluginManager
from stackforge.utils import dump_json, ensure_dir, sanitize_name

from .models import AgentResult, OrchestrationPhase

FOUNDATION_AGENT = "base-project"
PLUGIN_AGENT = "plugin-installer"


@runtime_checkable
class PhaseAgent(Protocol):
    name: str

    async def run(self, phase: OrchestrationPhase, context: PluginContext) -> AgentResult: ...


class ProjectFoundationAgent:
    """Creates the project directory and a minimal manifest.

    An existing manifest is left as it is, so re-running a plan against a
    scaffolded project does not reset its dependencies.
    """

    name = FOUNDATION_AGENT

    async def run(self, phase: OrchestrationPhase, context: PluginContext) -> AgentResult:
        result = AgentResult(agent=self.name)
        ensure_dir(context.project_path)

        manifest_path = context.manifest_path
        if manifest_path.exists():
            result.warnings.append(f"{context.manifest_file} already exists; left unchanged")
        else:
            manifest = {
                "name": sanitize_name(context.project_name) or "app",
                "version": "0.1.0",
                "private": True,
                "description": context.description,
                "scripts": {},
                "dependencies": {},
                "devDependencies": {},
            }
            manifest_path.write_text(dump_json(manifest), encoding="utf-8")
            result.artifacts.append(str(manifest_path))
            context.logger.info(f"Created {manifest_path}")

        context.state.setdefault("project", {
            "name": context.project_name,
            "path": str(context.project_path),
            "package_manager": context.package_manager.value,
        })
        return result


class PluginInstallAgent:
    """Installs a phase's plugins in order through the plugin manager.

    Stops at the first plugin that fails; the phase is then reported as
    failed and the plugins after it are not attempted.
    """

    name = PLUGIN_AGENT

    def __init__(self, manager: PluginManager) -> None:
        self.manager = manager

    async def run(self, phase: OrchestrationPhase, context: PluginContext) -> AgentResult:
        result = AgentResult(agent=self.name)
        installed = context.state.setdefault("installed_plugins", [])

        for plugin_id in phase.plugins:
            plugin_result = await self.manager.install_plugin(plugin_id, context)
            result.plugin_results.append(plugin_result)
            result.artifacts.extend(a.path for a in plugin_result.artifacts)
            result.warnings.extend(plugin_result.warnings)
            if not plugin_result.success:
                result.success = False
                result.errors.extend(f"{plugin_id}: {e}" for e in plugin_result.errors)
                break
            if plugin_id not in installed:
                installed.append(plugin_id)

        return result
