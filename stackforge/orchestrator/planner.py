"""Phase-based orchestration of plugin installation.

The planner turns a plugin request into an :class:`OrchestrationPlan`:

1. The request is resolved (install order, conflicts, cycles, missing ids).
2. A foundation phase is emitted first, then one phase per plugin category
   present, taken from a fixed table with fractional orders.
3. Phase dependencies come from the table (authentication after the
   database layer) and from plugin dependencies that cross phases.  A phase
   ordered before one of its dependencies is moved to just after it.

Execution runs phases sequentially by ``order``.  A failing phase is recorded
as ``failed`` with a warning and later phases still run; only plan validation
can stop a run before it starts.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Iterable, Mapping, Optional, Union

from stackforge.plugins.context import PluginContext
from stackforge.plugins.manager import PluginManager
from stackforge.plugins.models import ConflictKind, ErrorCode, PluginCategory
from stackforge.plugins.registry import PluginRegistry
from stackforge.plugins.resolver import DependencyResolver
from stackforge.utils import (
    format_duration,
    print_error,
    print_phase_header,
    print_success,
    print_summary_table,
    print_warning,
    save_json,
)

from .agents import (
    FOUNDATION_AGENT,
    PLUGIN_AGENT,
    PhaseAgent,
    PluginInstallAgent,
    ProjectFoundationAgent,
)
from .models import (
    OrchestrationPhase,
    OrchestrationPlan,
    PhaseResult,
    PhaseStatus,
    PlanExecutionResult,
    PlanIssue,
    PlanValidation,
)

FOUNDATION_PHASE = "Project Foundation"
REPORT_FILENAME = "orchestration-state.json"


class PlannerError(Exception):
    """Raised when a request cannot be turned into a plan."""


# (phase name, description, order) per category.  Categories sharing a name
# share a phase.
CATEGORY_PHASES: dict[PluginCategory, tuple[str, str, float]] = {
    PluginCategory.FRAMEWORK: ("Framework Installation", "Install the application framework", 2),
    PluginCategory.DATABASE: ("Database Layer", "Set up the database and ORM", 3),
    PluginCategory.ORM: ("Database Layer", "Set up the database and ORM", 3),
    PluginCategory.AUTH: ("Authentication", "Set up authentication", 4),
    PluginCategory.UI: ("UI/Design System", "Set up the UI library and design system", 5),
    PluginCategory.STATE: ("State Management", "Set up client state management", 5.5),
    PluginCategory.CONTENT: ("Content", "Set up content management", 6),
    PluginCategory.EMAIL: ("Email", "Set up transactional email", 6.5),
    PluginCategory.PAYMENT: ("Payments", "Set up payments", 7),
    PluginCategory.BLOCKCHAIN: ("Blockchain", "Set up blockchain integration", 7.5),
    PluginCategory.TESTING: ("Testing", "Set up the test tooling", 8),
    PluginCategory.MONITORING: ("Monitoring", "Set up monitoring and analytics", 8.5),
    PluginCategory.DEPLOYMENT: ("Deployment", "Configure deployment", 9),
    PluginCategory.OTHER: ("Additional Features", "Install remaining plugins", 9.5),
}

# Phase-level ordering that holds regardless of plugin declarations.
DEFAULT_PHASE_DEPENDENCIES: dict[str, list[str]] = {
    "Authentication": ["Database Layer"],
}

SelectionValue = Union[str, Iterable[str], None]


class OrchestrationPlanner:
    """Plans and runs phase-ordered plugin installation.

    Args:
        registry: Catalog of available plugins.
        manager: Plugin manager used by the install agent.
        resolver: Dependency resolver; built from *registry* when omitted.
        agents: Extra or replacement agents keyed by name.
        show_progress: Print Rich phase headers and a summary table.
        state_dir: Directory, relative to the project, for the run report.
    """

    def __init__(
        self,
        registry: PluginRegistry,
        manager: Optional[PluginManager] = None,
        resolver: Optional[DependencyResolver] = None,
        agents: Optional[Mapping[str, PhaseAgent]] = None,
        show_progress: bool = True,
        state_dir: str = ".stackforge",
    ) -> None:
        self.registry = registry
        self.resolver = resolver or DependencyResolver(registry)
        self.manager = manager or PluginManager(registry, resolver=self.resolver)
        self.agents: dict[str, PhaseAgent] = {
            FOUNDATION_AGENT: ProjectFoundationAgent(),
            PLUGIN_AGENT: PluginInstallAgent(self.manager),
        }
        self.agents.update(agents or {})
        self.show_progress = show_progress
        self.state_dir = state_dir

    def register_agent(self, agent: PhaseAgent) -> None:
        self.agents[agent.name] = agent

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan_for_selection(
        self,
        selection: Mapping[str, SelectionValue],
        project_name: str = "",
    ) -> OrchestrationPlan:
        """Plan from a ``{category: plugin id(s)}`` selection.

        Raises:
            PlannerError: If a key is not a known plugin category.
        """
        plugin_ids: list[str] = []
        for category, value in selection.items():
            try:
                PluginCategory(category)
            except ValueError as exc:
                raise PlannerError(f"Unknown plugin category: {category}") from exc
            if value is None:
                continue
            plugin_ids.extend([value] if isinstance(value, str) else value)
        return self.plan_for_plugins(plugin_ids, project_name=project_name)

    def plan_for_plugins(
        self, plugin_ids: Iterable[str], project_name: str = ""
    ) -> OrchestrationPlan:
        """Plan the installation of *plugin_ids* and their dependencies."""
        resolution = self.resolver.resolve(plugin_ids)
        plan = OrchestrationPlan(project_name=project_name, resolution=resolution)
        plan.phases.append(
            OrchestrationPhase(
                name=FOUNDATION_PHASE,
                description="Create the project directory and manifest",
                agents=[FOUNDATION_AGENT],
                order=1,
            )
        )

        # Resolved ids first (dependency order), then the ids resolution
        # rejected so validation can still report them.
        placed: dict[str, None] = dict.fromkeys(resolution.order)
        for plugin_id in [*resolution.plugins, *resolution.added]:
            placed.setdefault(plugin_id, None)

        phase_of: dict[str, OrchestrationPhase] = {}
        for plugin_id in placed:
            plugin = self.registry.get(plugin_id)
            category = plugin.metadata.category if plugin else PluginCategory.OTHER
            name, description, order = CATEGORY_PHASES[category]
            phase = plan.phase(name)
            if phase is None:
                phase = OrchestrationPhase(
                    name=name,
                    description=description,
                    agents=[PLUGIN_AGENT],
                    order=order,
                    dependencies=[FOUNDATION_PHASE],
                )
                plan.phases.append(phase)
            phase.plugins.append(plugin_id)
            phase_of[plugin_id] = phase

        for phase in plan.phases:
            for dependency in DEFAULT_PHASE_DEPENDENCIES.get(phase.name, []):
                if plan.phase(dependency) is not None:
                    _add_dependency(phase, dependency)

        for plugin_id, phase in phase_of.items():
            plugin = self.registry.get(plugin_id)
            if plugin is None:
                continue
            for dep in plugin.get_dependencies():
                dep_phase = phase_of.get(dep)
                if dep_phase is not None and dep_phase is not phase:
                    _add_dependency(phase, dep_phase.name)

        _order_after_dependencies(plan)
        plan.phases = plan.sorted_phases()
        return plan

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_plan(self, plan: OrchestrationPlan) -> PlanValidation:
        """Check phase dependencies, plugin existence, conflicts and cycles."""
        validation = PlanValidation()
        names = {p.name for p in plan.phases}
        by_name = {p.name: p for p in plan.phases}

        for phase in plan.phases:
            for dependency in phase.dependencies:
                if dependency not in names:
                    validation.errors.append(PlanIssue(
                        code=ErrorCode.DEPENDENCY_NOT_FOUND,
                        message=f"Phase '{phase.name}' depends on unknown phase '{dependency}'",
                        phase=phase.name,
                    ))
                elif by_name[dependency].order >= phase.order:
                    validation.errors.append(PlanIssue(
                        code=ErrorCode.CIRCULAR_DEPENDENCY,
                        message=(
                            f"Phase '{phase.name}' (order {phase.order:g}) must run after "
                            f"'{dependency}' (order {by_name[dependency].order:g})"
                        ),
                        phase=phase.name,
                    ))

        plugin_ids = plan.plugin_ids
        phase_of = {pid: p.name for p in plan.phases for pid in p.plugins}
        for plugin_id in plugin_ids:
            if plugin_id not in self.registry:
                validation.errors.append(PlanIssue(
                    code=ErrorCode.PLUGIN_NOT_FOUND,
                    message=f"Plugin '{plugin_id}' is not registered",
                    phase=phase_of[plugin_id],
                    plugin=plugin_id,
                ))

        resolution = self.resolver.resolve(pid for pid in plugin_ids if pid in self.registry)
        for missing in resolution.missing:
            validation.errors.append(PlanIssue(
                code=ErrorCode.DEPENDENCY_NOT_FOUND,
                message=f"Required plugin '{missing}' is not registered",
                plugin=missing,
            ))
        for conflict in resolution.conflicts:
            if conflict.kind is ConflictKind.CYCLE:
                if conflict.severity == "error":
                    validation.errors.append(PlanIssue(
                        code=ErrorCode.CIRCULAR_DEPENDENCY,
                        message=f"{conflict.reason}: {conflict.plugin1}",
                        plugin=conflict.plugin1,
                    ))
                else:
                    validation.warnings.append(
                        f"{conflict.plugin1}: {conflict.reason} ({conflict.plugin2})"
                    )
            else:
                validation.errors.append(PlanIssue(
                    code=ErrorCode.PLUGIN_CONFLICT,
                    message=f"{conflict.reason}: {conflict.plugin1} <-> {conflict.plugin2}",
                    plugin=conflict.plugin1,
                ))
        for plugin_id in resolution.added:
            if plugin_id not in phase_of:
                validation.warnings.append(
                    f"Plugin '{plugin_id}' is required but not part of any phase"
                )
        return validation

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(self, plan: OrchestrationPlan, context: PluginContext) -> PlanExecutionResult:
        """Validate *plan* and execute it; an invalid plan executes nothing."""
        validation = self.validate_plan(plan)
        if not validation.valid:
            result = PlanExecutionResult(
                project_name=plan.project_name or context.project_name,
                validation=validation,
                errors=[f"{i.code.value}: {i.message}" for i in validation.errors],
                warnings=list(validation.warnings),
            )
            for error in result.errors:
                context.logger.error(error)
            if self.show_progress:
                print_error("Plan is invalid; no phase was executed")
            return result

        result = await self.execute_plan(plan, context)
        result.validation = validation
        result.warnings = [*validation.warnings, *result.warnings]
        await self.save_report(result, context)
        return result

    async def execute_plan(
        self, plan: OrchestrationPlan, context: PluginContext
    ) -> PlanExecutionResult:
        """Run every phase in ``order``; a failed phase does not stop the run."""
        start = time.monotonic()
        result = PlanExecutionResult(
            project_name=plan.project_name or context.project_name,
            executed=True,
        )

        for position, phase in enumerate(plan.sorted_phases(), start=1):
            if self.show_progress:
                print_phase_header(position, phase.name)
            phase_result = await self.execute_phase(phase, context)
            result.phases.append(phase_result)
            result.warnings.extend(phase_result.warnings)
            if phase_result.status is PhaseStatus.FAILED:
                reason = "; ".join(phase_result.errors) or "unknown error"
                result.errors.append(f"Phase '{phase.name}' failed: {reason}")
                result.warnings.append(f"Phase '{phase.name}' failed; continuing with remaining phases")
                context.logger.warn(f"Phase '{phase.name}' failed: {reason}")
            elif phase_result.status is PhaseStatus.SKIPPED:
                context.logger.info(f"Phase '{phase.name}' skipped: no agents")
            else:
                context.logger.success(
                    f"Phase '{phase.name}' completed in {format_duration(phase_result.duration)}"
                )

        result.success = all(
            p.status in (PhaseStatus.COMPLETED, PhaseStatus.SKIPPED) for p in result.phases
        )
        result.duration = time.monotonic() - start
        if self.show_progress:
            self._print_summary(result)
        return result

    async def execute_phase(
        self, phase: OrchestrationPhase, context: PluginContext
    ) -> PhaseResult:
        start = time.monotonic()
        phase_result = PhaseResult(name=phase.name, order=phase.order, status=PhaseStatus.RUNNING)

        if not phase.agents:
            phase_result.status = PhaseStatus.SKIPPED
            return phase_result

        for agent_name in phase.agents:
            agent = self.agents.get(agent_name)
            if agent is None:
                phase_result.warnings.append(
                    f"Agent '{agent_name}' not found for phase '{phase.name}'"
                )
                continue
            try:
                agent_result = await agent.run(phase, context)
            except Exception as exc:
                phase_result.errors.append(f"Agent '{agent_name}' raised: {exc}")
                break
            phase_result.agents.append(agent_result)
            phase_result.warnings.extend(agent_result.warnings)
            if not agent_result.success:
                phase_result.errors.extend(agent_result.errors or [f"Agent '{agent_name}' failed"])
                break

        phase_result.status = PhaseStatus.FAILED if phase_result.errors else PhaseStatus.COMPLETED
        phase_result.duration = time.monotonic() - start
        return phase_result

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def report_path(self, context: PluginContext) -> Path:
        return context.project_path / self.state_dir / REPORT_FILENAME

    async def save_report(self, result: PlanExecutionResult, context: PluginContext) -> Path:
        path = self.report_path(context)
        await save_json(result.model_dump(mode="json"), path)
        return path

    def _print_summary(self, result: PlanExecutionResult) -> None:
        print_summary_table(
            {
                "Project": result.project_name,
                "Phases completed": ", ".join(result.completed_phases) or "none",
                "Phases failed": ", ".join(result.failed_phases) or "none",
                "Plugins installed": ", ".join(result.installed_plugins) or "none",
                "Duration": format_duration(result.duration),
            },
            title="Orchestration Summary",
        )
        for warning in result.warnings:
            print_warning(warning)
        if result.success:
            print_success("All phases completed")
        else:
            print_error(f"{len(result.failed_phases)} phase(s) failed")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _add_dependency(phase: OrchestrationPhase, dependency: str) -> None:
    if dependency != phase.name and dependency not in phase.dependencies:
        phase.dependencies.append(dependency)


def _order_after_dependencies(plan: OrchestrationPlan) -> None:
    """Move phases behind their dependencies by fractional increments.

    Bounded by the number of phases; a dependency cycle between phases is
    left unresolved for :meth:`OrchestrationPlanner.validate_plan` to report.
    """
    by_name = {p.name: p for p in plan.phases}
    for _ in range(len(plan.phases)):
        changed = False
        for phase in plan.phases:
            orders = [by_name[d].order for d in phase.dependencies if d in by_name]
            if orders and phase.order <= max(orders):
                phase.order = max(orders) + 0.5
                changed = True
        if not changed:
            return
