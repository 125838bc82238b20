"""Orchestration plan and run-report models."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from stackforge.plugins.models import DependencyResolution, ErrorCode, PluginResult


class PhaseStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class OrchestrationPhase(BaseModel):
    """A named group of agents and plugins executed as one step.

    ``order`` may be fractional so a phase can be slotted between two
    integer-ordered phases (``2.5`` runs between ``2`` and ``3``).
    """

    name: str
    description: str = ""
    agents: list[str] = Field(default_factory=list, description="Agent names, run in order")
    plugins: list[str] = Field(default_factory=list, description="Plugin ids, in install order")
    order: float = 0.0
    dependencies: list[str] = Field(
        default_factory=list, description="Names of phases that must run earlier"
    )


class OrchestrationPlan(BaseModel):
    project_name: str = ""
    phases: list[OrchestrationPhase] = Field(default_factory=list)
    resolution: Optional[DependencyResolution] = None

    def sorted_phases(self) -> list[OrchestrationPhase]:
        # sorted() is stable, so equal orders keep their declaration order.
        return sorted(self.phases, key=lambda p: p.order)

    def phase(self, name: str) -> Optional[OrchestrationPhase]:
        return next((p for p in self.phases if p.name == name), None)

    @property
    def plugin_ids(self) -> list[str]:
        """Every plugin id referenced by the plan, in phase order."""
        seen: dict[str, None] = {}
        for phase in self.sorted_phases():
            for plugin_id in phase.plugins:
                seen.setdefault(plugin_id, None)
        return list(seen)


class PlanIssue(BaseModel):
    code: ErrorCode
    message: str
    phase: Optional[str] = None
    plugin: Optional[str] = None


class PlanValidation(BaseModel):
    errors: list[PlanIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[misc]
    @property
    def valid(self) -> bool:
        return not self.errors

    def codes(self) -> list[ErrorCode]:
        return [issue.code for issue in self.errors]


class AgentResult(BaseModel):
    """Outcome of one agent run inside a phase."""

    agent: str
    success: bool = True
    plugin_results: list[PluginResult] = Field(default_factory=list)
    artifacts: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class PhaseResult(BaseModel):
    name: str
    order: float
    status: PhaseStatus
    agents: list[AgentResult] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    duration: float = Field(default=0.0, ge=0.0)


class PlanExecutionResult(BaseModel):
    """Run report: which phases succeeded, which failed and why, and every warning."""

    project_name: str = ""
    success: bool = False
    executed: bool = Field(default=False, description="False when the plan was rejected")
    validation: Optional[PlanValidation] = None
    phases: list[PhaseResult] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    duration: float = Field(default=0.0, ge=0.0)

    @computed_field  # type: ignore[misc]
    @property
    def completed_phases(self) -> list[str]:
        return [p.name for p in self.phases if p.status is PhaseStatus.COMPLETED]

    @computed_field  # type: ignore[misc]
    @property
    def failed_phases(self) -> list[str]:
        return [p.name for p in self.phases if p.status is PhaseStatus.FAILED]

    @property
    def installed_plugins(self) -> list[str]:
        installed: list[str] = []
        for phase in self.phases:
            for agent in phase.agents:
                installed.extend(r.plugin_id for r in agent.plugin_results if r.success)
        return installed
