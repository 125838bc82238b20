"""stackforge orchestration.

Groups plugin installation into named, ordered phases and runs them
sequentially.  A failing phase is reported and the run continues.

Key classes:
    OrchestrationPlanner    - Plan, validate and execute phases
    OrchestrationPlan       - Ordered phases plus the dependency resolution
    ProjectFoundationAgent  - Creates the project directory and manifest
    PluginInstallAgent      - Installs a phase's plugins via the manager
"""

from .agents import PhaseAgent, PluginInstallAgent, ProjectFoundationAgent
from .models import (
    AgentResult,
    OrchestrationPhase,
    OrchestrationPlan,
    PhaseResult,
    PhaseStatus,
    PlanExecutionResult,
    PlanIssue,
    PlanValidation,
)
from .planner import CATEGORY_PHASES, OrchestrationPlanner, PlannerError

__all__ = [
    # Planner
    "OrchestrationPlanner",
    "PlannerError",
    "CATEGORY_PHASES",
    # Plan
    "OrchestrationPlan",
    "OrchestrationPhase",
    "PlanValidation",
    "PlanIssue",
    # Agents
    "PhaseAgent",
    "ProjectFoundationAgent",
    "PluginInstallAgent",
    "AgentResult",
    # Results
    "PhaseResult",
    "PhaseStatus",
    "PlanExecutionResult",
]
