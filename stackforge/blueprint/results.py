"""Blueprint analysis and execution results.

Provides Pydantic v2 models for the analyzer's verdict on a blueprint and for
the executor's per-action and per-blueprint outcomes.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field, computed_field


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------

Complexity = Literal["simple", "moderate", "complex"]


class BlueprintAnalysis(BaseModel):
    """Derived judgement of a blueprint; never persisted."""

    blueprint_id: str
    needs_vfs: bool = False
    complexity: Complexity = "simple"
    action_types: list[str] = Field(
        default_factory=list, description="Action type names present, in first-seen order"
    )
    vfs_actions: list[str] = Field(
        default_factory=list, description="Subset of action_types that require the VFS"
    )
    unknown_actions: list[str] = Field(
        default_factory=list, description="Action type names the executor will reject"
    )
    vfs_action_count: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

class ExecutionMode(str, Enum):
    DIRECT = "direct"
    VFS = "vfs"


class ActionErrorCode(str, Enum):
    """Why a single action failed."""
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    PARSE_ERROR = "PARSE_ERROR"
    COMMAND_FAILED = "COMMAND_FAILED"
    UNSUPPORTED_ACTION = "UNSUPPORTED_ACTION"
    INVALID_ACTION = "INVALID_ACTION"
    IO_ERROR = "IO_ERROR"


class ActionFailure(BaseModel):
    """A failed action, located by blueprint id and action index."""

    blueprint_id: str
    index: int = Field(..., ge=0, description="Position of the action in the blueprint")
    action_type: str
    code: ActionErrorCode
    message: str
    path: Optional[str] = None

    def __str__(self) -> str:
        return (
            f"[{self.code.value}] {self.blueprint_id} action #{self.index} "
            f"({self.action_type}): {self.message}"
        )


class CommandOutput(BaseModel):
    """Captured result of an external process started by an action."""

    index: int
    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""


class ActionResult(BaseModel):
    """Outcome of one (possibly expanded) action."""

    index: int
    action_type: str
    success: bool = True
    skipped: bool = False
    files: list[str] = Field(default_factory=list)
    error: Optional[ActionFailure] = None


class BlueprintExecutionResult(BaseModel):
    """Single pass/fail outcome of a blueprint with per-action detail."""

    blueprint_id: str
    mode: ExecutionMode = ExecutionMode.DIRECT
    success: bool = True
    files: list[str] = Field(default_factory=list, description="Absolute paths written to disk")
    actions: list[ActionResult] = Field(default_factory=list)
    commands: list[CommandOutput] = Field(default_factory=list)
    errors: list[ActionFailure] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    rolled_back: bool = Field(
        default=False, description="True when a staged overlay was discarded"
    )
    duration_seconds: float = Field(default=0.0, ge=0.0)

    @computed_field  # type: ignore[misc]
    @property
    def failed_index(self) -> Optional[int]:
        """Index of the first failing action, if any."""
        return self.errors[0].index if self.errors else None


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ActionError(Exception):
    """Raised by action handlers and modifiers; converted into an ``ActionFailure``."""

    def __init__(self, code: ActionErrorCode, message: str, path: str | None = None) -> None:
        self.code = code
        self.path = path
        super().__init__(message)
