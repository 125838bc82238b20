"""Plugin data models.

Pydantic v2 models shared by the registry, resolver, manager and planner:
plugin metadata, dependency resolution reports, validation results and the
outcome of a plugin lifecycle call.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class PluginCategory(str, Enum):
    """Technology area a plugin belongs to."""
    FRAMEWORK = "framework"
    DATABASE = "database"
    ORM = "orm"
    AUTH = "auth"
    UI = "ui"
    DEPLOYMENT = "deployment"
    TESTING = "testing"
    EMAIL = "email"
    MONITORING = "monitoring"
    PAYMENT = "payment"
    BLOCKCHAIN = "blockchain"
    STATE = "state"
    CONTENT = "content"
    OTHER = "other"


class ErrorCode(str, Enum):
    """Error taxonomy shared by resolution, validation and execution."""
    NOT_FOUND = "NOT_FOUND"
    PLUGIN_NOT_FOUND = "PLUGIN_NOT_FOUND"
    DEPENDENCY_NOT_FOUND = "DEPENDENCY_NOT_FOUND"
    CONFLICT = "CONFLICT"
    PLUGIN_CONFLICT = "PLUGIN_CONFLICT"
    CYCLE = "CYCLE"
    CIRCULAR_DEPENDENCY = "CIRCULAR_DEPENDENCY"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    ACTION_ERROR = "ACTION_ERROR"
    UNSUPPORTED_ACTION = "UNSUPPORTED_ACTION"


Severity = Literal["error", "warning"]


class ConflictKind(str, Enum):
    CONFLICT = "conflict"
    CYCLE = "cycle"


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------

class PluginMetadata(BaseModel):
    """Descriptive information about a plugin."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Unique plugin identifier")
    name: str = Field(default="", description="Human-readable name")
    version: str = Field(default="0.1.0")
    description: str = Field(default="")
    category: PluginCategory = PluginCategory.OTHER
    tags: list[str] = Field(default_factory=list)
    author: str = Field(default="")
    license: str = Field(default="MIT")

    @property
    def display_name(self) -> str:
        return self.name or self.id


# ---------------------------------------------------------------------------
# Dependency resolution
# ---------------------------------------------------------------------------

class ConflictInfo(BaseModel):
    """A reported incompatibility between two plugins (or a cycle member)."""

    plugin1: str
    plugin2: str
    reason: str
    severity: Severity = "error"
    kind: ConflictKind = ConflictKind.CONFLICT

    @property
    def pair(self) -> frozenset[str]:
        """The unordered pair this conflict is about."""
        return frozenset((self.plugin1, self.plugin2))


class DependencyResolution(BaseModel):
    """Outcome of resolving a requested plugin set.  Never persisted."""

    plugins: list[str] = Field(
        default_factory=list, description="Requested ids, de-duplicated, in request order"
    )
    order: list[str] = Field(
        default_factory=list, description="Install order; dependencies precede dependents"
    )
    conflicts: list[ConflictInfo] = Field(default_factory=list)
    missing: list[str] = Field(
        default_factory=list, description="Requested or required ids absent from the registry"
    )
    added: list[str] = Field(
        default_factory=list,
        description="Registered transitive dependencies pulled in without being requested",
    )

    @computed_field  # type: ignore[misc]
    @property
    def has_errors(self) -> bool:
        return bool(self.missing) or any(c.severity == "error" for c in self.conflicts)

    @property
    def cycles(self) -> list[str]:
        """Ids reported as participating in a dependency cycle."""
        return [
            c.plugin1
            for c in self.conflicts
            if c.kind is ConflictKind.CYCLE and c.severity == "error"
        ]

    def error_messages(self) -> list[str]:
        messages = [f"Plugin not found: {pid}" for pid in self.missing]
        for conflict in self.conflicts:
            if conflict.severity != "error":
                continue
            if conflict.kind is ConflictKind.CYCLE:
                messages.append(f"{conflict.reason}: {conflict.plugin1}")
            else:
                messages.append(f"{conflict.reason}: {conflict.plugin1} <-> {conflict.plugin2}")
        return messages


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class ValidationIssue(BaseModel):
    code: ErrorCode = ErrorCode.VALIDATION_ERROR
    message: str
    field: Optional[str] = None


class ValidationResult(BaseModel):
    """Result of ``Plugin.validate`` or of a metadata check."""

    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[misc]
    @property
    def valid(self) -> bool:
        return not self.errors

    def add_error(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        field: Optional[str] = None,
    ) -> None:
        self.errors.append(ValidationIssue(code=code, message=message, field=field))


# ---------------------------------------------------------------------------
# Lifecycle results
# ---------------------------------------------------------------------------

class PluginArtifact(BaseModel):
    """A file emitted by a plugin."""

    path: str
    type: Literal["file", "directory", "config", "script"] = "file"


class PluginResult(BaseModel):
    """Outcome of one plugin lifecycle call.

    Returned to the caller and logged; never stored beyond that.
    """

    plugin_id: str = ""
    success: bool = True
    artifacts: list[PluginArtifact] = Field(default_factory=list)
    dependencies: list[str] = Field(
        default_factory=list, description="Packages the plugin declared for installation"
    )
    scripts: dict[str, str] = Field(default_factory=dict)
    config: dict[str, Any] = Field(default_factory=dict, description="Config fragments emitted")
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    duration: float = Field(default=0.0, ge=0.0, description="Seconds spent in the call")

    @classmethod
    def failure(cls, plugin_id: str, *errors: str, duration: float = 0.0) -> "PluginResult":
        return cls(plugin_id=plugin_id, success=False, errors=list(errors), duration=duration)
