"""Pydantic v2 models for blueprints and their file actions.

A blueprint is immutable template data: an ordered list of typed actions that a
plugin declares and the ``BlueprintExecutor`` applies to a project tree.  The
action union is discriminated on the ``type`` field; any ``type`` the engine
does not know parses into ``UnknownAction`` so that analysis never fails and
the executor can reject it with the action's index.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag


# ---------------------------------------------------------------------------
# Action types
# ---------------------------------------------------------------------------

class ActionType(str, Enum):
    """Every action type the executor knows how to apply."""
    CREATE_FILE = "CREATE_FILE"
    RUN_COMMAND = "RUN_COMMAND"
    INSTALL_PACKAGES = "INSTALL_PACKAGES"
    ADD_SCRIPT = "ADD_SCRIPT"
    ADD_ENV_VAR = "ADD_ENV_VAR"
    ENHANCE_FILE = "ENHANCE_FILE"
    MERGE_JSON = "MERGE_JSON"
    ADD_TS_IMPORT = "ADD_TS_IMPORT"
    APPEND_TO_FILE = "APPEND_TO_FILE"
    PREPEND_TO_FILE = "PREPEND_TO_FILE"
    WRAP_CONFIG = "WRAP_CONFIG"
    EXTEND_SCHEMA = "EXTEND_SCHEMA"


# Actions that must read the current content of their target before writing.
# Shared by the analyzer (classification) and the executor (dispatch).
VFS_REQUIRED_ACTIONS: frozenset[str] = frozenset({
    ActionType.ENHANCE_FILE.value,
    ActionType.MERGE_JSON.value,
    ActionType.ADD_TS_IMPORT.value,
    ActionType.APPEND_TO_FILE.value,
    ActionType.PREPEND_TO_FILE.value,
    ActionType.WRAP_CONFIG.value,
    ActionType.EXTEND_SCHEMA.value,
})

KNOWN_ACTIONS: frozenset[str] = frozenset(t.value for t in ActionType)


class EnhanceFallback(str, Enum):
    """What ``ENHANCE_FILE`` does when its target does not exist."""
    ERROR = "error"
    SKIP = "skip"
    CREATE = "create"


# ---------------------------------------------------------------------------
# Supporting models
# ---------------------------------------------------------------------------

class ImportDefinition(BaseModel):
    """A TypeScript import statement to ensure in a file."""
    model_config = ConfigDict(frozen=True)

    module: str = Field(..., description="Module specifier, e.g. '@/lib/db'")
    named: list[str] = Field(default_factory=list, description="Named imports")
    default: Optional[str] = Field(default=None, description="Default import binding")
    namespace: Optional[str] = Field(default=None, description="Binding for 'import * as x'")
    type_only: bool = Field(default=False, description="Emit 'import type'")


class SchemaColumn(BaseModel):
    """A column in an ``EXTEND_SCHEMA`` table."""
    model_config = ConfigDict(frozen=True)

    name: str
    type: str = Field(..., description="Column builder, e.g. 'text', 'serial', 'timestamp'")
    nullable: bool = True
    primary_key: bool = False
    unique: bool = False
    default: Optional[Any] = None


class SchemaTable(BaseModel):
    """A table appended to a schema file by ``EXTEND_SCHEMA``."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Exported identifier, e.g. 'subscriptions'")
    table_name: Optional[str] = Field(default=None, description="SQL table name (defaults to name)")
    builder: str = Field(default="pgTable", description="Table factory function")
    columns: list[SchemaColumn] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

class BaseAction(BaseModel):
    """Properties shared by every action."""
    model_config = ConfigDict(frozen=True)

    condition: Optional[str] = Field(
        default=None, description="Template expression; the action is skipped when it is falsy"
    )
    for_each: Optional[str] = Field(
        default=None,
        description="Dotted context path to a list; the action runs once per item",
    )
    description: str = Field(default="")


class CreateFileAction(BaseAction):
    type: Literal["CREATE_FILE"] = "CREATE_FILE"
    path: str
    content: str = ""
    overwrite: bool = True


class RunCommandAction(BaseAction):
    type: Literal["RUN_COMMAND"] = "RUN_COMMAND"
    command: str
    working_dir: Optional[str] = None


class InstallPackagesAction(BaseAction):
    type: Literal["INSTALL_PACKAGES"] = "INSTALL_PACKAGES"
    packages: list[str] = Field(..., min_length=1)
    is_dev: bool = False


class AddScriptAction(BaseAction):
    type: Literal["ADD_SCRIPT"] = "ADD_SCRIPT"
    name: str
    command: str


class AddEnvVarAction(BaseAction):
    type: Literal["ADD_ENV_VAR"] = "ADD_ENV_VAR"
    key: str
    value: str = ""
    path: Optional[str] = Field(default=None, description="Env file; defaults to the configured one")


class EnhanceFileAction(BaseAction):
    type: Literal["ENHANCE_FILE"] = "ENHANCE_FILE"
    path: str
    modifier: str
    params: dict[str, Any] = Field(default_factory=dict)
    fallback: EnhanceFallback = EnhanceFallback.ERROR


class MergeJsonAction(BaseAction):
    type: Literal["MERGE_JSON"] = "MERGE_JSON"
    path: str
    content: dict[str, Any]


class AddTsImportAction(BaseAction):
    type: Literal["ADD_TS_IMPORT"] = "ADD_TS_IMPORT"
    path: str
    imports: list[ImportDefinition] = Field(..., min_length=1)


class AppendToFileAction(BaseAction):
    type: Literal["APPEND_TO_FILE"] = "APPEND_TO_FILE"
    path: str
    content: str


class PrependToFileAction(BaseAction):
    type: Literal["PREPEND_TO_FILE"] = "PREPEND_TO_FILE"
    path: str
    content: str


class WrapConfigAction(BaseAction):
    type: Literal["WRAP_CONFIG"] = "WRAP_CONFIG"
    path: str
    wrapper: str = Field(..., description="Wrapper function name, e.g. 'withSentryConfig'")
    import_from: Optional[str] = Field(default=None, description="Module the wrapper is imported from")
    options: Optional[dict[str, Any]] = None


class ExtendSchemaAction(BaseAction):
    type: Literal["EXTEND_SCHEMA"] = "EXTEND_SCHEMA"
    path: str
    tables: list[SchemaTable] = Field(..., min_length=1)
    additional_imports: list[ImportDefinition] = Field(default_factory=list)


class UnknownAction(BaseAction):
    """Any action whose ``type`` is not a known ``ActionType``."""
    model_config = ConfigDict(frozen=True, extra="allow")

    type: str


def action_type_name(action: Any) -> str:
    """The ``type`` of *action* as a plain string (``""`` when absent)."""
    raw = getattr(action, "type", "")
    return getattr(raw, "value", raw) or ""


def _action_tag(value: Any) -> str:
    raw = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    if isinstance(raw, ActionType):
        return raw.value
    return raw if raw in KNOWN_ACTIONS else "UNKNOWN"


BlueprintAction = Annotated[
    Union[
        Annotated[CreateFileAction, Tag("CREATE_FILE")],
        Annotated[RunCommandAction, Tag("RUN_COMMAND")],
        Annotated[InstallPackagesAction, Tag("INSTALL_PACKAGES")],
        Annotated[AddScriptAction, Tag("ADD_SCRIPT")],
        Annotated[AddEnvVarAction, Tag("ADD_ENV_VAR")],
        Annotated[EnhanceFileAction, Tag("ENHANCE_FILE")],
        Annotated[MergeJsonAction, Tag("MERGE_JSON")],
        Annotated[AddTsImportAction, Tag("ADD_TS_IMPORT")],
        Annotated[AppendToFileAction, Tag("APPEND_TO_FILE")],
        Annotated[PrependToFileAction, Tag("PREPEND_TO_FILE")],
        Annotated[WrapConfigAction, Tag("WRAP_CONFIG")],
        Annotated[ExtendSchemaAction, Tag("EXTEND_SCHEMA")],
        Annotated[UnknownAction, Tag("UNKNOWN")],
    ],
    Discriminator(_action_tag),
]


# ---------------------------------------------------------------------------
# Blueprint
# ---------------------------------------------------------------------------

class Blueprint(BaseModel):
    """An ordered list of file actions owned by exactly one plugin."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique blueprint identifier")
    name: str = Field(default="", description="Human-readable name")
    description: str = Field(default="")
    actions: list[BlueprintAction] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or self.id
