"""stackforge blueprint engine.

A blueprint is an ordered list of typed file actions declared by a plugin.
The analyzer decides whether a blueprint must run through the virtual file
system; the executor applies it and reports a single pass/fail outcome.

Usage::

    from stackforge.blueprint import Blueprint, BlueprintExecutor

    result = await BlueprintExecutor().execute(blueprint, context)
    print(result.success, result.mode, result.files)
"""

from .analyzer import BlueprintAnalyzer, analyze
from .executor import BlueprintExecutor
from .models import (
    VFS_REQUIRED_ACTIONS,
    ActionType,
    Blueprint,
    BlueprintAction,
    UnknownAction,
)
from .modifiers import ModifierRegistry
from .results import (
    ActionError,
    ActionErrorCode,
    ActionFailure,
    BlueprintAnalysis,
    BlueprintExecutionResult,
    ExecutionMode,
)
from .vfs import FileStore, VirtualFileSystem

__all__ = [
    "Blueprint",
    "BlueprintAction",
    "ActionType",
    "UnknownAction",
    "VFS_REQUIRED_ACTIONS",
    "BlueprintAnalyzer",
    "BlueprintAnalysis",
    "analyze",
    "BlueprintExecutor",
    "BlueprintExecutionResult",
    "ExecutionMode",
    "ActionError",
    "ActionErrorCode",
    "ActionFailure",
    "ModifierRegistry",
    "FileStore",
    "VirtualFileSystem",
]
