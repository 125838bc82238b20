"""stackforge plugin system.

Holds the plugin contract, the registry of available plugins, the dependency
resolver and the manager that drives plugin lifecycles.

Key classes:
    PluginRegistry      - In-memory catalog keyed by plugin id
    DependencyResolver  - Install order, conflicts and cycles for a request
    PluginManager       - validate -> install / uninstall / update
    BlueprintPlugin     - Declarative plugin backed by blueprints
    PluginContext       - Project information handed to every plugin
"""

from .base import BlueprintPlugin, Plugin, PluginManifest
from .context import Logger, PluginContext
from .loader import DiscoveryResult, PluginLoadError, discover_plugins, load_plugin
from .manager import PluginManager
from .models import (
    ConflictInfo,
    ConflictKind,
    DependencyResolution,
    ErrorCode,
    PluginArtifact,
    PluginCategory,
    PluginMetadata,
    PluginResult,
    ValidationIssue,
    ValidationResult,
)
from .registry import PluginRegistry, PluginRegistryError
from .resolver import DependencyResolver

__all__ = [
    # Contract
    "Plugin",
    "PluginContext",
    "Logger",
    # Declarative plugins
    "BlueprintPlugin",
    "PluginManifest",
    "DiscoveryResult",
    "PluginLoadError",
    "discover_plugins",
    "load_plugin",
    # Registry and resolution
    "PluginRegistry",
    "PluginRegistryError",
    "DependencyResolver",
    "DependencyResolution",
    "ConflictInfo",
    "ConflictKind",
    # Lifecycle
    "PluginManager",
    "PluginResult",
    "PluginArtifact",
    # Metadata and validation
    "PluginMetadata",
    "PluginCategory",
    "ErrorCode",
    "ValidationIssue",
    "ValidationResult",
]
