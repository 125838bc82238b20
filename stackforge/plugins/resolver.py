"""Dependency and conflict resolution for a requested plugin set.

The resolver never raises for resolution problems: missing plugins,
declared conflicts and dependency cycles are collected into a
:class:`DependencyResolution` and the caller decides whether to abort.
The only exception is malformed input (a non-string id).
"""

from __future__ import annotations

from typing import Iterable

from .models import ConflictInfo, ConflictKind, DependencyResolution
from .registry import PluginRegistry

DIRECT_CONFLICT_REASON = "Direct conflict between plugins"
CYCLE_REASON = "Circular dependency detected"
BLOCKED_REASON = "Depends on a plugin in a dependency cycle"


class DependencyResolver:
    """Orders plugins so that dependencies precede dependents.

    Args:
        registry: The catalog plugins are looked up in.
    """

    def __init__(self, registry: PluginRegistry) -> None:
        self.registry = registry

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve(self, plugin_ids: Iterable[str]) -> DependencyResolution:
        """Resolve *plugin_ids* into an install order.

        Duplicates collapse to one node.  Registered dependencies that were
        not requested are pulled into the order and listed in ``added``.
        Every id taking part in a cycle is reported once and excluded from
        ``order``; ids that depend on a cycle member are excluded with a
        warning.  Unrelated ids are still ordered.

        Raises:
            TypeError: If an id is not a string.
        """
        requested = _dedupe(plugin_ids)
        resolution = DependencyResolution(plugins=requested)

        present: list[str] = []
        for plugin_id in requested:
            if plugin_id in self.registry:
                present.append(plugin_id)
            else:
                resolution.missing.append(plugin_id)

        visiting: set[str] = set()
        visited: set[str] = set()
        stack: list[str] = []
        cyclic: dict[str, None] = {}
        blocked: dict[str, str] = {}
        reached: list[str] = []

        def visit(plugin_id: str) -> None:
            if plugin_id in visited:
                return
            if plugin_id in visiting:
                for member in stack[stack.index(plugin_id):]:
                    cyclic.setdefault(member, None)
                return

            visiting.add(plugin_id)
            stack.append(plugin_id)
            reached.append(plugin_id)
            dependencies = self._dependencies(plugin_id)
            for dep in dependencies:
                if dep not in self.registry:
                    if dep not in resolution.missing:
                        resolution.missing.append(dep)
                    continue
                visit(dep)
            stack.pop()
            visiting.discard(plugin_id)
            visited.add(plugin_id)

            if plugin_id in cyclic:
                return
            culprit = next((d for d in dependencies if d in cyclic or d in blocked), None)
            if culprit is not None:
                blocked[plugin_id] = culprit
                return
            resolution.order.append(plugin_id)

        for plugin_id in present:
            visit(plugin_id)

        resolution.added = [pid for pid in reached if pid not in requested]
        resolution.conflicts.extend(self.check_conflicts(reached))
        for plugin_id in cyclic:
            resolution.conflicts.append(
                ConflictInfo(
                    plugin1=plugin_id,
                    plugin2=plugin_id,
                    reason=CYCLE_REASON,
                    severity="error",
                    kind=ConflictKind.CYCLE,
                )
            )
        for plugin_id, culprit in blocked.items():
            resolution.conflicts.append(
                ConflictInfo(
                    plugin1=plugin_id,
                    plugin2=culprit,
                    reason=BLOCKED_REASON,
                    severity="warning",
                    kind=ConflictKind.CYCLE,
                )
            )
        return resolution

    def check_conflicts(self, plugin_ids: Iterable[str]) -> list[ConflictInfo]:
        """Pairwise conflict scan over *plugin_ids*.

        A conflict declared by either side of a pair is enough; each
        unordered pair is reported at most once, in request order.
        Unregistered ids are ignored.
        """
        ids = [pid for pid in _dedupe(plugin_ids) if pid in self.registry]
        declared = {pid: set(self._conflicts(pid)) for pid in ids}
        conflicts: list[ConflictInfo] = []
        for i, first in enumerate(ids):
            for second in ids[i + 1:]:
                if second in declared[first] or first in declared[second]:
                    conflicts.append(
                        ConflictInfo(
                            plugin1=first,
                            plugin2=second,
                            reason=DIRECT_CONFLICT_REASON,
                            severity="error",
                        )
                    )
        return conflicts

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _dependencies(self, plugin_id: str) -> list[str]:
        plugin = self.registry.get(plugin_id)
        return _dedupe(plugin.get_dependencies()) if plugin else []

    def _conflicts(self, plugin_id: str) -> list[str]:
        plugin = self.registry.get(plugin_id)
        return list(plugin.get_conflicts()) if plugin else []


def _dedupe(plugin_ids: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for plugin_id in plugin_ids:
        if not isinstance(plugin_id, str):
            raise TypeError(f"Plugin id must be a string, got {type(plugin_id).__name__}")
        seen.setdefault(plugin_id, None)
    return list(seen)
