"""Blueprint classification.

Decides whether a blueprint must run through the transactional virtual file
system or can be written straight to disk.  The verdict only selects an
execution strategy and feeds diagnostics; it never changes what the actions do.
"""

from __future__ import annotations

from .models import KNOWN_ACTIONS, VFS_REQUIRED_ACTIONS, Blueprint, action_type_name
from .results import BlueprintAnalysis, Complexity

# Up to this many VFS-required actions a blueprint is "moderate".
MODERATE_VFS_LIMIT = 3


def analyze(blueprint: Blueprint) -> BlueprintAnalysis:
    """Classify *blueprint*.

    ``complexity`` is ``simple`` with no VFS-required actions, ``moderate``
    with one to three and ``complex`` above that.  Unknown action types are
    listed in ``action_types`` and ``unknown_actions`` but never counted as
    VFS-required.
    """
    action_types: list[str] = []
    vfs_types: list[str] = []
    unknown: list[str] = []
    vfs_count = 0

    for action in blueprint.actions:
        name = action_type_name(action)
        if name not in action_types:
            action_types.append(name)
        if name in VFS_REQUIRED_ACTIONS:
            vfs_count += 1
            if name not in vfs_types:
                vfs_types.append(name)
        elif name not in KNOWN_ACTIONS and name not in unknown:
            unknown.append(name)

    complexity: Complexity
    if vfs_count == 0:
        complexity = "simple"
    elif vfs_count <= MODERATE_VFS_LIMIT:
        complexity = "moderate"
    else:
        complexity = "complex"

    return BlueprintAnalysis(
        blueprint_id=blueprint.id,
        needs_vfs=vfs_count > 0,
        complexity=complexity,
        action_types=action_types,
        vfs_actions=vfs_types,
        unknown_actions=unknown,
        vfs_action_count=vfs_count,
    )


class BlueprintAnalyzer:
    """Object wrapper around :func:`analyze` for injection into executors."""

    def analyze(self, blueprint: Blueprint) -> BlueprintAnalysis:
        return analyze(blueprint)
