"""Unit tests for dependency resolution (stackforge.plugins.resolver).

Tests cover:
- Topological ordering and transitive dependencies
- Missing plugins and missing dependencies
- Symmetric conflict detection
- Cycle reporting that still orders unrelated plugins
- Malformed input
"""

from __future__ import annotations

import pytest

from stackforge.plugins.models import ConflictKind
from stackforge.plugins.resolver import (
    BLOCKED_REASON,
    CYCLE_REASON,
    DIRECT_CONFLICT_REASON,
    DependencyResolver,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def resolver(registry) -> DependencyResolver:
    return DependencyResolver(registry)


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


class TestOrdering:
    def test_dependency_precedes_dependent(self, registry, resolver, make_plugin):
        registry.register(make_plugin("auth-plugin", category="auth", dependencies=["db-plugin"]))
        registry.register(make_plugin("db-plugin", category="database"))

        resolution = resolver.resolve(["auth-plugin", "db-plugin"])

        assert resolution.order == ["db-plugin", "auth-plugin"]
        assert resolution.has_errors is False
        assert resolution.added == []

    def test_transitive_dependencies_are_added(self, registry, resolver, make_plugin):
        registry.register(make_plugin("stripe", dependencies=["drizzle"]))
        registry.register(make_plugin("drizzle", dependencies=["neon"]))
        registry.register(make_plugin("neon"))

        resolution = resolver.resolve(["stripe"])

        assert resolution.order == ["neon", "drizzle", "stripe"]
        assert resolution.added == ["drizzle", "neon"]
        assert resolution.plugins == ["stripe"]

    def test_duplicates_collapse(self, registry, resolver, make_plugin):
        registry.register(make_plugin("a"))
        resolution = resolver.resolve(["a", "a", "a"])
        assert resolution.plugins == ["a"]
        assert resolution.order == ["a"]

    def test_independent_plugins_keep_request_order(self, registry, resolver, make_plugin):
        for plugin_id in ("c", "a", "b"):
            registry.register(make_plugin(plugin_id))
        assert resolver.resolve(["c", "a", "b"]).order == ["c", "a", "b"]

    def test_diamond(self, registry, resolver, make_plugin):
        registry.register(make_plugin("app", dependencies=["left", "right"]))
        registry.register(make_plugin("left", dependencies=["base"]))
        registry.register(make_plugin("right", dependencies=["base"]))
        registry.register(make_plugin("base"))

        order = resolver.resolve(["app"]).order

        assert order.index("base") < order.index("left") < order.index("app")
        assert order.index("base") < order.index("right") < order.index("app")
        assert order.count("base") == 1

    def test_empty_request(self, resolver):
        resolution = resolver.resolve([])
        assert resolution.order == []
        assert resolution.has_errors is False


# ---------------------------------------------------------------------------
# Missing plugins
# ---------------------------------------------------------------------------


class TestMissing:
    def test_missing_requested_plugin(self, registry, resolver, make_plugin):
        registry.register(make_plugin("a"))
        resolution = resolver.resolve(["a", "ghost"])
        assert resolution.missing == ["ghost"]
        assert resolution.order == ["a"]
        assert resolution.has_errors is True
        assert "Plugin not found: ghost" in resolution.error_messages()

    def test_missing_dependency(self, registry, resolver, make_plugin):
        registry.register(make_plugin("a", dependencies=["ghost"]))
        resolution = resolver.resolve(["a"])
        assert resolution.missing == ["ghost"]
        assert resolution.has_errors is True


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


class TestConflicts:
    def test_conflict_declared_by_one_side(self, registry, resolver, make_plugin):
        registry.register(make_plugin("plugin-a", conflicts=["plugin-b"]))
        registry.register(make_plugin("plugin-b"))

        for request in (["plugin-a", "plugin-b"], ["plugin-b", "plugin-a"]):
            resolution = resolver.resolve(request)
            assert len(resolution.conflicts) == 1
            conflict = resolution.conflicts[0]
            assert conflict.pair == frozenset({"plugin-a", "plugin-b"})
            assert conflict.reason == DIRECT_CONFLICT_REASON
            assert conflict.severity == "error"
            assert resolution.has_errors is True

    def test_mutual_conflict_reported_once(self, registry, resolver, make_plugin):
        registry.register(make_plugin("prisma", conflicts=["drizzle"]))
        registry.register(make_plugin("drizzle", conflicts=["prisma"]))
        assert len(resolver.resolve(["prisma", "drizzle"]).conflicts) == 1

    def test_conflict_with_pulled_in_dependency(self, registry, resolver, make_plugin):
        registry.register(make_plugin("auth", dependencies=["drizzle"]))
        registry.register(make_plugin("drizzle"))
        registry.register(make_plugin("prisma", conflicts=["drizzle"]))

        conflicts = resolver.resolve(["auth", "prisma"]).conflicts

        assert [c.pair for c in conflicts] == [frozenset({"drizzle", "prisma"})]

    def test_check_conflicts_ignores_unregistered(self, registry, resolver, make_plugin):
        registry.register(make_plugin("a", conflicts=["ghost"]))
        assert resolver.check_conflicts(["a", "ghost"]) == []

    def test_error_messages_format(self, registry, resolver, make_plugin):
        registry.register(make_plugin("plugin-a", conflicts=["plugin-b"]))
        registry.register(make_plugin("plugin-b"))
        messages = resolver.resolve(["plugin-a", "plugin-b"]).error_messages()
        assert messages == [f"{DIRECT_CONFLICT_REASON}: plugin-a <-> plugin-b"]


# ---------------------------------------------------------------------------
# Cycles
# ---------------------------------------------------------------------------


class TestCycles:
    def test_two_node_cycle_excluded_and_reported(self, registry, resolver, make_plugin):
        registry.register(make_plugin("a", dependencies=["b"]))
        registry.register(make_plugin("b", dependencies=["a"]))
        registry.register(make_plugin("c"))

        resolution = resolver.resolve(["a", "c"])

        assert resolution.order == ["c"]
        assert sorted(resolution.cycles) == ["a", "b"]
        assert resolution.has_errors is True
        cycle_conflicts = [c for c in resolution.conflicts if c.kind is ConflictKind.CYCLE]
        assert all(c.reason == CYCLE_REASON for c in cycle_conflicts)
        assert len(cycle_conflicts) == 2

    def test_self_dependency_is_a_cycle(self, registry, resolver, make_plugin):
        registry.register(make_plugin("loop", dependencies=["loop"]))
        resolution = resolver.resolve(["loop"])
        assert resolution.order == []
        assert resolution.cycles == ["loop"]

    def test_dependents_of_cycle_are_blocked_with_warning(self, registry, resolver, make_plugin):
        registry.register(make_plugin("app", dependencies=["x"]))
        registry.register(make_plugin("x", dependencies=["y"]))
        registry.register(make_plugin("y", dependencies=["x"]))
        registry.register(make_plugin("solo"))

        resolution = resolver.resolve(["app", "solo"])

        assert resolution.order == ["solo"]
        assert sorted(resolution.cycles) == ["x", "y"]
        blocked = [c for c in resolution.conflicts if c.severity == "warning"]
        assert len(blocked) == 1
        assert blocked[0].plugin1 == "app"
        assert blocked[0].plugin2 == "x"
        assert blocked[0].reason == BLOCKED_REASON

    def test_cycle_members_reported_once(self, registry, resolver, make_plugin):
        registry.register(make_plugin("a", dependencies=["b"]))
        registry.register(make_plugin("b", dependencies=["a"]))
        resolution = resolver.resolve(["a", "b"])
        assert sorted(resolution.cycles) == ["a", "b"]


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class TestInput:
    def test_non_string_id_raises(self, resolver):
        with pytest.raises(TypeError, match="must be a string"):
            resolver.resolve(["a", 3])

    def test_none_id_raises(self, resolver):
        with pytest.raises(TypeError):
            resolver.resolve([None])
