"""In-memory catalog of available plugins.

A registry instance is created once at start-up, filled by the loader or by
hand, and then passed to the resolver, manager and planner.  Only
:meth:`PluginRegistry.register` and :meth:`PluginRegistry.unregister` mutate
it; every other method is a pure read.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Iterator, Optional

from .models import PluginCategory

if TYPE_CHECKING:
    from .base import Plugin


class PluginRegistryError(Exception):
    """Raised when a plugin cannot be registered."""

    def __init__(self, plugin_id: str, message: str) -> None:
        self.plugin_id = plugin_id
        super().__init__(f"[{plugin_id}] {message}")


class PluginRegistry:
    """Plugins keyed by id, in registration order."""

    def __init__(self, plugins: Optional[Iterable["Plugin"]] = None) -> None:
        self._plugins: dict[str, "Plugin"] = {}
        for plugin in plugins or ():
            self.register(plugin)

    def register(self, plugin: "Plugin") -> None:
        """Add *plugin* to the catalog.

        Raises:
            PluginRegistryError: If a plugin with the same id is registered.
        """
        plugin_id = plugin.metadata.id
        if plugin_id in self._plugins:
            raise PluginRegistryError(plugin_id, "Plugin is already registered")
        self._plugins[plugin_id] = plugin

    def unregister(self, plugin_id: str) -> bool:
        return self._plugins.pop(plugin_id, None) is not None

    def get(self, plugin_id: str) -> Optional["Plugin"]:
        return self._plugins.get(plugin_id)

    def get_all(self) -> list["Plugin"]:
        return list(self._plugins.values())

    def get_by_category(self, category: PluginCategory | str) -> list["Plugin"]:
        category = PluginCategory(category)
        return [p for p in self._plugins.values() if p.metadata.category is category]

    def get_categories(self) -> list[PluginCategory]:
        """Categories with at least one plugin, in first-registered order."""
        seen: dict[PluginCategory, None] = {}
        for plugin in self._plugins.values():
            seen.setdefault(plugin.metadata.category, None)
        return list(seen)

    def search_plugins(self, query: str) -> list["Plugin"]:
        """Case-insensitive substring search over id, name and tags."""
        needle = query.strip().lower()
        if not needle:
            return self.get_all()
        matches = []
        for plugin in self._plugins.values():
            meta = plugin.metadata
            haystack = [meta.id, meta.name, *meta.tags]
            if any(needle in value.lower() for value in haystack):
                matches.append(plugin)
        return matches

    def get_statistics(self) -> dict[str, object]:
        by_category: dict[str, int] = {}
        for plugin in self._plugins.values():
            key = plugin.metadata.category.value
            by_category[key] = by_category.get(key, 0) + 1
        return {"total": len(self._plugins), "by_category": by_category}

    def __contains__(self, plugin_id: object) -> bool:
        return plugin_id in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)

    def __iter__(self) -> Iterator["Plugin"]:
        return iter(list(self._plugins.values()))
