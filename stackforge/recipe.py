"""Recipe files.

A recipe is the non-interactive description of a project to scaffold::

    project:
      name: shop
      description: Storefront with auth
      package_manager: pnpm
    plugins:
      - better-auth
    selection:
      database: drizzle
      ui: [shadcn-ui, tailwind]
    parameters:
      better-auth:
        providers: [github]
    plugin_dirs:
      - ./plugins

``plugins`` and ``selection`` may both be given; their ids are combined in
that order.  Relative ``plugin_dirs`` are resolved against the recipe file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from stackforge.config import EngineConfig, PackageManager
from stackforge.plugins.models import PluginCategory


class RecipeError(Exception):
    """Raised when a recipe file cannot be read or is invalid."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


class RecipeProject(BaseModel):
    name: str = ""
    description: str = ""
    package_manager: Optional[PackageManager] = None


class Recipe(BaseModel):
    project: RecipeProject = Field(default_factory=RecipeProject)
    plugins: list[str] = Field(default_factory=list)
    selection: dict[PluginCategory, Union[str, list[str], None]] = Field(default_factory=dict)
    parameters: dict[str, dict[str, Any]] = Field(default_factory=dict)
    plugin_dirs: list[Path] = Field(default_factory=list)

    @property
    def plugin_ids(self) -> list[str]:
        ids = list(self.plugins)
        for value in self.selection.values():
            if value is None:
                continue
            ids.extend([value] if isinstance(value, str) else value)
        return list(dict.fromkeys(ids))

    def apply_to(self, config: EngineConfig) -> EngineConfig:
        """Return a copy of *config* with the recipe's project settings applied."""
        update: dict[str, Any] = {
            "plugin_dirs": [*config.plugin_dirs, *self.plugin_dirs],
        }
        if self.project.name:
            update["project_name"] = self.project.name
        if self.project.package_manager is not None:
            update["package_manager"] = self.project.package_manager
        return config.model_copy(update=update)


def load_recipe(path: str | Path) -> Recipe:
    """Load and validate a YAML (or JSON) recipe.

    Raises:
        RecipeError: If the file is missing, unparsable or invalid.
    """
    path = Path(path)
    if not path.is_file():
        raise RecipeError(path, "recipe file not found")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise RecipeError(path, f"invalid YAML: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise RecipeError(path, "recipe root must be a mapping")

    try:
        recipe = Recipe.model_validate(data)
    except ValidationError as exc:
        raise RecipeError(path, f"invalid recipe: {exc}") from exc

    base = path.resolve().parent
    recipe.plugin_dirs = [d if d.is_absolute() else base / d for d in recipe.plugin_dirs]
    return recipe
