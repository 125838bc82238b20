"""Unit tests for recipe files (stackforge.recipe).

Tests cover:
- Loading YAML recipes
- plugin_ids from plugins + selection
- Relative plugin_dirs resolution
- Error handling
- apply_to(EngineConfig)
"""

from __future__ import annotations

from pathlib import Path

import pytest

from stackforge.config import EngineConfig, PackageManager
from stackforge.plugins.models import PluginCategory
from stackforge.recipe import Recipe, RecipeError, load_recipe

pytestmark = pytest.mark.unit


RECIPE_YAML = """\
project:
  name: shop
  description: Storefront with auth
  package_manager: pnpm
plugins:
  - better-auth
selection:
  database: drizzle
  ui: [shadcn-ui, tailwind]
  auth: better-auth
  payment: null
parameters:
  better-auth:
    providers: [github]
plugin_dirs:
  - ./plugins
"""


class TestLoadRecipe:
    def test_full_recipe(self, tmp_path: Path):
        path = tmp_path / "shop.yaml"
        path.write_text(RECIPE_YAML)

        recipe = load_recipe(path)

        assert recipe.project.name == "shop"
        assert recipe.project.package_manager is PackageManager.PNPM
        assert PluginCategory.DATABASE in recipe.selection
        assert recipe.plugin_ids == ["better-auth", "drizzle", "shadcn-ui", "tailwind"]
        assert recipe.parameters == {"better-auth": {"providers": ["github"]}}
        assert recipe.plugin_dirs == [tmp_path.resolve() / "plugins"]

    def test_empty_file_is_empty_recipe(self, tmp_path: Path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_recipe(path) == Recipe()

    def test_absolute_plugin_dir_kept(self, tmp_path: Path):
        path = tmp_path / "r.yaml"
        path.write_text(f"plugin_dirs: [{tmp_path / 'abs'}]\n")
        assert load_recipe(path).plugin_dirs == [tmp_path / "abs"]

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(RecipeError, match="not found"):
            load_recipe(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "bad.yaml"
        path.write_text("plugins: [unclosed\n")
        with pytest.raises(RecipeError, match="invalid YAML"):
            load_recipe(path)

    def test_root_must_be_mapping(self, tmp_path: Path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n")
        with pytest.raises(RecipeError, match="mapping"):
            load_recipe(path)

    def test_unknown_category(self, tmp_path: Path):
        path = tmp_path / "r.yaml"
        path.write_text("selection:\n  quantum: qubit\n")
        with pytest.raises(RecipeError, match="invalid recipe") as exc_info:
            load_recipe(path)
        assert exc_info.value.path == path


class TestApplyTo:
    def test_overrides_project_settings(self, tmp_path: Path):
        recipe = Recipe.model_validate(
            {
                "project": {"name": "shop", "package_manager": "bun"},
                "plugin_dirs": [str(tmp_path / "b")],
            }
        )
        base = EngineConfig(plugin_dirs=[tmp_path / "a"])

        config = recipe.apply_to(base)

        assert config.project_name == "shop"
        assert config.package_manager is PackageManager.BUN
        assert config.plugin_dirs == [tmp_path / "a", tmp_path / "b"]
        assert base.project_name == ""

    def test_empty_recipe_keeps_config(self):
        base = EngineConfig(project_name="keep", package_manager=PackageManager.YARN)
        config = Recipe().apply_to(base)
        assert config.project_name == "keep"
        assert config.package_manager is PackageManager.YARN
