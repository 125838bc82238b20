"""Unit tests for the declarative plugin (stackforge.plugins.base).

Tests cover:
- Protocol conformance and metadata
- effective_config merging
- validate (project dir, manifest warning, required parameters)
- install (artifacts, declared packages/scripts, state, failure)
- uninstall / update
"""

from __future__ import annotations

from pathlib import Path

import pytest

from stackforge.plugins.base import BlueprintPlugin, Plugin, PluginManifest
from stackforge.plugins.context import PluginContext
from stackforge.plugins.models import PluginCategory

pytestmark = pytest.mark.unit


class TestMetadata:
    def test_satisfies_protocol(self, make_plugin):
        assert isinstance(make_plugin("a"), Plugin)

    def test_metadata_from_manifest(self, make_plugin):
        plugin = make_plugin(
            "better-auth", category="auth", version="1.2.0", tags=["auth"], description="Auth"
        )
        meta = plugin.metadata
        assert meta.id == "better-auth"
        assert meta.name == "Better Auth"
        assert meta.category is PluginCategory.AUTH
        assert meta.version == "1.2.0"
        assert meta.tags == ["auth"]

    def test_dependencies_and_conflicts_are_copies(self, make_plugin):
        plugin = make_plugin("a", dependencies=["b"], conflicts=["c"])
        plugin.get_dependencies().append("x")
        assert plugin.get_dependencies() == ["b"]
        assert plugin.get_conflicts() == ["c"]

    def test_config_accessors(self, make_plugin):
        plugin = make_plugin(
            "a", default_config={"mode": "jwt"}, config_schema={"type": "object"}
        )
        assert plugin.get_default_config() == {"mode": "jwt"}
        assert plugin.get_config_schema() == {"type": "object"}


class TestEffectiveConfig:
    def test_parameters_merge_over_defaults(self, make_plugin, plugin_context):
        plugin = make_plugin("auth", default_config={"providers": ["email"], "session": {"ttl": 60}})
        plugin_context.parameters["auth"] = {"providers": ["github"], "session": {"secure": True}}
        assert plugin.effective_config(plugin_context) == {
            "providers": ["email", "github"],
            "session": {"ttl": 60, "secure": True},
        }


class TestValidate:
    async def test_missing_project_dir(self, make_plugin, tmp_path: Path, recording_logger):
        context = PluginContext(project_path=tmp_path / "nope", logger=recording_logger)
        result = await make_plugin("a").validate(context)
        assert result.valid is False
        assert result.errors[0].field == "project_path"

    async def test_missing_manifest_is_warning(self, make_plugin, plugin_context):
        result = await make_plugin("a").validate(plugin_context)
        assert result.valid is True
        assert "package.json not found" in result.warnings[0]

    async def test_required_parameter(self, make_plugin, manifest_context):
        plugin = make_plugin("stripe", required_parameters=["api_key"])
        result = await plugin.validate(manifest_context)
        assert result.valid is False
        assert result.errors[0].field == "config.api_key"

        manifest_context.parameters["stripe"] = {"api_key": "sk_test"}
        assert (await plugin.validate(manifest_context)).valid is True


class TestInstall:
    async def test_install_reports_artifacts_and_state(self, make_plugin, plugin_context, tmp_project_dir):
        result = await make_plugin("logger").install(plugin_context)
        assert result.success is True
        assert result.plugin_id == "logger"
        assert [Path(a.path).name for a in result.artifacts] == ["logger.ts"]
        assert (tmp_project_dir / "src/plugins/logger.ts").exists()
        assert plugin_context.state["plugins"]["logger"] == {}

    async def test_install_collects_packages_and_scripts(self, make_plugin, manifest_context):
        plugin = make_plugin(
            "drizzle",
            default_config={"driver": "pg"},
            actions=[
                {"type": "INSTALL_PACKAGES", "packages": ["drizzle-orm", "{{ module.parameters.driver }}"]},
                {"type": "INSTALL_PACKAGES", "packages": ["drizzle-kit"], "is_dev": True},
                {"type": "ADD_SCRIPT", "name": "db:push", "command": "drizzle-kit push"},
            ],
        )
        result = await plugin.install(manifest_context)
        assert result.success is True
        assert result.dependencies == ["drizzle-orm", "pg", "drizzle-kit"]
        assert result.scripts == {"db:push": "drizzle-kit push"}
        assert result.config == {"driver": "pg"}

    async def test_install_uses_module_variables(self, make_plugin, plugin_context, tmp_project_dir):
        plugin = make_plugin(
            "analytics",
            actions=[
                {
                    "type": "CREATE_FILE",
                    "path": "src/{{ module.id }}.ts",
                    "content": "// {{ module.name }} v{{ module.version }}\n",
                }
            ],
        )
        await plugin.install(plugin_context)
        assert (tmp_project_dir / "src/analytics.ts").read_text() == "// Analytics v0.1.0\n"

    async def test_failed_blueprint_stops_install(self, make_plugin, plugin_context):
        plugin = make_plugin("broken", actions=[{"type": "RUN_COMMAND", "command": "exit 1"}])
        result = await plugin.install(plugin_context)
        assert result.success is False
        assert "COMMAND_FAILED" in result.errors[0]
        assert "broken" not in plugin_context.state.get("plugins", {})

    async def test_multiple_blueprints_run_in_order(self, plugin_context, tmp_project_dir):
        manifest = PluginManifest.model_validate(
            {
                "id": "multi",
                "blueprints": [
                    {"id": "one", "actions": [{"type": "CREATE_FILE", "path": "log.txt", "content": "one\n"}]},
                    {"id": "two", "actions": [{"type": "APPEND_TO_FILE", "path": "log.txt", "content": "two\n"}]},
                ],
            }
        )
        result = await BlueprintPlugin(manifest).install(plugin_context)
        assert result.success is True
        assert (tmp_project_dir / "log.txt").read_text() == "one\ntwo\n"


class TestUninstallAndUpdate:
    async def test_uninstall_removes_created_files(self, make_plugin, plugin_context, tmp_project_dir):
        plugin = make_plugin("logger")
        await plugin.install(plugin_context)
        result = await plugin.uninstall(plugin_context)
        assert result.success is True
        assert not (tmp_project_dir / "src/plugins/logger.ts").exists()
        assert len(result.artifacts) == 1
        assert "logger" not in plugin_context.state["plugins"]

    async def test_uninstall_when_nothing_installed(self, make_plugin, plugin_context):
        result = await make_plugin("logger").uninstall(plugin_context)
        assert result.success is True
        assert result.artifacts == []

    async def test_update_reinstalls(self, make_plugin, plugin_context, tmp_project_dir):
        plugin = make_plugin("logger")
        await plugin.install(plugin_context)
        (tmp_project_dir / "src/plugins/logger.ts").write_text("edited")
        result = await plugin.update(plugin_context)
        assert result.success is True
        assert (tmp_project_dir / "src/plugins/logger.ts").read_text() == "export const plugin = 'logger';\n"
