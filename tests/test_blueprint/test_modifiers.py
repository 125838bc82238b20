"""Unit tests for content modifiers (stackforge.blueprint.modifiers).

Tests cover:
- JSON / JSONC parsing and deep merge
- append / prepend
- TypeScript import insertion and merging
- Config wrapping (ESM and CommonJS)
- Schema extension
- JavaScript object literal parsing and rendering
- ENHANCE_FILE modifier registry and parameter validation
- JSON path merging, JS config merging, JSX wrapping, Drizzle modifiers
"""

from __future__ import annotations

import json

import pytest

from stackforge.blueprint.models import ImportDefinition, SchemaColumn, SchemaTable
from stackforge.blueprint.modifiers import (
    JsExpression,
    ModifierRegistry,
    add_ts_imports,
    append_text,
    extend_schema,
    find_export_object,
    merge_json,
    parse_js_object,
    parse_json_object,
    parse_jsonc_object,
    prepend_text,
    render_import,
    render_js_value,
    wrap_config,
)
from stackforge.blueprint.results import ActionError, ActionErrorCode

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


class TestJson:
    def test_missing_content_is_empty_object(self):
        assert parse_json_object(None, "a.json") == {}
        assert parse_json_object("  \n", "a.json") == {}

    def test_malformed_json_is_parse_error(self):
        with pytest.raises(ActionError) as exc_info:
            parse_json_object('{"a": ', "a.json")
        assert exc_info.value.code is ActionErrorCode.PARSE_ERROR
        assert exc_info.value.path == "a.json"

    def test_non_object_root_is_parse_error(self):
        with pytest.raises(ActionError) as exc_info:
            parse_json_object("[1, 2]", "a.json")
        assert exc_info.value.code is ActionErrorCode.PARSE_ERROR
        assert "list" in str(exc_info.value)

    def test_merge_into_missing_file(self):
        assert merge_json(None, {"a": 1}, "a.json") == '{\n  "a": 1\n}\n'

    def test_merge_deep(self):
        existing = json.dumps({"scripts": {"dev": "next dev"}, "keywords": ["a"]})
        merged = json.loads(
            merge_json(existing, {"scripts": {"db": "drizzle-kit"}, "keywords": ["b"]}, "p.json")
        )
        assert merged == {
            "scripts": {"dev": "next dev", "db": "drizzle-kit"},
            "keywords": ["a", "b"],
        }

    def test_jsonc_tolerates_comments_and_trailing_commas(self):
        text = '{\n  // compiler settings\n  "include": ["src",],\n}\n'
        assert parse_jsonc_object(text, "tsconfig.json") == {"include": ["src"]}


# ---------------------------------------------------------------------------
# Plain text
# ---------------------------------------------------------------------------


class TestText:
    def test_append_adds_newline_separator(self):
        assert append_text("a", "b\n") == "a\nb\n"
        assert append_text("a\n", "b\n") == "a\nb\n"

    def test_append_to_empty(self):
        assert append_text(None, "b") == "b"

    def test_prepend(self):
        assert prepend_text("body\n", "// header") == "// header\nbody\n"
        assert prepend_text(None, "x") == "x"


# ---------------------------------------------------------------------------
# TypeScript imports
# ---------------------------------------------------------------------------


class TestImports:
    def test_render_variants(self):
        assert render_import("m", named=["a", "b"]) == 'import { a, b } from "m";'
        assert render_import("m", default="M") == 'import M from "m";'
        assert render_import("m", namespace="ns") == 'import * as ns from "m";'
        assert render_import("m", named=["T"], type_only=True) == 'import type { T } from "m";'
        assert render_import("./styles.css") == 'import "./styles.css";'

    def test_insert_into_empty_file(self):
        result = add_ts_imports(None, [ImportDefinition(module="@/lib/db", named=["db"])], "a.ts")
        assert result == 'import { db } from "@/lib/db";\n'

    def test_insert_after_directive(self):
        text = '"use client";\nexport default 1;\n'
        result = add_ts_imports(text, [ImportDefinition(module="react", named=["useState"])], "a.tsx")
        assert result == '"use client";\nimport { useState } from "react";\nexport default 1;\n'

    def test_insert_after_last_import(self):
        text = "import a from 'a';\nimport b from 'b';\n\nconst x = 1;\n"
        result = add_ts_imports(text, [ImportDefinition(module="c", named=["c"])], "a.ts")
        assert result == "import a from 'a';\nimport b from 'b';\nimport { c } from 'c';\n\nconst x = 1;\n"

    def test_merge_named_into_existing_statement(self):
        text = 'import { a } from "m";\nconst x = 1;\n'
        result = add_ts_imports(text, [ImportDefinition(module="m", named=["a", "b"])], "a.ts")
        assert result == 'import { a, b } from "m";\nconst x = 1;\n'

    def test_already_present_is_unchanged(self):
        text = 'import { a } from "m";\n'
        assert add_ts_imports(text, [ImportDefinition(module="m", named=["a"])], "a.ts") == text

    def test_multiline_import_is_merged(self):
        text = 'import {\n  a,\n  b,\n} from "m";\nexport {};\n'
        result = add_ts_imports(text, [ImportDefinition(module="m", named=["c"])], "a.ts")
        assert result == 'import { a, b, c } from "m";\nexport {};\n'

    def test_unterminated_import_is_parse_error(self):
        with pytest.raises(ActionError) as exc_info:
            add_ts_imports("import {\n  a,\n", [ImportDefinition(module="m", named=["b"])], "a.ts")
        assert exc_info.value.code is ActionErrorCode.PARSE_ERROR


# ---------------------------------------------------------------------------
# Config wrapping
# ---------------------------------------------------------------------------


class TestWrapConfig:
    def test_wraps_esm_default_export_and_imports_wrapper(self):
        text = "const nextConfig = {};\nexport default nextConfig;\n"
        result = wrap_config(text, "withSentryConfig", "next.config.mjs", import_from="@sentry/nextjs")
        assert result == (
            'import { withSentryConfig } from "@sentry/nextjs";\n'
            "const nextConfig = {};\n"
            "export default withSentryConfig(nextConfig);\n"
        )

    def test_already_wrapped_is_unchanged(self):
        text = "export default withX(cfg);\n"
        assert wrap_config(text, "withX", "c.mjs") == text

    def test_wraps_commonjs(self):
        text = "module.exports = {\n  a: 1,\n};\n"
        assert wrap_config(text, "w", "c.js") == "module.exports = w({\n  a: 1,\n});\n"

    def test_commonjs_require_is_prepended(self):
        result = wrap_config("module.exports = cfg;\n", "w", "c.js", import_from="pkg")
        assert result.startswith('const { w } = require("pkg");\n')

    def test_options_are_passed(self):
        result = wrap_config("export default cfg;\n", "w", "c.mjs", options={"silent": True})
        assert result == 'export default w(cfg, {\n  "silent": true\n});\n'

    def test_missing_file(self):
        with pytest.raises(ActionError) as exc_info:
            wrap_config(None, "w", "c.mjs")
        assert exc_info.value.code is ActionErrorCode.FILE_NOT_FOUND

    def test_no_export_is_parse_error(self):
        with pytest.raises(ActionError) as exc_info:
            wrap_config("const a = 1;\n", "w", "c.mjs")
        assert exc_info.value.code is ActionErrorCode.PARSE_ERROR


# ---------------------------------------------------------------------------
# Schema extension
# ---------------------------------------------------------------------------


class TestExtendSchema:
    @pytest.fixture
    def table(self) -> SchemaTable:
        return SchemaTable(
            name="subscriptions",
            columns=[
                SchemaColumn(name="id", type="serial", primary_key=True),
                SchemaColumn(name="user_id", type="text", nullable=False),
                SchemaColumn(name="status", type="text", default="active"),
            ],
        )

    def test_appends_table(self, table):
        existing = 'import { pgTable } from "drizzle-orm/pg-core";\n'
        result = extend_schema(existing, [table], "schema.ts")
        assert result == (
            'import { pgTable } from "drizzle-orm/pg-core";\n'
            "\n"
            'export const subscriptions = pgTable("subscriptions", {\n'
            '  id: serial("id").primaryKey(),\n'
            '  user_id: text("user_id").notNull(),\n'
            '  status: text("status").default("active"),\n'
            "});\n"
        )

    def test_existing_table_is_not_duplicated(self, table):
        once = extend_schema("", [table], "schema.ts")
        assert extend_schema(once, [table], "schema.ts") == once

    def test_additional_imports(self, table):
        result = extend_schema(
            "",
            [table],
            "schema.ts",
            additional_imports=[ImportDefinition(module="drizzle-orm/pg-core", named=["serial", "text"])],
        )
        assert result.startswith('import { serial, text } from "drizzle-orm/pg-core";\n')

    def test_missing_schema_file(self, table):
        with pytest.raises(ActionError) as exc_info:
            extend_schema(None, [table], "schema.ts")
        assert exc_info.value.code is ActionErrorCode.FILE_NOT_FOUND


# ---------------------------------------------------------------------------
# Modifier registry
# ---------------------------------------------------------------------------


class TestModifierRegistry:
    def test_builtin_names(self):
        assert ModifierRegistry().names() == [
            "drizzle-config-merger",
            "drizzle-schema-adder",
            "js-config-merger",
            "js-export-wrapper",
            "json-merger",
            "json-object-merger",
            "jsx-wrapper",
            "package-json-merger",
            "ts-module-enhancer",
            "tsconfig-enhancer",
        ]

    def test_unknown_returns_none(self):
        assert ModifierRegistry().get("nope") is None

    def test_register_custom(self):
        registry = ModifierRegistry()
        registry.register("upper", lambda existing, params, path: (existing or "").upper())
        assert registry.get("upper")("abc", {}, "x") == "ABC"

    def test_package_json_merger_sorts_dependencies(self):
        merger = ModifierRegistry().get("package-json-merger")
        existing = json.dumps({"dependencies": {"zod": "3"}, "scripts": {"dev": "next dev"}})
        result = json.loads(
            merger(existing, {"dependencies": {"axios": "1"}, "scripts": {"lint": "eslint ."}}, "package.json")
        )
        assert list(result["dependencies"]) == ["axios", "zod"]
        assert list(result["scripts"]) == ["dev", "lint"]

    def test_tsconfig_enhancer_adds_paths(self):
        enhancer = ModifierRegistry().get("tsconfig-enhancer")
        existing = '{\n  // generated\n  "compilerOptions": {"strict": true},\n}\n'
        result = json.loads(enhancer(existing, {"paths": {"@/*": ["./src/*"]}}, "tsconfig.json"))
        assert result["compilerOptions"] == {"strict": True, "paths": {"@/*": ["./src/*"]}}

    def test_js_export_wrapper_requires_wrapper(self):
        wrapper = ModifierRegistry().get("js-export-wrapper")
        with pytest.raises(ActionError) as exc_info:
            wrapper("export default a;\n", {}, "c.mjs")
        assert exc_info.value.code is ActionErrorCode.INVALID_ACTION

    def test_ts_module_enhancer_statements_idempotent(self):
        enhancer = ModifierRegistry().get("ts-module-enhancer")
        params = {
            "imports": [{"module": "./auth", "named": ["auth"]}],
            "statements": ["export { auth };"],
        }
        once = enhancer("", params, "index.ts")
        assert once == 'import { auth } from "./auth";\nexport { auth };\n'
        assert enhancer(once, params, "index.ts") == once

    def test_json_merger_is_alias_of_json_object_merger(self):
        registry = ModifierRegistry()
        assert registry.get("json-merger") is registry.get("json-object-merger")


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------


class TestModifierParams:
    def test_package_json_merger_rejects_list_section(self):
        merger = ModifierRegistry().get("package-json-merger")
        with pytest.raises(ActionError) as exc_info:
            merger("{}", {"dependencies": ["zod"]}, "package.json")
        assert exc_info.value.code is ActionErrorCode.INVALID_ACTION
        assert "dependencies" in str(exc_info.value)

    def test_package_json_merger_rejects_non_object_existing_section(self):
        merger = ModifierRegistry().get("package-json-merger")
        with pytest.raises(ActionError) as exc_info:
            merger('{"dependencies": "oops"}', {"dependencies": {"zod": "3"}}, "package.json")
        assert exc_info.value.code is ActionErrorCode.PARSE_ERROR

    def test_ts_module_enhancer_rejects_import_without_module(self):
        enhancer = ModifierRegistry().get("ts-module-enhancer")
        with pytest.raises(ActionError) as exc_info:
            enhancer("", {"imports": [{"named": ["auth"]}]}, "index.ts")
        assert exc_info.value.code is ActionErrorCode.INVALID_ACTION

    def test_ts_module_enhancer_rejects_string_imports(self):
        enhancer = ModifierRegistry().get("ts-module-enhancer")
        with pytest.raises(ActionError) as exc_info:
            enhancer("", {"imports": "./auth"}, "index.ts")
        assert exc_info.value.code is ActionErrorCode.INVALID_ACTION

    def test_ts_module_enhancer_rejects_non_string_statement(self):
        enhancer = ModifierRegistry().get("ts-module-enhancer")
        with pytest.raises(ActionError) as exc_info:
            enhancer("", {"statements": [{"code": "x"}]}, "index.ts")
        assert exc_info.value.code is ActionErrorCode.INVALID_ACTION

    def test_tsconfig_enhancer_rejects_string_include(self):
        enhancer = ModifierRegistry().get("tsconfig-enhancer")
        with pytest.raises(ActionError) as exc_info:
            enhancer("{}", {"include": "src"}, "tsconfig.json")
        assert exc_info.value.code is ActionErrorCode.INVALID_ACTION

    def test_js_export_wrapper_rejects_non_object_options(self):
        wrapper = ModifierRegistry().get("js-export-wrapper")
        with pytest.raises(ActionError) as exc_info:
            wrapper("export default a;\n", {"wrapper": "withX", "options": [1]}, "c.mjs")
        assert exc_info.value.code is ActionErrorCode.INVALID_ACTION


# ---------------------------------------------------------------------------
# JavaScript object literals
# ---------------------------------------------------------------------------


class TestJsObjects:
    def test_parse_literal_with_comments_and_expressions(self):
        text = """{
          // dev server
          port: 3000,
          'base-url': "/app",
          strict: true,
          plugins: [react(), tsconfigPaths()],
          env: { url: process.env.API_URL },
          /* trailing comma */
        }"""
        parsed = parse_js_object(text, "vite.config.ts")
        assert parsed["port"] == 3000
        assert parsed["base-url"] == "/app"
        assert parsed["strict"] is True
        assert parsed["plugins"] == ["react()", "tsconfigPaths()"]
        assert isinstance(parsed["plugins"][0], JsExpression)
        assert parsed["env"]["url"] == "process.env.API_URL"

    def test_unterminated_literal_is_parse_error(self):
        with pytest.raises(ActionError) as exc_info:
            parse_js_object("{ a: 'x", "c.js")
        assert exc_info.value.code is ActionErrorCode.PARSE_ERROR

    def test_render_quotes_non_identifier_keys(self):
        rendered = render_js_value({"a-b": 1, "c": JsExpression("fn()"), "d": [], "e": {}})
        assert rendered == '{\n  "a-b": 1,\n  c: fn(),\n  d: [],\n  e: {},\n}'

    def test_find_export_through_identifier(self):
        source = "const config = {\n  a: 1,\n};\n\nexport default config;\n"
        start, end = find_export_object(source, "default", "c.mjs")
        assert source[start:end] == "{\n  a: 1,\n}"

    def test_find_export_missing(self):
        assert find_export_object("export const a = 1;\n", "b", "c.ts") is None


# ---------------------------------------------------------------------------
# json-object-merger
# ---------------------------------------------------------------------------


class TestJsonObjectMerger:
    @pytest.fixture
    def merger(self):
        return ModifierRegistry().get("json-object-merger")

    def test_merges_at_target_path(self, merger):
        existing = json.dumps({"compilerOptions": {"paths": {"@/*": ["./src/*"]}}})
        params = {
            "targetPath": ["compilerOptions", "paths"],
            "propertiesToMerge": {"@ui/*": ["./ui/*"]},
        }
        result = json.loads(merger(existing, params, "tsconfig.json"))
        assert result["compilerOptions"]["paths"] == {"@/*": ["./src/*"], "@ui/*": ["./ui/*"]}

    def test_creates_missing_path(self, merger):
        params = {"targetPath": "a.b", "propertiesToMerge": {"c": 1}}
        assert json.loads(merger(None, params, "x.json")) == {"a": {"b": {"c": 1}}}

    def test_shallow_and_replace_strategies(self, merger):
        existing = json.dumps({"a": {"x": {"keep": 1}, "y": 2}})
        shallow = merger(existing, {"targetPath": ["a"], "propertiesToMerge": {"x": {"new": 1}}, "mergeStrategy": "shallow"}, "x.json")
        assert json.loads(shallow)["a"] == {"x": {"new": 1}, "y": 2}
        replaced = merger(existing, {"targetPath": ["a"], "propertiesToMerge": {"z": 3}, "mergeStrategy": "replace"}, "x.json")
        assert json.loads(replaced)["a"] == {"z": 3}

    def test_unknown_strategy_is_invalid(self, merger):
        with pytest.raises(ActionError) as exc_info:
            merger("{}", {"propertiesToMerge": {}, "mergeStrategy": "sideways"}, "x.json")
        assert exc_info.value.code is ActionErrorCode.INVALID_ACTION

    def test_non_object_on_path_is_parse_error(self, merger):
        with pytest.raises(ActionError) as exc_info:
            merger('{"a": [1]}', {"targetPath": ["a", "b"], "propertiesToMerge": {"c": 1}}, "x.json")
        assert exc_info.value.code is ActionErrorCode.PARSE_ERROR
        assert "'a'" in str(exc_info.value)

    def test_plain_content_merge(self, merger):
        result = json.loads(merger('{"a": {"b": 1}}', {"content": {"a": {"c": 2}}}, "x.json"))
        assert result == {"a": {"b": 1, "c": 2}}


# ---------------------------------------------------------------------------
# js-config-merger
# ---------------------------------------------------------------------------


class TestJsConfigMerger:
    @pytest.fixture
    def merger(self):
        return ModifierRegistry().get("js-config-merger")

    def test_merges_into_call_argument(self, merger):
        source = (
            'import { defineConfig } from "vite";\n\n'
            "export default defineConfig({\n  plugins: [react()],\n});\n"
        )
        result = merger(source, {"propertiesToMerge": {"server": {"port": 3000}}}, "vite.config.ts")
        assert result == (
            'import { defineConfig } from "vite";\n\n'
            "export default defineConfig({\n"
            "  plugins: [react()],\n"
            "  server: {\n"
            "    port: 3000,\n"
            "  },\n"
            "});\n"
        )

    def test_merges_module_exports(self, merger):
        source = "module.exports = {\n  content: ['./src/**/*.tsx'],\n};\n"
        params = {"exportName": "module.exports", "propertiesToMerge": {"darkMode": "class"}}
        result = merger(source, params, "tailwind.config.js")
        assert 'darkMode: "class"' in result
        assert 'content: ["./src/**/*.tsx"]' in result

    def test_merges_named_export_with_env_value(self, merger):
        source = "export const authConfig = {\n  providers: [],\n};\n"
        params = {
            "exportName": "authConfig",
            "propertiesToMerge": {"secret": "process.env.AUTH_SECRET"},
        }
        result = merger(source, params, "auth.config.ts")
        assert "secret: process.env.AUTH_SECRET," in result

    def test_missing_export_is_parse_error(self, merger):
        with pytest.raises(ActionError) as exc_info:
            merger("export const a = {};\n", {"exportName": "b", "propertiesToMerge": {}}, "c.ts")
        assert exc_info.value.code is ActionErrorCode.PARSE_ERROR

    def test_missing_file(self, merger):
        with pytest.raises(ActionError) as exc_info:
            merger(None, {"propertiesToMerge": {}}, "c.ts")
        assert exc_info.value.code is ActionErrorCode.FILE_NOT_FOUND

    def test_requires_properties(self, merger):
        with pytest.raises(ActionError) as exc_info:
            merger("export default {};\n", {}, "c.ts")
        assert exc_info.value.code is ActionErrorCode.INVALID_ACTION


# ---------------------------------------------------------------------------
# jsx-wrapper
# ---------------------------------------------------------------------------


LAYOUT = """export default function RootLayout({ children }) {
  return (
    <html lang="en">
      <body>
        {children}
      </body>
    </html>
  );
}
"""


class TestJsxWrapper:
    @pytest.fixture
    def wrapper(self):
        return ModifierRegistry().get("jsx-wrapper")

    def test_wraps_element_and_adds_import(self, wrapper):
        params = {
            "targetComponent": "body",
            "wrapperComponent": {"name": "ClerkProvider", "importFrom": "@clerk/nextjs"},
        }
        result = wrapper(LAYOUT, params, "app/layout.tsx")
        assert 'import { ClerkProvider } from "@clerk/nextjs";' in result
        assert "      <ClerkProvider>\n        <body>" in result
        assert "        </body>\n      </ClerkProvider>" in result

    def test_props_are_serialised(self, wrapper):
        params = {
            "targetComponent": "body",
            "wrapperComponent": {
                "name": "Sentry.ErrorBoundary",
                "importFrom": "@sentry/nextjs",
                "props": {"dsn": "process.env.NEXT_PUBLIC_SENTRY_DSN", "label": "app", "showDialog": False},
            },
        }
        result = wrapper(LAYOUT, params, "app/layout.tsx")
        assert '<Sentry.ErrorBoundary dsn={process.env.NEXT_PUBLIC_SENTRY_DSN} label="app" showDialog={false}>' in result
        assert "import { Sentry } from" in result

    def test_self_closing_target(self, wrapper):
        source = "export function App() {\n  return <Router />;\n}\n"
        params = {
            "targetComponent": "Router",
            "wrapperComponent": {"name": "QueryProvider", "importFrom": "./query"},
        }
        result = wrapper(source, params, "App.tsx")
        assert "<QueryProvider>" in result
        assert "<Router />" in result
        assert result.index("<Router />") < result.index("</QueryProvider>")

    def test_already_wrapped_is_unchanged(self, wrapper):
        params = {
            "targetComponent": "body",
            "wrapperComponent": {"name": "ClerkProvider", "importFrom": "@clerk/nextjs"},
        }
        once = wrapper(LAYOUT, params, "app/layout.tsx")
        assert wrapper(once, params, "app/layout.tsx") == once

    def test_missing_target_is_parse_error(self, wrapper):
        params = {
            "targetComponent": "main",
            "wrapperComponent": {"name": "X", "importFrom": "x"},
        }
        with pytest.raises(ActionError) as exc_info:
            wrapper(LAYOUT, params, "app/layout.tsx")
        assert exc_info.value.code is ActionErrorCode.PARSE_ERROR

    def test_unknown_strategy_is_invalid(self, wrapper):
        params = {
            "targetComponent": "body",
            "wrapperComponent": {"name": "X", "importFrom": "x"},
            "wrapStrategy": "inside-out",
        }
        with pytest.raises(ActionError) as exc_info:
            wrapper(LAYOUT, params, "app/layout.tsx")
        assert exc_info.value.code is ActionErrorCode.INVALID_ACTION


# ---------------------------------------------------------------------------
# Drizzle modifiers
# ---------------------------------------------------------------------------


SCHEMA = (
    'import { pgTable, text } from "drizzle-orm/pg-core";\n\n'
    'export const users = pgTable("users", {\n  id: text("id").primaryKey(),\n});\n'
)


class TestDrizzleModifiers:
    def test_schema_adder_appends_new_definitions_once(self):
        adder = ModifierRegistry().get("drizzle-schema-adder")
        params = {
            "imports": ["serial"],
            "schemaDefinitions": [
                'export const users = pgTable("users", {});',
                'export const posts = pgTable("posts", {\n  id: serial("id").primaryKey(),\n});',
            ],
        }
        result = adder(SCHEMA, params, "src/db/schema.ts")
        assert result.count("export const users") == 1
        assert result.count("export const posts") == 1
        assert "serial" in result.splitlines()[0]
        assert adder(result, params, "src/db/schema.ts") == result

    def test_schema_adder_accepts_tables(self):
        adder = ModifierRegistry().get("drizzle-schema-adder")
        params = {"tables": [{"name": "audit", "columns": [{"name": "id", "type": "serial", "primary_key": True}]}]}
        result = adder(SCHEMA, params, "src/db/schema.ts")
        assert 'export const audit = pgTable("audit", {' in result

    def test_schema_adder_requires_definitions(self):
        adder = ModifierRegistry().get("drizzle-schema-adder")
        with pytest.raises(ActionError) as exc_info:
            adder(SCHEMA, {"imports": ["serial"]}, "src/db/schema.ts")
        assert exc_info.value.code is ActionErrorCode.INVALID_ACTION

    def test_config_merger_deep_merges_export(self):
        merger = ModifierRegistry().get("drizzle-config-merger")
        source = 'export const dbConfig = {\n  casing: "snake_case",\n  pool: { min: 1 },\n};\n'
        params = {
            "configObjectName": "dbConfig",
            "payload": {"pool": {"max": 10}, "url": "process.env.DATABASE_URL"},
        }
        result = merger(source, params, "src/db/config.ts")
        assert "url: process.env.DATABASE_URL," in result
        assert "pool: {\n    min: 1,\n    max: 10,\n  }," in result
        assert 'casing: "snake_case",' in result

    def test_config_merger_appends_missing_export(self):
        merger = ModifierRegistry().get("drizzle-config-merger")
        result = merger("export {};\n", {"configObjectName": "dbConfig", "payload": {"ssl": True}}, "c.ts")
        assert result == "export {};\n\nexport const dbConfig = {\n  ssl: true,\n};\n"
