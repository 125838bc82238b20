"""Content transformations behind the VFS-required actions.

Every function here is pure: it takes the current content of a file (``None``
when the file does not exist) plus the action's parameters and returns the new
content, or raises ``ActionError``: ``FILE_NOT_FOUND`` for a missing target,
``PARSE_ERROR`` for content it cannot read and ``INVALID_ACTION`` for
parameters of the wrong shape.
The executor is responsible for reading and staging; nothing in this module
touches the disk.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Optional

from pydantic import ValidationError

from stackforge.utils import deep_merge, dump_json

from .models import ImportDefinition, SchemaColumn, SchemaTable
from .results import ActionError, ActionErrorCode

# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def parse_json_object(existing: Optional[str], path: str) -> dict[str, Any]:
    """Parse *existing* as a JSON object; missing or blank content is ``{}``."""
    if existing is None or not existing.strip():
        return {}
    try:
        data = json.loads(existing)
    except json.JSONDecodeError as exc:
        raise ActionError(
            ActionErrorCode.PARSE_ERROR,
            f"Invalid JSON in {path}: {exc.msg} (line {exc.lineno}, column {exc.colno})",
            path,
        ) from exc
    if not isinstance(data, dict):
        raise ActionError(
            ActionErrorCode.PARSE_ERROR,
            f"Cannot merge into {path}: top-level value is {type(data).__name__}, not an object",
            path,
        )
    return data


def merge_json(existing: Optional[str], patch: dict[str, Any], path: str) -> str:
    """Deep-merge *patch* into the JSON object held in *existing*."""
    return dump_json(deep_merge(parse_json_object(existing, path), patch))


def object_section(data: dict[str, Any], key: str, path: str) -> dict[str, Any]:
    """A copy of the object stored under *key*; absent or ``null`` is ``{}``."""
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ActionError(
            ActionErrorCode.PARSE_ERROR,
            f"Cannot merge into {path}: '{key}' is {type(value).__name__}, not an object",
            path,
        )
    return dict(value)


_LINE_COMMENT_RE = re.compile(r"^\s*//.*$", re.MULTILINE)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


def parse_jsonc_object(existing: Optional[str], path: str) -> dict[str, Any]:
    """Like :func:`parse_json_object` but tolerates full-line ``//`` comments
    and trailing commas, as found in ``tsconfig.json``."""
    if existing is None:
        return {}
    cleaned = _TRAILING_COMMA_RE.sub(r"\1", _LINE_COMMENT_RE.sub("", existing))
    return parse_json_object(cleaned, path)


# ---------------------------------------------------------------------------
# Plain text
# ---------------------------------------------------------------------------


def append_text(existing: Optional[str], content: str) -> str:
    """Append *content* on its own line(s) after *existing*."""
    if not existing:
        return content
    separator = "" if existing.endswith("\n") else "\n"
    return existing + separator + content


def prepend_text(existing: Optional[str], content: str) -> str:
    """Insert *content* on its own line(s) before *existing*."""
    if not existing:
        return content
    separator = "" if content.endswith("\n") else "\n"
    return content + separator + existing


# ---------------------------------------------------------------------------
# TypeScript imports
# ---------------------------------------------------------------------------

_IMPORT_START_RE = re.compile(r"^\s*import(?:\s|\{|\*|type\s)")
_IMPORT_END_RE = re.compile(r"""['"]([^'"]+)['"]\s*;?\s*(?://.*)?$""")
_IMPORT_CLAUSE_RE = re.compile(
    r"""^\s*import\s+(?P<type>type\s+)?(?P<clause>.*?)\s*(?:from\s*)?['"](?P<module>[^'"]+)['"]\s*;?""",
    re.DOTALL,
)
_DIRECTIVE_RE = re.compile(r"""^\s*(?:['"]use (?:client|server|strict)['"]\s*;?|#!.*)\s*$""")


class _ImportStatement:
    """One parsed import statement spanning ``lines[start:end]``."""

    def __init__(self, start: int, end: int, text: str) -> None:
        self.start = start
        self.end = end
        match = _IMPORT_CLAUSE_RE.match(text)
        if match is None:
            raise ValueError(text)
        self.module = match.group("module")
        self.type_only = bool(match.group("type"))
        clause = match.group("clause").strip()
        self.default: Optional[str] = None
        self.namespace: Optional[str] = None
        self.named: list[str] = []
        self.side_effect = not clause

        brace = re.search(r"\{(.*)\}", clause, re.DOTALL)
        if brace:
            self.named = [n.strip() for n in brace.group(1).split(",") if n.strip()]
            clause = (clause[: brace.start()] + clause[brace.end():]).strip()
        ns = re.search(r"\*\s*as\s+(\w+)", clause)
        if ns:
            self.namespace = ns.group(1)
            clause = (clause[: ns.start()] + clause[ns.end():]).strip()
        clause = clause.strip(", ").strip()
        if clause:
            self.default = clause


def _scan_imports(lines: list[str], path: str) -> list[_ImportStatement]:
    statements: list[_ImportStatement] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if not _IMPORT_START_RE.match(line) or line.lstrip().startswith("import("):
            i += 1
            continue
        start = i
        while not _IMPORT_END_RE.search(lines[i]):
            i += 1
            if i >= len(lines):
                raise ActionError(
                    ActionErrorCode.PARSE_ERROR,
                    f"Unterminated import statement at line {start + 1} of {path}",
                    path,
                )
        text = "\n".join(lines[start : i + 1])
        try:
            statements.append(_ImportStatement(start, i + 1, text))
        except ValueError as exc:
            raise ActionError(
                ActionErrorCode.PARSE_ERROR,
                f"Cannot parse import statement at line {start + 1} of {path}",
                path,
            ) from exc
        i += 1
    return statements


def render_import(
    module: str,
    *,
    default: Optional[str] = None,
    named: Optional[list[str]] = None,
    namespace: Optional[str] = None,
    type_only: bool = False,
    quote: str = '"',
) -> str:
    """Render a single import statement."""
    parts: list[str] = []
    if default:
        parts.append(default)
    if namespace:
        parts.append(f"* as {namespace}")
    if named:
        parts.append("{ " + ", ".join(named) + " }")
    prefix = "import type " if type_only else "import "
    if not parts:
        return f"import {quote}{module}{quote};"
    return f"{prefix}{', '.join(parts)} from {quote}{module}{quote};"


def _detect_quote(text: str) -> str:
    match = re.search(r"""from\s+(['"])""", text)
    return match.group(1) if match else '"'


def add_ts_imports(existing: Optional[str], imports: list[ImportDefinition], path: str) -> str:
    """Ensure every import in *imports* is present in *existing*.

    Named bindings are merged into an existing statement for the same module
    when one exists; otherwise a new statement is inserted after the last
    import (or after leading directives such as ``"use client"``).
    """
    text = existing or ""
    lines = text.split("\n") if text else []
    quote = _detect_quote(text)
    new_statements: list[str] = []

    for definition in imports:
        statements = _scan_imports(lines, path)
        match = next(
            (
                s for s in statements
                if s.module == definition.module
                and s.type_only == definition.type_only
                and s.namespace is None
                and not s.side_effect
            ),
            None,
        )
        wants_namespace = definition.namespace is not None
        if wants_namespace:
            already = any(
                s.module == definition.module and s.namespace == definition.namespace
                for s in statements
            )
            if not already:
                new_statements.append(
                    render_import(
                        definition.module,
                        namespace=definition.namespace,
                        type_only=definition.type_only,
                        quote=quote,
                    )
                )

        if not definition.named and not definition.default:
            if not wants_namespace and not any(s.module == definition.module for s in statements):
                new_statements.append(render_import(definition.module, quote=quote))
            continue

        if match is None:
            new_statements.append(
                render_import(
                    definition.module,
                    default=definition.default,
                    named=definition.named,
                    type_only=definition.type_only,
                    quote=quote,
                )
            )
            continue

        missing_named = [n for n in definition.named if n not in match.named]
        needs_default = bool(definition.default) and match.default is None
        if not missing_named and not needs_default:
            continue
        rebuilt = render_import(
            match.module,
            default=match.default or definition.default,
            named=match.named + missing_named,
            type_only=match.type_only,
            quote=quote,
        )
        lines[match.start : match.end] = [rebuilt]

    if not new_statements:
        return "\n".join(lines) if lines else text

    statements = _scan_imports(lines, path)
    if statements:
        insert_at = statements[-1].end
    else:
        insert_at = 0
        while insert_at < len(lines) and _DIRECTIVE_RE.match(lines[insert_at]):
            insert_at += 1
    lines[insert_at:insert_at] = new_statements
    result = "\n".join(lines)
    if not text:
        result += "\n"
    return result


# ---------------------------------------------------------------------------
# Config wrapping
# ---------------------------------------------------------------------------

_EXPORT_DEFAULT_RE = re.compile(r"^export\s+default\s+", re.MULTILINE)
_MODULE_EXPORTS_RE = re.compile(r"^module\.exports\s*=\s*", re.MULTILINE)


def wrap_config(
    existing: Optional[str],
    wrapper: str,
    path: str,
    *,
    import_from: Optional[str] = None,
    options: Optional[dict[str, Any]] = None,
) -> str:
    """Wrap the default export of a JS/TS config file in ``wrapper(...)``.

    ``export default nextConfig;`` becomes
    ``export default withSentryConfig(nextConfig, {...});``.  CommonJS
    ``module.exports = ...`` files are handled the same way.  A file whose
    export is already wrapped is returned unchanged.
    """
    if existing is None:
        raise ActionError(ActionErrorCode.FILE_NOT_FOUND, f"Config file not found: {path}", path)

    matches = list(_EXPORT_DEFAULT_RE.finditer(existing))
    commonjs = False
    if not matches:
        matches = list(_MODULE_EXPORTS_RE.finditer(existing))
        commonjs = True
    if not matches:
        raise ActionError(
            ActionErrorCode.PARSE_ERROR,
            f"No default export found to wrap in {path}",
            path,
        )

    last = matches[-1]
    head = existing[: last.end()]
    expression = existing[last.end():].rstrip().rstrip(";").rstrip()
    if not expression:
        raise ActionError(ActionErrorCode.PARSE_ERROR, f"Empty default export in {path}", path)
    if expression.startswith(f"{wrapper}("):
        return existing

    args = expression
    if options:
        args += ", " + json.dumps(options, indent=2)
    result = f"{head}{wrapper}({args});\n"

    if import_from:
        if commonjs:
            require_line = f'const {{ {wrapper} }} = require("{import_from}");'
            if require_line not in result:
                result = prepend_text(result, require_line + "\n")
        else:
            result = add_ts_imports(
                result, [ImportDefinition(module=import_from, named=[wrapper])], path
            )
    return result


# ---------------------------------------------------------------------------
# Schema extension
# ---------------------------------------------------------------------------


def _render_column(column: SchemaColumn) -> str:
    rendered = f'{column.name}: {column.type}("{column.name}")'
    if column.primary_key:
        rendered += ".primaryKey()"
    elif not column.nullable:
        rendered += ".notNull()"
    if column.unique:
        rendered += ".unique()"
    if column.default is not None:
        rendered += f".default({json.dumps(column.default)})"
    return rendered


def render_table(table: SchemaTable) -> str:
    """Render a table definition in the Drizzle style."""
    lines = [f'export const {table.name} = {table.builder}("{table.table_name or table.name}", {{']
    lines.extend(f"  {_render_column(c)}," for c in table.columns)
    lines.append("});")
    return "\n".join(lines)


def extend_schema(
    existing: Optional[str],
    tables: list[SchemaTable],
    path: str,
    *,
    additional_imports: Optional[list[ImportDefinition]] = None,
) -> str:
    """Append table definitions that are not yet exported by the schema file."""
    if existing is None:
        raise ActionError(ActionErrorCode.FILE_NOT_FOUND, f"Schema file not found: {path}", path)

    result = existing
    if additional_imports:
        result = add_ts_imports(result, additional_imports, path)

    for table in tables:
        if re.search(rf"\bexport\s+const\s+{re.escape(table.name)}\b", result):
            continue
        result = append_text(result.rstrip("\n") + "\n\n" if result.strip() else result, render_table(table) + "\n")
    return result


# ---------------------------------------------------------------------------
# JavaScript object literals
# ---------------------------------------------------------------------------


class JsExpression(str):
    """A JavaScript expression kept verbatim (``process.env.X``, ``require(...)``)."""

    def __deepcopy__(self, memo: dict[int, Any]) -> "JsExpression":
        return self


_IDENTIFIER_RE = re.compile(r"[A-Za-z_$][\w$]*")
_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?")
_ENV_EXPRESSION_RE = re.compile(r"^process\.env\.[A-Za-z_]\w*!?$")
_STRING_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "0": "\0"}


class _JsObjectParser:
    """Reads the data subset of a JavaScript object literal.

    Keys may be bare identifiers or quoted; values may be objects, arrays,
    strings, numbers, ``true``/``false``/``null``.  Anything else is kept as
    a :class:`JsExpression` so it survives a rewrite unchanged.
    """

    def __init__(self, text: str, path: str) -> None:
        self.text = text
        self.path = path
        self.pos = 0

    def parse(self) -> dict[str, Any]:
        self._skip()
        value = self._value()
        self._skip()
        if not isinstance(value, dict) or self.pos != len(self.text):
            self._fail("expected a single object literal")
        return value

    def _fail(self, reason: str) -> None:
        raise ActionError(
            ActionErrorCode.PARSE_ERROR,
            f"Cannot parse object literal in {self.path}: {reason} (offset {self.pos})",
            self.path,
        )

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _skip(self) -> None:
        while self.pos < len(self.text):
            if self.text[self.pos].isspace():
                self.pos += 1
            elif self.text.startswith("//", self.pos):
                end = self.text.find("\n", self.pos)
                self.pos = len(self.text) if end == -1 else end + 1
            elif self.text.startswith("/*", self.pos):
                end = self.text.find("*/", self.pos + 2)
                if end == -1:
                    self._fail("unterminated comment")
                self.pos = end + 2
            else:
                return

    def _value(self) -> Any:
        char = self._peek()
        if char == "{":
            return self._object()
        if char == "[":
            return self._array()
        if char in "\"'":
            return self._string()
        number = _NUMBER_RE.match(self.text, self.pos)
        if number and not _IDENTIFIER_RE.match(self.text, number.end()):
            self.pos = number.end()
            raw = number.group()
            return float(raw) if any(c in raw for c in ".eE") else int(raw)
        raw = self._expression()
        return {"true": True, "false": False, "null": None}.get(raw, JsExpression(raw))

    def _object(self) -> dict[str, Any]:
        self.pos += 1
        result: dict[str, Any] = {}
        while True:
            self._skip()
            if self._peek() == "}":
                self.pos += 1
                return result
            if self._peek() in "\"'":
                key = self._string()
            else:
                match = _IDENTIFIER_RE.match(self.text, self.pos)
                if match is None:
                    self._fail("expected a property name")
                key = match.group()
                self.pos = match.end()
            self._skip()
            if self._peek() == ":":
                self.pos += 1
                self._skip()
                result[key] = self._value()
            else:
                result[key] = JsExpression(key)
            self._skip()
            if self._peek() == ",":
                self.pos += 1
            elif self._peek() != "}":
                self._fail("expected ',' or '}'")

    def _array(self) -> list[Any]:
        self.pos += 1
        items: list[Any] = []
        while True:
            self._skip()
            if self._peek() == "]":
                self.pos += 1
                return items
            items.append(self._value())
            self._skip()
            if self._peek() == ",":
                self.pos += 1
            elif self._peek() != "]":
                self._fail("expected ',' or ']'")

    def _string(self) -> str:
        quote = self.text[self.pos]
        self.pos += 1
        chars: list[str] = []
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char == "\\":
                escaped = self.text[self.pos + 1 : self.pos + 2]
                chars.append(_STRING_ESCAPES.get(escaped, escaped))
                self.pos += 2
                continue
            self.pos += 1
            if char == quote:
                return "".join(chars)
            chars.append(char)
        self._fail("unterminated string")
        return ""

    def _expression(self) -> str:
        start = self.pos
        end = _scan_expression_end(self.text, self.pos)
        raw = self.text[start:end].strip()
        if not raw:
            self._fail("expected a value")
        self.pos = end
        return raw


def _skip_string(text: str, pos: int) -> int:
    """Index just past the string or template literal starting at *pos*."""
    quote = text[pos]
    pos += 1
    while pos < len(text):
        if text[pos] == "\\":
            pos += 2
            continue
        if text[pos] == quote:
            return pos + 1
        pos += 1
    return pos


def _scan_expression_end(text: str, pos: int) -> int:
    """Index of the ``,``, ``}`` or ``]`` that ends the expression at *pos*."""
    depth = 0
    while pos < len(text):
        char = text[pos]
        if char in "\"'`":
            pos = _skip_string(text, pos)
            continue
        if char in "([{":
            depth += 1
        elif char in ")]}":
            if depth == 0:
                return pos
            depth -= 1
        elif char == "," and depth == 0:
            return pos
        pos += 1
    return pos


def _matching_brace(text: str, start: int, path: str) -> int:
    """Index just past the ``}`` closing the ``{`` at *start*."""
    depth = 0
    pos = start
    while pos < len(text):
        char = text[pos]
        if char in "\"'`":
            pos = _skip_string(text, pos)
            continue
        if text.startswith("//", pos):
            end = text.find("\n", pos)
            pos = len(text) if end == -1 else end
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return pos + 1
        pos += 1
    raise ActionError(ActionErrorCode.PARSE_ERROR, f"Unbalanced braces in {path}", path)


def parse_js_object(text: str, path: str) -> dict[str, Any]:
    """Parse a JavaScript object literal into a dict."""
    return _JsObjectParser(text, path).parse()


def render_js_value(value: Any, indent: str = "") -> str:
    """Render *value* as JavaScript source with two-space indentation."""
    inner = indent + "  "
    if isinstance(value, JsExpression):
        return str(value)
    if isinstance(value, dict):
        if not value:
            return "{}"
        entries = []
        for key, item in value.items():
            name = key if _IDENTIFIER_RE.fullmatch(key) else json.dumps(key)
            entries.append(f"{inner}{name}: {render_js_value(item, inner)}")
        return "{\n" + ",\n".join(entries) + f",\n{indent}}}"
    if isinstance(value, list):
        rendered = [render_js_value(item, inner) for item in value]
        flat = "[" + ", ".join(rendered) + "]"
        if len(flat) <= 80 and "\n" not in flat:
            return flat
        return "[\n" + ",\n".join(f"{inner}{item}" for item in rendered) + f",\n{indent}]"
    return json.dumps(value, ensure_ascii=False)


def _as_js_value(value: Any) -> Any:
    """Turn ``"process.env.X"`` strings into expressions, recursively."""
    if isinstance(value, dict):
        return {k: _as_js_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_as_js_value(v) for v in value]
    if isinstance(value, str) and not isinstance(value, JsExpression) and _ENV_EXPRESSION_RE.match(value):
        return JsExpression(value)
    return value


def _object_start(source: str, pos: int, hops: int = 0) -> Optional[int]:
    """Locate the object literal an export expression at *pos* refers to.

    Handles ``{ ... }``, ``defineConfig({ ... })`` and a bare identifier
    bound by ``const name = { ... }`` elsewhere in the file.
    """
    while pos < len(source) and source[pos].isspace():
        pos += 1
    if source.startswith("{", pos):
        return pos
    match = re.compile(r"[A-Za-z_$][\w$.]*").match(source, pos)
    if match is None:
        return None
    after = match.end()
    while after < len(source) and source[after].isspace():
        after += 1
    if hops > 8:
        return None
    if source.startswith("(", after):
        return _object_start(source, after + 1, hops + 1)
    declaration = re.search(
        rf"^\s*(?:const|let|var)\s+{re.escape(match.group())}\b[^=\n]*=\s*",
        source,
        re.MULTILINE,
    )
    if declaration is None:
        return None
    return _object_start(source, declaration.end(), hops + 1)


def find_export_object(source: str, export_name: str, path: str) -> Optional[tuple[int, int]]:
    """Span of the object literal behind *export_name*, or ``None``.

    *export_name* is ``default``, ``module.exports`` or the name of an
    ``export const``.
    """
    if export_name == "default":
        pattern = r"^export\s+default\s+"
    elif export_name == "module.exports":
        pattern = r"^module\.exports\s*=\s*"
    else:
        pattern = rf"^export\s+(?:const|let|var)\s+{re.escape(export_name)}\b[^=\n]*=\s*"
    match = None
    for match in re.finditer(pattern, source, re.MULTILINE):
        pass
    if match is None:
        return None
    start = _object_start(source, match.end())
    if start is None:
        return None
    return start, _matching_brace(source, start, path)


# ---------------------------------------------------------------------------
# ENHANCE_FILE modifiers
# ---------------------------------------------------------------------------

Modifier = Callable[[Optional[str], dict[str, Any], str], str]

_KIND_NAMES = {dict: "an object", list: "a list", str: "a string"}
MERGE_STRATEGIES = ("deep", "shallow", "replace")


def _param(
    params: dict[str, Any],
    key: str,
    kind: type,
    modifier: str,
    path: str,
    *,
    required: bool = False,
    default: Any = None,
) -> Any:
    """Fetch ``params[key]`` and check its type; wrong input is ``INVALID_ACTION``."""
    value = params.get(key)
    if value is None:
        if required:
            raise ActionError(ActionErrorCode.INVALID_ACTION, f"{modifier} requires '{key}'", path)
        return default
    if not isinstance(value, kind):
        raise ActionError(
            ActionErrorCode.INVALID_ACTION,
            f"{modifier}: '{key}' must be {_KIND_NAMES.get(kind, kind.__name__)}, "
            f"got {type(value).__name__}",
            path,
        )
    return value


def _require_existing(existing: Optional[str], modifier: str, path: str) -> str:
    if existing is None:
        raise ActionError(ActionErrorCode.FILE_NOT_FOUND, f"{modifier}: {path} does not exist", path)
    return existing


def _merge_strategy(params: dict[str, Any], modifier: str, path: str) -> str:
    strategy = _param(params, "mergeStrategy", str, modifier, path, default="deep")
    if strategy not in MERGE_STRATEGIES:
        raise ActionError(
            ActionErrorCode.INVALID_ACTION,
            f"{modifier}: unknown mergeStrategy '{strategy}' (expected one of {', '.join(MERGE_STRATEGIES)})",
            path,
        )
    return strategy


def apply_merge_strategy(current: dict[str, Any], patch: dict[str, Any], strategy: str) -> dict[str, Any]:
    if strategy == "replace":
        return dict(patch)
    if strategy == "shallow":
        return {**current, **patch}
    return deep_merge(current, patch)


def _import_definitions(raw: list[Any], modifier: str, path: str) -> list[ImportDefinition]:
    try:
        return [ImportDefinition.model_validate(item) for item in raw]
    except ValidationError as exc:
        raise ActionError(
            ActionErrorCode.INVALID_ACTION,
            f"{modifier}: invalid import definition: {exc.errors()[0]['msg']}",
            path,
        ) from exc


def _merge_at(
    node: dict[str, Any],
    keys: list[str],
    patch: dict[str, Any],
    strategy: str,
    path: str,
) -> dict[str, Any]:
    if not keys:
        return apply_merge_strategy(node, patch, strategy)
    head, rest = keys[0], keys[1:]
    child = node.get(head, {})
    if not isinstance(child, dict):
        raise ActionError(
            ActionErrorCode.PARSE_ERROR,
            f"Cannot merge into {path}: '{head}' is {type(child).__name__}, not an object",
            path,
        )
    updated = dict(node)
    updated[head] = _merge_at(child, rest, patch, strategy, path)
    return updated


def _json_object_merger(existing: Optional[str], params: dict[str, Any], path: str) -> str:
    name = "json-object-merger"
    if "propertiesToMerge" not in params:
        patch = params.get("content", params)
        if not isinstance(patch, dict):
            raise ActionError(ActionErrorCode.INVALID_ACTION, f"{name} expects an object", path)
        return merge_json(existing, patch, path)

    patch = _param(params, "propertiesToMerge", dict, name, path, required=True)
    target = params.get("targetPath", params.get("path", []))
    if isinstance(target, str):
        target = [part for part in target.split(".") if part]
    if not isinstance(target, list) or not all(isinstance(k, str) for k in target):
        raise ActionError(ActionErrorCode.INVALID_ACTION, f"{name}: 'targetPath' must be a list of keys", path)
    strategy = _merge_strategy(params, name, path)
    data = parse_json_object(existing, path)
    return dump_json(_merge_at(data, [k for k in target if k], patch, strategy, path))


_PACKAGE_SECTIONS = ("dependencies", "devDependencies", "peerDependencies", "scripts")


def _package_json_merger(existing: Optional[str], params: dict[str, Any], path: str) -> str:
    data = parse_json_object(existing, path)
    for section in _PACKAGE_SECTIONS:
        entries = _param(params, section, dict, "package-json-merger", path)
        if entries:
            merged = object_section(data, section, path)
            merged.update(entries)
            data[section] = dict(sorted(merged.items())) if section != "scripts" else merged
    extra = {k: v for k, v in params.items() if k not in _PACKAGE_SECTIONS}
    if extra:
        data = deep_merge(data, extra)
    return dump_json(data)


def _tsconfig_enhancer(existing: Optional[str], params: dict[str, Any], path: str) -> str:
    name = "tsconfig-enhancer"
    data = parse_jsonc_object(existing, path)
    patch: dict[str, Any] = {}
    compiler_options = _param(params, "compilerOptions", dict, name, path)
    if compiler_options:
        patch["compilerOptions"] = dict(compiler_options)
    paths = _param(params, "paths", dict, name, path)
    if paths:
        patch.setdefault("compilerOptions", {})["paths"] = paths
    for key in ("include", "exclude"):
        values = _param(params, key, list, name, path)
        if values:
            patch[key] = list(values)
    return dump_json(deep_merge(data, patch))


def _js_export_wrapper(existing: Optional[str], params: dict[str, Any], path: str) -> str:
    name = "js-export-wrapper"
    wrapper = _param(params, "wrapper", str, name, path, required=True)
    return wrap_config(
        existing,
        wrapper,
        path,
        import_from=_param(params, "import_from", str, name, path),
        options=_param(params, "options", dict, name, path),
    )


def _ts_module_enhancer(existing: Optional[str], params: dict[str, Any], path: str) -> str:
    name = "ts-module-enhancer"
    result = existing or ""
    imports = _import_definitions(_param(params, "imports", list, name, path, default=[]), name, path)
    if imports:
        result = add_ts_imports(result, imports, path)
    for statement in _param(params, "statements", list, name, path, default=[]):
        if not isinstance(statement, str):
            raise ActionError(ActionErrorCode.INVALID_ACTION, f"{name}: statements must be strings", path)
        if statement.strip() not in result:
            result = append_text(result, statement if statement.endswith("\n") else statement + "\n")
    return result


def _js_config_merger(existing: Optional[str], params: dict[str, Any], path: str) -> str:
    """Merge ``propertiesToMerge`` into the object behind ``exportName``."""
    name = "js-config-merger"
    source = _require_existing(existing, name, path)
    export_name = _param(params, "exportName", str, name, path, default="default")
    patch = _param(params, "propertiesToMerge", dict, name, path, required=True)
    strategy = _merge_strategy(params, name, path)

    span = find_export_object(source, export_name, path)
    if span is None:
        raise ActionError(
            ActionErrorCode.PARSE_ERROR, f"Export '{export_name}' not found in {path}", path
        )
    start, end = span
    current = parse_js_object(source[start:end], path)
    merged = apply_merge_strategy(current, _as_js_value(patch), strategy)
    return source[:start] + render_js_value(merged) + source[end:]


def _drizzle_config_merger(existing: Optional[str], params: dict[str, Any], path: str) -> str:
    """Deep-merge ``payload`` into ``export const <configObjectName> = {...}``.

    The export is appended when the file does not declare it yet.
    """
    name = "drizzle-config-merger"
    source = _require_existing(existing, name, path)
    object_name = _param(params, "configObjectName", str, name, path, required=True)
    payload = _as_js_value(_param(params, "payload", dict, name, path, required=True))

    span = find_export_object(source, object_name, path)
    if span is None:
        declaration = f"export const {object_name} = {render_js_value(payload)};\n"
        return append_text(source.rstrip("\n") + "\n\n" if source.strip() else source, declaration)
    start, end = span
    merged = deep_merge(parse_js_object(source[start:end], path), payload)
    return source[:start] + render_js_value(merged) + source[end:]


_EXPORTED_NAME_RE = re.compile(r"\bexport\s+(?:const|let|var|function|class)\s+([A-Za-z_$][\w$]*)")


def _drizzle_schema_adder(existing: Optional[str], params: dict[str, Any], path: str) -> str:
    """Add table definitions (structured ``tables`` or raw ``schemaDefinitions``)."""
    name = "drizzle-schema-adder"
    source = _require_existing(existing, name, path)
    raw_tables = _param(params, "tables", list, name, path, default=[])
    definitions = _param(params, "schemaDefinitions", list, name, path, default=[])
    if not raw_tables and not definitions:
        raise ActionError(
            ActionErrorCode.INVALID_ACTION, f"{name} requires 'tables' or 'schemaDefinitions'", path
        )
    try:
        tables = [SchemaTable.model_validate(t) for t in raw_tables]
    except ValidationError as exc:
        raise ActionError(
            ActionErrorCode.INVALID_ACTION, f"{name}: invalid table: {exc.errors()[0]['msg']}", path
        ) from exc

    import_from = _param(params, "importFrom", str, name, path, default="drizzle-orm/pg-core")
    imports: list[ImportDefinition] = []
    for item in _param(params, "imports", list, name, path, default=[]):
        if isinstance(item, str):
            imports.append(ImportDefinition(module=import_from, named=[item]))
        else:
            imports.extend(_import_definitions([item], name, path))

    result = add_ts_imports(source, imports, path) if imports else source
    if tables:
        result = extend_schema(result, tables, path)
    for definition in definitions:
        if not isinstance(definition, str):
            raise ActionError(ActionErrorCode.INVALID_ACTION, f"{name}: schemaDefinitions must be strings", path)
        exported = _EXPORTED_NAME_RE.search(definition)
        if exported and re.search(rf"\bexport\s+\w+\s+{re.escape(exported.group(1))}\b", result):
            continue
        if definition.strip() in result:
            continue
        result = append_text(result.rstrip("\n") + "\n\n" if result.strip() else result, definition.rstrip() + "\n")
    return result


WRAP_STRATEGIES = ("provider", "hoc", "wrapper")


def _jsx_props(props: dict[str, Any]) -> str:
    rendered: list[str] = []
    for key, value in _as_js_value(props).items():
        if isinstance(value, JsExpression):
            rendered.append(f"{key}={{{value}}}")
        elif isinstance(value, str):
            rendered.append(f'{key}="{value}"')
        else:
            rendered.append(f"{key}={{{json.dumps(value)}}}")
    return "".join(f" {p}" for p in rendered)


def _line_indent(text: str, pos: int) -> str:
    line_start = text.rfind("\n", 0, pos) + 1
    prefix = text[line_start:pos]
    return prefix if not prefix.strip() else ""


def _jsx_wrapper(existing: Optional[str], params: dict[str, Any], path: str) -> str:
    """Wrap every ``<targetComponent>`` element in ``wrapperComponent``."""
    name = "jsx-wrapper"
    source = _require_existing(existing, name, path)
    target = _param(params, "targetComponent", str, name, path, required=True)
    wrapper_component = _param(params, "wrapperComponent", dict, name, path, required=True)
    wrapper = _param(wrapper_component, "name", str, name, path, required=True)
    import_from = _param(wrapper_component, "importFrom", str, name, path, required=True)
    props = _jsx_props(_param(wrapper_component, "props", dict, name, path, default={}))
    strategy = _param(params, "wrapStrategy", str, name, path, default="provider")
    if strategy not in WRAP_STRATEGIES:
        raise ActionError(ActionErrorCode.INVALID_ACTION, f"{name}: unknown wrapStrategy '{strategy}'", path)

    if f"<{wrapper}" in source:
        return source

    open_re = re.compile(rf"<{re.escape(target)}(?=[\s/>])([^>]*)>")
    close_re = re.compile(rf"</{re.escape(target)}\s*>")
    opens = list(open_re.finditer(source))
    if not opens:
        raise ActionError(ActionErrorCode.PARSE_ERROR, f"<{target}> not found in {path}", path)
    paired = [m for m in opens if not m.group(1).rstrip().endswith("/")]
    closes = list(close_re.finditer(source))
    if len(paired) != len(closes):
        raise ActionError(
            ActionErrorCode.PARSE_ERROR,
            f"Unbalanced <{target}> tags in {path} ({len(paired)} opening, {len(closes)} closing)",
            path,
        )

    edits: list[tuple[int, int, str]] = []
    for match in opens:
        indent = _line_indent(source, match.start())
        opening = f"<{wrapper}{props}>\n{indent}  {match.group()}"
        if match.group(1).rstrip().endswith("/"):
            opening += f"\n{indent}</{wrapper}>"
        edits.append((match.start(), match.end(), opening))
    for match in closes:
        indent = _line_indent(source, match.start())
        edits.append((match.start(), match.end(), f"  {match.group()}\n{indent}</{wrapper}>"))

    result = source
    for start, end, replacement in sorted(edits, reverse=True):
        result = result[:start] + replacement + result[end:]

    base_name = wrapper.split(".")[0]
    return add_ts_imports(result, [ImportDefinition(module=import_from, named=[base_name])], path)


class ModifierRegistry:
    """Named content modifiers available to ``ENHANCE_FILE`` actions."""

    def __init__(self) -> None:
        self._modifiers: dict[str, Modifier] = {
            "json-object-merger": _json_object_merger,
            "json-merger": _json_object_merger,
            "package-json-merger": _package_json_merger,
            "tsconfig-enhancer": _tsconfig_enhancer,
            "js-export-wrapper": _js_export_wrapper,
            "ts-module-enhancer": _ts_module_enhancer,
            "js-config-merger": _js_config_merger,
            "jsx-wrapper": _jsx_wrapper,
            "drizzle-schema-adder": _drizzle_schema_adder,
            "drizzle-config-merger": _drizzle_config_merger,
        }

    def register(self, name: str, modifier: Modifier) -> None:
        self._modifiers[name] = modifier

    def get(self, name: str) -> Optional[Modifier]:
        return self._modifiers.get(name)

    def names(self) -> list[str]:
        return sorted(self._modifiers)
