"""Jinja2 rendering of blueprint action fields.

Blueprint actions carry strings such as ``src/lib/{{ module.parameters.client }}.ts``
or ``NEXT_PUBLIC_APP_NAME={{ project.name | pascal_case }}``.  The
``TemplateRenderer`` evaluates every ``{{ ... }}`` placeholder whose root name
is one of the known context roots and leaves everything else verbatim, so
JSX such as ``style={{ color: "red" }}`` passes through untouched.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from jinja2 import Environment, StrictUndefined, Undefined
from jinja2.exceptions import TemplateError

# Names a placeholder may start with to be treated as a template expression.
CONTEXT_ROOTS: tuple[str, ...] = ("project", "module", "item", "env", "state")

_PLACEHOLDER_RE = re.compile(
    r"\{\{\s*((?:" + "|".join(CONTEXT_ROOTS) + r")\b(?:[^{}]|\{[^{}]*\})*?)\s*\}\}"
)


class TemplateRenderError(Exception):
    """Raised when a placeholder cannot be evaluated against the context."""

    def __init__(self, expression: str, reason: str) -> None:
        self.expression = expression
        super().__init__(f"Cannot render '{{{{ {expression} }}}}': {reason}")


class ParameterEnvironment(Environment):
    """Jinja2 environment where ``a.b`` on a mapping means ``a["b"]``.

    Blueprint parameters are plain dicts, so a parameter called ``items`` or
    ``values`` must resolve to the user's data and never to the ``dict``
    method of the same name.  Missing keys stay undefined.
    """

    def getattr(self, obj: Any, attribute: str) -> Any:
        if isinstance(obj, Mapping):
            try:
                return obj[attribute]
            except KeyError:
                return self.undefined(obj=obj, name=attribute)
        return super().getattr(obj, attribute)


class TemplateRenderer:
    """Renders placeholders in blueprint action fields.

    The renderer wraps a Jinja2 ``Environment`` configured with
    ``StrictUndefined`` so a typo in a placeholder fails loudly instead of
    producing an empty string.
    """

    def __init__(self) -> None:
        self.env = ParameterEnvironment(
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )
        # Register custom filters
        self.env.filters["slugify"] = _slugify_filter
        self.env.filters["pascal_case"] = _pascal_case_filter
        self.env.filters["snake_case"] = _snake_case_filter
        self.env.filters["camel_case"] = _camel_case_filter
        self._compiled: dict[str, Any] = {}

    # -- Expressions -------------------------------------------------------

    def evaluate(self, expression: str, context: dict[str, Any]) -> Any:
        """Evaluate a single Jinja2 expression (no braces) against *context*."""
        compiled = self._compiled.get(expression)
        try:
            if compiled is None:
                compiled = self.env.compile_expression(expression, undefined_to_none=False)
                self._compiled[expression] = compiled
            result = compiled(**context)
        except TemplateError as exc:
            raise TemplateRenderError(expression, str(exc)) from exc
        if isinstance(result, Undefined):
            raise TemplateRenderError(expression, "value is undefined")
        return result

    def is_truthy(self, condition: str, context: dict[str, Any]) -> bool:
        """Evaluate an action ``condition``.

        Conditions may be written bare (``module.parameters.mfa``) or wrapped in
        braces (``{{ module.parameters.mfa }}``).
        """
        expression = condition.strip()
        if expression.startswith("{{") and expression.endswith("}}"):
            expression = expression[2:-2].strip()
        if expression.lower() in ("true", "false"):
            return expression.lower() == "true"
        # A missing leaf value (an unset parameter) counts as false.
        try:
            compiled = self.env.compile_expression(expression, undefined_to_none=True)
            return bool(compiled(**context))
        except TemplateError as exc:
            raise TemplateRenderError(expression, str(exc)) from exc

    # -- Strings and structures ----------------------------------------------

    def render_string(self, text: str, context: dict[str, Any]) -> str:
        """Replace every known placeholder in *text* with its rendered value."""
        if "{{" not in text:
            return text

        def _substitute(match: re.Match[str]) -> str:
            value = self.evaluate(match.group(1), context)
            return "" if value is None else str(value)

        return _PLACEHOLDER_RE.sub(_substitute, text)

    def render_value(self, value: Any, context: dict[str, Any]) -> Any:
        """Render strings nested anywhere inside dicts and lists."""
        if isinstance(value, str):
            return self.render_string(value, context)
        if isinstance(value, dict):
            return {
                self.render_string(k, context) if isinstance(k, str) else k: self.render_value(v, context)
                for k, v in value.items()
            }
        if isinstance(value, list):
            return [self.render_value(item, context) for item in value]
        return value


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

def _slugify_filter(value: str) -> str:
    """Convert a string to a URL/filename-safe slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower().strip())
    return slug.strip("-")


def _pascal_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``SomeThing``."""
    parts = re.split(r"[-_\s]+", value)
    return "".join(word.capitalize() for word in parts if word)


def _snake_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some-thing`` to ``some_thing``."""
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", value)
    s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1)
    return re.sub(r"[-\s]+", "_", s2).lower()


def _camel_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``someThing``."""
    pascal = _pascal_case_filter(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""
