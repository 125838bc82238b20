"""Blueprint execution.

Applies a blueprint's actions to the project tree in declared order and
reports one pass/fail outcome with per-action detail.  Two strategies are
chosen by the analyzer:

* **direct**: no action needs to read existing file state, so each action is
  applied to disk immediately.  The first failure stops the blueprint and
  earlier actions stay applied.
* **vfs**: at least one action reads and rewrites an existing file.  Every
  file effect is staged in a ``VirtualFileSystem`` and flushed only after all
  actions staged successfully; any failure discards the overlay and leaves the
  disk untouched.  External processes are deferred until after the flush.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

from pydantic import ValidationError

from stackforge.config import INSTALL_COMMANDS
from stackforge.templates import TemplateRenderer, TemplateRenderError
from stackforge.utils import dump_json, run_command

from . import modifiers as mods
from .analyzer import BlueprintAnalyzer
from .models import (
    AddEnvVarAction,
    AddScriptAction,
    AddTsImportAction,
    AppendToFileAction,
    BaseAction,
    Blueprint,
    CreateFileAction,
    EnhanceFallback,
    EnhanceFileAction,
    ExtendSchemaAction,
    InstallPackagesAction,
    MergeJsonAction,
    PrependToFileAction,
    RunCommandAction,
    UnknownAction,
    WrapConfigAction,
    action_type_name,
)
from .results import (
    ActionError,
    ActionErrorCode,
    ActionFailure,
    ActionResult,
    BlueprintExecutionResult,
    CommandOutput,
    ExecutionMode,
)
from .vfs import FileStore, VirtualFileSystem

if TYPE_CHECKING:
    from stackforge.plugins.context import PluginContext


# Fields that control expansion and are never rendered or applied.
_CONTROL_FIELDS = ("type", "condition", "for_each", "description")


@dataclass
class _DeferredCommand:
    index: int
    action_type: str
    command: Union[str, list[str]]
    cwd: Path


@dataclass
class _Run:
    """Mutable state of one blueprint execution."""

    blueprint: Blueprint
    context: "PluginContext"
    store: FileStore
    variables: dict[str, Any]
    deferred: list[_DeferredCommand] = field(default_factory=list)
    commands: list[CommandOutput] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def split_package_spec(spec: str) -> tuple[str, str]:
    """Split ``name@version`` (scoped names included) into its parts.

    Examples::

        split_package_spec("zod") -> ("zod", "latest")
        split_package_spec("zod@3.22.0") -> ("zod", "3.22.0")
        split_package_spec("@auth/core@^0.18") -> ("@auth/core", "^0.18")
    """
    name, sep, version = spec.rpartition("@")
    if not sep or not name:
        return spec, "latest"
    return name, version or "latest"


class BlueprintExecutor:
    """Applies blueprints to a project tree.

    Attributes:
        analyzer: Chooses between direct and transactional execution.
        renderer: Renders ``{{ ... }}`` placeholders in action fields.
        modifiers: Named modifiers available to ``ENHANCE_FILE``.
    """

    def __init__(
        self,
        analyzer: Optional[BlueprintAnalyzer] = None,
        renderer: Optional[TemplateRenderer] = None,
        modifiers: Optional[mods.ModifierRegistry] = None,
    ) -> None:
        self.analyzer = analyzer or BlueprintAnalyzer()
        self.renderer = renderer or TemplateRenderer()
        self.modifiers = modifiers or mods.ModifierRegistry()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def execute(
        self,
        blueprint: Blueprint,
        context: "PluginContext",
        variables: Optional[dict[str, Any]] = None,
    ) -> BlueprintExecutionResult:
        """Execute *blueprint* against ``context.project_path``.

        Args:
            blueprint: The blueprint to apply.
            context: Project context (root path, package manager, logger).
            variables: Template variables; defaults to
                ``context.template_variables()``.

        Returns:
            The execution result.  Failures are reported, never raised.
        """
        start = time.monotonic()
        analysis = self.analyzer.analyze(blueprint)
        mode = ExecutionMode.VFS if analysis.needs_vfs else ExecutionMode.DIRECT
        store: FileStore = (
            VirtualFileSystem(context.project_path, blueprint.id)
            if analysis.needs_vfs
            else FileStore(context.project_path)
        )
        run = _Run(
            blueprint=blueprint,
            context=context,
            store=store,
            variables=variables if variables is not None else context.template_variables(),
        )
        result = BlueprintExecutionResult(blueprint_id=blueprint.id, mode=mode)

        context.logger.info(
            f"Executing blueprint {blueprint.display_name} "
            f"({len(blueprint.actions)} actions, {analysis.complexity}, {mode.value})"
        )

        total = len(blueprint.actions)
        for index, action in enumerate(blueprint.actions):
            type_name = action_type_name(action)
            context.logger.info(f"[{index + 1}/{total}] {type_name}")
            action_result = await self._execute_action(run, index, action)
            result.actions.append(action_result)
            if action_result.error is not None:
                result.errors.append(action_result.error)
                break
            if mode is ExecutionMode.DIRECT:
                result.files.extend(action_result.files)

        if result.errors:
            if isinstance(store, VirtualFileSystem):
                staged = len(store)
                store.discard()
                result.rolled_back = True
                context.logger.warn(
                    f"Blueprint {blueprint.id} failed; discarded {staged} staged file(s)"
                )
            return self._finish(result, run, start, success=False)

        if isinstance(store, VirtualFileSystem):
            try:
                written = await store.flush()
            except OSError as exc:
                store.discard()
                result.rolled_back = True
                result.errors.append(
                    ActionFailure(
                        blueprint_id=blueprint.id,
                        index=max(total - 1, 0),
                        action_type="FLUSH",
                        code=ActionErrorCode.IO_ERROR,
                        message=f"Failed to write staged files: {exc}",
                    )
                )
                return self._finish(result, run, start, success=False)
            result.files.extend(str(p) for p in written)

            for deferred in run.deferred:
                try:
                    await self._run_command(run, deferred.index, deferred.command, deferred.cwd)
                except ActionError as exc:
                    failure = self._failure(run, deferred.index, deferred.action_type, exc)
                    result.errors.append(failure)
                    for action_result in result.actions:
                        if action_result.index == deferred.index:
                            action_result.success = False
                            action_result.error = failure
                    return self._finish(result, run, start, success=False)

        return self._finish(result, run, start, success=True)

    # ------------------------------------------------------------------
    # Per-action execution
    # ------------------------------------------------------------------

    async def _execute_action(self, run: _Run, index: int, action: Any) -> ActionResult:
        type_name = action_type_name(action)
        outcome = ActionResult(index=index, action_type=type_name)

        if isinstance(action, UnknownAction):
            outcome.success = False
            outcome.error = self._failure(
                run,
                index,
                type_name,
                ActionError(ActionErrorCode.UNSUPPORTED_ACTION, f"Unsupported action type: {type_name}"),
            )
            return outcome

        try:
            instances = self.expand(action, run.variables)
            if not instances:
                outcome.skipped = True
                return outcome
            for instance in instances:
                outcome.files.extend(await self._apply(run, index, instance))
        except TemplateRenderError as exc:
            outcome.error = self._failure(
                run, index, type_name, ActionError(ActionErrorCode.INVALID_ACTION, str(exc))
            )
        except ValidationError as exc:
            # A rendered field no longer matches the action schema.
            outcome.error = self._failure(
                run,
                index,
                type_name,
                ActionError(ActionErrorCode.INVALID_ACTION, f"Invalid {type_name} action: {exc}"),
            )
        except ActionError as exc:
            outcome.error = self._failure(run, index, type_name, exc)
        except OSError as exc:
            outcome.error = self._failure(
                run,
                index,
                type_name,
                ActionError(ActionErrorCode.IO_ERROR, str(exc), getattr(exc, "filename", None)),
            )

        if outcome.error is not None:
            outcome.success = False
        return outcome

    def expand(self, action: BaseAction, variables: dict[str, Any]) -> list[BaseAction]:
        """Resolve ``for_each`` and ``condition`` and render every field."""
        if action.for_each:
            path = action.for_each.strip().removeprefix("{{").removesuffix("}}").strip()
            items = self.renderer.evaluate(path, variables)
            if not isinstance(items, (list, tuple)):
                raise ActionError(
                    ActionErrorCode.INVALID_ACTION,
                    f"for_each path '{action.for_each}' is not a list",
                )
            scopes = [{**variables, "item": item} for item in items]
        else:
            scopes = [variables]

        rendered: list[BaseAction] = []
        for scope in scopes:
            if action.condition and not self.renderer.is_truthy(action.condition, scope):
                continue
            data = action.model_dump()
            for key, value in data.items():
                if key not in _CONTROL_FIELDS:
                    data[key] = self.renderer.render_value(value, scope)
            rendered.append(type(action).model_validate(data))
        return rendered

    async def _apply(self, run: _Run, index: int, action: BaseAction) -> list[str]:
        """Apply one rendered action; returns the paths written directly to disk."""
        store = run.store

        if isinstance(action, CreateFileAction):
            target = store.resolve(action.path)
            if not action.overwrite and store.exists(target):
                run.warnings.append(f"{action.path} already exists; left unchanged")
                return []
            return self._written(store, store.write(target, action.content))

        if isinstance(action, RunCommandAction):
            cwd = store.resolve(action.working_dir) if action.working_dir else store.root
            await self._command(run, index, action.type, action.command, cwd)
            return []

        if isinstance(action, InstallPackagesAction):
            manifest = self._read_manifest(run)
            section = "devDependencies" if action.is_dev else "dependencies"
            entries = mods.object_section(manifest, section, run.context.manifest_file)
            for spec in action.packages:
                name, version = split_package_spec(spec)
                entries[name] = version
            manifest[section] = dict(sorted(entries.items()))
            written = store.write(run.context.manifest_file, dump_json(manifest))
            if not run.context.skip_install:
                commands = INSTALL_COMMANDS[run.context.package_manager]
                argv = commands["install_dev" if action.is_dev else "install"] + list(action.packages)
                await self._command(run, index, action.type, argv, store.root)
            return self._written(store, written)

        if isinstance(action, AddScriptAction):
            manifest = self._read_manifest(run)
            scripts = mods.object_section(manifest, "scripts", run.context.manifest_file)
            scripts[action.name] = action.command
            manifest["scripts"] = scripts
            return self._written(store, store.write(run.context.manifest_file, dump_json(manifest)))

        if isinstance(action, AddEnvVarAction):
            env_path = action.path or run.context.env_file
            content = _set_env_var(store.read(env_path), action.key, action.value, action.description)
            return self._written(store, store.write(env_path, content))

        if isinstance(action, EnhanceFileAction):
            existing = store.read(action.path)
            if existing is None:
                if action.fallback is EnhanceFallback.SKIP:
                    run.warnings.append(f"{action.path} not found; skipped modifier '{action.modifier}'")
                    return []
                if action.fallback is EnhanceFallback.ERROR:
                    raise ActionError(
                        ActionErrorCode.FILE_NOT_FOUND,
                        f"File to enhance not found: {action.path}",
                        action.path,
                    )
            modifier = self.modifiers.get(action.modifier)
            if modifier is None:
                raise ActionError(
                    ActionErrorCode.INVALID_ACTION,
                    f"Unknown modifier '{action.modifier}' (available: {', '.join(self.modifiers.names())})",
                    action.path,
                )
            return self._written(store, store.write(action.path, modifier(existing, action.params, action.path)))

        if isinstance(action, MergeJsonAction):
            merged = mods.merge_json(store.read(action.path), action.content, action.path)
            return self._written(store, store.write(action.path, merged))

        if isinstance(action, AddTsImportAction):
            updated = mods.add_ts_imports(store.read(action.path), action.imports, action.path)
            return self._written(store, store.write(action.path, updated))

        if isinstance(action, AppendToFileAction):
            updated = mods.append_text(store.read(action.path), action.content)
            return self._written(store, store.write(action.path, updated))

        if isinstance(action, PrependToFileAction):
            updated = mods.prepend_text(store.read(action.path), action.content)
            return self._written(store, store.write(action.path, updated))

        if isinstance(action, WrapConfigAction):
            updated = mods.wrap_config(
                store.read(action.path),
                action.wrapper,
                action.path,
                import_from=action.import_from,
                options=action.options,
            )
            return self._written(store, store.write(action.path, updated))

        if isinstance(action, ExtendSchemaAction):
            updated = mods.extend_schema(
                store.read(action.path),
                action.tables,
                action.path,
                additional_imports=action.additional_imports,
            )
            return self._written(store, store.write(action.path, updated))

        raise ActionError(
            ActionErrorCode.UNSUPPORTED_ACTION, f"Unsupported action type: {action_type_name(action)}"
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _written(store: FileStore, path: Path) -> list[str]:
        # Staged writes are reported after the flush.
        return [] if store.staged else [str(path)]

    def _read_manifest(self, run: _Run) -> dict[str, Any]:
        manifest_file = run.context.manifest_file
        raw = run.store.read(manifest_file)
        if raw is None:
            raise ActionError(
                ActionErrorCode.FILE_NOT_FOUND,
                f"Project manifest not found: {manifest_file}",
                manifest_file,
            )
        return mods.parse_json_object(raw, manifest_file)

    async def _command(
        self,
        run: _Run,
        index: int,
        action_type: str,
        command: Union[str, list[str]],
        cwd: Path,
    ) -> None:
        if run.store.staged:
            run.deferred.append(_DeferredCommand(index, action_type, command, cwd))
            return
        await self._run_command(run, index, command, cwd)

    async def _run_command(
        self,
        run: _Run,
        index: int,
        command: Union[str, list[str]],
        cwd: Path,
    ) -> None:
        display = command if isinstance(command, str) else " ".join(command)
        run.context.logger.info(f"Running: {display}")
        cwd.mkdir(parents=True, exist_ok=True)
        code, stdout, stderr = await run_command(
            command, cwd=cwd, timeout=run.context.command_timeout
        )
        run.commands.append(
            CommandOutput(index=index, command=display, exit_code=code, stdout=stdout, stderr=stderr)
        )
        if code != 0:
            raise ActionError(
                ActionErrorCode.COMMAND_FAILED,
                f"Command failed with exit code {code}: {display}"
                + (f"\n{stderr}" if stderr else ""),
            )

    def _failure(self, run: _Run, index: int, action_type: str, exc: ActionError) -> ActionFailure:
        failure = ActionFailure(
            blueprint_id=run.blueprint.id,
            index=index,
            action_type=action_type,
            code=exc.code,
            message=str(exc),
            path=exc.path,
        )
        run.context.logger.error(str(failure))
        return failure

    def _finish(
        self,
        result: BlueprintExecutionResult,
        run: _Run,
        start: float,
        *,
        success: bool,
    ) -> BlueprintExecutionResult:
        result.success = success
        result.commands = run.commands
        result.warnings.extend(run.warnings)
        result.duration_seconds = time.monotonic() - start
        if success:
            run.context.logger.success(
                f"Blueprint {run.blueprint.display_name} applied ({len(result.files)} file(s))"
            )
        return result


def _set_env_var(existing: Optional[str], key: str, value: str, description: str = "") -> str:
    """Set ``KEY=value`` in env-file content, replacing an existing assignment."""
    lines = existing.split("\n") if existing else []
    if lines and lines[-1] == "":
        lines.pop()
    assignment = f"{key}={value}"
    for i, line in enumerate(lines):
        if line.startswith(f"{key}="):
            lines[i] = assignment
            break
    else:
        if description:
            lines.append(f"# {description}")
        lines.append(assignment)
    return "\n".join(lines) + "\n"
