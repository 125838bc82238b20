"""Shared utility functions for stackforge.

Provides async command execution, JSON I/O, deep merging, file-system
helpers, and Rich-based console reporting, including the logger sinks that
plugins and agents write to.
"""

from __future__ import annotations

import asyncio
import copy
import json
import os
import re
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.rule import Rule
from rich.table import Table

console = Console()

# ---------------------------------------------------------------------------
# Async command execution
# ---------------------------------------------------------------------------


async def run_command(
    cmd: str | list[str],
    cwd: str | Path | None = None,
    timeout: int = 120,
    capture: bool = True,
    env: dict[str, str] | None = None,
) -> tuple[int, str, str]:
    """Run a shell command asynchronously.

    Args:
        cmd: Shell command string or list of arguments.
        cwd: Working directory for the child process.
        timeout: Maximum wall-clock seconds before the process is killed.
        capture: Whether to capture stdout/stderr (if ``False`` they inherit
            the parent's streams).
        env: Optional extra environment variables merged on top of ``os.environ``.

    Returns:
        A ``(returncode, stdout, stderr)`` tuple.  A timed-out command
        reports ``-1`` and a message in *stderr*; a missing executable
        reports ``127``.
    """
    merged_env: dict[str, str] | None = None
    if env:
        merged_env = {**os.environ, **env}

    stdout_pipe = asyncio.subprocess.PIPE if capture else None
    stderr_pipe = asyncio.subprocess.PIPE if capture else None

    try:
        if isinstance(cmd, list):
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=stdout_pipe,
                stderr=stderr_pipe,
                cwd=str(cwd) if cwd else None,
                env=merged_env,
            )
        else:
            process = await asyncio.create_subprocess_shell(
                cmd,
                stdout=stdout_pipe,
                stderr=stderr_pipe,
                cwd=str(cwd) if cwd else None,
                env=merged_env,
            )
    except FileNotFoundError as exc:
        return (127, "", f"Command not found: {exc}")

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(), timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return (
            -1,
            "",
            f"Command timed out after {timeout}s: {cmd if isinstance(cmd, str) else ' '.join(cmd)}",
        )

    stdout_str = (stdout_bytes or b"").decode("utf-8", errors="replace").strip()
    stderr_str = (stderr_bytes or b"").decode("utf-8", errors="replace").strip()
    return (process.returncode or 0, stdout_str, stderr_str)


# ---------------------------------------------------------------------------
# String / name helpers
# ---------------------------------------------------------------------------


def sanitize_name(name: str) -> str:
    """Convert an arbitrary project name to a safe package name.

    Examples::

        sanitize_name("My Cool App") -> "my-cool-app"
        sanitize_name("  Shop (v2)  ") -> "shop-v2"
    """
    result = re.sub(r"[^a-zA-Z0-9_-]", "-", name.strip().lower())
    result = re.sub(r"-+", "-", result)
    return result.strip("-")


# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------


async def save_json(data: dict[str, Any] | list[Any], path: str | Path) -> None:
    """Save data as pretty-printed JSON.

    Parent directories are created automatically and the write runs in a
    thread-pool executor so the event loop is not blocked.
    """
    file_path = Path(path)
    ensure_dir(file_path.parent)
    content = json.dumps(data, indent=2, ensure_ascii=False, default=str)

    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, file_path.write_text, content, "utf-8")


def dump_json(data: Any) -> str:
    """Serialise *data* the way project manifests are written (2-space, trailing newline)."""
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def deep_merge(base: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *patch* into a copy of *base*.

    Nested dicts are merged key by key, lists are concatenated without
    duplicating items already present, and any other value in *patch*
    replaces the one in *base*.  Neither argument is mutated.
    """
    result = copy.deepcopy(base)
    for key, value in patch.items():
        existing = result.get(key)
        if isinstance(value, dict) and isinstance(existing, dict):
            result[key] = deep_merge(existing, value)
        elif isinstance(value, list) and isinstance(existing, list):
            result[key] = existing + [item for item in value if item not in existing]
        else:
            result[key] = copy.deepcopy(value)
    return result


# ---------------------------------------------------------------------------
# File-system helpers
# ---------------------------------------------------------------------------


def ensure_dir(path: str | Path) -> Path:
    """Create a directory (and parents) if it does not exist."""
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path.resolve()


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(3.7)    -> "3.7s"
        format_duration(65.2)   -> "1m 5s"
        format_duration(3661.0) -> "1h 1m 1s"
    """
    if seconds < 0:
        return "0.0s"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = seconds % 60

    parts: list[str] = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")

    if hours > 0 or minutes > 0:
        parts.append(f"{int(secs)}s")
    else:
        parts.append(f"{secs:.1f}s")

    return " ".join(parts)


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


PHASE_COLORS: list[str] = [
    "bright_cyan",
    "bright_green",
    "bright_yellow",
    "bright_magenta",
    "bright_red",
    "bright_blue",
]


def print_phase_header(position: int, name: str) -> None:
    """Print a prominent phase header using Rich.

    Args:
        position: 1-based position of the phase in the running plan; picks
            the rule colour.
        name: Phase display name.
    """
    color = PHASE_COLORS[(position - 1) % len(PHASE_COLORS)]
    console.print()
    console.print(
        Rule(
            f"[bold {color}] Phase {position}: {name} [/bold {color}]",
            style=color,
        )
    )
    console.print()


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{message}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{message}[/bold yellow]")


# ---------------------------------------------------------------------------
# Logger sinks
# ---------------------------------------------------------------------------


class ConsoleLogger:
    """Logger sink that writes to the shared Rich console.

    Plugins and agents only ever call ``info``, ``warn``, ``error`` and
    ``success``; ``verbose`` controls whether ``info`` lines are shown.
    """

    def __init__(self, verbose: bool = True) -> None:
        self.verbose = verbose

    def info(self, message: str) -> None:
        if self.verbose:
            console.print(f"  {message}")

    def warn(self, message: str) -> None:
        print_warning(f"  {message}")

    def error(self, message: str) -> None:
        print_error(f"  {message}")

    def success(self, message: str) -> None:
        print_success(f"  {message}")


class RecordingLogger:
    """Logger sink that keeps every message in memory.

    Used by dry runs and tests; ``records`` holds ``(level, message)`` pairs
    in emission order.
    """

    def __init__(self) -> None:
        self.records: list[tuple[str, str]] = []

    def info(self, message: str) -> None:
        self.records.append(("info", message))

    def warn(self, message: str) -> None:
        self.records.append(("warn", message))

    def error(self, message: str) -> None:
        self.records.append(("error", message))

    def success(self, message: str) -> None:
        self.records.append(("success", message))

    def messages(self, level: str | None = None) -> list[str]:
        """Return recorded messages, optionally filtered by level."""
        return [msg for lvl, msg in self.records if level is None or lvl == level]
