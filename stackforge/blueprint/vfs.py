"""Virtual file system used for transactional blueprint execution.

Every write is staged in memory, keyed by absolute path.  Reads return the
staged content when a previous action already touched the path, otherwise the
on-disk content, otherwise ``None``.  Nothing reaches the disk until
:meth:`VirtualFileSystem.flush`; :meth:`VirtualFileSystem.discard` drops the
overlay without side effects.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

from .results import ActionError, ActionErrorCode


class FileStore:
    """Direct-to-disk file access with the same interface as the VFS.

    Used in direct mode so action handlers can be written once.
    """

    staged = False

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def resolve(self, path: str | Path) -> Path:
        """Resolve *path* against the project root."""
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.root / candidate
        return Path(os.path.normpath(candidate))

    def read(self, path: str | Path) -> str | None:
        """Content of *path* as text, or ``None`` when it does not exist.

        Raises:
            ActionError: ``PARSE_ERROR`` when the file is not valid UTF-8.
        """
        target = self.resolve(path)
        if not target.is_file():
            return None
        try:
            return target.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise ActionError(
                ActionErrorCode.PARSE_ERROR,
                f"{target} is not valid UTF-8 text: {exc.reason} at byte {exc.start}",
                str(target),
            ) from exc

    def exists(self, path: str | Path) -> bool:
        return self.resolve(path).is_file()

    def write(self, path: str | Path, content: str) -> Path:
        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return target


class VirtualFileSystem(FileStore):
    """In-memory overlay over the project tree for one blueprint run."""

    staged = True
    TEMP_SUFFIX = ".stackforge-tmp"

    def __init__(self, root: str | Path, blueprint_id: str = "") -> None:
        super().__init__(root)
        self.blueprint_id = blueprint_id
        self._files: dict[Path, str] = {}

    def read(self, path: str | Path) -> str | None:
        target = self.resolve(path)
        if target in self._files:
            return self._files[target]
        return super().read(target)

    def write(self, path: str | Path, content: str) -> Path:
        target = self.resolve(path)
        self._files[target] = content
        return target

    def exists(self, path: str | Path) -> bool:
        return self.is_staged(path) or super().exists(path)

    def is_staged(self, path: str | Path) -> bool:
        return self.resolve(path) in self._files

    @property
    def staged_paths(self) -> list[Path]:
        """Staged paths in first-write order."""
        return list(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def discard(self) -> None:
        """Drop every staged change."""
        self._files.clear()

    async def flush(self) -> list[Path]:
        """Write the overlay to disk and clear it.

        Files are first written to temporary siblings and only renamed into
        place once every temporary write succeeded, so an I/O error while
        writing leaves the tree as it was.  Temporary files and directories
        created for the flush are removed whenever the flush fails.

        Returns:
            The paths written, in first-write order.

        Raises:
            OSError: If a file cannot be written or renamed.
        """
        return await asyncio.to_thread(self._flush_sync)

    def _flush_sync(self) -> list[Path]:
        pending: list[tuple[Path, Path]] = []
        created_dirs: list[Path] = []
        renamed = 0
        completed = False
        try:
            for target, content in self._files.items():
                created_dirs.extend(_missing_parents(target))
                target.parent.mkdir(parents=True, exist_ok=True)
                temp = target.with_name(target.name + self.TEMP_SUFFIX)
                pending.append((temp, target))
                temp.write_text(content, encoding="utf-8")

            for temp, target in pending:
                os.replace(temp, target)
                renamed += 1
            completed = True
        finally:
            if not completed:
                for temp, _ in pending[renamed:]:
                    temp.unlink(missing_ok=True)
                _remove_empty_dirs(created_dirs)

        written = [target for _, target in pending]
        self._files.clear()
        return written


def _missing_parents(target: Path) -> list[Path]:
    """Ancestors of *target* that do not exist yet, outermost first."""
    missing: list[Path] = []
    parent = target.parent
    while not parent.exists() and parent != parent.parent:
        missing.append(parent)
        parent = parent.parent
    return list(reversed(missing))


def _remove_empty_dirs(directories: list[Path]) -> None:
    # Innermost first so a parent is empty by the time it is checked.
    for directory in reversed(directories):
        if directory.is_dir() and not any(directory.iterdir()):
            directory.rmdir()
