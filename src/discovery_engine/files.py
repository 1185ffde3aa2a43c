"""Source file walking: lazily yield the .py files below a location, respecting .gitignore."""

import logging
import os
from pathlib import Path
from typing import Callable, Iterator

import pathspec

from .exceptions import ScanError

log = logging.getLogger(__name__)

DEFAULT_EXCLUDE_DIRS: tuple[str, ...] = (
    ".git", "__pycache__", ".venv", "venv", "node_modules",
    "build", "dist", ".mypy_cache", ".pytest_cache", ".tox",
)

SOURCE_SUFFIX = ".py"


def load_gitignore_spec(root: Path) -> pathspec.PathSpec | None:
    gitignore = root / ".gitignore"
    try:
        if gitignore.is_file():
            patterns = gitignore.read_text(encoding="utf-8", errors="replace").splitlines()
            return pathspec.PathSpec.from_lines("gitwildmatch", patterns)
    except OSError as e:
        log.warning("Cannot read %s: %s", gitignore, e)
    return None


def iter_source_files(
    root: Path,
    exclude_dirs: tuple[str, ...] | list[str] = DEFAULT_EXCLUDE_DIRS,
    respect_gitignore: bool = True,
    on_error: Callable[[ScanError], None] | None = None,
) -> Iterator[Path]:
    """
    Yield every source file under root, depth-first, entries sorted by name.

    The walk is lazy: a directory is only listed when the consumer reaches it.
    Entries that cannot be listed or stat'ed are reported through on_error
    (or logged) and skipped. The caller checks that root itself is a directory.
    """
    gitignore_spec = load_gitignore_spec(root) if respect_gitignore else None
    excluded = set(exclude_dirs)

    def _report(path: Path, e: OSError) -> None:
        err = ScanError(str(path), e.strerror or str(e))
        if on_error is not None:
            on_error(err)
        else:
            log.warning("Skipping %s", err)

    def _walk(directory: Path) -> Iterator[Path]:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except OSError as e:
            _report(directory, e)
            return

        for entry in entries:
            path = Path(entry.path)
            rel_str = path.relative_to(root).as_posix()
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file()
            except OSError as e:
                _report(path, e)
                continue

            if is_dir:
                if entry.name in excluded:
                    continue
                if gitignore_spec and gitignore_spec.match_file(rel_str + "/"):
                    continue
                yield from _walk(path)
            elif is_file and entry.name.endswith(SOURCE_SUFFIX):
                if gitignore_spec and gitignore_spec.match_file(rel_str):
                    continue
                yield path

    yield from _walk(root)
