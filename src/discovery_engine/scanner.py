"""
Structure scanning: location → lazy stream of StructureDescriptors.

Wires files → parse → extract for one location. Sources are read as bytes
and parsed with tree-sitter; nothing is imported or executed.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Iterator

from .exceptions import LocationUnreadableError, ScanError
from .extract import extract_structures
from .files import DEFAULT_EXCLUDE_DIRS, iter_source_files
from .models import Location, StructureDescriptor
from .parse import first_error, parse_source

log = logging.getLogger(__name__)


class StructureScanner:
    """
    Streams StructureDescriptors for a location.

    Within one engine run the same files are scanned once per uncached
    discovery; the memo keyed by (location, path, mtime, size) keeps that to
    a single parse per file and location. The engine clears it at the start
    of every run.
    """

    def __init__(
        self,
        exclude_dirs: tuple[str, ...] | list[str] = DEFAULT_EXCLUDE_DIRS,
        respect_gitignore: bool = True,
        memoize: bool = True,
    ) -> None:
        self.exclude_dirs = tuple(exclude_dirs)
        self.respect_gitignore = respect_gitignore
        self.memoize = memoize
        self._memo: dict[tuple[str, str, str, int, int], list[StructureDescriptor]] = {}
        self._failed: set[tuple[str, int, int]] = set()
        self._lock = threading.Lock()
        self.files_scanned = 0
        self.errors: list[ScanError] = []

    def clear_memo(self) -> None:
        with self._lock:
            self._memo.clear()
            self._failed.clear()
            self.files_scanned = 0
            self.errors = []

    def _record_error(self, err: ScanError) -> None:
        log.warning("Skipping %s", err)
        with self._lock:
            self.errors.append(err)

    def _record_failure(self, key: tuple[str, int, int], err: ScanError) -> None:
        # unparseable files are reported once per run, not once per discovery
        self._record_error(err)
        if self.memoize:
            with self._lock:
                self._failed.add(key)

    def scan(self, location: Location) -> Iterator[StructureDescriptor]:
        """
        Yield every structure under location, file by file, in sorted path order.

        Raises LocationUnreadableError (on first iteration) when the root is
        missing or not a directory. Per-file problems are logged and skipped.
        """
        root = Path(location.path)
        if not root.is_dir():
            reason = "does not exist" if not root.exists() else "is not a directory"
            raise LocationUnreadableError(location, reason)
        if not os.access(root, os.R_OK | os.X_OK):
            raise LocationUnreadableError(location, "permission denied")

        for path in iter_source_files(
            root,
            exclude_dirs=self.exclude_dirs,
            respect_gitignore=self.respect_gitignore,
            on_error=self._record_error,
        ):
            structures = self.scan_file(location, path)
            if structures is None:
                continue
            yield from structures

    def scan_file(self, location: Location, path: Path) -> list[StructureDescriptor] | None:
        """Structures of a single file, or None when it can't be read or parsed."""
        try:
            st = path.stat()
        except OSError as e:
            self._record_error(ScanError(str(path), e.strerror or str(e)))
            return None

        file_key = (str(path), st.st_mtime_ns, st.st_size)
        # qualified names depend on the location the file is reached through
        key = (location.namespace, location.path, *file_key)
        if self.memoize:
            with self._lock:
                if file_key in self._failed:
                    return None
                cached = self._memo.get(key)
            if cached is not None:
                log.debug("Memo hit %s", path)
                return cached

        try:
            source = path.read_bytes()
        except OSError as e:
            self._record_error(ScanError(str(path), e.strerror or str(e)))
            return None

        try:
            tree = parse_source(source)
        except Exception as e:
            self._record_failure(file_key, ScanError(str(path), f"parse error: {e}"))
            return None

        error_node = first_error(tree.root_node)
        if error_node is not None:
            line = error_node.start_point[0] + 1
            self._record_failure(file_key, ScanError(str(path), f"syntax error near line {line}"))
            return None

        try:
            structures = extract_structures(
                tree,
                module=location.module_for(path),
                source_path=str(path),
                is_package=path.name == "__init__.py",
            )
        except RecursionError:
            self._record_failure(file_key, ScanError(str(path), "nesting too deep to extract"))
            return None

        with self._lock:
            self.files_scanned += 1
            if self.memoize:
                self._memo[key] = structures
        return structures
