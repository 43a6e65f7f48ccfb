"""Enumerate and read project files for the content and tree reports."""

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Optional

import pathspec

from aipack.models import SourceConfig
from aipack.path_utils import find_source_roots, find_target_dirs, package_path, walk_files

logger = logging.getLogger(__name__)


def read_text_safe(path: Path) -> str:
    """Read a file as text, degrading to an empty string.

    Binary files (containing a NUL byte) and unreadable files give ``""``.

    Args:
        path: File to read.

    Returns:
        The decoded file content.
    """
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.debug("Cannot read %s: %s", path, e)
        return ""
    if b"\0" in data:
        return ""
    return data.decode("utf-8", errors="replace")


def read_lines_window(path: Path, center: int, radius: int = 20) -> str:
    """Return the lines ``max(1, center - radius)`` to ``center + radius``.

    Args:
        path: Source file.
        center: 1-based line number the window is centered on.
        radius: Lines before and after the center.

    Returns:
        The selected lines joined by newlines, clamped to the file length.
    """
    lines = read_text_safe(path).splitlines()
    start = max(1, center - radius)
    end = min(len(lines), center + radius)
    return "\n".join(lines[start - 1:end])


def read_head(path: Path, count: int) -> str:
    """Return the first ``count`` lines of a file."""
    return "\n".join(read_text_safe(path).splitlines()[:count])


def collect_files(directories: Iterable[Path], extensions: Iterable[str], root: Path,
                  skip_dirs: Iterable[str] = ()) -> list[str]:
    """Collect files with an allowed extension below the given directories.

    Args:
        directories: Directories to search.
        extensions: Allowed extensions, without the leading dot.
        root: Project root the results are made relative to.
        skip_dirs: Directory names that are never descended into.

    Returns:
        Deduplicated, sorted project-relative POSIX paths.
    """
    suffixes = {f".{ext}" for ext in extensions}
    found = set()
    for directory in directories:
        for path in walk_files(directory, skip_dirs):
            if path.suffix in suffixes:
                found.add(path.relative_to(root).as_posix())
    return sorted(found)


class FileCollector:
    """Finds the project's package sources and the files of the content dump."""

    def __init__(self, project_root: Path, sources: Optional[SourceConfig] = None,
                 output_dir: Optional[Path] = None):
        """Initialize the collector.

        Args:
            project_root: Project root directory
            sources: Source lookup settings. Defaults to SourceConfig().
            output_dir: Report directory, excluded from every search
        """
        self.project_root = project_root
        self.sources = sources or SourceConfig()
        self.skip_dirs = list(self.sources.skip_dirs)
        if output_dir is not None:
            self.skip_dirs.append(output_dir.name)
        self._targets: Optional[list[Path]] = None

    def target_dirs(self) -> list[Path]:
        """Return the primary package directories (computed once per run)."""
        if self._targets is None:
            roots = find_source_roots(self.project_root, self.sources.root_patterns, self.skip_dirs)
            package = package_path(
                self.project_root, self.sources.default_package_prefix, self.skip_dirs
            )
            self._targets = find_target_dirs(roots, package)
            logger.debug(
                "Package %s: %d source roots, %d target dirs", package, len(roots), len(self._targets)
            )
        return self._targets

    def collect_package_files(self) -> list[str]:
        """Collect the package source files.

        Falls back to every matching file under any ``src`` directory when the
        target directories yield nothing.

        Returns:
            Sorted project-relative paths.
        """
        files = collect_files(
            self.target_dirs(), self.sources.extensions, self.project_root, self.skip_dirs
        )
        if files:
            return files

        logger.debug("No files in target dirs, falling back to */src/* search")
        suffixes = {f".{ext}" for ext in self.sources.extensions}
        found = set()
        for path in walk_files(self.project_root, self.skip_dirs):
            rel = path.relative_to(self.project_root)
            if path.suffix in suffixes and "src" in rel.parts[:-1]:
                found.add(rel.as_posix())
        return sorted(found)

    def collect_app_files(self) -> list[str]:
        """Collect every non-binary file of the application module.

        Returns:
            Sorted project-relative paths, excluding build outputs and binaries.
        """
        app_dir = self.project_root / self.sources.app_dir
        if not app_dir.is_dir():
            return []

        spec = pathspec.GitIgnoreSpec.from_lines(self.sources.app_excludes)
        files = []
        for path in walk_files(app_dir, self.skip_dirs):
            rel = path.relative_to(self.project_root).as_posix()
            if not spec.match_file(rel):
                files.append(rel)
        return sorted(files)

    def collect_content_files(self) -> list[str]:
        """Collect the files of the content report, in report order.

        Order: package sources, manifests, the whole app module, key build
        files. A file already listed by an earlier section is not repeated.

        Returns:
            Project-relative paths in report order.
        """
        def existing(rels: list[str]) -> list[str]:
            return [r for r in rels if (self.project_root / r).is_file()]

        sections = [
            self.collect_package_files(),
            existing(self.sources.manifests),
            self.collect_app_files(),
            existing(self.sources.build_files),
        ]

        ordered = []
        seen = set()
        for section in sections:
            for rel in section:
                if rel not in seen:
                    seen.add(rel)
                    ordered.append(rel)
        return ordered
