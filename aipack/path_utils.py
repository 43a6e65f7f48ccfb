"""Path normalization and source directory discovery."""

import fnmatch
import os
import re
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Optional


# Log tokens may carry a file:// scheme and redundant leading slashes,
# e.g. file:///home/user/project/app/src/Main.kt
_LOG_PATH_PREFIX = re.compile(r"^(?:file:)?/+")

# Groovy:  applicationId "com.acme.shop"
# Kotlin:  applicationId = "com.acme.shop"
_APPLICATION_ID_PATTERN = re.compile(r"applicationId\s*(?:=\s*)?\(?\s*[\"']([^\"']+)[\"']")

_BUILD_DESCRIPTORS = ("build.gradle", "build.gradle.kts")


def to_relative(path_str: str, root: Path) -> str:
    """Express a path relative to the project root.

    Strips a leading ``<root>/`` prefix and any leading ``./``. Paths that are
    outside the root are returned unchanged apart from the ``./`` stripping.

    Args:
        path_str: Absolute or relative path string.
        root: Project root directory.

    Returns:
        The project-relative path string.
    """
    result = path_str
    root_prefix = str(root).rstrip("/") + "/"
    if result.startswith(root_prefix):
        result = result[len(root_prefix):]
    while result.startswith("./"):
        result = result[2:]
    return result


def to_absolute(path_str: str, root: Path) -> str:
    """Express a path as an absolute path under the project root.

    Args:
        path_str: Absolute or relative path string.
        root: Project root directory.

    Returns:
        Absolute path string (absolute inputs are returned unchanged).
    """
    if path_str.startswith("/"):
        return path_str
    return f"{str(root).rstrip('/')}/{to_relative(path_str, root)}"


def normalize_log_path(token: str) -> str:
    """Normalize a path token scraped from a build log.

    Args:
        token: Raw token, e.g. ``file:///abs/Foo.kt`` or ``./app/Foo.kt``.

    Returns:
        The token with any ``file:`` scheme and repeated leading slashes collapsed.
    """
    if token.startswith("/") or token.startswith("file:"):
        return _LOG_PATH_PREFIX.sub("/", token)
    return token


def resolve_project_file(token: str, root: Path) -> Optional[str]:
    """Resolve a log path token to an existing file inside the project.

    Paths into dependency caches, SDKs or system directories resolve outside
    the root and are rejected.

    Args:
        token: Path token as it appears in the log.
        root: Project root directory.

    Returns:
        Project-relative POSIX path of the file, or None if it does not exist
        inside the root.
    """
    path = Path(normalize_log_path(token))
    if not path.is_absolute():
        path = root / to_relative(str(path), root)

    try:
        resolved = path.resolve()
        relative = resolved.relative_to(root.resolve())
    except (OSError, ValueError, RuntimeError):
        return None

    if not resolved.is_file():
        return None
    return relative.as_posix()


def walk_files(directory: Path, skip_dirs: Iterable[str] = ()) -> Iterator[Path]:
    """Yield every file below a directory in sorted, deterministic order.

    Args:
        directory: Directory to walk.
        skip_dirs: Directory names that are never descended into.

    Yields:
        Paths of regular files.
    """
    skip = set(skip_dirs)
    for dirpath, dirnames, filenames in os.walk(directory):
        dirnames[:] = sorted(d for d in dirnames if d not in skip)
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if path.is_file():
                yield path


def detect_application_id(root: Path, skip_dirs: Iterable[str] = ()) -> Optional[str]:
    """Find the first applicationId declared in a Gradle build descriptor.

    Args:
        root: Project root directory.
        skip_dirs: Directory names that are never descended into.

    Returns:
        The application identifier, or None if no descriptor declares one.
    """
    for path in walk_files(root, skip_dirs):
        if path.name not in _BUILD_DESCRIPTORS:
            continue
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            continue
        match = _APPLICATION_ID_PATTERN.search(text)
        if match:
            return match.group(1)
    return None


def package_path(root: Path, default_prefix: str = "com/example", skip_dirs: Iterable[str] = ()) -> str:
    """Guess the primary package directory of the project.

    Args:
        root: Project root directory.
        default_prefix: Prefix used with the project name when no
            applicationId is declared.
        skip_dirs: Directory names that are never descended into.

    Returns:
        Slash-separated package path, e.g. ``com/acme/shop``.
    """
    app_id = detect_application_id(root, skip_dirs)
    if app_id:
        return app_id.replace(".", "/")
    return f"{default_prefix.strip('/')}/{root.name or 'project'}"


def find_source_roots(root: Path, patterns: Iterable[str], skip_dirs: Iterable[str] = ()) -> list[Path]:
    """Find directories that follow a source-root naming convention.

    Patterns use fnmatch semantics against ``./``-prefixed relative paths, so
    ``*`` also matches path separators (``*/src/*/java`` matches
    ``./app/src/debug/java``).

    Args:
        root: Project root directory.
        patterns: Source-root patterns.
        skip_dirs: Directory names that are never descended into.

    Returns:
        Sorted list of matching directories.
    """
    patterns = list(patterns)
    skip = set(skip_dirs)
    found = set()

    for dirpath, dirnames, _ in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in skip)
        current = Path(dirpath)
        rel = current.relative_to(root).as_posix()
        candidate = "./" + rel if rel != "." else "."
        if any(fnmatch.fnmatchcase(candidate, pattern) for pattern in patterns):
            found.add(current)

    return sorted(found)


def find_target_dirs(source_roots: Iterable[Path], package: str) -> list[Path]:
    """Locate the primary package directories below the source roots.

    Tries the full package path first and falls back to shallower ancestors
    (``com/acme/shop``, then ``com/acme``, then ``com``). The first tier that
    matches anything wins; tiers are never merged.

    Args:
        source_roots: Source root directories.
        package: Slash-separated package path.

    Returns:
        Existing target directories of the first matching tier, or [] if none.
    """
    source_roots = list(source_roots)
    parts = [p for p in package.split("/") if p]

    for depth in range(len(parts), 0, -1):
        tier = "/".join(parts[:depth])
        targets = [r / tier for r in source_roots if (r / tier).is_dir()]
        if targets:
            return targets

    return []
