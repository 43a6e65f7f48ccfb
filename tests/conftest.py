import os
import stat
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep user configuration out of the tests."""
    monkeypatch.delenv("AIPACK_CONFIG", raising=False)
    monkeypatch.delenv("ABS_ROOT", raising=False)


def make_project(root: Path, files: dict[str, str]) -> Path:
    """Create files below root from a {relative path: content} mapping."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


def make_executable(path: Path, content: str = "#!/bin/sh\nexit 0\n") -> Path:
    """Create an executable script."""
    path.write_text(content, encoding="utf-8")
    os.chmod(path, os.stat(path).st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def numbered_lines(count: int, prefix: str = "line") -> str:
    """File content with one numbered line per row."""
    return "".join(f"{prefix} {i}\n" for i in range(1, count + 1))
