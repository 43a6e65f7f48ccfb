"""Serialization of the four plain-text reports."""

import logging
from collections.abc import Iterable
from pathlib import Path

from aipack.file_collector import read_text_safe
from aipack.models import (
    CONTENT_REPORT,
    ERROR_REPORT,
    SYNC_REPORT,
    TREE_REPORT,
    ErrorRecord,
)
from aipack.path_utils import to_absolute

logger = logging.getLogger(__name__)

BLOCK_SEPARATOR = "---"
END_SENTINEL = "."
NO_BUILD_ERRORS = "No build errors."
NO_SYNC_ERRORS = "No sync errors."
NO_FILE_PATH = "(no file path)"


def format_content_block(rel_path: str, content: str) -> str:
    """Format one file of the content report."""
    name = rel_path.rsplit("/", 1)[-1]
    return (
        f"Path: {rel_path}\n"
        f"File: {name}\n"
        "Content:\n"
        f"{content}\n"
        f"{BLOCK_SEPARATOR}\n"
    )


def format_error_block(record: ErrorRecord) -> str:
    """Format one error record of the error report."""
    where = record.location.path if record.location else NO_FILE_PATH
    return (
        f"Error in: {where}\n"
        f"Message: {record.message}\n"
        "Code:\n"
        f"{record.code_snippet}\n"
        "Full Content:\n"
        f"{record.full_content or ''}\n"
        f"{BLOCK_SEPARATOR}\n"
    )


def format_sync_block(line: str) -> str:
    """Format one sync failure line."""
    return f"Sync Error: {line}\n{BLOCK_SEPARATOR}\n"


class ReportWriter:
    """Writes the content, error, sync and tree reports.

    Every report is truncated and fully rewritten on each call.
    """

    def __init__(self, output_dir: Path, project_root: Path):
        """Initialize report writer.

        Args:
            output_dir: Directory receiving the reports
            project_root: Project root the report paths are relative to
        """
        self.output_dir = output_dir
        self.project_root = project_root

    def path_for(self, report_name: str) -> Path:
        """Path of a report file inside the output directory."""
        return self.output_dir / report_name

    def _write(self, report_name: str, text: str) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(report_name)
        path.write_text(text, encoding="utf-8")
        logger.debug("Wrote %s (%d bytes)", path, len(text))
        return path

    def write_content(self, rel_paths: Iterable[str]) -> Path:
        """Write the content report.

        Args:
            rel_paths: Project-relative files, in report order

        Returns:
            Path of the written report
        """
        parts = [
            format_content_block(rel, read_text_safe(self.project_root / rel))
            for rel in rel_paths
        ]
        parts.append(f"{END_SENTINEL}\n")
        return self._write(CONTENT_REPORT, "".join(parts))

    def write_errors(self, records: list[ErrorRecord]) -> Path:
        """Write the error report.

        Args:
            records: Extracted error records; empty means no build errors

        Returns:
            Path of the written report
        """
        if records:
            parts = [format_error_block(r) for r in records]
        else:
            parts = [f"{NO_BUILD_ERRORS}\n"]
        parts.append(f"{END_SENTINEL}\n")
        return self._write(ERROR_REPORT, "".join(parts))

    def write_sync(self, errors: list[str]) -> Path:
        """Write the sync report.

        Args:
            errors: Configuration failure lines; empty means no sync errors

        Returns:
            Path of the written report
        """
        if errors:
            parts = [format_sync_block(line) for line in errors]
        else:
            parts = [f"{NO_SYNC_ERRORS}\n"]
        parts.append(f"{END_SENTINEL}\n")
        return self._write(SYNC_REPORT, "".join(parts))

    def write_tree(self, rel_paths: Iterable[str], absolute: bool = True) -> Path:
        """Write the tree report, one path per line.

        Args:
            rel_paths: Project-relative files
            absolute: List absolute paths instead of relative ones

        Returns:
            Path of the written report
        """
        if absolute:
            lines = [to_absolute(rel, self.project_root) for rel in rel_paths]
        else:
            lines = list(rel_paths)
        text = "".join(f"{line}\n" for line in lines)
        return self._write(TREE_REPORT, text)
