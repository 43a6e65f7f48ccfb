"""Configuration-time (sync) failure detection."""

import logging
import re
from pathlib import Path
from typing import Optional

from aipack.build_runner import GradleRunner
from aipack.models import PatternConfig, SyncResult

logger = logging.getLogger(__name__)


def extract_sync_errors(log_text: str, prefixes: list[str]) -> list[str]:
    """Extract configuration failure lines from a task-listing log.

    Args:
        log_text: Output of the task-listing invocation
        prefixes: Regular expressions a failure line must start with
            (matched case-insensitively after trimming whitespace)

    Returns:
        Matching lines, trimmed, in log order
    """
    if not prefixes:
        return []
    pattern = re.compile("|".join(f"(?:{p})" for p in prefixes), re.IGNORECASE)

    errors = []
    for line in log_text.splitlines():
        stripped = line.strip()
        if stripped and pattern.match(stripped):
            errors.append(stripped)
    return errors


class SyncChecker:
    """Surfaces plugin and dependency resolution failures.

    These show up when Gradle configures the project, before any compile
    task runs, so a plain task listing is enough to trigger them.
    """

    def __init__(self, runner: GradleRunner, patterns: Optional[PatternConfig] = None):
        """Initialize sync checker.

        Args:
            runner: Runner for the project's build tool
            patterns: Pattern lists. Defaults to PatternConfig().
        """
        self.runner = runner
        self.patterns = patterns or PatternConfig()

    def check(self, log_path: Optional[Path] = None) -> SyncResult:
        """Run the task listing and collect configuration failures.

        Args:
            log_path: Scratch file receiving the sync log

        Returns:
            SyncResult; errors is empty when the build tool is absent or
            configuration succeeded
        """
        log = self.runner.run_tasks(log_path)
        if not log.invoked:
            return SyncResult(invoked=False)

        errors = extract_sync_errors(log.text, self.patterns.sync_prefixes)
        logger.info("Found %d sync error line(s)", len(errors))
        return SyncResult(invoked=True, errors=errors)
