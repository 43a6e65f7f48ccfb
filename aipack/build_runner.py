"""Gradle wrapper invocation with combined output capture."""

import logging
import os
import subprocess
from pathlib import Path
from typing import Optional

from aipack.models import BuildConfig, BuildLog

logger = logging.getLogger(__name__)


class GradleRunner:
    """Runs the project's build tool entry point and captures its output.

    Build failures are the expected input of the error extractor, so nothing
    here raises: a missing wrapper, a failing build, a launch error or a
    timeout all end up as data in the returned BuildLog.
    """

    def __init__(self, project_root: Path, build: Optional[BuildConfig] = None):
        """Initialize runner.

        Args:
            project_root: Project root containing the entry point
            build: Build invocation settings. Defaults to BuildConfig().
        """
        self.project_root = project_root
        self.build = build or BuildConfig()

    @property
    def entry_point(self) -> Path:
        """Path of the build tool entry point."""
        return self.project_root / self.build.entry_point

    def is_available(self) -> bool:
        """Check whether the entry point exists and is executable."""
        entry = self.entry_point
        return entry.is_file() and os.access(entry, os.X_OK)

    def run_build(self, log_path: Optional[Path] = None) -> BuildLog:
        """Run all configured build invocations into one log.

        Args:
            log_path: Scratch file receiving the combined log

        Returns:
            BuildLog with the combined text; invoked=False if no entry point
        """
        return self._run_all(self.build.invocations, log_path)

    def run_tasks(self, log_path: Optional[Path] = None) -> BuildLog:
        """Run the lighter task-listing invocation.

        Args:
            log_path: Scratch file receiving the log

        Returns:
            BuildLog of the single invocation; invoked=False if no entry point
        """
        return self._run_all([self.build.sync_arguments], log_path)

    def _run_all(self, invocations: list[list[str]], log_path: Optional[Path]) -> BuildLog:
        if not self.is_available():
            logger.info("No executable %s in %s, skipping build", self.build.entry_point, self.project_root)
            return BuildLog(invoked=False)

        chunks = []
        exit_codes = []
        for arguments in invocations:
            output, exit_code = self._execute([str(self.entry_point), *arguments])
            chunks.append(output)
            exit_codes.append(exit_code)

        text = "".join(chunks)

        if log_path is not None:
            try:
                log_path.parent.mkdir(parents=True, exist_ok=True)
                log_path.write_text(text, encoding="utf-8")
            except OSError as e:
                logger.warning("Could not write build log %s: %s", log_path, e)
                log_path = None

        return BuildLog(
            text=text,
            invoked=True,
            exit_codes=exit_codes,
            log_path=str(log_path) if log_path else None,
        )

    def _execute(self, command: list[str]) -> tuple[str, int]:
        """Execute one build command and capture its output.

        Args:
            command: Command as list

        Returns:
            Tuple of (combined stdout/stderr, exit code)
        """
        logger.info("Running %s", " ".join(command))
        try:
            result = subprocess.run(
                command,
                cwd=str(self.project_root),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.build.timeout_seconds,
            )
        except subprocess.TimeoutExpired:
            logger.warning("%s timed out after %s seconds", command[0], self.build.timeout_seconds)
            return f"Build timed out after {self.build.timeout_seconds} seconds\n", 1
        except OSError as e:
            logger.warning("Could not launch %s: %s", command[0], e)
            return f"Build execution failed: {e}\n", 1

        output = result.stdout or ""
        if output and not output.endswith("\n"):
            output += "\n"
        logger.debug("%s exited with %d", command[0], result.returncode)
        return output, result.returncode
