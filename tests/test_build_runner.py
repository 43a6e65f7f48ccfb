"""Tests for Gradle wrapper invocation."""

import subprocess
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

from aipack.build_runner import GradleRunner
from aipack.models import BuildConfig
from conftest import make_executable


class TestGradleRunnerAvailability:
    """Tests for entry point detection."""

    @patch("aipack.build_runner.subprocess.run")
    def test_missing_entry_point_skips(self, mock_run):
        """Without gradlew nothing is invoked."""
        with tempfile.TemporaryDirectory() as tmpdir:
            log = GradleRunner(Path(tmpdir)).run_build()
        assert log.invoked is False
        assert log.text == ""
        mock_run.assert_not_called()

    @patch("aipack.build_runner.subprocess.run")
    def test_non_executable_entry_point_skips(self, mock_run):
        """A gradlew without the executable bit is treated as absent."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "gradlew").write_text("#!/bin/sh\n")
            (root / "gradlew").chmod(0o644)
            log = GradleRunner(root).run_build()
        assert log.invoked is False
        mock_run.assert_not_called()


class TestGradleRunnerExecution:
    """Tests for command execution and log capture."""

    @patch("aipack.build_runner.subprocess.run")
    def test_runs_all_invocations_in_order(self, mock_run):
        """Every configured invocation runs, output is appended in order."""
        mock_run.side_effect = [
            MagicMock(returncode=1, stdout="compile output"),
            MagicMock(returncode=0, stdout="ksp output\n"),
            MagicMock(returncode=1, stdout="FAILURE: Build failed with an exception.\n"),
        ]
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_executable(root / "gradlew")
            log_path = root / "ai-pack" / ".build.log"
            log = GradleRunner(root).run_build(log_path)
            written = log_path.read_text(encoding="utf-8")

        assert log.invoked is True
        assert log.exit_codes == [1, 0, 1]
        assert log.text == "compile output\nksp output\nFAILURE: Build failed with an exception.\n"
        assert written == log.text

        commands = [c.args[0] for c in mock_run.call_args_list]
        assert commands[0][1:] == ["-q", ":app:compileDebugKotlin", "--stacktrace", "--warning-mode=all"]
        assert commands[1][1:] == ["-q", ":app:kspDebugKotlin", "--stacktrace", "--warning-mode=all"]
        assert commands[2][1:] == ["build", "--stacktrace", "--warning-mode=all"]
        assert all(c[0].endswith("gradlew") for c in commands)

    @patch("aipack.build_runner.subprocess.run")
    def test_merges_stderr_into_stdout(self, mock_run):
        """Both output streams are captured into one log."""
        mock_run.return_value = MagicMock(returncode=0, stdout="")
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_executable(root / "gradlew")
            GradleRunner(root).run_build()

        kwargs = mock_run.call_args.kwargs
        assert kwargs["stdout"] == subprocess.PIPE
        assert kwargs["stderr"] == subprocess.STDOUT
        assert kwargs["timeout"] is None

    @patch("aipack.build_runner.subprocess.run")
    def test_task_listing_uses_sync_arguments(self, mock_run):
        """run_tasks invokes the task listing only."""
        mock_run.return_value = MagicMock(returncode=0, stdout="Tasks runnable from root project\n")
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_executable(root / "gradlew")
            log = GradleRunner(root).run_tasks()

        assert mock_run.call_count == 1
        assert mock_run.call_args.args[0][1:] == ["--stacktrace", "--warning-mode=all", "tasks"]
        assert log.text == "Tasks runnable from root project\n"

    @patch("aipack.build_runner.subprocess.run")
    def test_launch_failure_is_data(self, mock_run):
        """An OSError while launching is recorded, not raised."""
        mock_run.side_effect = OSError("Exec format error")
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_executable(root / "gradlew")
            log = GradleRunner(root, BuildConfig(invocations=[["build"]])).run_build()

        assert log.invoked is True
        assert log.exit_codes == [1]
        assert "Exec format error" in log.text

    @patch("aipack.build_runner.subprocess.run")
    def test_timeout_is_data(self, mock_run):
        """A configured timeout ends the invocation without raising."""
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="gradlew", timeout=5)
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_executable(root / "gradlew")
            build = BuildConfig(invocations=[["build"]], timeout_seconds=5)
            log = GradleRunner(root, build).run_build()

        assert log.exit_codes == [1]
        assert "timed out" in log.text
        assert mock_run.call_args.kwargs["timeout"] == 5
