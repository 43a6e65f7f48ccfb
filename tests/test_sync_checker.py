"""Tests for configuration-time failure detection."""

import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

from aipack.build_runner import GradleRunner
from aipack.models import PatternConfig
from aipack.report_writer import ReportWriter
from aipack.sync_checker import SyncChecker, extract_sync_errors
from conftest import make_executable


SYNC_FAILURE_LOG = """\

FAILURE: Build failed with an exception.

* What went wrong:
Could not resolve all dependencies for configuration ':app:debugCompileClasspath'.
   > Could not resolve com.acme:lib:1.0.
     Required by:
         project :app
   Caused by: java.net.UnknownHostException: repo.acme.com

* Try:
> Run with --info or --debug option to get more log output.
"""


class TestExtractSyncErrors:
    """Tests for extract_sync_errors function."""

    def test_collects_prefixed_lines(self):
        """Lines starting with a failure prefix are kept, trimmed, in order."""
        errors = extract_sync_errors(SYNC_FAILURE_LOG, PatternConfig().sync_prefixes)
        assert errors == [
            "FAILURE: Build failed with an exception.",
            "* What went wrong:",
            "Could not resolve all dependencies for configuration ':app:debugCompileClasspath'.",
            "Caused by: java.net.UnknownHostException: repo.acme.com",
        ]

    def test_prefix_matched_at_start_only(self):
        """A prefix in the middle of a line does not count."""
        log = "BUILD SUCCESSFUL, error: none\n"
        assert extract_sync_errors(log, PatternConfig().sync_prefixes) == []

    def test_case_insensitive(self):
        """Prefixes match regardless of case."""
        assert extract_sync_errors("could not resolve foo\n", ["Could not resolve"]) == [
            "could not resolve foo"
        ]

    def test_plugin_not_found(self):
        """Missing plugins are reported."""
        log = "Plugin com.acme.tool not found.\n"
        assert extract_sync_errors(log, PatternConfig().sync_prefixes) == [log.strip()]

    def test_no_prefixes(self):
        """An empty prefix list matches nothing."""
        assert extract_sync_errors(SYNC_FAILURE_LOG, []) == []


class TestSyncChecker:
    """Tests for SyncChecker."""

    def test_runner_absent(self):
        """Without an entry point the check reports nothing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            result = SyncChecker(GradleRunner(Path(tmpdir))).check()
        assert result.invoked is False
        assert result.errors == []

    @patch("aipack.build_runner.subprocess.run")
    def test_resolution_failure_report(self, mock_run):
        """A single resolution failure produces exactly one sync block."""
        mock_run.return_value = MagicMock(returncode=1, stdout="Could not resolve: com.example:lib:1.0\n")
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_executable(root / "gradlew")
            result = SyncChecker(GradleRunner(root)).check()
            writer = ReportWriter(root / "ai-pack", root)
            report = writer.write_sync(result.errors).read_text(encoding="utf-8")

        assert result.errors == ["Could not resolve: com.example:lib:1.0"]
        assert report == "Sync Error: Could not resolve: com.example:lib:1.0\n---\n.\n"

    @patch("aipack.build_runner.subprocess.run")
    def test_clean_configuration(self, mock_run):
        """A successful task listing gives no errors."""
        mock_run.return_value = MagicMock(
            returncode=0, stdout="Tasks runnable from root project 'shop'\n\nBUILD SUCCESSFUL in 2s\n"
        )
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_executable(root / "gradlew")
            log_path = root / "ai-pack" / ".sync.log"
            result = SyncChecker(GradleRunner(root)).check(log_path)
            assert log_path.exists()

        assert result.invoked is True
        assert result.errors == []
