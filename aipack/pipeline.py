"""Report generation orchestration."""

import logging
from pathlib import Path
from typing import Optional

from aipack.build_runner import GradleRunner
from aipack.error_extractor import ErrorExtractor
from aipack.file_collector import FileCollector
from aipack.models import (
    CONTENT_REPORT,
    ERROR_REPORT,
    SYNC_REPORT,
    TREE_REPORT,
    AiPackConfig,
    ReportSummary,
)
from aipack.report_writer import ReportWriter
from aipack.sync_checker import SyncChecker

logger = logging.getLogger(__name__)

BUILD_LOG_NAME = ".build.log"
SYNC_LOG_NAME = ".sync.log"


class ReportGenerator:
    """Runs the content, error, sync and tree stages one after another.

    A failing stage is logged and its report falls back to the empty or
    "no errors" form; the remaining stages still run.
    """

    def __init__(self, project_root: Path, config: Optional[AiPackConfig] = None):
        """Initialize generator.

        Args:
            project_root: Project root directory
            config: Configuration. Defaults to AiPackConfig().
        """
        self.project_root = project_root.resolve()
        self.config = config or AiPackConfig()
        self.output_dir = self.project_root / self.config.output.directory

        self.collector = FileCollector(self.project_root, self.config.sources, self.output_dir)
        self.runner = GradleRunner(self.project_root, self.config.build)
        self.extractor = ErrorExtractor(
            self.project_root, self.config.patterns, self.config.sources.skip_dirs
        )
        self.sync_checker = SyncChecker(self.runner, self.config.patterns)
        self.writer = ReportWriter(self.output_dir, self.project_root)

    def generate(self) -> ReportSummary:
        """Generate all four reports.

        Returns:
            ReportSummary with per-report counts and file paths
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        summary = ReportSummary(output_dir=str(self.output_dir))

        summary.content_files = self._run_stage("content", self._generate_content)
        summary.error_records = self._run_stage("errors", self._generate_errors)
        summary.sync_errors = self._run_stage("sync", self._generate_sync)
        summary.tree_files = self._run_stage("tree", self._generate_tree)

        summary.reports = {
            name: str(self.writer.path_for(name))
            for name in (CONTENT_REPORT, ERROR_REPORT, SYNC_REPORT, TREE_REPORT)
        }
        return summary

    def _run_stage(self, name: str, stage) -> int:
        """Run one stage, isolating unexpected failures.

        Args:
            name: Stage name for logging
            stage: Callable returning the number of entries written

        Returns:
            Number of entries written, 0 if the stage failed
        """
        try:
            return stage()
        except Exception:
            logger.exception("Stage %s failed, writing empty report", name)
            try:
                self._write_empty(name)
            except OSError as e:
                logger.error("Could not write %s report: %s", name, e)
            return 0

    def _write_empty(self, name: str) -> None:
        if name == "content":
            self.writer.write_content([])
        elif name == "errors":
            self.writer.write_errors([])
        elif name == "sync":
            self.writer.write_sync([])
        elif name == "tree":
            self.writer.write_tree([])

    def _generate_content(self) -> int:
        files = self.collector.collect_content_files()
        self.writer.write_content(files)
        logger.info("Content report: %d file(s)", len(files))
        return len(files)

    def _generate_errors(self) -> int:
        log = self.runner.run_build(self.output_dir / BUILD_LOG_NAME)
        records = self.extractor.extract(log.text) if log.invoked else []
        self.writer.write_errors(records)
        return len(records)

    def _generate_sync(self) -> int:
        result = self.sync_checker.check(self.output_dir / SYNC_LOG_NAME)
        self.writer.write_sync(result.errors)
        return len(result.errors)

    def _generate_tree(self) -> int:
        files = self.collector.collect_package_files()
        self.writer.write_tree(files, absolute=self.config.output.absolute_tree_paths)
        logger.info("Tree report: %d file(s)", len(files))
        return len(files)
