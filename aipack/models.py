"""Data models for the AI pack report generator."""

import re
from typing import Optional

from pydantic import BaseModel, Field, field_validator


# Default report file names inside the output directory
CONTENT_REPORT = "R-Content.txt"
ERROR_REPORT = "R-Error.txt"
SYNC_REPORT = "R-Sync.txt"
TREE_REPORT = "R-Root.txt"


class ErrorLocation(BaseModel):
    """Project-relative position an error points at."""

    path: str = Field(description="Project-relative path of the source file")
    line: Optional[int] = Field(default=None, description="1-based line number, if known")


class ErrorRecord(BaseModel):
    """A single extracted build error."""

    location: Optional[ErrorLocation] = Field(
        default=None, description="File the error refers to, None for message-only errors"
    )
    message: str = Field(description="Cleaned error message, possibly multi-line")
    code_snippet: str = Field(default="", description="Source lines around the error")
    full_content: Optional[str] = Field(
        default=None, description="Full content of the referenced file"
    )

    @property
    def first_message_line(self) -> str:
        """First line of the message, used for deduplication."""
        return self.message.split("\n", 1)[0].strip()


class BuildLog(BaseModel):
    """Captured output of one or more build tool invocations."""

    text: str = Field(default="", description="Combined stdout/stderr of all invocations")
    invoked: bool = Field(default=False, description="Whether the build tool was run at all")
    exit_codes: list[int] = Field(default_factory=list, description="Exit code per invocation")
    log_path: Optional[str] = Field(default=None, description="Scratch file holding the log")


class SyncResult(BaseModel):
    """Result of the configuration-time (sync) check."""

    invoked: bool = Field(default=False, description="Whether the build tool was run")
    errors: list[str] = Field(default_factory=list, description="Configuration failure lines")


class ReportSummary(BaseModel):
    """Summary of one full report generation run."""

    output_dir: str = Field(description="Directory the reports were written to")
    content_files: int = Field(default=0, description="Files dumped into the content report")
    error_records: int = Field(default=0, description="Error blocks written")
    sync_errors: int = Field(default=0, description="Sync error lines written")
    tree_files: int = Field(default=0, description="Paths listed in the tree report")
    reports: dict[str, str] = Field(
        default_factory=dict, description="Report name to report file path"
    )


class PatternConfig(BaseModel):
    """Curated pattern lists used to scrape build logs.

    All entries are regular expressions matched case-insensitively unless
    noted otherwise. They are tuned against Gradle/Kotlin output and are
    expected to change, so they live in configuration.
    """

    failure_indicators: list[str] = Field(
        default_factory=lambda: [
            r"FAILURE:",
            r"(^|\s)e: ",
            r"(^|\s)error:",
            r"Could not ",
            r"Redeclaration",
            r"Unresolved reference",
            r"Conflicting overloads",
        ],
        description="Any match means the log contains a failure",
    )
    reference_extensions: list[str] = Field(
        default_factory=lambda: ["kts", "kt", "java", "xml", "gradle", "pro"],
        description="Extensions recognized in path:line references",
    )
    block_extensions: list[str] = Field(
        default_factory=lambda: ["kts", "kt", "java", "xml"],
        description="Extensions recognized inside compiler diagnostic blocks",
    )
    diagnostic_header: str = Field(
        default="e: ", description="Literal prefix starting a compiler diagnostic block"
    )
    task_header: str = Field(
        default="> Task ", description="Literal prefix starting a Gradle task segment"
    )
    task_gate: list[str] = Field(
        default_factory=lambda: [
            r"error:",
            r"FAILURE:",
            r"Could not ",
            r"process.*Manifest",
            r"AndroidManifest\.xml",
        ],
        description="A task segment is inspected only if one of these matches",
    )
    real_error_phrases: list[str] = Field(
        default_factory=lambda: [
            r"error:",
            r"Element type ",
            r"not found",
            r"Could not ",
            r"FAILURE:",
        ],
        description="Lines of a task segment that count as error messages",
    )
    noise_phrases: list[str] = Field(
        default_factory=lambda: [
            r"\.gradle\.",
            r"\.internal\.",
            r"\.xerces\.",
            r"^\s*at\s+\S+\(",
        ],
        description="Framework stack frames excluded from block messages",
    )
    manifest_name: str = Field(
        default="AndroidManifest.xml", description="Manifest file attached to task errors"
    )
    manifest_marker: str = Field(
        default="<action", description="Literal token the manifest snippet is centered on"
    )
    fallback_markers: list[str] = Field(
        default_factory=lambda: [
            r"FAILURE:",
            r"\* What went wrong:",
            r"Caused by:",
            r"Execution failed",
            r"(^|\s)error:",
            r"(^|\s)e: ",
        ],
        description="Lines collected into the generic fallback record",
    )
    sync_prefixes: list[str] = Field(
        default_factory=lambda: [
            r"FAILURE:",
            r"\* What went wrong:",
            r"Caused by:",
            r"Plugin [^ ]+ not found",
            r"Could not resolve",
            r"Version .* not found",
            r"Dependency .* not found",
            r"Invalid plugin",
            r"Problem occurred",
            r"error:",
        ],
        description="Line prefixes reported by the sync check",
    )
    snippet_radius: int = Field(default=20, description="Lines shown before and after an error")
    head_lines: int = Field(
        default=120, description="Lines shown when an error has no usable line number"
    )
    context_lines: int = Field(
        default=2, description="Log lines appended to a message as extra context"
    )
    fallback_max_lines: int = Field(
        default=80, description="Maximum log lines in the fallback record"
    )

    @field_validator("reference_extensions", "block_extensions", mode="before")
    @classmethod
    def strip_dots(cls, v: list[str]) -> list[str]:
        """Accept extensions written with or without a leading dot."""
        return [ext.lstrip(".") for ext in v]

    @field_validator(
        "failure_indicators",
        "task_gate",
        "real_error_phrases",
        "noise_phrases",
        "fallback_markers",
        "sync_prefixes",
    )
    @classmethod
    def check_expressions(cls, v: list[str]) -> list[str]:
        """Reject entries that are not valid regular expressions."""
        for expression in v:
            try:
                re.compile(expression)
            except re.error as e:
                raise ValueError(f"Invalid regular expression {expression!r}: {e}")
        return v


class BuildConfig(BaseModel):
    """Build tool invocation settings."""

    entry_point: str = Field(default="gradlew", description="Build tool entry point in the root")
    invocations: list[list[str]] = Field(
        default_factory=lambda: [
            ["-q", ":app:compileDebugKotlin", "--stacktrace", "--warning-mode=all"],
            ["-q", ":app:kspDebugKotlin", "--stacktrace", "--warning-mode=all"],
            ["build", "--stacktrace", "--warning-mode=all"],
        ],
        description="Argument lists, run in order, output appended to one log",
    )
    sync_arguments: list[str] = Field(
        default_factory=lambda: ["--stacktrace", "--warning-mode=all", "tasks"],
        description="Arguments of the lighter task-listing invocation",
    )
    timeout_seconds: Optional[float] = Field(
        default=None, description="Per-invocation timeout, None waits indefinitely"
    )


class SourceConfig(BaseModel):
    """Where project sources are looked up."""

    root_patterns: list[str] = Field(
        default_factory=lambda: [
            "*/src/main/java",
            "*/src/main/kotlin",
            "*/src/*/java",
            "*/src/*/kotlin",
        ],
        description="fnmatch patterns (against ./-prefixed paths) for source roots",
    )
    extensions: list[str] = Field(
        default_factory=lambda: ["kt", "java", "xml"],
        description="Extensions of package source files",
    )
    default_package_prefix: str = Field(
        default="com/example",
        description="Package prefix used when no applicationId is declared",
    )
    skip_dirs: list[str] = Field(
        default_factory=lambda: [".git", ".gradle", ".idea", "node_modules"],
        description="Directory names never descended into",
    )
    app_dir: str = Field(default="app", description="Application module dumped in full")
    app_excludes: list[str] = Field(
        default_factory=lambda: [
            "build/",
            ".gradle/",
            ".idea/",
            ".git/",
            "*.png", "*.jpg", "*.jpeg", "*.webp", "*.gif", "*.ico", "*.svg",
            "*.jar", "*.aar", "*.aab", "*.apk", "*.so", "*.bin", "*.zip", "*.pdf",
            "*.ttf", "*.otf", "*.woff", "*.woff2",
            "*.db", "*.sqlite", "*.sqlite3", "*.room", "*.realm", "*.wal", "*.shm",
        ],
        description="gitignore-style patterns excluded from the app module dump",
    )
    manifests: list[str] = Field(
        default_factory=lambda: ["app/src/main/AndroidManifest.xml", "AndroidManifest.xml"],
        description="Manifest files always added to the content report",
    )
    build_files: list[str] = Field(
        default_factory=lambda: [
            "app/build.gradle.kts",
            "app/build.gradle",
            "build.gradle.kts",
            "build.gradle",
            "settings.gradle.kts",
            "settings.gradle",
            "gradle/libs.versions.toml",
            "gradle.properties",
        ],
        description="Key build files added to the end of the content report",
    )

    @field_validator("extensions", mode="before")
    @classmethod
    def strip_dots(cls, v: list[str]) -> list[str]:
        """Accept extensions written with or without a leading dot."""
        return [ext.lstrip(".") for ext in v]


class OutputConfig(BaseModel):
    """Report output settings."""

    directory: str = Field(default="ai-pack", description="Output directory, relative to the root")
    absolute_tree_paths: bool = Field(
        default=True, description="List absolute paths in the tree report"
    )


class AiPackConfig(BaseModel):
    """Complete configuration."""

    patterns: PatternConfig = Field(default_factory=PatternConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)
    sources: SourceConfig = Field(default_factory=SourceConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
