"""Extraction of structured error records from Gradle build logs."""

import logging
import re
from collections.abc import Hashable
from pathlib import Path
from typing import Optional

from aipack.file_collector import read_head, read_lines_window, read_text_safe
from aipack.models import ErrorLocation, ErrorRecord, PatternConfig
from aipack.path_utils import resolve_project_file, walk_files

logger = logging.getLogger(__name__)

# Strips everything up to and including the last "error:" marker
_ERROR_MARKER = re.compile(r".*[Ee]rror:\s*")

# Characters that cannot be part of a path token in a log line
_PATH_CHARS = r"[^\s:\"'()\[\]<>,;=]"

NumberedLine = tuple[int, str]


class DedupTable:
    """State shared by all extraction passes of one log.

    Holds the composite keys of emitted records and the indices of log lines
    already turned into a record, so a line matching several rules only
    produces a record for the first rule.
    """

    def __init__(self):
        """Initialize an empty table."""
        self._seen: set[Hashable] = set()
        self._consumed: set[int] = set()

    def add(self, key: Hashable) -> bool:
        """Register a record key.

        Args:
            key: Composite record key

        Returns:
            True if the key is new, False if it was already present
        """
        if key in self._seen:
            return False
        self._seen.add(key)
        return True

    def consume(self, *indices: int) -> None:
        """Mark log lines as used by a record."""
        self._consumed.update(indices)

    def is_consumed(self, index: int) -> bool:
        """Whether a log line was already used by an earlier pass."""
        return index in self._consumed

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._seen


class ErrorExtractor:
    """Turns a captured build log into deduplicated error records.

    The extraction only depends on the log text and on which files exist
    under the project root, so it can be exercised against recorded logs.
    """

    def __init__(self, project_root: Path, patterns: Optional[PatternConfig] = None,
                 skip_dirs: Optional[list[str]] = None):
        """Initialize extractor.

        Args:
            project_root: Project root; only files inside it are reported
            patterns: Pattern lists. Defaults to PatternConfig().
            skip_dirs: Directory names ignored when searching for a manifest
        """
        self.project_root = project_root
        self.patterns = patterns or PatternConfig()
        self.skip_dirs = list(skip_dirs or [".git", ".gradle", ".idea"]) + ["build"]

        p = self.patterns
        self._indicators = self._compile_any(p.failure_indicators, re.IGNORECASE | re.MULTILINE)
        self._task_gate = self._compile_any(p.task_gate, re.IGNORECASE)
        self._real_error = self._compile_any(p.real_error_phrases, re.IGNORECASE)
        self._noise = self._compile_any(p.noise_phrases, re.IGNORECASE)
        self._fallback = self._compile_any(p.fallback_markers, re.IGNORECASE)

        # path/to/File.kt:42
        self._reference = re.compile(
            rf"(?P<path>{_PATH_CHARS}+\.(?:{self._alternation(p.reference_extensions)})):(?P<line>\d+)"
        )
        # path/to/File.kt, optionally followed by :42
        self._block_reference = re.compile(
            rf"(?P<path>{_PATH_CHARS}+\.(?:{self._alternation(p.block_extensions)}))(?::(?P<line>\d+))?"
        )
        self._manifest_reference = re.compile(rf"{_PATH_CHARS}*{re.escape(p.manifest_name)}")

    @staticmethod
    def _compile_any(expressions: list[str], flags: int) -> Optional[re.Pattern]:
        """Compile a list of expressions into one alternation, None if empty."""
        if not expressions:
            return None
        return re.compile("|".join(f"(?:{e})" for e in expressions), flags)

    @staticmethod
    def _alternation(extensions: list[str]) -> str:
        # Longest first so "kts" is preferred over "kt"
        return "|".join(re.escape(ext) for ext in sorted(extensions, key=len, reverse=True))

    @staticmethod
    def _matches(pattern: Optional[re.Pattern], text: str) -> bool:
        return pattern is not None and pattern.search(text) is not None

    def has_failure(self, log_text: str) -> bool:
        """Check whether the log contains any failure indicator."""
        return self._matches(self._indicators, log_text)

    def extract(self, log_text: str) -> list[ErrorRecord]:
        """Extract error records from a build log.

        Args:
            log_text: Combined build output

        Returns:
            Records in the order: file:line references, compiler diagnostic
            blocks, task segments, and a single generic record only if none
            of those produced anything. Empty if the log shows no failure.
        """
        if not self.has_failure(log_text):
            return []

        lines = log_text.splitlines()
        dedup = DedupTable()

        records = self._extract_references(lines, dedup)
        records.extend(self._extract_diagnostic_blocks(lines, dedup))
        records.extend(self._extract_task_segments(lines, dedup))

        if not records:
            logger.debug("Failure indicators found but no structured error, using fallback")
            records.append(self._fallback_record(lines))

        logger.info("Extracted %d error record(s)", len(records))
        return records

    # ------------------------------------------------------------------
    # file:line references

    def _extract_references(self, lines: list[str], dedup: DedupTable) -> list[ErrorRecord]:
        references: list[tuple[str, int]] = []
        seen = set()
        for idx, line in enumerate(lines):
            for match in self._reference.finditer(line):
                rel = resolve_project_file(match.group("path"), self.project_root)
                if rel is None:
                    continue
                # Every line citing a project file belongs to this pass
                dedup.consume(idx)
                ref = (rel, int(match.group("line")))
                if ref not in seen:
                    seen.add(ref)
                    references.append(ref)

        records = []
        for rel, line_no in references:
            idx = self._find_reference_line(lines, rel, line_no)
            if idx is None:
                message = ""
            else:
                message, used = self._compose_message(lines, idx, rel, line_no)
                dedup.consume(*used)

            record = ErrorRecord(
                location=ErrorLocation(path=rel, line=line_no),
                message=message,
                code_snippet=read_lines_window(
                    self.project_root / rel, line_no, self.patterns.snippet_radius
                ),
                full_content=read_text_safe(self.project_root / rel),
            )
            if dedup.add((rel, line_no, record.first_message_line)):
                records.append(record)

        return records

    def _find_reference_line(self, lines: list[str], rel: str, line_no: int) -> Optional[int]:
        """Index of the log line that best describes a reference.

        Prefers a line citing ``path:line``, then any line citing the path,
        then an error-prefixed line mentioning the file name.
        """
        name = re.escape(rel)
        candidates = [
            re.compile(rf"(?<![0-9A-Za-z_]){name}:{line_no}(?![0-9A-Za-z])"),
            re.compile(rf"(?<![0-9A-Za-z_]){name}(?![0-9A-Za-z])"),
        ]
        for pattern in candidates:
            for idx, line in enumerate(lines):
                if pattern.search(line):
                    return idx

        basename = rel.rsplit("/", 1)[-1]
        header = self.patterns.diagnostic_header
        for idx, line in enumerate(lines):
            if basename in line and (line.lstrip().startswith(header) or "error:" in line.lower()):
                return idx
        return None

    def clean_message(self, line: str, rel: Optional[str] = None,
                      line_no: Optional[int] = None) -> str:
        """Reduce a log line to its error message.

        Strips everything through an ``error:`` marker if present, otherwise
        everything through the ``path:line[:col]:`` prefix, otherwise a
        leading compiler diagnostic header.

        Args:
            line: Raw log line
            rel: Project-relative path cited by the line, if any
            line_no: Line number cited by the line, if any

        Returns:
            The cleaned, whitespace-trimmed message
        """
        match = _ERROR_MARKER.match(line)
        if match:
            return line[match.end():].strip()

        if rel:
            suffix = rf":{line_no}(?::\d+)?" if line_no is not None else r"(?::\d+(?::\d+)?)?"
            location = re.search(rf"{re.escape(rel)}{suffix}:?\s*", line)
            if location:
                return line[location.end():].strip()

        stripped = line.strip()
        header = self.patterns.diagnostic_header.strip()
        if header and stripped.startswith(header):
            stripped = stripped[len(header):].strip()
        return stripped

    def _compose_message(self, lines: list[str], idx: int, rel: Optional[str],
                         line_no: Optional[int]) -> tuple[str, list[int]]:
        """Cleaned message of ``lines[idx]`` plus up to N context lines.

        Returns:
            Tuple of (message, indices of the log lines used)
        """
        parts = [self.clean_message(lines[idx], rel, line_no)]
        used = [idx]
        for offset in range(1, self.patterns.context_lines + 1):
            if idx + offset >= len(lines):
                break
            following = lines[idx + offset]
            if not following.strip() or self._starts_new_entry(following):
                break
            parts.append(following.strip())
            used.append(idx + offset)
        return "\n".join(parts), used

    def _starts_new_entry(self, line: str) -> bool:
        """Whether a log line begins another diagnostic, task or reference."""
        return (
            line.startswith(self.patterns.diagnostic_header)
            or line.startswith(self.patterns.task_header)
            or self._reference.search(line) is not None
        )

    # ------------------------------------------------------------------
    # compiler diagnostic blocks ("e: ...")

    def _split_blocks(self, lines: list[str]) -> list[list[NumberedLine]]:
        """Split lines into blocks that start with the diagnostic header.

        A block ends at the next header, a task header or a blank line. Lines
        outside any block are dropped.
        """
        header = self.patterns.diagnostic_header
        blocks: list[list[NumberedLine]] = []
        current: Optional[list[NumberedLine]] = None
        for idx, line in enumerate(lines):
            if line.startswith(header):
                current = [(idx, line)]
                blocks.append(current)
            elif current is not None:
                if not line.strip() or line.startswith(self.patterns.task_header):
                    current = None
                else:
                    current.append((idx, line))
        return blocks

    def _extract_diagnostic_blocks(self, lines: list[str], dedup: DedupTable) -> list[ErrorRecord]:
        records = []
        for block in self._split_blocks(lines):
            kept = [(i, l) for i, l in block if l.strip() and not self._matches(self._noise, l)]
            if not kept:
                continue
            dedup.consume(*(i for i, _ in block))

            rel = None
            line_no = None
            ref = self._block_reference.search("\n".join(l for _, l in kept))
            if ref:
                rel = resolve_project_file(ref.group("path"), self.project_root)
                if rel is not None and ref.group("line"):
                    line_no = int(ref.group("line"))

            parts = [self.clean_message(kept[0][1], rel, line_no)]
            parts.extend(l.strip() for _, l in kept[1:1 + self.patterns.context_lines])
            message = "\n".join(parts)

            if not dedup.add((rel or "", line_no or 0, parts[0])):
                continue

            if rel is None:
                records.append(ErrorRecord(location=None, message=message))
                continue

            path = self.project_root / rel
            if line_no is not None:
                snippet = read_lines_window(path, line_no, self.patterns.snippet_radius)
            else:
                snippet = read_head(path, self.patterns.head_lines)
            records.append(ErrorRecord(
                location=ErrorLocation(path=rel, line=line_no),
                message=message,
                code_snippet=snippet,
                full_content=read_text_safe(path),
            ))
        return records

    # ------------------------------------------------------------------
    # Gradle task segments ("> Task ...")

    def _split_segments(self, lines: list[str]) -> list[tuple[str, list[NumberedLine]]]:
        """Split lines into (title, body) segments at each task header.

        Output before the first header (e.g. of quiet invocations) forms a
        segment with an empty title.
        """
        header = self.patterns.task_header
        segments: list[tuple[str, list[NumberedLine]]] = [("", [])]
        for idx, line in enumerate(lines):
            if line.startswith(header):
                segments.append((line.strip(), []))
            else:
                segments[-1][1].append((idx, line))
        return [(title, body) for title, body in segments if title or body]

    def _extract_task_segments(self, lines: list[str], dedup: DedupTable) -> list[ErrorRecord]:
        records = []
        manifest_rel: Optional[str] = None
        manifest_searched = False

        for title, body in self._split_segments(lines):
            if not any(self._matches(self._task_gate, l) for _, l in body):
                continue

            qualifying = [
                l.strip() for i, l in body
                if not dedup.is_consumed(i)
                and self._matches(self._real_error, l)
                and not self._matches(self._noise, l)
            ]
            if not qualifying:
                continue

            first = qualifying[0]
            if not dedup.add((title, 0, first)):
                continue

            rel = self._segment_manifest(body)
            if rel is None:
                if not manifest_searched:
                    manifest_rel = self._find_project_manifest()
                    manifest_searched = True
                rel = manifest_rel

            if rel is None:
                records.append(ErrorRecord(location=None, message=first))
                continue

            path = self.project_root / rel
            records.append(ErrorRecord(
                location=ErrorLocation(path=rel),
                message=first,
                code_snippet=self._manifest_snippet(path),
                full_content=read_text_safe(path),
            ))
        return records

    def _segment_manifest(self, body: list[NumberedLine]) -> Optional[str]:
        """Project manifest cited by a segment, if any."""
        for _, line in body:
            for match in self._manifest_reference.finditer(line):
                rel = resolve_project_file(match.group(0), self.project_root)
                if rel is not None:
                    return rel
        return None

    def _find_project_manifest(self) -> Optional[str]:
        """First manifest below the application module, build outputs excluded."""
        app_dir = self.project_root / "app"
        if not app_dir.is_dir():
            return None
        for path in walk_files(app_dir, self.skip_dirs):
            if path.name == self.patterns.manifest_name:
                return path.relative_to(self.project_root).as_posix()
        return None

    def _manifest_snippet(self, path: Path) -> str:
        """Window around the first marker line, or the head of the file."""
        marker = self.patterns.manifest_marker
        for idx, line in enumerate(read_text_safe(path).splitlines(), start=1):
            if marker in line:
                return read_lines_window(path, idx, self.patterns.snippet_radius)
        return read_head(path, self.patterns.head_lines)

    # ------------------------------------------------------------------
    # fallback

    def _fallback_record(self, lines: list[str]) -> ErrorRecord:
        limit = self.patterns.fallback_max_lines
        matched = [l.rstrip() for l in lines if self._matches(self._fallback, l)][:limit]
        if not matched:
            matched = [l.rstrip() for l in lines[:limit]]
        return ErrorRecord(location=None, message="\n".join(matched))


def extract_errors(log_text: str, project_root: Path,
                   patterns: Optional[PatternConfig] = None) -> list[ErrorRecord]:
    """Extract error records from a build log.

    Args:
        log_text: Combined build output
        project_root: Project root directory
        patterns: Pattern lists. Defaults to PatternConfig().

    Returns:
        Ordered, deduplicated error records
    """
    return ErrorExtractor(project_root, patterns).extract(log_text)
