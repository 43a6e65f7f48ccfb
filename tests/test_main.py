"""Tests for the command-line and MCP tool entry points."""

import asyncio
import json
import tempfile
from pathlib import Path

import pytest

from main import call_tool, generate_reports, handle_extract_errors, list_tools, parse_args
from conftest import make_project, numbered_lines


class TestParseArgs:
    """Tests for parse_args function."""

    def test_defaults(self):
        """Without arguments reports are generated for the current directory."""
        args = parse_args([])
        assert args.root is None
        assert args.mcp is False
        assert args.transport == "stdio"

    def test_mcp_http(self):
        """The MCP transport and port can be selected."""
        args = parse_args(["--mcp", "--transport", "streamable-http", "--port", "9000"])
        assert args.mcp is True
        assert args.transport == "streamable-http"
        assert args.port == 9000


class TestTools:
    """Tests for the MCP tool handlers."""

    def test_list_tools(self):
        """Both tools are advertised."""
        tools = asyncio.run(list_tools())
        assert [t.name for t in tools] == ["generate_ai_pack", "extract_build_errors"]

    def test_extract_errors_from_log(self):
        """Records are returned as JSON."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = make_project(Path(tmpdir).resolve(), {
                "app/src/main/kotlin/Foo.kt": numbered_lines(100),
                "build.log": "app/src/main/kotlin/Foo.kt:42: error: unresolved reference: bar\n",
            })
            result = asyncio.run(handle_extract_errors({
                "project_root": str(root),
                "build_log_path": str(root / "build.log"),
            }))

        records = json.loads(result)
        assert len(records) == 1
        assert records[0]["location"] == {"path": "app/src/main/kotlin/Foo.kt", "line": 42}
        assert records[0]["message"] == "unresolved reference: bar"

    def test_extract_errors_log_with_nul_byte(self):
        """A stray NUL byte in the log does not hide its errors."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = make_project(Path(tmpdir).resolve(), {"app/src/main/kotlin/Foo.kt": numbered_lines(100)})
            (root / "build.log").write_bytes(
                b"> Task :app:compileDebugKotlin\x00\n"
                b"app/src/main/kotlin/Foo.kt:42: error: unresolved reference: bar\n"
            )
            result = asyncio.run(handle_extract_errors({
                "project_root": str(root),
                "build_log_path": str(root / "build.log"),
            }))

        records = json.loads(result)
        assert len(records) == 1
        assert records[0]["message"] == "unresolved reference: bar"

    def test_extract_errors_missing_log(self):
        """A missing log file is an error."""
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(FileNotFoundError):
                asyncio.run(handle_extract_errors({
                    "project_root": tmpdir,
                    "build_log_path": str(Path(tmpdir) / "missing.log"),
                }))

    def test_unknown_tool(self):
        """Unknown tools produce an error message instead of raising."""
        result = asyncio.run(call_tool("no_such_tool", {}))
        assert result[0].text == "Error executing no_such_tool: Unknown tool: no_such_tool"

    def test_generate_tool(self):
        """The generate tool returns the report summary."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = make_project(Path(tmpdir).resolve(), {"lib/src/main/A.kt": "x\n"})
            result = asyncio.run(call_tool("generate_ai_pack", {
                "project_root": str(root),
                "absolute_tree_paths": False,
            }))
            summary = json.loads(result[0].text)
            tree = (root / "ai-pack" / "R-Root.txt").read_text(encoding="utf-8")

        assert summary["tree_files"] == 1
        assert summary["error_records"] == 0
        assert tree == "lib/src/main/A.kt\n"


class TestGenerateReports:
    """Tests for generate_reports function."""

    def test_prints_outputs(self, capsys):
        """The run ends with the output location and report names."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir).resolve()
            assert generate_reports(root) == 0

        out = capsys.readouterr().out
        assert out.startswith("Done. Outputs in: ")
        assert "R-Content.txt\nR-Error.txt\nR-Root.txt\nR-Sync.txt\n" in out
