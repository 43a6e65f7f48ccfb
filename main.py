#!/usr/bin/env python3
"""AI pack report generator - Main entry point."""

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from mcp.types import Tool, TextContent
from rich.console import Console
from rich.logging import RichHandler
from starlette.applications import Starlette

from aipack.config import load_config
from aipack.error_extractor import ErrorExtractor
from aipack.pipeline import ReportGenerator

logger = logging.getLogger(__name__)


# Create MCP server instance
app = Server("aipack-report-server")


# Tool definitions
GENERATE_TOOL = Tool(
    name="generate_ai_pack",
    description=(
        "Generate the AI debugging pack for an Android/Gradle project: dumps sources and "
        "build files, runs the Gradle wrapper, extracts build errors with code context, "
        "checks for sync (configuration) failures and lists the package source tree. "
        "Returns a JSON summary with the report file paths."
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "project_root": {
                "type": "string",
                "description": "Absolute path to the project root (directory containing gradlew)",
            },
            "absolute_tree_paths": {
                "type": "boolean",
                "description": "List absolute paths in the tree report (default from config / ABS_ROOT)",
                "default": None,
            },
        },
        "required": ["project_root"],
    },
)

EXTRACT_ERRORS_TOOL = Tool(
    name="extract_build_errors",
    description=(
        "Extract structured build errors from an existing Gradle build log without running "
        "a build. Only files that exist inside the project root are reported. Returns a "
        "JSON list of error records with message, code snippet and full file content."
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "project_root": {
                "type": "string",
                "description": "Absolute path to the project root",
            },
            "build_log_path": {
                "type": "string",
                "description": "Absolute path to the captured build log",
            },
        },
        "required": ["project_root", "build_log_path"],
    },
)


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [GENERATE_TOOL, EXTRACT_ERRORS_TOOL]


@app.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool invocations."""
    try:
        if name == "generate_ai_pack":
            result = await handle_generate(arguments)
            return [TextContent(type="text", text=result)]

        elif name == "extract_build_errors":
            result = await handle_extract_errors(arguments)
            return [TextContent(type="text", text=result)]

        else:
            raise ValueError(f"Unknown tool: {name}")

    except Exception as e:
        error_msg = f"Error executing {name}: {str(e)}"
        return [TextContent(type="text", text=error_msg)]


async def handle_generate(arguments: dict) -> str:
    """Handle generate_ai_pack tool invocation.

    Args:
        arguments: Tool arguments

    Returns:
        JSON string with the report summary
    """
    project_root = Path(arguments["project_root"])
    if not project_root.is_dir():
        raise FileNotFoundError(f"Project root not found: {project_root}")

    config = load_config(project_root)
    absolute = arguments.get("absolute_tree_paths")
    if absolute is not None:
        config.output.absolute_tree_paths = bool(absolute)

    # Gradle runs block; keep the event loop responsive
    summary = await asyncio.to_thread(ReportGenerator(project_root, config).generate)
    return json.dumps(summary.model_dump(), indent=2)


async def handle_extract_errors(arguments: dict) -> str:
    """Handle extract_build_errors tool invocation.

    Args:
        arguments: Tool arguments

    Returns:
        JSON string with the extracted error records
    """
    project_root = Path(arguments["project_root"]).resolve()
    build_log_path = Path(arguments["build_log_path"])
    if not build_log_path.is_file():
        raise FileNotFoundError(f"Build log not found: {build_log_path}")

    config = load_config(project_root)
    extractor = ErrorExtractor(project_root, config.patterns, config.sources.skip_dirs)
    records = extractor.extract(build_log_path.read_text(encoding="utf-8", errors="replace"))
    return json.dumps([r.model_dump() for r in records], indent=2)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Generate AI debugging reports for an Android/Gradle project"
    )
    parser.add_argument(
        "--root",
        default=None,
        help="Project root (default: current directory)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Config file (default: $AIPACK_CONFIG, then aipack.toml in the project root)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--mcp",
        action="store_true",
        help="Run as an MCP server instead of generating reports once",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "streamable-http"],
        default="stdio",
        help="MCP transport type (default: stdio)",
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0, only used with streamable-http)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port to listen on (default: 8080, only used with streamable-http)",
    )
    return parser.parse_args(argv)


def configure_logging(level: int = logging.INFO) -> None:
    """Configure application logging with a Rich handler on stderr.

    Args:
        level: Logging severity threshold.
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
    )


def generate_reports(project_root: Path, config_path: Optional[Path] = None) -> int:
    """Generate all reports once and print where they went.

    Args:
        project_root: Project root directory
        config_path: Explicit config file, if any

    Returns:
        Process exit code (always 0; failures are report content)
    """
    try:
        config = load_config(project_root, config_path)
        summary = ReportGenerator(project_root, config).generate()
    except Exception:
        logger.exception("Report generation failed")
        return 0

    output_dir = Path(summary.output_dir)
    print(f"Done. Outputs in: {os.path.relpath(output_dir, Path.cwd())}/")
    with contextlib.suppress(OSError):
        for entry in sorted(p.name for p in output_dir.iterdir() if not p.name.startswith(".")):
            print(entry)
    return 0


async def run_streamable_http(host: str, port: int) -> None:
    """Run the MCP server with Streamable HTTP transport."""
    import uvicorn

    session_manager = StreamableHTTPSessionManager(app=app)

    @contextlib.asynccontextmanager
    async def lifespan(starlette_app: Starlette) -> AsyncIterator[None]:
        async with session_manager.run():
            yield

    # Starlette handles lifespan only; /mcp is routed at the ASGI level
    # because handle_request writes directly to the send callable.
    starlette_app = Starlette(lifespan=lifespan)

    async def asgi_app(scope, receive, send):
        if scope["type"] == "http" and scope["path"] == "/mcp":
            await session_manager.handle_request(scope, receive, send)
        else:
            await starlette_app(scope, receive, send)

    config = uvicorn.Config(
        asgi_app,
        host=host,
        port=port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()


async def serve(args: argparse.Namespace) -> None:
    """Run the MCP server on the selected transport."""
    if args.transport == "streamable-http":
        await run_streamable_http(args.host, args.port)
    else:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(read_stream, write_stream, app.create_initialization_options())


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    if args.mcp:
        asyncio.run(serve(args))
        return 0

    project_root = Path(args.root) if args.root else Path.cwd()
    config_path = Path(args.config) if args.config else None
    return generate_reports(project_root, config_path)


if __name__ == "__main__":
    sys.exit(main())
