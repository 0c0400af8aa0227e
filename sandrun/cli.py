"""
Command line front end for sandrun.

Runs a Python file (or stdin) through the confined executor and renders the
result with Rich.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from .core.config import ConfigManager
from .core.exceptions import ConfigurationError
from .core.logging import setup_logging
from .execution import ExecutionResponse, PythonExecutor

COLORS = {
    "success": "#9ECE6A",
    "error": "#F7768E",
    "muted": "#565F89",
    "border": "#3B4261",
}


def _read_code(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _build_arguments(args: argparse.Namespace, code: str) -> dict:
    arguments: dict = {
        "code": code,
        "workspace": args.workspace,
        "return_format": "detailed" if args.detailed else "simple",
        "force_reinstall": args.force_reinstall,
    }
    if args.timeout_ms is not None:
        arguments["timeout_ms"] = args.timeout_ms
    if args.install:
        arguments["install_packages"] = list(args.install)
    if args.target_directory:
        arguments["target_directory"] = args.target_directory
    return arguments


def render_response(console: Console, response: ExecutionResponse) -> None:
    """Print the response text verbatim, with trailers in a muted panel."""
    style = COLORS["success"] if response.success else COLORS["error"]
    console.print(Text(response.text), style=None if response.success else style, highlight=False)
    for block in response.blocks:
        console.print(
            Panel(
                Text(block, style=COLORS["muted"]),
                border_style=COLORS["border"],
                title=Text("sandrun", style=style),
                title_align="left",
            )
        )


async def run_command(args: argparse.Namespace, console: Console) -> int:
    try:
        code = _read_code(args.file)
    except OSError as e:
        console.print(f"[{COLORS['error']}]Cannot read {args.file}: {e}[/]")
        return 2

    config_path = Path(args.config) if args.config else None
    try:
        config = ConfigManager(config_path=config_path).config
    except ConfigurationError as e:
        console.print(f"[{COLORS['error']}]{e}[/]")
        return 2

    setup_logging(args.log_level or config.log_level)
    executor = PythonExecutor(config)
    response = await executor.execute(_build_arguments(args, code))
    render_response(console, response)
    return 0 if response.success else 1


def _timeout_arg(value: str) -> int | str:
    if value == "auto":
        return value
    try:
        return int(value)
    except ValueError:
        raise argparse.ArgumentTypeError("must be an integer or 'auto'")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sandrun",
        description="sandrun: run Python code with confined file access",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run a script in a throwaway directory
  sandrun run script.py

  # Pipe code in and keep files between runs
  echo 'open("notes.txt", "a").write("hi\\n")' | sandrun run - --workspace persistent

  # Install a dependency first and show execution details
  sandrun run analysis.py --install pandas --detailed
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Execute a Python file or stdin")
    run.add_argument("file", nargs="?", default="-", help="Python file to run, or '-' for stdin")
    run.add_argument(
        "--workspace",
        "-w",
        default="temp",
        help="'temp' (default), 'persistent', or a directory path",
    )
    run.add_argument(
        "--timeout-ms",
        "-t",
        type=_timeout_arg,
        help="Timeout in milliseconds (1000-300000) or 'auto'",
    )
    run.add_argument(
        "--install",
        "-i",
        action="append",
        metavar="PKG",
        help="Package specifier to install first (repeatable)",
    )
    run.add_argument("--target-directory", "-d", help="Existing directory to run in")
    run.add_argument("--detailed", action="store_true", help="Show execution details")
    run.add_argument(
        "--force-reinstall",
        action="store_true",
        help="Bypass the package cache",
    )
    run.add_argument("--config", "-c", help="Path to sandrun_config.yaml")
    run.add_argument("--log-level", help="Logging level (default: from config)")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    console = Console()

    if args.command == "run":
        return asyncio.run(run_command(args, console))
    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
