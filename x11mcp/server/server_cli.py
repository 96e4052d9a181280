"""
Server CLI argument parser construction.

Every option here overrides the matching config-file value; options left
unset fall through to the config file and then to built-in defaults.
"""

from __future__ import annotations

import argparse

from x11mcp import __version__

__all__ = [
    "arguments_parse",
    "parser_create",
    "displayArgs_populate",
    "desktopArgs_populate",
    "identityArgs_populate",
]


def arguments_parse(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse server command-line arguments.

    Args:
        argv: Argument list (default: sys.argv[1:]).

    Returns:
        Parsed argparse namespace for server startup.
    """
    parser: argparse.ArgumentParser = parser_create()
    return parser.parse_args(argv)


def parser_create() -> argparse.ArgumentParser:
    """
    Create fully populated server argument parser.

    Returns:
        Configured argument parser.
    """
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="x11mcp - control an X11 desktop over the Model Context Protocol (stdio)"
    )
    parser.add_argument("--version", action="version", version=f"x11mcp {__version__}")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config file (default: search standard locations)",
    )
    displayArgs_populate(parser)
    desktopArgs_populate(parser)
    identityArgs_populate(parser)
    return parser


def displayArgs_populate(parser: argparse.ArgumentParser) -> None:
    """
    Populate display selection arguments.

    Args:
        parser: Target argument parser.
    """
    parser.add_argument(
        "--display",
        type=str,
        default=None,
        help="X11 display to use, e.g. :1 (overrides config and $DISPLAY)",
    )
    parser.add_argument(
        "--xvfb",
        dest="force_xvfb",
        action="store_true",
        default=None,
        help="Always start a private Xvfb display, even if one is available",
    )
    parser.add_argument(
        "--no-xvfb",
        dest="force_xvfb",
        action="store_false",
        help="Use an existing display only when it is reachable",
    )
    parser.add_argument(
        "--resolution",
        type=str,
        default=None,
        help="Xvfb resolution as WIDTHxHEIGHT (default: 1024x768)",
    )


def desktopArgs_populate(parser: argparse.ArgumentParser) -> None:
    """
    Populate window manager and companion program arguments.

    Args:
        parser: Target argument parser.
    """
    parser.add_argument(
        "--wm",
        type=str,
        default=None,
        help="Window manager command to start, e.g. i3 (empty string disables)",
    )
    parser.add_argument(
        "--program",
        type=str,
        default=None,
        help="Program to start after the window manager, e.g. xterm",
    )


def identityArgs_populate(parser: argparse.ArgumentParser) -> None:
    """
    Populate identity and logging arguments.

    Args:
        parser: Target argument parser.
    """
    parser.add_argument(
        "--name",
        type=str,
        default=None,
        help="MCP server name announced to clients (default: from config)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config)",
    )
