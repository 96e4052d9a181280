"""x11mcp server main entry point"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from typing import NoReturn

from x11mcp import __version__
from x11mcp.common.errors import StartupError
from x11mcp.common.settings import settings
from x11mcp.server.bootstrap import configWithSettings_load, loggingWithConfig_setup
from x11mcp.server.controller import DesktopController
from x11mcp.server.server_cli import arguments_parse
from x11mcp.server.server_logging import logging_setup
from x11mcp.server.tools import server_create

logger = logging.getLogger(__name__)


def signalHandlers_install(controller: DesktopController) -> None:
    """
    Tear the desktop down on SIGINT/SIGTERM, then exit cleanly

    Args:
        controller: Controller to shut down
    """

    def _handler(signum, frame) -> None:
        logger.info(f"Received signal {signal.Signals(signum).name}, shutting down")
        controller.shutdown()
        raise SystemExit(0)

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def server_run(args: argparse.Namespace) -> None:
    """
    Run the MCP server over stdio until the client disconnects

    Args:
        args: Parsed command line arguments

    Raises:
        StartupError: If the desktop session cannot be brought up
    """
    configWithSettings_load(args)
    config = settings.config
    loggingWithConfig_setup(config, logging_setup)
    logger.info(f"x11mcp {__version__} starting ({config.server.name})")

    controller = DesktopController()
    signalHandlers_install(controller)
    try:
        session = controller.startup()
        logger.info(
            f"Desktop ready on {session.display_name} "
            f"(owns display server: {session.owns_display_server}, "
            f"window-manager relay: {session.relay_available})"
        )
        mcp = server_create(controller, config.server.name)
        mcp.run()
    finally:
        controller.shutdown()


def main() -> NoReturn:
    """Main entry point"""
    args = arguments_parse()

    try:
        server_run(args)
    except KeyboardInterrupt:
        sys.exit(0)
    except StartupError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
