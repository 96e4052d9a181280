"""i3 window-manager IPC relay"""

from __future__ import annotations

import json
import logging
from typing import Optional

import i3ipc

from x11mcp.common.errors import FormatError, RelayUnavailable

logger = logging.getLogger(__name__)


class WindowManagerRelay:
    """Forwards tree queries and commands to i3 and relays the results"""

    def __init__(self) -> None:
        """Initialize an unconnected relay"""
        self._connection: Optional[i3ipc.Connection] = None

    @property
    def is_available(self) -> bool:
        """True once relay_connect() reached a running i3"""
        return self._connection is not None

    def relay_connect(self, socket_path: Optional[str] = None) -> bool:
        """
        Connect to i3's IPC socket

        A window manager without IPC (or none at all) is not an error: the
        relay simply stays unavailable.

        Args:
            socket_path: Explicit socket path, None to let i3ipc discover it

        Returns:
            True if connected
        """
        try:
            connection = i3ipc.Connection(socket_path=socket_path)
            version = connection.get_version()
        except Exception as e:
            # i3ipc raises a bare Exception when no socket path can be found
            logger.info(f"Window-manager relay unavailable: {e}")
            self._connection = None
            return False

        self._connection = connection
        logger.info(f"Window-manager relay connected: i3 {version.human_readable}")
        return True

    def relay_close(self) -> None:
        """Drop the IPC connection"""
        self._connection = None

    def _connection_get(self) -> i3ipc.Connection:
        """
        Raises:
            RelayUnavailable: If no connection was established
        """
        if self._connection is None:
            raise RelayUnavailable("i3 is not connected")
        return self._connection

    def tree_get(self) -> str:
        """
        Get the i3 layout tree

        Returns:
            Tree as indented JSON
        """
        tree = self._connection_get().get_tree()
        return json.dumps(tree.ipc_data, indent=2)

    def command_run(self, command: str) -> str:
        """
        Run an i3 command (possibly several, separated by ';' or ',')

        Args:
            command: i3 command string

        Returns:
            "Success", "Error: <message>" or "Failed" per sub-command, joined by "; "

        Raises:
            RelayUnavailable: If no connection was established
            FormatError: If the command is empty
        """
        connection = self._connection_get()
        if not command.strip():
            raise FormatError("Command cannot be empty")

        results: list[str] = []
        for reply in connection.command(command):
            if reply.success:
                results.append("Success")
            elif getattr(reply, "error", None):
                results.append(f"Error: {reply.error}")
            else:
                results.append("Failed")
        return "; ".join(results)
