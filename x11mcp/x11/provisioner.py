"""Virtual display discovery and Xvfb provisioning"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Iterator, Optional

from Xlib import display as xdisplay
from Xlib import error as xerror

from x11mcp.common.errors import DisplayUnavailable, FormatError, ProvisioningFailed
from x11mcp.common.settings import settings
from x11mcp.x11.supervisor import ManagedProcess

logger = logging.getLogger(__name__)


@dataclass
class DisplayLease:
    """Display chosen for a session and who owns its server"""
    display_name: str
    owns_display_server: bool
    process: Optional[ManagedProcess] = None


def resolution_parse(resolution: str) -> tuple[int, int]:
    """
    Parse a WIDTHxHEIGHT resolution string

    Args:
        resolution: e.g. "1024x768"

    Returns:
        (width, height)

    Raises:
        FormatError: If the string is not two positive integers joined by 'x'
    """
    parts = resolution.lower().split("x")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise FormatError(f"Invalid resolution format: {resolution!r} (expected WIDTHxHEIGHT)")
    width, height = int(parts[0]), int(parts[1])
    if width <= 0 or height <= 0:
        raise FormatError(f"Invalid resolution: {resolution!r}")
    return width, height


def displayNumber_parse(display_name: str) -> Optional[int]:
    """Extract the display number from ':N' or ':N.S', None if not local"""
    if not display_name.startswith(":"):
        return None
    number = display_name[1:].split(".", 1)[0]
    return int(number) if number.isdigit() else None


class DisplayProvisioner:
    """Finds a reachable display or starts Xvfb on a free display number"""

    # Display numbers handed out by any provisioner in this process
    _claimed: ClassVar[set[int]] = set()

    def __init__(
        self,
        xvfb_binary: str = "Xvfb",
        display_min: int = 99,
        display_max: int = 200,
        depth: int = 24,
        ready_timeout: float = 5.0,
        lock_dir: Optional[Path] = None,
        socket_dir: Optional[Path] = None,
    ) -> None:
        """
        Initialize display provisioner

        Args:
            xvfb_binary: Display server executable
            display_min: First candidate display number
            display_max: Last candidate display number (inclusive)
            depth: Color depth passed to Xvfb
            ready_timeout: Seconds to wait for a started server to accept connections
            lock_dir: Directory with .X<n>-lock files
            socket_dir: Directory with X<n> sockets
        """
        self._xvfb_binary: str = xvfb_binary
        self._display_min: int = display_min
        self._display_max: int = display_max
        self._depth: int = depth
        self._ready_timeout: float = ready_timeout
        self._lock_dir: Path = lock_dir or Path(settings.X11_LOCK_DIR)
        self._socket_dir: Path = socket_dir or Path(settings.X11_SOCKET_DIR)

    def display_probe(self, display_name: str) -> bool:
        """
        Check if a display accepts connections

        Args:
            display_name: X11 display name

        Returns:
            True if a connection could be opened and closed
        """
        try:
            probe = xdisplay.Display(display_name)
        except (xerror.DisplayError, xerror.ConnectionClosedError, OSError):
            return False
        probe.close()
        return True

    def displayNumber_isFree(self, number: int) -> bool:
        """
        Check if a display number looks unused

        Args:
            number: Candidate display number

        Returns:
            False if a lock file or socket exists or this process claimed it
        """
        if number in DisplayProvisioner._claimed:
            return False
        if (self._lock_dir / f".X{number}-lock").exists():
            return False
        if (self._socket_dir / f"X{number}").exists():
            return False
        return True

    def candidates_iterate(self, preferred: Optional[int] = None) -> Iterator[int]:
        """
        Yield free display numbers, the preferred one first

        Args:
            preferred: Display number to try before scanning the range
        """
        if preferred is not None and self.displayNumber_isFree(preferred):
            yield preferred
        for number in range(self._display_min, self._display_max + 1):
            if number != preferred and self.displayNumber_isFree(number):
                yield number

    def acquire(
        self,
        preferred_display: Optional[str],
        resolution: str,
        force: bool = False,
    ) -> DisplayLease:
        """
        Resolve the display for this session, starting Xvfb when needed

        Args:
            preferred_display: Explicit display name, or None to use $DISPLAY
            resolution: WIDTHxHEIGHT for a started server
            force: Start our own server even if a display is supplied

        Returns:
            Lease naming the display and whether we own its server

        Raises:
            ProvisioningFailed: Xvfb missing or no free display number
            DisplayUnavailable: Supplied display unreachable, or Xvfb never became ready
            FormatError: Malformed resolution
        """
        supplied = preferred_display or os.environ.get("DISPLAY") or None

        if supplied and not force:
            if not self.display_probe(supplied):
                raise DisplayUnavailable(f"Display {supplied} is not reachable")
            logger.info(f"Using existing display {supplied}")
            return DisplayLease(display_name=supplied, owns_display_server=False)

        width, height = resolution_parse(resolution)
        if shutil.which(self._xvfb_binary) is None:
            raise ProvisioningFailed(
                f"No usable display and {self._xvfb_binary} not found on PATH"
            )

        # Only an explicitly requested number is tried first, never $DISPLAY
        preferred_number = displayNumber_parse(preferred_display) if preferred_display else None
        for number in self.candidates_iterate(preferred_number):
            DisplayProvisioner._claimed.add(number)
            display_name = f":{number}"
            managed = self.server_start(display_name, width, height)
            if managed is None:
                continue
            os.environ["DISPLAY"] = display_name
            logger.info(f"Started {self._xvfb_binary} on {display_name} at {width}x{height}x{self._depth}")
            return DisplayLease(display_name=display_name, owns_display_server=True, process=managed)

        raise ProvisioningFailed(
            f"Could not find available display number in "
            f"{self._display_min}..{self._display_max}"
        )

    def server_start(self, display_name: str, width: int, height: int) -> Optional[ManagedProcess]:
        """
        Start Xvfb on a display and wait until it accepts connections

        Args:
            display_name: Display to bind
            width: Screen width
            height: Screen height

        Returns:
            Running server, or None if it exited early (display taken meanwhile)

        Raises:
            DisplayUnavailable: If the server did not become ready in time
        """
        command = [
            self._xvfb_binary,
            display_name,
            "-screen", "0", f"{width}x{height}x{self._depth}",
            "-ac",
            "-noreset",
            "-nolisten", "tcp",
        ]
        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            logger.warning(f"Failed to start {self._xvfb_binary} on {display_name}: {e}")
            return None

        deadline = time.monotonic() + self._ready_timeout
        while time.monotonic() < deadline:
            if process.poll() is not None:
                logger.warning(
                    f"{self._xvfb_binary} on {display_name} exited with {process.returncode}, "
                    f"trying next display"
                )
                return None
            if self.display_probe(display_name):
                return ManagedProcess(name=self._xvfb_binary, process=process, pid=process.pid)
            time.sleep(settings.DISPLAY_POLL_INTERVAL_SEC)

        process.kill()
        process.wait()
        raise DisplayUnavailable(
            f"{self._xvfb_binary} on {display_name} not ready after {self._ready_timeout:.1f}s"
        )
