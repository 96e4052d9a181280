"""X11 display connection session with liveness tracking"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from typing import Any, Callable, Optional, TypeVar

from Xlib import display as xdisplay
from Xlib import error as xerror
from Xlib.display import Display

from x11mcp.common.errors import (
    DisplayUnavailable,
    InjectionUnsupported,
    NoScreensFound,
    RoundTripTimeout,
    SessionClosed,
)
from x11mcp.common.types import ScreenInfo

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DisplaySession:
    """Owns the live X11 connection, the root window and screen geometry

    Every request against the display goes through request_run(), which
    executes it on a single worker thread with a deadline. The worker
    serializes the dispatch path and the liveness monitor on one handle.
    """

    def __init__(
        self,
        display_name: Optional[str] = None,
        round_trip_timeout: float = 5.0,
        liveness_interval: float = 5.0,
    ) -> None:
        """
        Initialize display session

        Args:
            display_name: X11 display name (e.g., ':99'), None for $DISPLAY
            round_trip_timeout: Deadline for each display request (seconds)
            liveness_interval: Seconds between liveness probes, 0 disables them
        """
        self._display: Optional[Display] = None
        self._display_name: Optional[str] = display_name
        self._round_trip_timeout: float = round_trip_timeout
        self._liveness_interval: float = liveness_interval
        self._root: Any = None
        self._width: int = 0
        self._height: int = 0
        self._alive: bool = False
        self._generation: int = 0
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None
        self._monitor: Optional[threading.Thread] = None
        self._monitor_stop: threading.Event = threading.Event()

        self.owns_display_server: bool = False
        self.relay_available: bool = False

    @property
    def display_name(self) -> Optional[str]:
        """Display this session is bound to"""
        return self._display_name

    @property
    def generation(self) -> int:
        """Incremented on every successful open; keyed caches compare against it"""
        return self._generation

    @property
    def is_alive(self) -> bool:
        """Liveness flag (False after close or a failed probe)"""
        return self._alive

    def open(self) -> "DisplaySession":
        """
        Connect to the display and validate it for input injection

        Returns:
            This session

        Raises:
            DisplayUnavailable: If the connection cannot be opened
            NoScreensFound: If the display reports no screens
            InjectionUnsupported: If the XTEST extension is missing
        """
        if self._display is not None:
            return self

        try:
            display = xdisplay.Display(self._display_name)
        except (xerror.DisplayError, xerror.ConnectionClosedError, OSError) as e:
            raise DisplayUnavailable(f"Failed to connect to X11 display {self._display_name}: {e}") from e

        if not display.display.info.roots:
            display.close()
            raise NoScreensFound(f"No screens found on display {self._display_name}")

        if display.query_extension("XTEST") is None:
            display.close()
            raise InjectionUnsupported(f"XTEST extension not present on display {self._display_name}")

        screen = display.screen(0)
        self._display = display
        self._root = screen.root
        self._width = screen.width_in_pixels
        self._height = screen.height_in_pixels
        if self._display_name is None:
            self._display_name = display.get_display_name()
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="x11-request"
        )
        self._generation += 1
        self._monitor_stop.clear()
        self._alive = True

        logger.info(
            f"Connected to {self._display_name}: {self._width}x{self._height}, "
            f"root 0x{self._root.id:x}"
        )
        return self

    def close(self) -> None:
        """Release the connection; safe to call any number of times"""
        self._alive = False
        self._monitor_stop.set()

        executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False)

        display, self._display = self._display, None
        if display is not None:
            try:
                display.close()
            except (xerror.ConnectionClosedError, OSError) as e:
                logger.debug(f"Display close after connection loss: {e}")
            logger.info(f"Closed connection to {self._display_name}")

    def liveness_check(self) -> None:
        """
        Fail fast if the session can no longer be used

        Raises:
            SessionClosed: If closed or the liveness monitor saw a failure
        """
        if not self._alive or self._display is None:
            raise SessionClosed("X11 connection lost or closed")

    def request_run(self, operation: Callable[[Display], T]) -> T:
        """
        Run a display request with a deadline

        Args:
            operation: Callable receiving the Display

        Returns:
            Whatever the operation returns

        Raises:
            SessionClosed: If the session is closed or the connection broke
            RoundTripTimeout: If the request did not finish in time
        """
        self.liveness_check()
        executor = self._executor
        if executor is None:
            raise SessionClosed("X11 connection lost or closed")

        try:
            future = executor.submit(operation, self._display)
        except RuntimeError as e:
            # Executor shut down by a concurrent close()
            raise SessionClosed("X11 connection lost or closed") from e

        try:
            return future.result(timeout=self._round_trip_timeout)
        except concurrent.futures.TimeoutError as e:
            raise RoundTripTimeout(
                f"X11 request did not complete within {self._round_trip_timeout:.1f}s"
            ) from e
        except xerror.ConnectionClosedError as e:
            self._alive = False
            raise SessionClosed(f"X11 connection lost: {e}") from e

    def root_get(self) -> Any:
        """
        Get the root window of the canonical screen

        Raises:
            SessionClosed: If the session is not usable
        """
        self.liveness_check()
        return self._root

    def screenInfo_get(self) -> ScreenInfo:
        """
        Get screen dimensions and root window id

        Returns:
            Screen info captured at open

        Raises:
            SessionClosed: If the session is not usable
        """
        self.liveness_check()
        return ScreenInfo(width=self._width, height=self._height, root=self._root.id)

    def health_check(self) -> bool:
        """
        Probe the connection with a pointer query

        Returns:
            True if the server answered
        """
        if not self._alive:
            return False
        try:
            self.request_run(lambda d: self._root.query_pointer())
        except Exception as e:
            logger.warning(f"X11 health check failed: {e}")
            self._alive = False
            return False
        return True

    def liveness_start(self) -> None:
        """Start the background liveness monitor (no-op if disabled or running)"""
        if self._liveness_interval <= 0:
            return
        if self._monitor is not None and self._monitor.is_alive():
            return
        self._monitor = threading.Thread(
            target=self._liveness_loop, name="x11-liveness", daemon=True
        )
        self._monitor.start()

    def _liveness_loop(self) -> None:
        """Probe the connection every interval until closed or a probe fails"""
        while not self._monitor_stop.wait(self._liveness_interval):
            if not self._alive:
                return
            if not self.health_check():
                logger.error("X11 connection lost, marking session closed")
                return

    def __enter__(self) -> "DisplaySession":
        """Context manager entry"""
        return self.open()

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Context manager exit"""
        self.close()
