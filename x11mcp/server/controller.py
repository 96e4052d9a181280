"""Desktop session lifecycle: startup ordering, tool operations and teardown"""

from __future__ import annotations

import logging
import shlex
import time
from pathlib import Path
from typing import Optional, Sequence

from x11mcp.common.config import Config
from x11mcp.common.errors import FormatError, ProcessNotFound, SessionClosed
from x11mcp.common.settings import settings
from x11mcp.common.types import ScreenInfo, TypeResult, WindowInfo
from x11mcp.wm.relay import WindowManagerRelay
from x11mcp.x11.capture import ScreenCapture, file_save
from x11mcp.x11.injector import EventInjector
from x11mcp.x11.keymap import KeycodeResolver
from x11mcp.x11.provisioner import DisplayProvisioner
from x11mcp.x11.session import DisplaySession
from x11mcp.x11.supervisor import ProcessSupervisor
from x11mcp.x11.synthesizer import InputSynthesizer
from x11mcp.x11.windows import WindowLister

logger = logging.getLogger(__name__)


class DesktopController:
    """Owns one desktop session and every process started for it

    Startup order: display, window manager, window-manager relay, companion
    program, X11 connection. Teardown runs in reverse and kills tracked
    children most-recent-first, ending with the display server if we own it.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        provisioner: Optional[DisplayProvisioner] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        relay: Optional[WindowManagerRelay] = None,
    ) -> None:
        """
        Initialize desktop controller

        Args:
            config: Loaded configuration (defaults to the initialized settings)
            provisioner: Display provisioner (built from config if omitted)
            supervisor: Process supervisor
            relay: Window-manager relay
        """
        self._config: Config = config or settings.config
        display_config = self._config.display
        self._provisioner: DisplayProvisioner = provisioner or DisplayProvisioner(
            xvfb_binary=display_config.xvfb_binary,
            display_min=display_config.display_min,
            display_max=display_config.display_max,
            depth=display_config.depth,
            ready_timeout=display_config.ready_timeout_seconds,
        )
        self._supervisor: ProcessSupervisor = supervisor or ProcessSupervisor()
        self._relay: WindowManagerRelay = relay or WindowManagerRelay()
        self._session: Optional[DisplaySession] = None
        self._synthesizer: Optional[InputSynthesizer] = None
        self._capture: Optional[ScreenCapture] = None
        self._windows: Optional[WindowLister] = None
        self._shut_down: bool = False

    @property
    def supervisor(self) -> ProcessSupervisor:
        """Process supervisor owning the tracked children"""
        return self._supervisor

    @property
    def relay(self) -> WindowManagerRelay:
        """Window-manager relay"""
        return self._relay

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def startup(self) -> DisplaySession:
        """
        Bring the desktop session up

        Returns:
            The open display session

        Raises:
            StartupError: On any fatal provisioning or connection failure
        """
        try:
            display_config = self._config.display
            lease = self._provisioner.acquire(
                display_config.name,
                display_config.resolution,
                force=display_config.force_xvfb,
            )
            self._supervisor.display_name = lease.display_name
            if lease.process is not None:
                self._supervisor.process_adopt(lease.process)

            self.windowManager_start()
            if self._config.window_manager.relay_enabled:
                self._relay.relay_connect(self._config.window_manager.relay_socket)
            self.companionProgram_start()

            session = DisplaySession(
                display_name=lease.display_name,
                round_trip_timeout=self._config.session.round_trip_timeout_seconds,
                liveness_interval=self._config.session.liveness_interval_seconds,
            )
            self.session_attach(session.open())
            session.owns_display_server = lease.owns_display_server
            session.relay_available = self._relay.is_available
            session.liveness_start()
        except Exception:
            self.shutdown()
            raise

        return session

    def session_attach(self, session: DisplaySession) -> None:
        """
        Wire the input, capture and window components to an open session

        Args:
            session: Open display session
        """
        input_config = self._config.input
        resolver = KeycodeResolver(session)
        self._session = session
        self._synthesizer = InputSynthesizer(
            session,
            resolver,
            EventInjector(session),
            keystroke_delay_ms=input_config.keystroke_delay_ms,
            click_delay_ms=input_config.click_delay_ms,
            settle_delay_ms=input_config.settle_delay_ms,
        )
        self._capture = ScreenCapture(session)
        self._windows = WindowLister(session)

    def windowManager_start(self) -> None:
        """Start the configured window manager; a missing binary only warns"""
        wm_config = self._config.window_manager
        if not wm_config.command:
            return
        self._auxiliary_start(wm_config.command, wm_config.startup_delay_seconds, "window manager")

    def companionProgram_start(self) -> None:
        """Start the configured companion program; a missing binary only warns"""
        program_config = self._config.program
        if not program_config.command:
            return
        self._auxiliary_start(program_config.command, program_config.startup_delay_seconds, "program")

    def _auxiliary_start(self, command_line: str, delay: float, role: str) -> None:
        """Start a tracked auxiliary process and give it time to come up"""
        parts = shlex.split(command_line)
        if not parts:
            return
        try:
            self._supervisor.process_start(parts[0], parts[1:], name=parts[0])
        except (ProcessNotFound, OSError) as e:
            logger.warning(f"Failed to start {role} {command_line!r}: {e}")
            return
        time.sleep(delay)

    def shutdown(self) -> None:
        """Close the connection and stop every tracked child (idempotent)"""
        if self._shut_down:
            return
        self._shut_down = True
        logger.info("Shutting down desktop session")
        if self._session is not None:
            self._session.close()
        self._relay.relay_close()
        self._supervisor.processes_stopAll()

    # =========================================================================
    # Operations
    # =========================================================================

    def _session_get(self) -> DisplaySession:
        """
        Raises:
            SessionClosed: If the session was never opened or is shut down
        """
        if self._session is None or self._shut_down:
            raise SessionClosed("Desktop session is not running")
        self._session.liveness_check()
        return self._session

    def _synthesizer_get(self) -> InputSynthesizer:
        self._session_get()
        assert self._synthesizer is not None
        return self._synthesizer

    def screenInfo_get(self) -> ScreenInfo:
        """Screen width, height and root window id"""
        return self._session_get().screenInfo_get()

    def mouse_move(self, x: int, y: int) -> None:
        """Warp the pointer"""
        self._synthesizer_get().mouse_move(x, y)

    def mouse_click(self, button: int = 1) -> None:
        """Click at the current pointer position"""
        self._synthesizer_get().mouse_click(button)

    def mouse_clickAt(self, x: int, y: int, button: int = 1) -> None:
        """Move then click"""
        self._synthesizer_get().mouse_clickAt(x, y, button)

    def text_type(self, text: str) -> TypeResult:
        """Type literal text"""
        return self._synthesizer_get().text_type(text)

    def key_press(self, key: Optional[str] = None, combo: Optional[str] = None) -> str:
        """
        Press a named key or a key combination

        Args:
            key: Special key name
            combo: Combination such as "ctrl+c"

        Returns:
            Description of what was pressed

        Raises:
            FormatError: Unless exactly one of key and combo is given
        """
        if bool(key) == bool(combo):
            raise FormatError("Provide exactly one of 'key' or 'combo'")
        synthesizer = self._synthesizer_get()
        if key:
            synthesizer.key_press(key)
            return key
        assert combo is not None
        synthesizer.key_combo(combo)
        return combo

    def screenshot_take(self, filename: Optional[str] = None) -> bytes:
        """
        Capture the screen as PNG, optionally saving it

        Args:
            filename: Optional destination path

        Returns:
            PNG bytes
        """
        self._session_get()
        assert self._capture is not None
        data = self._capture.png_capture()
        if filename:
            file_save(data, Path(filename))
        return data

    def program_start(self, program: str, args: Sequence[str] = (), track: bool = False) -> int:
        """
        Launch a program on the display

        Args:
            program: Executable name or path
            args: Arguments
            track: Keep the PID so program_stop() can stop it later

        Returns:
            PID of the program

        Raises:
            ProcessNotFound: If the executable is missing (nothing is spawned)
        """
        self._session_get()
        if track:
            return self._supervisor.process_start(program, args, stoppable=True).pid
        return self._supervisor.detached_launch(program, args)

    def program_stop(self, pid: int) -> None:
        """Stop a program started with track=True"""
        self._session_get()
        self._supervisor.pid_stop(pid)

    def windows_list(self) -> list[WindowInfo]:
        """Viewable top-level windows"""
        self._session_get()
        assert self._windows is not None
        return self._windows.windows_list()

    def window_focus(self, window_id: int) -> None:
        """Raise and focus a window"""
        self._session_get()
        assert self._windows is not None
        self._windows.window_focus(window_id)

    def wmTree_get(self) -> str:
        """Window-manager tree via the relay"""
        self._session_get()
        return self._relay.tree_get()

    def wmCommand_run(self, command: str) -> str:
        """Window-manager command via the relay"""
        self._session_get()
        return self._relay.command_run(command)
