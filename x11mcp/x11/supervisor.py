"""Child process supervision for the display server, window manager and apps"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import threading
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from x11mcp.common.errors import ProcessNotFound
from x11mcp.common.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class ManagedProcess:
    """Tracked child process"""
    name: str
    process: subprocess.Popen
    pid: int

    def isRunning_check(self) -> bool:
        """Check if the child has not exited yet"""
        return self.process.poll() is None


class ProcessSupervisor:
    """Starts and stops auxiliary processes against one X display

    Three ownership models are kept apart:
    - tracked children (display server, window manager, companion program)
      are stopped only at teardown, in reverse start order
    - stoppable launches are tracked the same way and may also be stopped
      by PID while the session runs
    - detached launches are fire-and-forget and never stopped by us
    """

    def __init__(self, display_name: Optional[str] = None) -> None:
        """
        Initialize process supervisor

        Args:
            display_name: Display exported to children as DISPLAY
        """
        self._display_name: Optional[str] = display_name
        self._processes: list[ManagedProcess] = []
        self._stoppable_pids: set[int] = set()

    @property
    def display_name(self) -> Optional[str]:
        """Display exported to children"""
        return self._display_name

    @display_name.setter
    def display_name(self, value: Optional[str]) -> None:
        self._display_name = value

    def processes_list(self) -> list[ManagedProcess]:
        """Tracked children in start order"""
        return list(self._processes)

    def executable_resolve(self, command: str) -> str:
        """
        Resolve an executable on the search path

        Args:
            command: Program name or path

        Returns:
            Absolute path of the executable

        Raises:
            ProcessNotFound: If the executable cannot be found
        """
        path = shutil.which(command)
        if path is None:
            raise ProcessNotFound(f"Program not found: {command}")
        return path

    def environment_build(self, overrides: Optional[Mapping[str, str]] = None) -> dict[str, str]:
        """
        Build a child environment

        Parent environment, then DISPLAY forced to the session display, then
        caller overrides (later keys win).

        Args:
            overrides: Extra environment variables

        Returns:
            Environment mapping for Popen
        """
        env = dict(os.environ)
        if self._display_name:
            env["DISPLAY"] = self._display_name
        if overrides:
            env.update(overrides)
        return env

    def process_start(
        self,
        command: str,
        args: Sequence[str] = (),
        env: Optional[Mapping[str, str]] = None,
        name: Optional[str] = None,
        stoppable: bool = False,
    ) -> ManagedProcess:
        """
        Start a tracked child process

        Args:
            command: Program name or path
            args: Program arguments
            env: Extra environment variables
            name: Label for logging (defaults to command)
            stoppable: Allow pid_stop() to stop it before teardown

        Returns:
            The tracked process

        Raises:
            ProcessNotFound: If the executable cannot be found
            OSError: If the process cannot be spawned
        """
        path = self.executable_resolve(command)
        process = subprocess.Popen(
            [path, *args],
            env=self.environment_build(env),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,  # stdout carries the MCP protocol
            start_new_session=True,
        )
        managed = ManagedProcess(name=name or command, process=process, pid=process.pid)
        self.process_adopt(managed, stoppable=stoppable)
        logger.info(f"Started {managed.name} (pid {managed.pid})")
        return managed

    def process_adopt(self, managed: ManagedProcess, stoppable: bool = False) -> None:
        """
        Track a process started elsewhere (e.g. the display server)

        Args:
            managed: Process to stop at teardown
            stoppable: Allow pid_stop() to stop it before teardown
        """
        self._processes.append(managed)
        if stoppable:
            self._stoppable_pids.add(managed.pid)

    def detached_launch(self, command: str, args: Sequence[str] = ()) -> int:
        """
        Launch a program without tracking it

        The child runs in its own session with stdio detached. A daemon thread
        waits on it so it does not linger as a zombie while we run; if we exit
        first it is reparented to init.

        Args:
            command: Program name or path
            args: Program arguments

        Returns:
            PID of the launched program

        Raises:
            ProcessNotFound: If the executable cannot be found
        """
        path = self.executable_resolve(command)
        process = subprocess.Popen(
            [path, *args],
            env=self.environment_build(),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
        threading.Thread(target=process.wait, daemon=True).start()
        logger.info(f"Launched {command} detached (pid {process.pid})")
        return process.pid

    def process_stop(self, managed: ManagedProcess) -> None:
        """
        Stop a tracked process: SIGTERM, escalating to SIGKILL, then reap

        Args:
            managed: Process to stop
        """
        process = managed.process
        if process.poll() is None:
            try:
                process.terminate()
                process.wait(timeout=settings.PROCESS_STOP_GRACE_SEC)
            except (OSError, subprocess.TimeoutExpired) as e:
                logger.warning(f"{managed.name} (pid {managed.pid}) ignored SIGTERM ({e}), killing")
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
        process.wait()
        if managed in self._processes:
            self._processes.remove(managed)
        self._stoppable_pids.discard(managed.pid)
        logger.info(f"Stopped {managed.name} (pid {managed.pid})")

    def pid_stop(self, pid: int) -> None:
        """
        Stop a stoppable launch by PID

        Session-owned children (display server, window manager, companion
        program) are refused; they only go at teardown.

        Args:
            pid: PID returned by a stoppable start

        Raises:
            ProcessNotFound: If no stoppable launch has this PID
        """
        if pid in self._stoppable_pids:
            for managed in self._processes:
                if managed.pid == pid:
                    self.process_stop(managed)
                    return
        raise ProcessNotFound(f"No tracked process with pid {pid}")

    def processes_stopAll(self) -> None:
        """Stop every tracked process, most recently started first"""
        for managed in reversed(list(self._processes)):
            try:
                self.process_stop(managed)
            except Exception as e:
                logger.error(f"Failed to stop {managed.name} (pid {managed.pid}): {e}")
