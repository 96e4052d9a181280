"""Unit tests for child process supervision"""

from __future__ import annotations

import shutil
import subprocess
from typing import Any, Optional

import pytest

from x11mcp.common.errors import ProcessNotFound
from x11mcp.x11.supervisor import ManagedProcess, ProcessSupervisor


class _FakeProcess:
    """Popen stand-in recording signals into a shared log"""

    def __init__(self, pid: int, log: list[str], ignores_term: bool = False, explodes: bool = False) -> None:
        """Initialize a running fake child"""
        self.pid = pid
        self._log = log
        self._ignores_term = ignores_term
        self._explodes = explodes
        self.returncode: Optional[int] = None

    def poll(self) -> Optional[int]:
        """Running until signalled"""
        return self.returncode

    def terminate(self) -> None:
        """SIGTERM"""
        if self._explodes:
            raise RuntimeError("unexpected failure")
        self._log.append(f"term {self.pid}")
        if not self._ignores_term:
            self.returncode = -15

    def kill(self) -> None:
        """SIGKILL"""
        self._log.append(f"kill {self.pid}")
        self.returncode = -9

    def wait(self, timeout: Optional[float] = None) -> int:
        """Time out while the child ignores SIGTERM"""
        if self.returncode is None:
            raise subprocess.TimeoutExpired("fake", timeout or 0)
        return self.returncode


def _managed(pid: int, log: list[str], **kwargs: Any) -> ManagedProcess:
    return ManagedProcess(name=f"proc{pid}", process=_FakeProcess(pid, log, **kwargs), pid=pid)


class TestExecutableResolution:
    """Missing programs"""

    def test_missing_executable_spawns_nothing(self, monkeypatch):
        """ProcessNotFound before Popen is reached"""
        def _popen(*args: Any, **kwargs: Any) -> None:
            raise AssertionError("Popen must not be called")

        monkeypatch.setattr("x11mcp.x11.supervisor.subprocess.Popen", _popen)
        supervisor = ProcessSupervisor(":99")

        with pytest.raises(ProcessNotFound, match="no-such-program-x11mcp"):
            supervisor.process_start("no-such-program-x11mcp")
        with pytest.raises(ProcessNotFound):
            supervisor.detached_launch("no-such-program-x11mcp")
        assert supervisor.processes_list() == []


class TestEnvironment:
    """Child environment construction"""

    def test_display_forced_and_overrides_win(self, monkeypatch):
        """Parent env, then DISPLAY, then caller overrides"""
        monkeypatch.setenv("DISPLAY", ":0")
        monkeypatch.setenv("X11MCP_PARENT", "kept")
        supervisor = ProcessSupervisor(":99")

        env = supervisor.environment_build()
        assert env["DISPLAY"] == ":99"
        assert env["X11MCP_PARENT"] == "kept"

        env = supervisor.environment_build({"DISPLAY": ":1", "FOO": "bar"})
        assert env["DISPLAY"] == ":1"
        assert env["FOO"] == "bar"

    def test_popen_arguments(self, monkeypatch):
        """Own session, stdio detached from the protocol stream"""
        calls: list[tuple[list[str], dict[str, Any]]] = []

        def _popen(argv: list[str], **kwargs: Any) -> _FakeProcess:
            calls.append((argv, kwargs))
            return _FakeProcess(4242, [])

        monkeypatch.setattr("x11mcp.x11.supervisor.shutil.which", lambda name: f"/usr/bin/{name}")
        monkeypatch.setattr("x11mcp.x11.supervisor.subprocess.Popen", _popen)
        supervisor = ProcessSupervisor(":99")

        managed = supervisor.process_start("xterm", ["-e", "top"])

        argv, kwargs = calls[0]
        assert argv == ["/usr/bin/xterm", "-e", "top"]
        assert kwargs["start_new_session"] is True
        assert kwargs["stdout"] == subprocess.DEVNULL
        assert kwargs["env"]["DISPLAY"] == ":99"
        assert managed.pid == 4242
        assert supervisor.processes_list() == [managed]


class TestStopping:
    """Teardown semantics"""

    def test_stop_escalates_to_kill(self, no_sleep):
        """A child ignoring SIGTERM is killed"""
        log: list[str] = []
        supervisor = ProcessSupervisor(":99")
        managed = _managed(7, log, ignores_term=True)
        supervisor.process_adopt(managed)

        supervisor.process_stop(managed)

        assert log == ["term 7", "kill 7"]
        assert supervisor.processes_list() == []

    def test_stop_all_reverse_order(self):
        """Most recently started first, display server last"""
        log: list[str] = []
        supervisor = ProcessSupervisor(":99")
        for pid in (1, 2, 3):
            supervisor.process_adopt(_managed(pid, log))

        supervisor.processes_stopAll()

        assert log == ["term 3", "term 2", "term 1"]
        assert supervisor.processes_list() == []

    def test_stop_all_continues_after_failure(self, caplog):
        """One failing child does not leak the others"""
        log: list[str] = []
        supervisor = ProcessSupervisor(":99")
        supervisor.process_adopt(_managed(1, log))
        supervisor.process_adopt(_managed(2, log, explodes=True))
        supervisor.process_adopt(_managed(3, log))

        supervisor.processes_stopAll()

        assert log == ["term 3", "term 1"]
        assert "Failed to stop proc2" in caplog.text

    def test_pid_stop(self):
        """Stoppable PIDs can be stopped individually"""
        log: list[str] = []
        supervisor = ProcessSupervisor(":99")
        supervisor.process_adopt(_managed(1, log), stoppable=True)
        supervisor.process_adopt(_managed(2, log), stoppable=True)

        supervisor.pid_stop(1)

        assert log == ["term 1"]
        assert [m.pid for m in supervisor.processes_list()] == [2]
        with pytest.raises(ProcessNotFound):
            supervisor.pid_stop(1)

    def test_pid_stop_refuses_session_children(self):
        """Children tracked for teardown only are not stopped by PID"""
        log: list[str] = []
        supervisor = ProcessSupervisor(":99")
        supervisor.process_adopt(_managed(1, log))
        supervisor.process_adopt(_managed(2, log), stoppable=True)

        with pytest.raises(ProcessNotFound, match="pid 1"):
            supervisor.pid_stop(1)

        assert log == []
        supervisor.processes_stopAll()
        assert log == ["term 2", "term 1"]

    def test_pid_stop_unknown(self):
        """Untracked PIDs are refused"""
        with pytest.raises(ProcessNotFound, match="12345"):
            ProcessSupervisor(":99").pid_stop(12345)

    def test_stop_already_exited(self):
        """An exited child is only reaped"""
        log: list[str] = []
        supervisor = ProcessSupervisor(":99")
        managed = _managed(5, log)
        managed.process.returncode = 0
        supervisor.process_adopt(managed)

        supervisor.process_stop(managed)

        assert log == []
        assert supervisor.processes_list() == []


@pytest.mark.skipif(shutil.which("sleep") is None, reason="sleep not available")
class TestRealProcesses:
    """Real children"""

    def test_start_and_stop(self):
        """A tracked child runs until stopped"""
        supervisor = ProcessSupervisor(":99")
        managed = supervisor.process_start("sleep", ["30"])

        assert managed.isRunning_check()
        supervisor.process_stop(managed)

        assert not managed.isRunning_check()
        assert supervisor.processes_list() == []

    def test_detached_launch_untracked(self):
        """Detached launches return a PID but are not stopped at teardown"""
        supervisor = ProcessSupervisor(":99")

        pid = supervisor.detached_launch("true")

        assert pid > 0
        assert supervisor.processes_list() == []
