"""Pytest configuration and shared fixtures for x11mcp tests

This module provides common fixtures and fakes used across unit and
integration tests. The fakes stand in for python-xlib objects so input,
capture and window logic can be exercised without an X server.
"""

import logging
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Generator

import pytest
from Xlib import X, XK

from x11mcp.common.config import Config, ConfigLoader
from x11mcp.common.errors import SessionClosed
from x11mcp.common.settings import settings
from x11mcp.common.types import ScreenInfo


@pytest.fixture
def sample_config() -> Config:
    """Load the example configuration shipped at the repository root

    Returns:
        Config object with default values
    """
    config_path = Path(__file__).parent.parent / "config.yml"
    if not config_path.exists():
        pytest.skip("config.yml not found - required for this test")
    return ConfigLoader.config_load(config_path)


@pytest.fixture
def default_config() -> Config:
    """Built-in defaults with no file involved"""
    return ConfigLoader.config_parse({})


@pytest.fixture
def reset_settings() -> Generator[None, None, None]:
    """Reset settings singleton between tests

    This fixture ensures each test gets a fresh Settings instance.
    """
    settings._config = None
    yield
    settings._config = None


@pytest.fixture
def no_sleep(monkeypatch) -> list[float]:
    """Record time.sleep calls instead of sleeping

    Returns:
        List of requested sleep durations
    """
    calls: list[float] = []
    monkeypatch.setattr("time.sleep", lambda seconds: calls.append(seconds))
    return calls


@pytest.fixture(autouse=True)
def setup_logging(caplog):
    """Setup logging for tests"""
    caplog.set_level(logging.DEBUG)


class FakeSession:
    """Stand-in for DisplaySession that runs requests inline

    Records nothing itself; operations receive `display` directly.
    """

    def __init__(
        self,
        display: Any = None,
        root: Any = None,
        width: int = 1024,
        height: int = 768,
    ) -> None:
        """Initialize an open fake session"""
        self.display = display
        self.root = root if root is not None else SimpleNamespace(id=0x1E2)
        self.width = width
        self.height = height
        self.generation = 1
        self.alive = True
        self.display_name = ":99"

    def liveness_check(self) -> None:
        """Raise once closed"""
        if not self.alive:
            raise SessionClosed("X11 connection lost or closed")

    def request_run(self, operation: Callable[[Any], Any]) -> Any:
        """Run the operation against the fake display"""
        self.liveness_check()
        return operation(self.display)

    def root_get(self) -> Any:
        """Root window"""
        self.liveness_check()
        return self.root

    def screenInfo_get(self) -> ScreenInfo:
        """Screen geometry"""
        self.liveness_check()
        return ScreenInfo(width=self.width, height=self.height, root=self.root.id)

    def close(self) -> None:
        """Mark closed"""
        self.alive = False


@pytest.fixture
def fake_session() -> FakeSession:
    """Open fake session over a bare display stub"""
    return FakeSession(display=SimpleNamespace(sync=lambda: None))


US_LAYOUT: dict[int, list[str]] = {
    9: ["Escape"],
    10: ["1", "exclam"],
    11: ["2", "at"],
    20: ["minus", "degree"],
    23: ["Tab"],
    24: ["q", "Q"],
    25: ["w", "W"],
    26: ["e", "E"],
    27: ["r", "R"],
    28: ["t", "T"],
    32: ["o", "O"],
    34: ["bracketleft", "braceleft"],
    36: ["Return"],
    37: ["Control_L"],
    38: ["a", "A"],
    40: ["d", "D"],
    43: ["h", "H"],
    46: ["l", "L"],
    50: ["Shift_L"],
    54: ["c", "C"],
    64: ["Alt_L"],
    65: ["space"],
    95: ["F11"],
    112: ["Prior"],
    113: ["Left"],
    133: ["Super_L"],
}
"""Keycode -> keysym names per column for a small US keyboard"""


class FakeKeyboardDisplay:
    """Display stub serving a fixed keyboard mapping"""

    def __init__(self, layout: dict[int, list[str]], min_keycode: int = 8, max_keycode: int = 255) -> None:
        """Initialize mapping from keysym names"""
        self.display = SimpleNamespace(
            info=SimpleNamespace(min_keycode=min_keycode, max_keycode=max_keycode)
        )
        self._layout = {
            keycode: [XK.string_to_keysym(name) for name in names]
            for keycode, names in layout.items()
        }
        self.mapping_calls: int = 0
        self.sync_calls: int = 0

    def get_keyboard_mapping(self, first: int, count: int) -> list[list[int]]:
        """Rows of four keysyms, NoSymbol-padded"""
        self.mapping_calls += 1
        rows = []
        for keycode in range(first, first + count):
            row = list(self._layout.get(keycode, []))
            rows.append(row + [0] * (4 - len(row)))
        return rows

    def sync(self) -> None:
        """Record sync calls"""
        self.sync_calls += 1


@pytest.fixture
def keyboard_session() -> FakeSession:
    """Open fake session over the US keyboard stub"""
    return FakeSession(display=FakeKeyboardDisplay(US_LAYOUT))


@pytest.fixture
def layout_session() -> Callable[..., FakeSession]:
    """Build an open fake session over the US keyboard minus some keysyms

    Returns:
        Factory taking the keysym names to leave unmapped
    """

    def _build(*unmapped: str) -> FakeSession:
        layout = {
            keycode: names
            for keycode, names in US_LAYOUT.items()
            if not set(names) & set(unmapped)
        }
        return FakeSession(display=FakeKeyboardDisplay(layout))

    return _build


@pytest.fixture
def injected(monkeypatch) -> list[tuple[str, int]]:
    """Record XTest events as (kind, detail)

    Kinds are key_down, key_up, button_down, button_up.
    """
    names = {
        X.KeyPress: "key_down",
        X.KeyRelease: "key_up",
        X.ButtonPress: "button_down",
        X.ButtonRelease: "button_up",
    }
    events: list[tuple[str, int]] = []

    def _fake_input(display: Any, event_type: int, detail: int = 0, time: int = 0, root: Any = None, **_kw: Any) -> None:
        events.append((names[event_type], detail))

    monkeypatch.setattr("x11mcp.x11.injector.xtest.fake_input", _fake_input)
    return events


# Markers for test organization
def pytest_configure(config) -> None:
    """Register custom pytest markers used by this test suite."""
    config.addinivalue_line("markers", "requires_x11: mark test as requiring X11 display")
