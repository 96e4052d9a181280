"""X11 event injection using XTest extension"""

from Xlib import X
from Xlib.ext import xtest

from x11mcp.common.types import Position
from x11mcp.x11.session import DisplaySession


class EventInjector:
    """Injects pointer and keyboard events into X11 using XTest

    Each event is followed by a sync so it reaches the server before the next
    one is emitted. Events carry X.CurrentTime and target the root window.
    """

    def __init__(self, session: DisplaySession) -> None:
        """
        Initialize event injector

        Args:
            session: Display session to inject into
        """
        self._session: DisplaySession = session

    def pointer_warp(self, position: Position) -> None:
        """
        Warp pointer to an absolute position on the root window

        Args:
            position: Target position
        """
        root = self._session.root_get()

        def _warp(display):
            root.warp_pointer(position.x, position.y)
            display.sync()

        self._session.request_run(_warp)

    def mouseButton_press(self, button: int) -> None:
        """
        Press mouse button

        Args:
            button: Button number (1=left, 2=middle, 3=right)
        """
        self._fake_input(X.ButtonPress, button)

    def mouseButton_release(self, button: int) -> None:
        """
        Release mouse button

        Args:
            button: Button number (1=left, 2=middle, 3=right)
        """
        self._fake_input(X.ButtonRelease, button)

    def key_press(self, keycode: int) -> None:
        """
        Press keyboard key

        Args:
            keycode: X11 keycode
        """
        self._fake_input(X.KeyPress, keycode)

    def key_release(self, keycode: int) -> None:
        """
        Release keyboard key

        Args:
            keycode: X11 keycode
        """
        self._fake_input(X.KeyRelease, keycode)

    def _fake_input(self, event_type: int, detail: int) -> None:
        """Send one XTest event and sync"""
        root = self._session.root_get()

        def _send(display):
            xtest.fake_input(display, event_type, detail=detail, time=X.CurrentTime, root=root)
            display.sync()

        self._session.request_run(_send)
