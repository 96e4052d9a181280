"""Top-level window listing and focus"""

from __future__ import annotations

import logging
from typing import Any, Optional

from Xlib import X
from Xlib import error as xerror

from x11mcp.common.errors import WindowNotFound
from x11mcp.common.types import WindowInfo
from x11mcp.x11.session import DisplaySession

logger = logging.getLogger(__name__)


def _text_decode(value: Any) -> str:
    """Property value (bytes or str) to trimmed text"""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return str(value).rstrip("\x00").strip()


class WindowLister:
    """Lists viewable children of the root window and focuses windows"""

    def __init__(self, session: DisplaySession) -> None:
        """
        Initialize window lister

        Args:
            session: Display session to query
        """
        self._session: DisplaySession = session

    def windows_list(self) -> list[WindowInfo]:
        """
        List mapped top-level windows that have a title or class

        Returns:
            Windows in stacking order (bottom to top)
        """
        root = self._session.root_get()

        def _collect(display) -> list[WindowInfo]:
            net_wm_name = display.intern_atom("_NET_WM_NAME")
            windows: list[WindowInfo] = []
            for child in root.query_tree().children:
                try:
                    if child.get_attributes().map_state != X.IsViewable:
                        continue
                    title = self.windowTitle_get(child, net_wm_name)
                    window_class = self.windowClass_get(child)
                except xerror.XError as e:
                    # Window went away between query_tree and the property read
                    logger.debug(f"Skipping window 0x{child.id:x}: {e}")
                    continue
                if title or window_class:
                    windows.append(WindowInfo(window_id=child.id, title=title, window_class=window_class))
            return windows

        return self._session.request_run(_collect)

    @staticmethod
    def windowTitle_get(window: Any, net_wm_name: int) -> str:
        """_NET_WM_NAME, falling back to WM_NAME"""
        prop = window.get_full_property(net_wm_name, X.AnyPropertyType)
        if prop is not None and prop.value:
            title = _text_decode(prop.value)
            if title:
                return title
        name: Optional[Any] = window.get_wm_name()
        return _text_decode(name) if name else ""

    @staticmethod
    def windowClass_get(window: Any) -> str:
        """Class part of WM_CLASS, or the instance part if the class is empty"""
        wm_class = window.get_wm_class()
        if not wm_class:
            return ""
        instance, *rest = wm_class
        if rest and rest[0]:
            return rest[0]
        return instance or ""

    def window_focus(self, window_id: int) -> None:
        """
        Raise a window and give it input focus

        Args:
            window_id: X11 window id

        Raises:
            WindowNotFound: If the server rejects the window (unknown id or not viewable)
        """
        self._session.liveness_check()

        def _focus(display) -> Optional[xerror.XError]:
            # Errors arrive asynchronously and reach the catcher during sync()
            catcher = xerror.CatchError(xerror.BadWindow, xerror.BadMatch)
            window = display.create_resource_object("window", window_id)
            window.configure(stack_mode=X.Above, onerror=catcher)
            display.set_input_focus(window, X.RevertToPointerRoot, X.CurrentTime, onerror=catcher)
            display.sync()
            return catcher.get_error()

        error = self._session.request_run(_focus)
        if error is not None:
            raise WindowNotFound(f"Cannot focus window {window_id} (0x{window_id:x}): {error}")
        logger.info(f"Focused window 0x{window_id:x}")
