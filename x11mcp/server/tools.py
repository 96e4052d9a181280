"""
MCP tool surface.

Each tool is a typed function whose annotated parameters become the tool's
input schema, so malformed calls are rejected by FastMCP before they reach
the controller. Errors raised by the controller are reported to the client
as tool errors.
"""

import time
from typing import Annotated, Optional

from mcp.server.fastmcp import FastMCP, Image
from pydantic import Field

from x11mcp.server.controller import DesktopController

__all__ = [
    "server_create",
    "windowsText_format",
]

_Coordinate = Annotated[int, Field(ge=0, description="Pixel coordinate relative to the root window")]
_Button = Annotated[int, Field(ge=1, le=5, description="Mouse button (1=left, 2=middle, 3=right)")]
_Screenshot = Annotated[bool, Field(description="Attach a screenshot taken after the action")]


def server_create(controller: DesktopController, name: str = "x11-controller") -> FastMCP:
    """
    Create the MCP server and register every tool against a controller.

    Window-manager tools are registered only when the relay is connected.

    Args:
        controller:
            Started desktop controller.
        name:
            Server name announced to clients.

    Returns:
        Configured FastMCP server.
    """
    mcp = FastMCP(name)

    def _with_screenshot(text: str, screenshot: bool):
        if not screenshot:
            return text
        return [text, Image(data=controller.screenshot_take(), format="png")]

    @mcp.tool()
    def get_screen_info() -> str:
        """Get X11 screen information including dimensions and root window."""
        info = controller.screenInfo_get()
        return f"Screen: {info.width}x{info.height}, Root Window: {info.root}"

    @mcp.tool()
    def move_mouse(x: _Coordinate, y: _Coordinate, screenshot: _Screenshot = False):
        """Move the mouse pointer to absolute screen coordinates."""
        controller.mouse_move(x, y)
        return _with_screenshot(f"Moved mouse to ({x}, {y})", screenshot)

    @mcp.tool()
    def click(button: _Button = 1) -> str:
        """Click a mouse button at the current pointer position."""
        controller.mouse_click(button)
        return f"Clicked button {button}"

    @mcp.tool()
    def click_at(
        x: _Coordinate,
        y: _Coordinate,
        button: _Button = 1,
        screenshot: _Screenshot = False,
    ):
        """Move the mouse to coordinates and click."""
        controller.mouse_clickAt(x, y, button)
        return _with_screenshot(f"Clicked button {button} at ({x}, {y})", screenshot)

    @mcp.tool()
    def type_text(
        text: Annotated[str, Field(description="Literal text to type; newlines press Enter")],
        screenshot: _Screenshot = False,
    ):
        """Type text by sending key events, one character at a time."""
        result = controller.text_type(text)
        message = f"Typed: {text}"
        if result.skipped:
            message += f" (skipped unmappable: {''.join(result.skipped)!r})"
        return _with_screenshot(message, screenshot)

    @mcp.tool()
    def key_press(
        key: Annotated[
            Optional[str],
            Field(description="Special key name, e.g. Return, Tab, Escape, PageUp, Left, F5"),
        ] = None,
        combo: Annotated[
            Optional[str],
            Field(description="Key combination, e.g. ctrl+c, ctrl+shift+t, alt+Tab"),
        ] = None,
    ) -> str:
        """Press a special key or a modifier combination. Give exactly one of key or combo."""
        pressed = controller.key_press(key=key, combo=combo)
        return f"Pressed: {pressed}"

    @mcp.tool()
    def take_screenshot(
        filename: Annotated[
            Optional[str], Field(description="Also save the PNG to this path (optional)")
        ] = None,
    ):
        """Take a screenshot of the X11 display."""
        return Image(data=controller.screenshot_take(filename), format="png")

    @mcp.tool()
    def start_program(
        program: Annotated[str, Field(min_length=1, description="Program name or path to executable")],
        args: Annotated[
            Optional[list[str]], Field(description="Command line arguments (optional)")
        ] = None,
        track: Annotated[
            bool, Field(description="Keep the PID so stop_program can stop it later")
        ] = False,
    ) -> str:
        """Start a desktop program in the background."""
        argv = args or []
        pid = controller.program_start(program, argv, track=track)
        command = " ".join([program, *argv])
        return f"Started program: {command} (pid {pid})"

    @mcp.tool()
    def stop_program(pid: Annotated[int, Field(gt=0, description="PID from start_program with track=true")]) -> str:
        """Stop a program previously started with track=true."""
        controller.program_stop(pid)
        return f"Stopped program with pid {pid}"

    @mcp.tool()
    def list_windows() -> str:
        """List visible top-level windows with their ids, titles and classes."""
        return windowsText_format(controller)

    @mcp.tool()
    def focus_window(window_id: Annotated[int, Field(gt=0, description="X11 window id")]) -> str:
        """Raise a window and give it input focus."""
        controller.window_focus(window_id)
        return f"Focused window {window_id}"

    @mcp.tool()
    def wait(milliseconds: Annotated[int, Field(ge=0, le=60000, description="Time to wait")]) -> str:
        """Pause before the next action, e.g. while an application starts."""
        time.sleep(milliseconds / 1000.0)
        return f"Waited {milliseconds} ms"

    if controller.relay.is_available:

        @mcp.tool()
        def wm_get_tree() -> str:
            """Get the i3 window tree as JSON."""
            return controller.wmTree_get()

        @mcp.tool()
        def wm_command(
            command: Annotated[str, Field(description="i3 command, e.g. 'workspace 2' or 'split h'")],
        ) -> str:
            """Run an i3 command and report success or error per sub-command."""
            return controller.wmCommand_run(command)

    return mcp


def windowsText_format(controller: DesktopController) -> str:
    """
    Render the window list as one line per window.

    Args:
        controller:
            Desktop controller to query.

    Returns:
        Human-readable window list.
    """
    windows = controller.windows_list()
    if not windows:
        return "No windows found"
    lines = [f"Found {len(windows)} windows:"]
    for window in windows:
        lines.append(f"- ID: {window.window_id}, Title: {window.title!r}, Class: {window.window_class!r}")
    return "\n".join(lines)
