"""Exception hierarchy for x11mcp

Startup errors abort the process before any tool call is served. All other
errors are raised out of the failing operation and reported back to the MCP
client as a tool error; the session stays usable.
"""

__all__ = [
    "X11McpError",
    "StartupError",
    "ProvisioningFailed",
    "DisplayUnavailable",
    "NoScreensFound",
    "InjectionUnsupported",
    "SessionClosed",
    "KeycodeNotFound",
    "UnsupportedPixelDepth",
    "CaptureFailed",
    "RelayUnavailable",
    "ProcessNotFound",
    "WindowNotFound",
    "FormatError",
    "RoundTripTimeout",
]


class X11McpError(Exception):
    """Base class for all x11mcp errors"""


class StartupError(X11McpError):
    """Fatal error raised while bringing the desktop session up"""


class ProvisioningFailed(StartupError):
    """Display server missing, unconfigurable, or no free display number"""


class DisplayUnavailable(StartupError):
    """Display did not become reachable in time"""


class NoScreensFound(StartupError):
    """Display connection reported an empty screen list"""


class InjectionUnsupported(StartupError):
    """XTest extension is not present on the display"""


class SessionClosed(X11McpError):
    """Operation attempted after teardown or after the connection died"""


class KeycodeNotFound(X11McpError):
    """No keycode in the current keyboard mapping produces the keysym"""


class UnsupportedPixelDepth(X11McpError):
    """Root window image depth is neither 24 nor 32 bits"""


class CaptureFailed(X11McpError):
    """Image returned by the server is too short for its geometry"""


class RelayUnavailable(X11McpError):
    """No window-manager IPC connection was established"""


class ProcessNotFound(X11McpError):
    """Executable not on the search path, or PID not tracked"""


class WindowNotFound(X11McpError):
    """Window id does not exist or cannot take input focus"""


class FormatError(X11McpError):
    """Malformed request: bad key combo, empty command, conflicting args"""


class RoundTripTimeout(X11McpError):
    """Display request did not complete before its deadline"""
