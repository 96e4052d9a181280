"""Common types and data structures for x11mcp"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Position:
    """2D position coordinates"""
    x: int
    y: int

    def isWithinBounds(self, width: int, height: int) -> bool:
        """Check if position is within given bounds"""
        return 0 <= self.x < width and 0 <= self.y < height


@dataclass(frozen=True)
class ScreenInfo:
    """Screen dimensions and root window of the canonical screen"""
    width: int
    height: int
    root: int

    def contains(self, pos: Position) -> bool:
        """Check if position is within screen bounds"""
        return pos.isWithinBounds(self.width, self.height)


@dataclass(frozen=True)
class KeyStroke:
    """Resolved physical key for a character, plus whether Shift brackets it"""
    keycode: int
    shift: bool = False


@dataclass(frozen=True)
class TypeResult:
    """Outcome of typing a string: characters emitted and characters skipped"""
    typed: int
    skipped: tuple[str, ...] = ()


@dataclass(frozen=True)
class WindowInfo:
    """Viewable top-level window"""
    window_id: int
    title: str
    window_class: str
