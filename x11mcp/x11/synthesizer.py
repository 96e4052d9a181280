"""High-level input sequencing: clicks, typing, special keys and key combos"""

from __future__ import annotations

import logging
import time

from x11mcp.common.errors import FormatError, KeycodeNotFound
from x11mcp.common.settings import settings
from x11mcp.common.types import KeyStroke, Position, TypeResult
from x11mcp.x11.injector import EventInjector
from x11mcp.x11.keymap import KeycodeResolver, keysymFromChar_get, keysymFromName_get
from x11mcp.x11.session import DisplaySession

logger = logging.getLogger(__name__)


class InputSynthesizer:
    """Turns intents into ordered, properly nested XTest event sequences"""

    def __init__(
        self,
        session: DisplaySession,
        resolver: KeycodeResolver,
        injector: EventInjector,
        keystroke_delay_ms: int = 10,
        click_delay_ms: int = 10,
        settle_delay_ms: int = 10,
    ) -> None:
        """
        Initialize input synthesizer

        Args:
            session: Display session (liveness gate)
            resolver: Keycode resolver
            injector: Low-level event injector
            keystroke_delay_ms: Pause between typed characters
            click_delay_ms: Pause between button press and release
            settle_delay_ms: Pause between pointer move and click
        """
        self._session: DisplaySession = session
        self._resolver: KeycodeResolver = resolver
        self._injector: EventInjector = injector
        self._keystroke_delay: float = keystroke_delay_ms / 1000.0
        self._click_delay: float = click_delay_ms / 1000.0
        self._settle_delay: float = settle_delay_ms / 1000.0

    def mouse_move(self, x: int, y: int) -> None:
        """
        Warp the pointer to absolute root-window coordinates

        Args:
            x: Target x
            y: Target y
        """
        position = Position(x=x, y=y)
        if not self._session.screenInfo_get().contains(position):
            logger.warning(f"Pointer target ({x}, {y}) is off-screen; the server will clamp it")
        self._injector.pointer_warp(position)

    def mouse_click(self, button: int = 1) -> None:
        """
        Press and release a pointer button at the current pointer location

        Args:
            button: Button number (1=left, 2=middle, 3=right, 4/5=wheel)

        Raises:
            FormatError: If the button number is out of range
        """
        self._session.liveness_check()
        button_check(button)
        self._injector.mouseButton_press(button)
        time.sleep(self._click_delay)
        self._injector.mouseButton_release(button)

    def mouse_clickAt(self, x: int, y: int, button: int = 1) -> None:
        """
        Move, let the window manager see the motion, then click

        Args:
            x: Target x
            y: Target y
            button: Button number
        """
        button_check(button)
        self.mouse_move(x, y)
        time.sleep(self._settle_delay)
        self.mouse_click(button)

    def text_type(self, text: str) -> TypeResult:
        """
        Type literal text, one character at a time

        Newlines press Return. Characters with no keycode in the current
        layout are skipped with a warning rather than failing the call.

        Args:
            text: Text to type

        Returns:
            Count of typed characters and the skipped characters
        """
        self._session.liveness_check()
        typed = 0
        skipped: list[str] = []
        for index, ch in enumerate(text):
            if index:
                time.sleep(self._keystroke_delay)
            try:
                if ch == "\n":
                    self.key_press("Return")
                else:
                    self.char_type(ch)
            except KeycodeNotFound as e:
                logger.warning(f"Skipping character {ch!r}: {e}")
                skipped.append(ch)
                continue
            typed += 1
        return TypeResult(typed=typed, skipped=tuple(skipped))

    def char_type(self, ch: str) -> None:
        """
        Type one character, bracketing it with Shift when needed

        Raises:
            KeycodeNotFound: If the character (or Shift) has no keycode
        """
        self._session.liveness_check()
        stroke: KeyStroke = self._resolver.charKey_resolve(ch)
        if not stroke.shift:
            self._keycode_tap(stroke.keycode)
            return

        shift_keycode = self._resolver.modifier_resolve("shift")
        self._injector.key_press(shift_keycode)
        try:
            self._keycode_tap(stroke.keycode)
        finally:
            self._injector.key_release(shift_keycode)

    def key_press(self, name: str) -> None:
        """
        Press and release a named special key

        Args:
            name: Key name (Return, Tab, Escape, PageUp, Left, F5, ...)

        Raises:
            KeycodeNotFound: If the name is unknown or unmapped
        """
        self._session.liveness_check()
        self._keycode_tap(self._resolver.namedKey_resolve(name))

    def key_combo(self, combo: str) -> None:
        """
        Press a modifier combination such as "ctrl+shift+t"

        Modifiers are pressed in order, the final key is pressed and released,
        then modifiers are released in reverse order. Every keycode is
        resolved before the first event is sent.

        Args:
            combo: '+'-separated modifiers followed by one key

        Raises:
            FormatError: If the combo has fewer than two parts or an unknown modifier
            KeycodeNotFound: If any key cannot be resolved
        """
        self._session.liveness_check()
        modifier_names, key_name = combo_parse(combo)
        modifier_keycodes = [self._resolver.modifier_resolve(name) for name in modifier_names]
        key_keycode = self._resolver.keycode_resolve(comboKeysym_get(key_name))

        pressed: list[int] = []
        try:
            for keycode in modifier_keycodes:
                self._injector.key_press(keycode)
                pressed.append(keycode)
            self._keycode_tap(key_keycode)
        finally:
            for keycode in reversed(pressed):
                self._injector.key_release(keycode)

    def _keycode_tap(self, keycode: int) -> None:
        """Press and release one keycode"""
        self._injector.key_press(keycode)
        self._injector.key_release(keycode)


def button_check(button: int) -> None:
    """
    Validate a pointer button number

    Raises:
        FormatError: If outside 1..MAX_POINTER_BUTTON
    """
    if not 1 <= button <= settings.MAX_POINTER_BUTTON:
        raise FormatError(
            f"Invalid button {button} (expected 1-{settings.MAX_POINTER_BUTTON})"
        )


def combo_parse(combo: str) -> tuple[list[str], str]:
    """
    Split a key combo into modifier names and the final key

    Args:
        combo: e.g. "ctrl+alt+Delete"

    Returns:
        (modifier names, key name)

    Raises:
        FormatError: If there is no modifier or any part is empty
    """
    parts = [part.strip() for part in combo.split("+")]
    if len(parts) < 2 or not all(parts):
        raise FormatError(f"Invalid key combo: {combo!r} (expected e.g. 'ctrl+c')")
    return parts[:-1], parts[-1]


def comboKeysym_get(key_name: str) -> int:
    """
    Keysym for the final key of a combo

    A single character is taken literally (letters folded to lowercase, since
    Shift is given explicitly as a modifier); longer names are special keys.
    """
    if len(key_name) == 1:
        return keysymFromChar_get(key_name.lower())
    return keysymFromName_get(key_name)
