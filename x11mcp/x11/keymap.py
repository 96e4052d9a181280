"""Keysym to keycode resolution against the live keyboard mapping"""

from __future__ import annotations

import logging
from typing import Optional

from Xlib import XK
from Xlib.display import Display

from x11mcp.common.errors import FormatError, KeycodeNotFound
from x11mcp.common.types import KeyStroke
from x11mcp.x11.session import DisplaySession

logger = logging.getLogger(__name__)

# Named special keys, matched case-insensitively, to X11 keysym names
_NAMED_KEYSYMS: dict[str, str] = {
    "return": "Return",
    "enter": "Return",
    "tab": "Tab",
    "escape": "Escape",
    "esc": "Escape",
    "backspace": "BackSpace",
    "delete": "Delete",
    "del": "Delete",
    "insert": "Insert",
    "ins": "Insert",
    "home": "Home",
    "end": "End",
    "page_up": "Page_Up",
    "pageup": "Page_Up",
    "pgup": "Page_Up",
    "page_down": "Page_Down",
    "pagedown": "Page_Down",
    "pgdn": "Page_Down",
    "left": "Left",
    "right": "Right",
    "up": "Up",
    "down": "Down",
    "space": "space",
    **{f"f{n}": f"F{n}" for n in range(1, 13)},
}

# Modifier names (with synonyms) to the left-hand modifier keysym
_MODIFIER_KEYSYMS: dict[str, str] = {
    "ctrl": "Control_L",
    "control": "Control_L",
    "shift": "Shift_L",
    "alt": "Alt_L",
    "super": "Super_L",
    "win": "Super_L",
    "cmd": "Super_L",
}

# US layout shift row: shifted character -> unshifted base character
_SHIFTED_BASE: dict[str, str] = {
    "!": "1", "@": "2", "#": "3", "$": "4", "%": "5",
    "^": "6", "&": "7", "*": "8", "(": "9", ")": "0",
    "_": "-", "+": "=", "{": "[", "}": "]", "|": "\\",
    ":": ";", '"': "'", "<": ",", ">": ".", "?": "/",
    "~": "`",
}

# Control characters typed as their named key
_CONTROL_CHAR_KEYSYMS: dict[str, str] = {
    "\t": "Tab",
    "\b": "BackSpace",
    "\r": "Return",
}


def keysymFromChar_get(ch: str) -> int:
    """
    Map a single character to its keysym

    Latin-1 printable characters map to their code point; everything else
    uses the Unicode keysym range (0x01000000 + code point).

    Args:
        ch: Single character

    Returns:
        Keysym value
    """
    if ch in _CONTROL_CHAR_KEYSYMS:
        return XK.string_to_keysym(_CONTROL_CHAR_KEYSYMS[ch])
    code = ord(ch)
    if 0x20 <= code <= 0x7E or 0xA0 <= code <= 0xFF:
        return code
    return 0x01000000 | code


def keysymFromName_get(name: str) -> int:
    """
    Map a key name to its keysym

    Built-in names are matched case-insensitively; anything else is looked up
    as an X11 keysym name (e.g. "KP_Enter", "F5").

    Args:
        name: Key name

    Returns:
        Keysym value

    Raises:
        KeycodeNotFound: If the name is unknown
    """
    keysym_name = _NAMED_KEYSYMS.get(name.lower(), name)
    keysym = XK.string_to_keysym(keysym_name)
    if keysym == 0 and len(name) == 1:
        keysym = keysymFromChar_get(name)
    if keysym == 0:
        raise KeycodeNotFound(f"Unknown key name: {name}")
    return keysym


def modifierKeysym_get(name: str) -> int:
    """
    Map a modifier name (ctrl, shift, alt, super/win/cmd) to its keysym

    Raises:
        FormatError: If the name is not a known modifier
    """
    keysym_name = _MODIFIER_KEYSYMS.get(name.lower())
    if keysym_name is None:
        raise FormatError(f"Unknown modifier: {name}")
    return XK.string_to_keysym(keysym_name)


def _mapping_fetch(display: Display) -> tuple[int, list]:
    """Fetch the full keyboard mapping as (first keycode, rows of keysyms)"""
    first = display.display.info.min_keycode
    last = display.display.info.max_keycode
    return first, display.get_keyboard_mapping(first, last - first + 1)


class KeycodeResolver:
    """Resolves keysyms to keycodes using a per-session cached mapping"""

    def __init__(self, session: DisplaySession) -> None:
        """
        Initialize keycode resolver

        Args:
            session: Display session to query
        """
        self._session: DisplaySession = session
        self._table: dict[int, tuple[int, int]] = {}
        self._generation: Optional[int] = None

    def cache_invalidate(self) -> None:
        """Drop the cached mapping; the next lookup refetches it"""
        self._table = {}
        self._generation = None

    def _table_get(self) -> dict[int, tuple[int, int]]:
        """Return the keysym table, rebuilding it after a reconnect"""
        if self._generation != self._session.generation or not self._table:
            first, rows = self._session.request_run(_mapping_fetch)
            self._table = self.table_build(first, rows)
            self._generation = self._session.generation
            logger.debug(f"Keyboard mapping loaded: {len(self._table)} keysyms from {len(rows)} keycodes")
        return self._table

    @staticmethod
    def table_build(first_keycode: int, rows: list) -> dict[int, tuple[int, int]]:
        """
        Build keysym -> (keycode, column) from a keyboard mapping

        The lowest column wins (unshifted before shifted); within a column the
        lowest keycode wins.

        Args:
            first_keycode: Keycode of rows[0]
            rows: Keysyms per keycode

        Returns:
            Lookup table
        """
        table: dict[int, tuple[int, int]] = {}
        for offset, row in enumerate(rows):
            keycode = first_keycode + offset
            for column, keysym in enumerate(row):
                if keysym == 0:  # NoSymbol
                    continue
                current = table.get(keysym)
                if current is None or column < current[1]:
                    table[keysym] = (keycode, column)
        return table

    def entry_lookup(self, keysym: int) -> tuple[int, int]:
        """
        Look up the keycode and column producing a keysym

        Raises:
            KeycodeNotFound: If no keycode produces the keysym
        """
        entry = self._table_get().get(keysym)
        if entry is None:
            raise KeycodeNotFound(f"No keycode found for keysym 0x{keysym:x}")
        return entry

    def keycode_resolve(self, keysym: int) -> int:
        """
        Resolve a keysym to its primary keycode

        Raises:
            KeycodeNotFound: If no keycode produces the keysym
        """
        return self.entry_lookup(keysym)[0]

    def namedKey_resolve(self, name: str) -> int:
        """
        Resolve a special key name (Return, Tab, PageUp, ...) to a keycode

        Raises:
            KeycodeNotFound: If the name is unknown or unmapped
        """
        return self.keycode_resolve(keysymFromName_get(name))

    def modifier_resolve(self, name: str) -> int:
        """
        Resolve a modifier name to a keycode

        Raises:
            FormatError: If the name is not a modifier
            KeycodeNotFound: If the modifier is unmapped
        """
        return self.keycode_resolve(modifierKeysym_get(name))

    def charKey_resolve(self, ch: str) -> KeyStroke:
        """
        Resolve a character to its key and Shift requirement

        Uppercase letters and shift-row symbols resolve to their unshifted base
        with shift set. A character only found in the shifted column also
        needs Shift.

        Args:
            ch: Single character

        Returns:
            Keycode and Shift requirement

        Raises:
            KeycodeNotFound: If no keycode produces the character
        """
        shift = False
        base = ch
        if ch in _SHIFTED_BASE:
            base, shift = _SHIFTED_BASE[ch], True
        elif ch.isupper() and len(ch.lower()) == 1 and ch.lower() != ch:
            base, shift = ch.lower(), True

        try:
            keycode, column = self.entry_lookup(keysymFromChar_get(base))
        except KeycodeNotFound:
            raise KeycodeNotFound(f"No keycode found for character {ch!r}") from None
        return KeyStroke(keycode=keycode, shift=shift or column == 1)
