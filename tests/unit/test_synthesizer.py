"""Unit tests for input sequencing: typing, key combos and clicks"""

from __future__ import annotations

import pytest

from x11mcp.common.errors import FormatError, KeycodeNotFound, SessionClosed
from x11mcp.common.types import TypeResult
from x11mcp.x11.injector import EventInjector
from x11mcp.x11.keymap import KeycodeResolver
from x11mcp.x11.synthesizer import InputSynthesizer, combo_parse

SHIFT = 50
CTRL = 37


class _FakeRoot:
    """Root window recording pointer warps"""

    id = 0x1E2

    def __init__(self) -> None:
        """Initialize warp log"""
        self.warps: list[tuple[int, int]] = []

    def warp_pointer(self, x: int, y: int) -> None:
        """Record warp target"""
        self.warps.append((x, y))


class _FailingInjector(EventInjector):
    """Injector whose key press fails for one keycode"""

    def __init__(self, session, failing_keycode: int) -> None:
        """Initialize with the keycode to fail on"""
        super().__init__(session)
        self._failing_keycode = failing_keycode

    def key_press(self, keycode: int) -> None:
        """Fail for the configured keycode"""
        if keycode == self._failing_keycode:
            raise RuntimeError("injection failed")
        super().key_press(keycode)


def _tap(keycode: int) -> list[tuple[str, int]]:
    return [("key_down", keycode), ("key_up", keycode)]


def _shifted(keycode: int) -> list[tuple[str, int]]:
    return [("key_down", SHIFT), *_tap(keycode), ("key_up", SHIFT)]


@pytest.fixture
def synthesizer(keyboard_session, no_sleep) -> InputSynthesizer:
    """Synthesizer over the fake US keyboard with a recording root"""
    keyboard_session.root = _FakeRoot()
    return InputSynthesizer(
        keyboard_session,
        KeycodeResolver(keyboard_session),
        EventInjector(keyboard_session),
    )


class TestTextTyping:
    """Typing literal text"""

    def test_hello_world_sequence(self, synthesizer, injected):
        """Mixed case, shift-row symbol and newline"""
        result = synthesizer.text_type("Hello!\nWorld")

        expected = [
            *_shifted(43),  # H
            *_tap(26),      # e
            *_tap(46),      # l
            *_tap(46),      # l
            *_tap(32),      # o
            *_shifted(10),  # !
            *_tap(36),      # Return
            *_shifted(25),  # W
            *_tap(32),      # o
            *_tap(27),      # r
            *_tap(46),      # l
            *_tap(40),      # d
        ]
        assert injected == expected
        assert result == TypeResult(typed=12, skipped=())

    def test_every_shift_bracket_is_balanced(self, synthesizer, injected):
        """Shift is released after every shifted character"""
        synthesizer.text_type("AQ{!")

        downs = [detail for kind, detail in injected if kind == "key_down" and detail == SHIFT]
        ups = [detail for kind, detail in injected if kind == "key_up" and detail == SHIFT]
        assert len(downs) == len(ups) == 4
        assert injected[-1] == ("key_up", SHIFT)

    def test_unmappable_character_skipped(self, synthesizer, injected, caplog):
        """A character with no keycode is skipped, the rest is typed"""
        result = synthesizer.text_type("a€q")

        assert injected == [*_tap(38), *_tap(24)]
        assert result.typed == 2
        assert result.skipped == ("€",)
        assert "Skipping character" in caplog.text

    def test_newline_without_return_key_skipped(self, layout_session, no_sleep, injected):
        """A layout lacking Return skips the newline and keeps typing"""
        session = layout_session("Return")
        synthesizer = InputSynthesizer(session, KeycodeResolver(session), EventInjector(session))

        result = synthesizer.text_type("a\nq")

        assert injected == [*_tap(38), *_tap(24)]
        assert result == TypeResult(typed=2, skipped=("\n",))

    def test_keystroke_pacing(self, synthesizer, injected, no_sleep):
        """One pause between consecutive characters"""
        synthesizer.text_type("aq")
        assert no_sleep == [0.01]

    def test_empty_text_sends_nothing(self, synthesizer, injected):
        """Empty input is a no-op"""
        assert synthesizer.text_type("") == TypeResult(typed=0)
        assert injected == []


class TestSpecialKeys:
    """Named keys and combinations"""

    def test_named_key(self, synthesizer, injected):
        """A special key is one tap"""
        synthesizer.key_press("Escape")
        assert injected == _tap(9)

    def test_unknown_key_name_raises(self, synthesizer, injected):
        """Nothing is sent for an unknown name"""
        with pytest.raises(KeycodeNotFound):
            synthesizer.key_press("Bogus")
        assert injected == []

    def test_ctrl_shift_t_nesting(self, synthesizer, injected):
        """Modifiers down in order, key tapped, modifiers up in reverse"""
        synthesizer.key_combo("ctrl+shift+t")

        assert injected == [
            ("key_down", CTRL),
            ("key_down", SHIFT),
            ("key_down", 28),
            ("key_up", 28),
            ("key_up", SHIFT),
            ("key_up", CTRL),
        ]

    def test_combo_letter_is_case_insensitive(self, synthesizer, injected):
        """ctrl+C is the same key as ctrl+c"""
        synthesizer.key_combo("ctrl+C")
        assert injected == [("key_down", CTRL), *_tap(54), ("key_up", CTRL)]

    def test_combo_with_named_key(self, synthesizer, injected):
        """alt+Tab resolves Tab by name"""
        synthesizer.key_combo("alt+Tab")
        assert injected == [("key_down", 64), *_tap(23), ("key_up", 64)]

    @pytest.mark.parametrize("combo", ["ctrl", "", "ctrl+", "+c", "ctrl++c"])
    def test_malformed_combo_raises(self, synthesizer, injected, combo):
        """A combo needs at least one modifier and a key"""
        with pytest.raises(FormatError):
            synthesizer.key_combo(combo)
        assert injected == []

    def test_unknown_modifier_sends_nothing(self, synthesizer, injected):
        """Resolution happens before the first event"""
        with pytest.raises(FormatError):
            synthesizer.key_combo("hyper+a")
        assert injected == []

    def test_unmapped_key_sends_nothing(self, synthesizer, injected):
        """ctrl stays up when the final key cannot be resolved"""
        with pytest.raises(KeycodeNotFound):
            synthesizer.key_combo("ctrl+F1")
        assert injected == []

    def test_modifiers_released_when_key_fails(self, keyboard_session, injected, no_sleep):
        """Pressed modifiers are released even if the key event fails"""
        synthesizer = InputSynthesizer(
            keyboard_session,
            KeycodeResolver(keyboard_session),
            _FailingInjector(keyboard_session, failing_keycode=28),
        )

        with pytest.raises(RuntimeError):
            synthesizer.key_combo("ctrl+shift+t")

        assert injected == [
            ("key_down", CTRL),
            ("key_down", SHIFT),
            ("key_up", SHIFT),
            ("key_up", CTRL),
        ]

    def test_combo_parse(self):
        """Whitespace around parts is ignored"""
        assert combo_parse("ctrl + alt + Delete") == (["ctrl", "alt"], "Delete")


class TestPointer:
    """Pointer moves and clicks"""

    def test_move_warps_root(self, synthesizer, keyboard_session):
        """Absolute warp on the root window"""
        synthesizer.mouse_move(100, 200)
        assert keyboard_session.root.warps == [(100, 200)]

    def test_off_screen_move_warns(self, synthesizer, keyboard_session, caplog):
        """The server clamps; we still warp"""
        synthesizer.mouse_move(5000, 10)
        assert keyboard_session.root.warps == [(5000, 10)]
        assert "off-screen" in caplog.text

    def test_click(self, synthesizer, injected, no_sleep):
        """Press, pause, release"""
        synthesizer.mouse_click(3)
        assert injected == [("button_down", 3), ("button_up", 3)]
        assert no_sleep == [0.01]

    def test_click_at_moves_then_clicks(self, synthesizer, injected, keyboard_session):
        """Warp happens before the press"""
        synthesizer.mouse_clickAt(10, 20, 1)
        assert keyboard_session.root.warps == [(10, 20)]
        assert injected == [("button_down", 1), ("button_up", 1)]

    @pytest.mark.parametrize("button", [0, 6, -1])
    def test_invalid_button_raises(self, synthesizer, injected, keyboard_session, button):
        """Buttons are 1-5; nothing moves or clicks otherwise"""
        with pytest.raises(FormatError):
            synthesizer.mouse_clickAt(10, 20, button)
        assert keyboard_session.root.warps == []
        assert injected == []


class TestClosedSession:
    """Operations after the session closed"""

    def test_everything_raises_session_closed(self, synthesizer, keyboard_session, injected):
        """No event is sent on a closed session"""
        keyboard_session.close()

        with pytest.raises(SessionClosed):
            synthesizer.text_type("a")
        with pytest.raises(SessionClosed):
            synthesizer.mouse_move(1, 1)
        with pytest.raises(SessionClosed):
            synthesizer.mouse_click()
        with pytest.raises(SessionClosed):
            synthesizer.key_combo("ctrl+c")
        assert injected == []
