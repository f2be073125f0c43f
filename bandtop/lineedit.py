"""Single-line text input on a curses screen."""

from __future__ import annotations

import curses
from enum import Enum
from typing import Any, Optional, Tuple, Union


class KeyResult(Enum):
    """What a key press did to the edited line."""

    EDITING = "editing"
    BEEP = "beep"
    ACCEPTED = "accepted"
    CANCELLED = "cancelled"


_CTRL_A = 1
_CTRL_E = 5
_CTRL_G = 7
_CTRL_U = 21
_CTRL_W = 23
_ESCAPE = 0x1B
_RETURN = ord("\r")

_ACCEPT_KEYS = frozenset({curses.KEY_ENTER, _RETURN})
_CANCEL_KEYS = frozenset({_ESCAPE, _CTRL_G})
_SPACES = frozenset(" \t\n\v\f\r")


class LineEditor:
    """Line contents and cursor, driven by curses key codes."""

    def __init__(self, initial: Optional[str] = None) -> None:
        self.text = initial or ""
        self.pos = len(self.text)

    def feed(self, key: Union[int, str]) -> KeyResult:
        """Apply one key press and report its effect."""
        if isinstance(key, str):
            key = ord(key)
        if key in _ACCEPT_KEYS:
            return KeyResult.ACCEPTED
        if key in _CANCEL_KEYS:
            return KeyResult.CANCELLED

        if key in (curses.KEY_DL, _CTRL_U):
            self.text = ""
            self.pos = 0
        elif key == curses.KEY_LEFT:
            if self.pos == 0:
                return KeyResult.BEEP
            self.pos -= 1
        elif key == curses.KEY_RIGHT:
            if self.pos == len(self.text):
                return KeyResult.BEEP
            self.pos += 1
        elif key in (curses.KEY_HOME, _CTRL_A):
            self.pos = 0
        elif key in (curses.KEY_END, _CTRL_E):
            self.pos = len(self.text)
        elif key == curses.KEY_DC:
            if self.pos == len(self.text):
                return KeyResult.BEEP
            self.text = self.text[: self.pos] + self.text[self.pos + 1 :]
        elif key == curses.KEY_BACKSPACE:
            if self.pos == 0:
                return KeyResult.BEEP
            self.text = self.text[: self.pos - 1] + self.text[self.pos :]
            self.pos -= 1
        elif key == _CTRL_W:
            self._delete_word()
        elif key == curses.ERR:
            pass
        elif 0x20 <= key <= 0x7E:
            self.text = self.text[: self.pos] + chr(key) + self.text[self.pos :]
            self.pos += 1
        else:
            return KeyResult.BEEP
        return KeyResult.EDITING

    def _char_at(self, index: int) -> str:
        return self.text[index] if index < len(self.text) else ""

    def _delete_word(self) -> None:
        start = self.pos
        while start > 0 and self._char_at(start) in _SPACES:
            start -= 1
        while start > 0 and self._char_at(start) not in _SPACES:
            start -= 1
        if start != self.pos:
            self.text = self.text[:start] + self.text[self.pos :]
            self.pos = start

    def visible(self, width: int) -> Tuple[str, int]:
        """The part of the line that fits in width columns, and the cursor column in it."""
        width = max(width, 0)
        offset = self.pos - width if self.pos > width else 0
        return self.text[offset : offset + width], self.pos - offset


def edline(window: Any, linenum: int, prompt: str, initial: Optional[str] = None) -> Optional[str]:
    """Prompt on a screen line and edit text; None if the user cancels."""
    editor = LineEditor(initial)
    xstart = len(prompt) + 2
    while True:
        result = editor.feed(window.getch())
        if result is KeyResult.BEEP:
            curses.beep()
        _, columns = window.getmaxyx()
        segment, cursor = editor.visible(columns - xstart - 1)
        try:
            window.addstr(linenum, 0, prompt)
            window.addstr("> ")
            if segment:
                window.addstr(segment)
            window.clrtoeol()
            window.move(linenum, xstart + cursor)
        except curses.error:
            pass
        window.refresh()
        if result is KeyResult.ACCEPTED:
            return editor.text
        if result is KeyResult.CANCELLED:
            return None