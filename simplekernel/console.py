"""VGA text console, printf-style formatting and PS/2 keyboard input."""

from __future__ import annotations

import re
from collections import deque
from enum import IntFlag

from simplekernel.interrupts import IrqTable, Registers
from simplekernel.strings import itoa, utoa

VGA_WIDTH = 80
VGA_HEIGHT = 25
BLANK = " "

_CONVERSION = re.compile(r"%([dlxsu])")


def format_message(fmt: str, *args: object) -> str:
    """Expand ``%d``, ``%l``, ``%x``, ``%u`` and ``%s``; any other ``%`` stays literal."""
    pending = iter(args)

    def expand(match: re.Match[str]) -> str:
        try:
            arg = next(pending)
        except StopIteration:
            raise TypeError(f"not enough arguments for format {fmt!r}") from None
        kind = match.group(1)
        if kind == "s":
            return str(arg)
        if kind == "x":
            return itoa(int(arg), 16)
        if kind == "u":
            return utoa(int(arg), 10)
        return itoa(int(arg), 10)

    return _CONVERSION.sub(expand, fmt)


def _check_char(c: str) -> None:
    if len(c) != 1:
        raise ValueError(f"expected a single character, got {c!r}")


class Screen:
    """An 80x25 text screen of (character, colour) cells with a hardware-style cursor."""

    def __init__(self) -> None:
        self._cells = [(BLANK, 0)] * (VGA_WIDTH * VGA_HEIGHT)
        self.position = 0

    @property
    def cursor_x(self) -> int:
        return self.position % VGA_WIDTH

    @property
    def cursor_y(self) -> int:
        return self.position // VGA_WIDTH

    def move_cursor(self, x: int, y: int) -> None:
        self.position = (y * VGA_WIDTH + x) & 0xFFFF

    def cell(self, x: int, y: int) -> tuple[str, int]:
        """The character and colour at column ``x``, row ``y``."""
        return self._cells[self._offset(x, y)]

    def _offset(self, x: int, y: int) -> int:
        pos = y * VGA_WIDTH + x
        if not 0 <= pos < len(self._cells):
            raise ValueError(f"position ({x}, {y}) is off screen")
        return pos

    def _store(self, pos: int, c: str, color: int) -> None:
        # Writes past the visible page land in memory nobody displays.
        if 0 <= pos < len(self._cells):
            self._cells[pos] = (c, color & 0xFF)

    def put_char(self, c: str, color: int) -> None:
        """Write one character at the cursor, handling backspace and newline."""
        _check_char(c)
        if c == "\b":
            self._store(self.position - 1, BLANK, color)
            if self.cursor_x == 0:
                return
            self.move_cursor(self.cursor_x - 1, self.cursor_y)
            return
        if self.cursor_x == VGA_WIDTH - 1 and self.cursor_y == VGA_HEIGHT - 1:
            return
        if c == "\n":
            self.move_cursor(0, self.cursor_y + 1)
            return
        self._store(self.position, c, color)
        self.move_cursor(self.cursor_x + 1, self.cursor_y)

    def print(self, text: str, color: int) -> None:
        for c in text:
            self.put_char(c, color)

    def printf(self, fmt: str, color: int, *args: object) -> None:
        self.print(format_message(fmt, *args), color)

    def set_char(self, x: int, y: int, c: str, color: int) -> None:
        """Write a character at a fixed position without moving the cursor."""
        _check_char(c)
        self._cells[self._offset(x, y)] = (c, color & 0xFF)

    def set_string(self, x: int, y: int, text: str, color: int) -> None:
        """Write ``text`` from ``(x, y)``; long text runs on into the next row."""
        for offset, c in enumerate(text):
            self.set_char(x + offset, y, c, color)

    def set_stringf(self, x: int, y: int, fmt: str, color: int, *args: object) -> None:
        self.set_string(x, y, format_message(fmt, *args), color)

    def clear(self) -> None:
        """Blank the screen and home the cursor."""
        self.move_cursor(0, 0)
        self._cells = [(BLANK, 0)] * (VGA_WIDTH * VGA_HEIGHT)

    def row_text(self, y: int) -> str:
        """The characters of row ``y``."""
        start = self._offset(0, y)
        return "".join(c for c, _ in self._cells[start:start + VGA_WIDTH])


class Modifiers(IntFlag):
    NONE = 0
    SHIFT = 0x01
    CTRL = 0x02
    ALT = 0x04


def _keymap(rows: dict[int, str]) -> tuple[str, ...]:
    table = ["\0"] * 128
    for start, chars in rows.items():
        for offset, c in enumerate(chars):
            table[start + offset] = c
    return tuple(table)


_KEYMAP = _keymap(
    {
        1: "\x1b",
        2: "1234567890-=\b",
        16: "qwertyuiop[]\n",
        30: "asdfghjkl;'`",
        44: "zxcvbnm,./",
        55: "*",
        57: " ",
        74: "-",
        78: "+",
    }
)

_SHIFT_KEYMAP = _keymap(
    {
        1: "\x1b",
        2: "!@#$%^&*()_+\b",
        16: "QWERTYUIOP{}\n",
        30: 'ASDFGHJKL:"~',
        44: "ZXCVBNM<>?",
        55: "*",
        57: " ",
        74: "-",
        78: "+",
    }
)

_EXTENDED_PREFIX = 0xE0
_RELEASED = 0x80
_SHIFT_DOWN = (0x2A, 0x36)
_SHIFT_UP = (0xAA, 0xB6)
_CTRL_DOWN, _CTRL_UP = 0x1D, 0x9D
_ALT_DOWN, _ALT_UP = 0x38, 0xB8
_UP, _LEFT, _RIGHT, _DOWN = 0x48, 0x4B, 0x4D, 0x50
KEY_COLOR = 0x0D


class Keyboard:
    """Turns scancode set 1 bytes into characters on a :class:`Screen`."""

    def __init__(self, screen: Screen) -> None:
        self.screen = screen
        self.modifiers = Modifiers.NONE
        self.extended = False
        self.pending: deque[int] = deque()

    def handle_scancode(self, scancode: int) -> str | None:
        """Process one scancode; return the character echoed, if any."""
        if not 0 <= scancode <= 0xFF:
            raise ValueError(f"scancode out of range: {scancode}")
        if scancode == _EXTENDED_PREFIX:
            self.extended = True
            return None

        echoed = None
        if scancode & _RELEASED:
            if scancode in _SHIFT_UP:
                self.modifiers &= ~Modifiers.SHIFT
            if scancode == _CTRL_UP:
                self.modifiers &= ~Modifiers.CTRL
            if scancode == _ALT_UP:
                self.modifiers &= ~Modifiers.ALT
        else:
            if scancode in _SHIFT_DOWN:
                self.modifiers |= Modifiers.SHIFT
            if scancode == _CTRL_DOWN:
                self.modifiers |= Modifiers.CTRL
            if scancode == _ALT_DOWN:
                self.modifiers |= Modifiers.ALT
            if self.extended:
                self._move(scancode)
            if _KEYMAP[scancode] != "\0":
                table = _SHIFT_KEYMAP if self.modifiers & Modifiers.SHIFT else _KEYMAP
                echoed = table[scancode]
                self.screen.put_char(echoed, KEY_COLOR)

        self.extended = False
        return echoed

    def _move(self, scancode: int) -> None:
        screen = self.screen
        x, y = screen.cursor_x, screen.cursor_y
        if scancode == _UP:
            if y > 0:
                screen.move_cursor(x, y - 1)
        elif scancode == _LEFT:
            if x > 0:
                screen.move_cursor(x - 1, y)
            elif y > 0:
                screen.move_cursor(VGA_WIDTH - 1, y - 1)
        elif scancode == _RIGHT:
            if x < VGA_WIDTH - 1:
                screen.move_cursor(x + 1, y)
            elif y < VGA_HEIGHT - 1:
                screen.move_cursor(0, y + 1)
        elif scancode == _DOWN:
            if y < VGA_HEIGHT - 1:
                screen.move_cursor(x, y + 1)

    def _on_irq(self, regs: Registers) -> None:
        if self.pending:
            self.handle_scancode(self.pending.popleft())

    def install(self, irqs: IrqTable) -> None:
        """Attach to IRQ 1; each interrupt consumes one byte from ``pending``."""
        irqs.install_handler(1, self._on_irq)