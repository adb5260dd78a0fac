import pytest

from simplekernel.console import (
    VGA_HEIGHT,
    VGA_WIDTH,
    Keyboard,
    Modifiers,
    Screen,
    format_message,
)
from simplekernel.interrupts import IrqTable, Registers


def test_format_unsigned_with_trailing_percent():
    assert format_message("USED: %u%", 42) == "USED: 42%"


def test_format_conversions():
    assert format_message("PORT:%x, TOTAL:%d, MODEL:%s", 0x1F0, 20480, "DISK") == (
        "PORT:1f0, TOTAL:20480, MODEL:DISK"
    )
    assert format_message("%d", -5) == "-5"
    assert format_message("%l", 7) == "7"


def test_format_unknown_directive_is_literal():
    assert format_message("100%q done", 1) == "100%q done"


def test_format_missing_argument():
    with pytest.raises(TypeError):
        format_message("X: %d %d", 1)


def test_print_advances_cursor():
    screen = Screen()
    screen.print("hi", 0x0D)
    assert screen.row_text(0).rstrip() == "hi"
    assert (screen.cursor_x, screen.cursor_y) == (2, 0)
    assert screen.cell(0, 0) == ("h", 0x0D)


def test_newline_moves_to_next_row():
    screen = Screen()
    screen.print("ab\ncd", 7)
    assert screen.row_text(0).rstrip() == "ab"
    assert screen.row_text(1).rstrip() == "cd"
    assert screen.cursor_y == 1


def test_backspace_erases_previous_cell():
    screen = Screen()
    screen.print("ab\b", 7)
    assert screen.row_text(0).rstrip() == "a"
    assert screen.cursor_x == 1


def test_last_cell_is_never_written():
    screen = Screen()
    screen.move_cursor(VGA_WIDTH - 1, VGA_HEIGHT - 1)
    screen.put_char("z", 7)
    assert screen.cell(VGA_WIDTH - 1, VGA_HEIGHT - 1)[0] == " "
    assert (screen.cursor_x, screen.cursor_y) == (VGA_WIDTH - 1, VGA_HEIGHT - 1)


def test_printing_wraps_at_row_end():
    screen = Screen()
    screen.move_cursor(VGA_WIDTH - 1, 0)
    screen.print("xy", 7)
    assert screen.cell(VGA_WIDTH - 1, 0)[0] == "x"
    assert screen.cell(0, 1)[0] == "y"


def test_set_stringf_does_not_move_cursor():
    screen = Screen()
    screen.set_stringf(VGA_WIDTH - 20, 3, "X: %d ", 0x1E, 12)
    assert screen.row_text(3)[VGA_WIDTH - 20:].rstrip() == "X: 12"
    assert screen.position == 0
    assert screen.cell(VGA_WIDTH - 20, 3) == ("X", 0x1E)


def test_set_char_off_screen_rejected():
    with pytest.raises(ValueError):
        Screen().set_char(0, VGA_HEIGHT, "a", 7)


def test_clear_resets_screen():
    screen = Screen()
    screen.print("hello", 7)
    screen.clear()
    assert screen.row_text(0) == " " * VGA_WIDTH
    assert screen.position == 0


def test_keyboard_echoes_lowercase_and_shifted():
    screen = Screen()
    keyboard = Keyboard(screen)
    assert keyboard.handle_scancode(0x1E) == "a"
    keyboard.handle_scancode(0x2A)
    assert keyboard.modifiers & Modifiers.SHIFT
    assert keyboard.handle_scancode(0x1E) == "A"
    keyboard.handle_scancode(0xAA)
    assert not keyboard.modifiers & Modifiers.SHIFT
    assert keyboard.handle_scancode(0x1E) == "a"
    assert screen.row_text(0).rstrip() == "aAa"


def test_keyboard_release_prints_nothing():
    screen = Screen()
    keyboard = Keyboard(screen)
    assert keyboard.handle_scancode(0x9E) is None
    assert screen.position == 0


def test_ctrl_and_alt_flags():
    keyboard = Keyboard(Screen())
    keyboard.handle_scancode(0x1D)
    keyboard.handle_scancode(0x38)
    assert keyboard.modifiers == Modifiers.CTRL | Modifiers.ALT
    keyboard.handle_scancode(0x9D)
    assert keyboard.modifiers == Modifiers.ALT


def test_extended_arrows_move_cursor():
    screen = Screen()
    keyboard = Keyboard(screen)
    screen.move_cursor(5, 5)
    for code in (0xE0, 0x48):
        keyboard.handle_scancode(code)
    assert (screen.cursor_x, screen.cursor_y) == (5, 4)
    screen.move_cursor(0, 4)
    for code in (0xE0, 0x4B):
        keyboard.handle_scancode(code)
    assert (screen.cursor_x, screen.cursor_y) == (VGA_WIDTH - 1, 3)
    for code in (0xE0, 0x4D):
        keyboard.handle_scancode(code)
    assert (screen.cursor_x, screen.cursor_y) == (0, 4)
    assert keyboard.extended is False


def test_scancode_range_checked():
    with pytest.raises(ValueError):
        Keyboard(Screen()).handle_scancode(256)


def test_keyboard_irq_consumes_pending_byte():
    screen = Screen()
    keyboard = Keyboard(screen)
    irqs = IrqTable()
    keyboard.install(irqs)
    keyboard.pending.append(0x1E)
    irqs.dispatch(Registers(int_no=33))
    assert screen.row_text(0).rstrip() == "a"
    assert len(keyboard.pending) == 0