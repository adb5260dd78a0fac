"""Kernel start-up: bring up interrupts, timer, keyboard, heap, disks and the filesystem."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path

from simplekernel.console import VGA_HEIGHT, VGA_WIDTH, Keyboard, Screen
from simplekernel.disk import MAX_DISKS, Disk, DiskArray
from simplekernel.fat12 import Fat12, FatError, mount
from simplekernel.heap import Heap
from simplekernel.interrupts import (
    INTERRUPT_GATE_FLAGS,
    IRQ_BASE,
    IRQ_LINES,
    KERNEL_CODE_SELECTOR,
    PIC_REMAP,
    Idt,
    IrqTable,
    PortWrite,
    Registers,
    Timer,
    fault_handler,
)

GREETING_FILE = "testdir/testfile.txt"
ERROR_COLOR = 0x47
FILE_COLOR = 0x0D
CURSOR_COLOR = 0x1E
STATUS_COLUMN = VGA_WIDTH - 20
CPU_EXCEPTIONS = 32

CURSOR_START = 14
CURSOR_END = 15

# Interrupt entry stubs sit in a table at a fixed address, one slot per vector.
_STUB_TABLE = 0x1000
_STUB_SIZE = 16


def _stub_address(vector: int) -> int:
    return _STUB_TABLE + vector * _STUB_SIZE


@dataclass
class _Machine:
    """The running kernel's devices and state."""

    screen: Screen
    heap: Heap
    disks: DiskArray
    idt: Idt
    irqs: IrqTable
    timer: Timer
    keyboard: Keyboard
    fs: Fat12 | None = None
    port_writes: list[PortWrite] = field(default_factory=list)

    def interrupt(self, int_no: int) -> None:
        """Deliver interrupt vector ``int_no`` as the CPU would."""
        regs = Registers(int_no=int_no)
        if int_no < CPU_EXCEPTIONS:
            fault_handler(regs)
            return
        self.port_writes.extend(self.irqs.dispatch(regs))

    def press(self, scancode: int) -> None:
        """Feed one keyboard scancode through IRQ 1 and refresh the cursor display."""
        self.keyboard.pending.append(scancode)
        self.interrupt(IRQ_BASE + 1)
        self.refresh_cursor()

    def refresh_cursor(self) -> None:
        self.screen.set_stringf(STATUS_COLUMN, 3, "X: %d ", CURSOR_COLOR, self.screen.cursor_x)
        self.screen.set_stringf(STATUS_COLUMN, 4, "Y: %d ", CURSOR_COLOR, self.screen.cursor_y)

    def render(self) -> str:
        """The screen as text, trailing blanks removed."""
        rows = [self.screen.row_text(y).rstrip() for y in range(VGA_HEIGHT)]
        return "\n".join(rows).rstrip("\n")


def _load_disks(image_paths: Iterable[str | PathLike[str]]) -> DiskArray:
    paths = [Path(p) for p in image_paths]
    if len(paths) > MAX_DISKS:
        raise ValueError(f"at most {MAX_DISKS} disk images can be attached")
    return DiskArray(Disk(path.read_bytes(), model=path.name) for path in paths)


def _install_interrupts(idt: Idt, port_writes: list[PortWrite]) -> None:
    for vector in range(CPU_EXCEPTIONS):
        idt.set_gate(vector, _stub_address(vector), KERNEL_CODE_SELECTOR, INTERRUPT_GATE_FLAGS)
    port_writes.extend(PIC_REMAP)
    for line in range(IRQ_LINES):
        vector = IRQ_BASE + line
        idt.set_gate(vector, _stub_address(vector), KERNEL_CODE_SELECTOR, INTERRUPT_GATE_FLAGS)


def _enable_cursor(port_writes: list[PortWrite]) -> None:
    port_writes.extend(
        [(0x3D4, 0x0A), (0x3D5, CURSOR_START), (0x3D4, 0x0B), (0x3D5, CURSOR_END)]
    )


def _show_greeting(machine: _Machine) -> None:
    screen = machine.screen
    try:
        machine.fs = mount(machine.disks)
    except FatError as exc:
        screen.print(f"{exc}\n", ERROR_COLOR)
        return
    try:
        data = machine.fs.read_file(GREETING_FILE)
    except FileNotFoundError:
        screen.printf("File %s does not exist\n", ERROR_COLOR, GREETING_FILE)
        return
    except FatError as exc:
        screen.print(f"{exc}\n", ERROR_COLOR)
        return
    screen.print(data.decode("latin-1").split("\0", 1)[0], FILE_COLOR)


def _show_heap_status(machine: _Machine) -> None:
    status = machine.heap.status()
    screen = machine.screen
    screen.set_stringf(STATUS_COLUMN, 0, "TOTAL: %s", ERROR_COLOR, status.total_display)
    screen.set_stringf(STATUS_COLUMN, 1, "USED: %u%", ERROR_COLOR, status.used_percent)
    screen.set_stringf(STATUS_COLUMN, 2, "FREE: %u%", ERROR_COLOR, status.free_percent)


def _list_disks(machine: _Machine) -> None:
    for row, line in enumerate(machine.disks.describe()):
        machine.screen.set_string(0, VGA_HEIGHT - MAX_DISKS + row, line, ERROR_COLOR)


def boot(image_paths: Iterable[str | PathLike[str]] = ()) -> _Machine:
    """Start the kernel with the given disk images attached in slot order."""
    port_writes: list[PortWrite] = []
    idt = Idt()
    _install_interrupts(idt, port_writes)

    irqs = IrqTable()
    timer = Timer()
    port_writes.extend(timer.install(irqs))

    screen = Screen()
    keyboard = Keyboard(screen)
    keyboard.install(irqs)

    machine = _Machine(
        screen=screen,
        heap=Heap(),
        disks=_load_disks(image_paths),
        idt=idt,
        irqs=irqs,
        timer=timer,
        keyboard=keyboard,
        port_writes=port_writes,
    )
    _enable_cursor(port_writes)
    _show_greeting(machine)
    _show_heap_status(machine)
    _list_disks(machine)
    machine.refresh_cursor()
    return machine


def _scancode(text: str) -> int:
    try:
        value = int(text, 16)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a hexadecimal scancode: {text!r}") from None
    if not 0 <= value <= 0xFF:
        raise argparse.ArgumentTypeError(f"scancode out of range: {text!r}")
    return value


def main(argv: Sequence[str] | None = None) -> int:
    """Boot with disk images from the command line and print the resulting screen."""
    parser = argparse.ArgumentParser(
        prog="simplekernel", description="Boot the kernel on disk images and show the screen."
    )
    parser.add_argument("images", nargs="*", help=f"disk images, at most {MAX_DISKS}")
    parser.add_argument(
        "--keys",
        nargs="*",
        type=_scancode,
        default=[],
        metavar="HEX",
        help="keyboard scancodes to deliver after boot",
    )
    args = parser.parse_args(argv)
    if len(args.images) > MAX_DISKS:
        parser.error(f"at most {MAX_DISKS} disk images can be attached")

    try:
        machine = boot(args.images)
    except OSError as exc:
        print(f"simplekernel: {exc}", file=sys.stderr)
        return 1

    for scancode in args.keys:
        machine.press(scancode)
    print(machine.render())
    return 0


if __name__ == "__main__":
    sys.exit(main())