"""Interrupt descriptor table, CPU exception handling, IRQ dispatch and the PIT timer."""

from __future__ import annotations

import struct
import threading
from collections.abc import Callable
from dataclasses import dataclass

IDT_ENTRIES = 256
IDT_ENTRY_SIZE = 8
IRQ_LINES = 16
IRQ_BASE = 32
KERNEL_CODE_SELECTOR = 0x08
INTERRUPT_GATE_FLAGS = 0x8E

PIC1_COMMAND = 0x20
PIC2_COMMAND = 0xA0
END_OF_INTERRUPT = 0x20

# Port writes that move IRQ 0-15 to interrupt vectors 32-47.
PIC_REMAP = (
    (0x20, 0x11),
    (0xA0, 0x11),
    (0x21, 0x20),
    (0xA1, 0x28),
    (0x21, 0x04),
    (0xA1, 0x02),
    (0x21, 0x01),
    (0xA1, 0x11),
    (0x21, 0x00),
    (0xA1, 0x00),
)

PIT_FREQUENCY = 1193180
PIT_COMMAND_PORT = 0x43
PIT_CHANNEL0_PORT = 0x40
PIT_MODE = 0x36
DEFAULT_TIMER_HZ = 100

_EXCEPTION_MESSAGES = (
    "Division by zero",
    "Debug",
    "Non maskable interrupt",
    "Breakpoint",
    "Into detected overflow",
    "Out of bounds",
    "Invalid opcode",
    "No coprocessor",
    "Double fault",
    "Coprocessor segment overrun",
    "Bad TSS",
    "Segment not present",
    "Stack fault",
    "General protection fault",
    "Page fault",
    "Unknown interrupt",
    "Coprocessor fault",
    "Alignment check",
    "Machine check",
) + ("Reserved",) * 13

PortWrite = tuple[int, int]
IrqHandler = Callable[["Registers"], object]


@dataclass
class Registers:
    """CPU state pushed by an interrupt stub."""

    gs: int = 0
    fs: int = 0
    es: int = 0
    ds: int = 0
    edi: int = 0
    esi: int = 0
    ebp: int = 0
    esp: int = 0
    ebx: int = 0
    edx: int = 0
    ecx: int = 0
    eax: int = 0
    int_no: int = 0
    err_code: int = 0
    eip: int = 0
    cs: int = 0
    eflags: int = 0
    useresp: int = 0
    ss: int = 0


class CpuFault(Exception):
    """Raised for a CPU exception (vectors 0-31); the kernel halts on these."""

    def __init__(self, int_no: int, message: str, regs: Registers | None = None) -> None:
        super().__init__(message)
        self.int_no = int_no
        self.message = message
        self.regs = regs


@dataclass
class IdtEntry:
    """One 8-byte interrupt gate descriptor."""

    base_lo: int = 0
    sel: int = 0
    always0: int = 0
    flags: int = 0
    base_hi: int = 0

    @property
    def base(self) -> int:
        return (self.base_hi << 16) | self.base_lo

    def pack(self) -> bytes:
        return struct.pack("<HHBBH", self.base_lo, self.sel, self.always0, self.flags, self.base_hi)


class Idt:
    """A 256-entry interrupt descriptor table, zeroed on creation."""

    def __init__(self) -> None:
        self.entries = [IdtEntry() for _ in range(IDT_ENTRIES)]
        self.limit = IDT_ENTRIES * IDT_ENTRY_SIZE - 1

    def set_gate(self, num: int, base: int, sel: int, flags: int) -> None:
        """Point vector ``num`` at handler address ``base``."""
        if not 0 <= num < IDT_ENTRIES:
            raise ValueError(f"interrupt vector out of range: {num}")
        base &= 0xFFFFFFFF
        self.entries[num] = IdtEntry(
            base_lo=base & 0xFFFF,
            sel=sel & 0xFFFF,
            always0=0,
            flags=flags & 0xFF,
            base_hi=base >> 16,
        )

    def pack(self) -> bytes:
        """The table as the processor sees it in memory."""
        return b"".join(entry.pack() for entry in self.entries)


def exception_message(int_no: int) -> str:
    """Name of CPU exception ``int_no`` (0-31)."""
    if not 0 <= int_no < len(_EXCEPTION_MESSAGES):
        raise ValueError(f"not a CPU exception vector: {int_no}")
    return _EXCEPTION_MESSAGES[int_no]


def fault_handler(regs: Registers) -> None:
    """Raise :class:`CpuFault` for CPU exceptions; other vectors are ignored."""
    if 0 <= regs.int_no < len(_EXCEPTION_MESSAGES):
        raise CpuFault(regs.int_no, exception_message(regs.int_no), regs)


class IrqTable:
    """Handlers for the 16 hardware IRQ lines behind the two PICs."""

    def __init__(self) -> None:
        self._routines: list[IrqHandler | None] = [None] * IRQ_LINES

    @staticmethod
    def _check_line(irq: int) -> int:
        if not 0 <= irq < IRQ_LINES:
            raise ValueError(f"IRQ line out of range: {irq}")
        return irq

    def install_handler(self, irq: int, handler: IrqHandler) -> None:
        self._routines[self._check_line(irq)] = handler

    def uninstall(self, irq: int) -> None:
        self._routines[self._check_line(irq)] = None

    def dispatch(self, regs: Registers) -> list[PortWrite]:
        """Run the handler for ``regs.int_no`` and return the end-of-interrupt writes."""
        line = self._check_line(regs.int_no - IRQ_BASE)
        handler = self._routines[line]
        if handler is not None:
            handler(regs)
        acks: list[PortWrite] = []
        if regs.int_no >= IRQ_BASE + 8:
            acks.append((PIC2_COMMAND, END_OF_INTERRUPT))
        acks.append((PIC1_COMMAND, END_OF_INTERRUPT))
        return acks


class Timer:
    """Programmable interval timer counting ticks on IRQ 0."""

    def __init__(self) -> None:
        self.ticks = 0
        self.hz: int | None = None
        self._changed = threading.Condition()

    def phase(self, hz: int) -> list[PortWrite]:
        """Set the tick rate and return the port writes that program the PIT."""
        if hz <= 0:
            raise ValueError("timer frequency must be positive")
        divisor = PIT_FREQUENCY // hz
        self.hz = hz
        return [
            (PIT_COMMAND_PORT, PIT_MODE),
            (PIT_CHANNEL0_PORT, divisor & 0xFF),
            (PIT_CHANNEL0_PORT, (divisor >> 8) & 0xFF),
        ]

    def handle(self, regs: Registers) -> None:
        with self._changed:
            self.ticks += 1
            self._changed.notify_all()

    def install(self, irqs: IrqTable) -> list[PortWrite]:
        """Run at the default rate and attach to IRQ 0."""
        writes = self.phase(DEFAULT_TIMER_HZ)
        irqs.install_handler(0, self.handle)
        return writes

    def wait(self, ticks: int) -> None:
        """Block until ``ticks`` more ticks have been counted."""
        with self._changed:
            start = self.ticks
            self._changed.wait_for(lambda: self.ticks - start >= ticks)