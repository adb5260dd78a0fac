import threading
import time

import pytest

from simplekernel.interrupts import (
    CpuFault,
    Idt,
    IrqTable,
    Registers,
    Timer,
    exception_message,
    fault_handler,
)


def test_idt_starts_zeroed():
    idt = Idt()
    packed = idt.pack()
    assert len(packed) == 256 * 8
    assert packed == bytes(256 * 8)
    assert idt.limit == 256 * 8 - 1


def test_set_gate_layout():
    idt = Idt()
    idt.set_gate(32, 0x12345678, 0x08, 0x8E)
    entry = idt.entries[32]
    assert entry.base_lo == 0x5678
    assert entry.base_hi == 0x1234
    assert entry.base == 0x12345678
    assert idt.pack()[32 * 8:33 * 8] == b"\x78\x56\x08\x00\x00\x8e\x34\x12"


def test_set_gate_rejects_bad_vector():
    with pytest.raises(ValueError):
        Idt().set_gate(256, 0, 0x08, 0x8E)


def test_exception_messages():
    assert exception_message(0) == "Division by zero"
    assert exception_message(14) == "Page fault"
    assert exception_message(31) == "Reserved"
    with pytest.raises(ValueError):
        exception_message(32)


def test_fault_handler_raises_for_cpu_exceptions():
    regs = Registers(int_no=13)
    with pytest.raises(CpuFault) as info:
        fault_handler(regs)
    assert info.value.int_no == 13
    assert info.value.message == "General protection fault"
    assert info.value.regs is regs


def test_fault_handler_ignores_irq_vectors():
    assert fault_handler(Registers(int_no=40)) is None


def test_irq_dispatch_calls_handler_and_acks_master():
    irqs = IrqTable()
    seen = []
    irqs.install_handler(3, seen.append)
    regs = Registers(int_no=35)
    acks = irqs.dispatch(regs)
    assert seen == [regs]
    assert acks == [(0x20, 0x20)]


def test_irq_dispatch_acks_slave_for_high_lines():
    irqs = IrqTable()
    assert irqs.dispatch(Registers(int_no=44)) == [(0xA0, 0x20), (0x20, 0x20)]


def test_uninstall_stops_handler():
    irqs = IrqTable()
    seen = []
    irqs.install_handler(5, seen.append)
    irqs.uninstall(5)
    irqs.dispatch(Registers(int_no=37))
    assert seen == []


def test_irq_line_range_checked():
    irqs = IrqTable()
    with pytest.raises(ValueError):
        irqs.install_handler(16, print)
    with pytest.raises(ValueError):
        irqs.dispatch(Registers(int_no=31))


def test_timer_phase_programs_divisor():
    timer = Timer()
    writes = timer.phase(100)
    assert writes[0] == (0x43, 0x36)
    low, high = writes[1][1], writes[2][1]
    assert (high << 8) | low == 1193180 // 100
    assert timer.hz == 100


def test_timer_phase_rejects_zero():
    with pytest.raises(ValueError):
        Timer().phase(0)


def test_timer_install_counts_irq0():
    irqs = IrqTable()
    timer = Timer()
    timer.install(irqs)
    for _ in range(4):
        irqs.dispatch(Registers(int_no=32))
    assert timer.ticks == 4
    assert timer.hz == 100


def test_wait_zero_returns_immediately():
    timer = Timer()
    timer.wait(0)
    assert timer.ticks == 0


def test_wait_blocks_until_ticks_pass():
    timer = Timer()
    done = threading.Event()

    def waiter():
        timer.wait(3)
        done.set()

    thread = threading.Thread(target=waiter)
    thread.start()
    for _ in range(2000):
        if done.is_set():
            break
        timer.handle(Registers(int_no=32))
        time.sleep(0.001)
    thread.join(timeout=5)
    assert done.is_set()
    assert timer.ticks >= 3