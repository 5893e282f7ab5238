"""Divider and programmable timer registers."""

from __future__ import annotations

DIV_ADDRESS = 0xFF04
TIMA_ADDRESS = 0xFF05
TMA_ADDRESS = 0xFF06
TAC_ADDRESS = 0xFF07

TIMER_INTERRUPT_BIT = 2

_DIV_PERIOD = 256
_TAC_ENABLE = 0x04
_TAC_FREQUENCIES = {0x00: 1024, 0x01: 16, 0x02: 64, 0x03: 256}


def frequency_from_tac(tac: int) -> int:
    """Return the number of clock cycles between TIMA increments for ``tac``."""
    return _TAC_FREQUENCIES[tac & 0x03]


class Timer:
    """Drives DIV and TIMA from machine cycles.

    ``gameboy`` must provide ``mmu`` (with ``read``/``write``) and ``cpu``
    (with ``set_interrupt_flag``).
    """

    def __init__(self, gameboy) -> None:
        self.gb = gameboy
        self.div = 0
        self.internal_clock = 0
        self.internal_div_clock = 0
        self.reset()

    def reset(self) -> None:
        """Write the power-on value to the divider register."""
        self.gb.mmu.write(DIV_ADDRESS, 0xAB)

    def increment_tima(self) -> None:
        """Advance TIMA, reloading it from TMA and raising an interrupt on overflow."""
        mmu = self.gb.mmu
        counter = mmu.read(TIMA_ADDRESS)
        if counter == 0xFF:
            mmu.write(TIMA_ADDRESS, mmu.read(TMA_ADDRESS))
            self.gb.cpu.set_interrupt_flag(TIMER_INTERRUPT_BIT, True)
        else:
            mmu.write(TIMA_ADDRESS, counter + 1)

    def update(self, cycle_diff: int) -> None:
        """Advance the timers by ``cycle_diff`` machine cycles."""
        clock_cycles = cycle_diff * 4

        self.internal_div_clock += clock_cycles
        if self.internal_div_clock >= _DIV_PERIOD:
            self.internal_div_clock -= _DIV_PERIOD
            self.div = (self.div + 1) & 0xFF

        tac = self.gb.mmu.read(TAC_ADDRESS)
        if not tac & _TAC_ENABLE:
            return

        self.internal_clock += clock_cycles
        frequency = frequency_from_tac(tac)
        if self.internal_clock >= frequency:
            self.internal_clock -= frequency
            self.increment_tima()