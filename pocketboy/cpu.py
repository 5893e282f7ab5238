"""The processor core: fetch, decode, interrupt handling and cycle pacing."""

from __future__ import annotations

from .cb_dispatch import execute_cb
from .dispatch import PREFIX_OPCODE, execute
from .instructions import InstructionSet

CLOCK_SPEED = 4194304

IE_ADDRESS = 0xFFFF
IF_ADDRESS = 0xFF0F

# (interrupt bit, handler address) in priority order.
INTERRUPT_VECTORS = (
    (0, 0x40),  # V-Blank
    (1, 0x48),  # LCD STAT
    (2, 0x50),  # Timer
    (3, 0x58),  # Serial
    (4, 0x60),  # Joypad
)


class CPU(InstructionSet):
    """Runs one instruction per call to ``tick`` once its previous one has finished.

    ``gameboy`` must provide ``mmu`` with ``read(address)`` and
    ``write(address, data)``.
    """

    def __init__(self, gameboy) -> None:
        super().__init__(gameboy.mmu)
        self.gb = gameboy
        self.internal_clock = 0
        self.halt_bug = False
        self.reset()

    def reset(self) -> None:
        """Restore the power-on register values and clear interrupt state."""
        self.registers.reset()
        self.cycles = 0
        self.ime = False
        self.halted = False

    def set_interrupt_flag(self, bit: int, value: bool) -> None:
        """Raise or acknowledge interrupt ``bit`` in the IF register."""
        flags = self.read8(IF_ADDRESS)
        if value:
            flags |= 1 << bit
        else:
            flags &= ~(1 << bit) & 0xFF
        self.write8(IF_ADDRESS, flags)

    def _process_interrupt(self, fired: int, bit: int, address: int) -> bool:
        if not fired & (1 << bit):
            return False
        self.cycles += 5
        self.internal_clock = (self.internal_clock + 5) & 0xFF
        self.set_interrupt_flag(bit, False)
        self.registers.pc = address
        self.ime = False
        return True

    def _handle_interrupts(self) -> None:
        enabled = self.read8(IE_ADDRESS)
        requested = self.read8(IF_ADDRESS)
        fired = enabled & requested
        if not fired & 0x1F:
            return

        if self.halted:
            if not self.ime:
                self.halt_bug = True
            self.halted = False

        if not self.ime:
            return

        self.push_address(self.registers.pc)
        for bit, address in INTERRUPT_VECTORS:
            if self._process_interrupt(fired, bit, address):
                return

    def _finish_step(self, start_cycles: int) -> None:
        diff = self.cycles - start_cycles
        self.internal_clock = (self.internal_clock + diff) & 0xFF
        self.cycles %= CLOCK_SPEED

    def tick(self) -> None:
        """Advance one machine cycle, executing an instruction when the core is idle."""
        if self.internal_clock > 0:
            self.internal_clock -= 1
            return

        start_cycles = self.cycles
        self._handle_interrupts()

        if self.halted:
            self._finish_step(start_cycles)
            return

        regs = self.registers
        start_pc = regs.pc
        opcode = self.read8(regs.pc)

        if opcode == PREFIX_OPCODE:
            regs.pc = (regs.pc + 1) & 0xFFFF
            execute_cb(self, self.read8(regs.pc))
        else:
            execute(self, opcode)
            self.taken_conditional = False

        if self.halt_bug:
            regs.pc = start_pc
            self.halt_bug = False

        self._finish_step(start_cycles)