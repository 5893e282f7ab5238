"""Decoding of 0xCB-prefixed opcodes into calls on an instruction set."""

from __future__ import annotations

from functools import partial
from typing import Callable, Optional

from .instructions import InstructionSet

# Operand order used by the opcode encoding; ``None`` stands for (HL).
_R8: tuple[Optional[str], ...] = ("b", "c", "d", "e", "h", "l", None, "a")
_SHIFTS = ("rlc", "rrc", "rl", "rr", "sla", "sra", "swap", "srl")

_GROUP_SHIFT = 0
_GROUP_BIT = 1
_GROUP_RES = 2


def execute_cb(cpu: InstructionSet, opcode: int) -> None:
    """Execute one 0xCB-prefixed instruction on ``cpu``.

    ``opcode`` is the byte that follows the prefix. The program counter is
    expected to point at that byte. Raises ValueError outside 0-255.
    """
    if not 0 <= opcode <= 0xFF:
        raise ValueError(f"opcode out of range: {opcode!r}")

    group = opcode >> 6
    selector = (opcode >> 3) & 0x07
    reg = _R8[opcode & 0x07]

    if group == _GROUP_BIT:
        if reg is None:
            cpu.test_bit_hl(selector)
        else:
            cpu.test_bit(selector, cpu.registers[reg])
        return

    operation: Callable[[int], int]
    if group == _GROUP_SHIFT:
        operation = getattr(cpu, _SHIFTS[selector])
    elif group == _GROUP_RES:
        operation = partial(cpu.reset_bit, selector)
    else:
        operation = partial(cpu.set_bit, selector)

    if reg is None:
        cpu.apply_cb_hl(operation)
    else:
        cpu.apply_cb_register(operation, reg)