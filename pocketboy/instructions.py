"""Register file and the individual instructions of the SM83 processor core."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

_ZERO_BIT = 7
_SUBTRACT_BIT = 6
_HALF_CARRY_BIT = 5
_CARRY_BIT = 4

_REGISTERS_8 = frozenset({"a", "f", "b", "c", "d", "e", "h", "l"})
_REGISTERS_16 = frozenset({"af", "bc", "de", "hl", "sp", "pc"})


def _signed(byte: int) -> int:
    """Interpret an unsigned byte as a two's complement value."""
    return byte - 0x100 if byte & 0x80 else byte


@dataclass
class Registers:
    """The eight 8-bit registers plus the stack pointer and program counter.

    Register pairs (``af``, ``bc``, ``de``, ``hl``) are exposed as properties
    built from their halves. Items can also be read and written by name,
    e.g. ``regs["hl"] = 0x1234``; such writes are masked to the register width.
    """

    a: int = 0x01
    f: int = 0xB0
    b: int = 0x00
    c: int = 0x13
    d: int = 0x00
    e: int = 0xD8
    h: int = 0x01
    l: int = 0x4D  # noqa: E741
    sp: int = 0xFFFE
    pc: int = 0x0000

    def reset(self) -> None:
        """Restore the values the registers hold after power-on."""
        self.af = 0x01B0
        self.bc = 0x0013
        self.de = 0x00D8
        self.hl = 0x014D
        self.sp = 0xFFFE
        self.pc = 0x0000

    @property
    def af(self) -> int:
        return (self.a << 8) | self.f

    @af.setter
    def af(self, value: int) -> None:
        self.a = (value >> 8) & 0xFF
        self.f = value & 0xFF

    @property
    def bc(self) -> int:
        return (self.b << 8) | self.c

    @bc.setter
    def bc(self, value: int) -> None:
        self.b = (value >> 8) & 0xFF
        self.c = value & 0xFF

    @property
    def de(self) -> int:
        return (self.d << 8) | self.e

    @de.setter
    def de(self, value: int) -> None:
        self.d = (value >> 8) & 0xFF
        self.e = value & 0xFF

    @property
    def hl(self) -> int:
        return (self.h << 8) | self.l

    @hl.setter
    def hl(self, value: int) -> None:
        self.h = (value >> 8) & 0xFF
        self.l = value & 0xFF

    def __getitem__(self, name: str) -> int:
        if name not in _REGISTERS_8 and name not in _REGISTERS_16:
            raise KeyError(f"unknown register: {name!r}")
        return getattr(self, name)

    def __setitem__(self, name: str, value: int) -> None:
        if name in _REGISTERS_8:
            setattr(self, name, value & 0xFF)
        elif name in _REGISTERS_16:
            setattr(self, name, value & 0xFFFF)
        else:
            raise KeyError(f"unknown register: {name!r}")

    def _flag(self, bit: int) -> int:
        return (self.f >> bit) & 1

    def _set_flag(self, bit: int, on: bool) -> None:
        if on:
            self.f |= 1 << bit
        else:
            self.f &= ~(1 << bit) & 0xFF

    @property
    def zero(self) -> int:
        return self._flag(_ZERO_BIT)

    @zero.setter
    def zero(self, on: bool) -> None:
        self._set_flag(_ZERO_BIT, on)

    @property
    def subtract(self) -> int:
        return self._flag(_SUBTRACT_BIT)

    @subtract.setter
    def subtract(self, on: bool) -> None:
        self._set_flag(_SUBTRACT_BIT, on)

    @property
    def half_carry(self) -> int:
        return self._flag(_HALF_CARRY_BIT)

    @half_carry.setter
    def half_carry(self, on: bool) -> None:
        self._set_flag(_HALF_CARRY_BIT, on)

    @property
    def carry(self) -> int:
        return self._flag(_CARRY_BIT)

    @carry.setter
    def carry(self, on: bool) -> None:
        self._set_flag(_CARRY_BIT, on)


class InstructionSet:
    """Executes single instructions against a register file and a memory bus.

    The bus must provide ``read(address)`` and ``write(address, data)``.
    Register operands are given by name (``"b"``, ``"hl"``, ...); operands that
    are plain values are given as integers. Every instruction advances the
    program counter and adds its machine cycles to ``cycles``.
    """

    def __init__(self, bus) -> None:
        self.bus = bus
        self.registers = Registers()
        self.cycles = 0
        self.ime = False
        self.halted = False
        self.taken_conditional = False

    # -- memory access -----------------------------------------------------

    def read8(self, address: int) -> int:
        return self.bus.read(address & 0xFFFF)

    def write8(self, address: int, value: int) -> None:
        self.bus.write(address & 0xFFFF, value & 0xFF)

    def _immediate8(self) -> int:
        return self.read8(self.registers.pc + 1)

    def _immediate16(self) -> int:
        pc = self.registers.pc
        return self.read8(pc + 1) | (self.read8(pc + 2) << 8)

    def _step(self, length: int, cycles: int) -> None:
        regs = self.registers
        regs.pc = (regs.pc + length) & 0xFFFF
        self.cycles += cycles

    def push_address(self, address: int) -> None:
        """Push a 16-bit value on the stack, high byte first."""
        regs = self.registers
        address &= 0xFFFF
        regs.sp = (regs.sp - 1) & 0xFFFF
        self.write8(regs.sp, address >> 8)
        regs.sp = (regs.sp - 1) & 0xFFFF
        self.write8(regs.sp, address & 0xFF)

    # -- loads -------------------------------------------------------------

    def ld_r8_n8(self, reg: str) -> None:
        self.registers[reg] = self._immediate8()
        self._step(2, 2)

    def ld_r16_n16(self, reg: str) -> None:
        self.registers[reg] = self._immediate16()
        self._step(3, 3)

    def _store_a(self, address: int) -> None:
        self.write8(address, self.registers.a)
        self._step(1, 2)

    def ld_r16addr_a(self, reg: str) -> None:
        self._store_a(self.registers[reg])

    def ld_a16_a(self) -> None:
        self._store_a(self._immediate16())
        self._step(2, 2)

    def ld_r8_r16addr(self, reg: str, address: int) -> None:
        self.registers[reg] = self.read8(address)
        self._step(1, 2)

    def ld_r8_a16(self, reg: str) -> None:
        self.ld_r8_r16addr(reg, self._immediate16())
        self._step(2, 2)

    def ld_a16_r16(self, reg: str) -> None:
        address = self._immediate16()
        value = self.registers[reg]
        self.write8(address, value & 0xFF)
        self.write8(address + 1, value >> 8)
        self._step(3, 5)

    def ld_r8_r8(self, dst: str, src: str) -> None:
        self.registers[dst] = self.registers[src]
        self._step(1, 1)

    def ld_sp_hl(self) -> None:
        self.registers.sp = self.registers.hl
        self._step(1, 2)

    def ld_hl_n8(self) -> None:
        self.write8(self.registers.hl, self._immediate8())
        self._step(2, 3)

    def _sp_plus_e8(self) -> int:
        regs = self.registers
        raw = self._immediate8()
        regs.carry = (regs.sp & 0xFF) + raw > 0xFF
        regs.half_carry = (regs.sp & 0x0F) + (raw & 0x0F) > 0x0F
        regs.zero = False
        regs.subtract = False
        return (regs.sp + _signed(raw)) & 0xFFFF

    def ld_hl_sp_e8(self) -> None:
        self.registers.hl = self._sp_plus_e8()
        self._step(2, 3)

    def ld_hl_r8(self, reg: str) -> None:
        self.write8(self.registers.hl, self.registers[reg])
        self._step(1, 2)

    def ldh_store(self, offset: int, reg: str) -> None:
        self.write8(0xFF00 + (offset & 0xFF), self.registers[reg])
        self._step(1, 2)

    def ldh_load(self, reg: str, offset: int) -> None:
        self.registers[reg] = self.read8(0xFF00 + (offset & 0xFF))
        self._step(1, 2)

    def ldh_n8_a(self) -> None:
        self.ldh_store(self._immediate8(), "a")
        self._step(1, 1)

    def ldh_a_n8(self) -> None:
        self.ldh_load("a", self._immediate8())
        self._step(1, 1)

    # -- increments and decrements -----------------------------------------

    def inc_r16(self, reg: str) -> None:
        self.registers[reg] = self.registers[reg] + 1
        self._step(1, 2)

    def _inc8(self, value: int) -> int:
        regs = self.registers
        regs.half_carry = (value & 0x0F) == 0x0F
        value = (value + 1) & 0xFF
        regs.subtract = False
        regs.zero = value == 0
        return value

    def _dec8(self, value: int) -> int:
        regs = self.registers
        regs.half_carry = (value & 0x0F) == 0x00
        value = (value - 1) & 0xFF
        regs.subtract = True
        regs.zero = value == 0
        return value

    def inc_r8(self, reg: str) -> None:
        self.registers[reg] = self._inc8(self.registers[reg])
        self._step(1, 1)

    def inc_hl(self) -> None:
        hl = self.registers.hl
        self.write8(hl, self._inc8(self.read8(hl)))
        self._step(1, 3)

    def dec_r8(self, reg: str) -> None:
        self.registers[reg] = self._dec8(self.registers[reg])
        self._step(1, 1)

    def dec_r16(self, reg: str) -> None:
        self.registers[reg] = self.registers[reg] - 1
        self._step(1, 2)

    def dec_hl(self) -> None:
        hl = self.registers.hl
        self.write8(hl, self._dec8(self.read8(hl)))
        self._step(1, 3)

    # -- arithmetic and logic ----------------------------------------------

    def add_hl_r16(self, reg: str) -> None:
        regs = self.registers
        value = regs[reg]
        regs.carry = regs.hl + value > 0xFFFF
        regs.half_carry = (regs.hl & 0x0FFF) + (value & 0x0FFF) > 0x0FFF
        regs.subtract = False
        regs.hl = (regs.hl + value) & 0xFFFF
        self._step(1, 2)

    def add_sp_e8(self) -> None:
        self.registers.sp = self._sp_plus_e8()
        self._step(2, 4)

    def add_a(self, value: int) -> None:
        regs = self.registers
        regs.carry = regs.a + value > 0xFF
        regs.half_carry = (regs.a & 0x0F) + (value & 0x0F) > 0x0F
        regs.a = (regs.a + value) & 0xFF
        regs.zero = regs.a == 0
        regs.subtract = False
        self._step(1, 1)

    def add_a_n8(self) -> None:
        self.add_a(self._immediate8())
        self._step(1, 1)

    def add_a_hl(self) -> None:
        self.add_a(self.read8(self.registers.hl))
        self.cycles += 1

    def adc_a(self, value: int) -> None:
        regs = self.registers
        carry = regs.carry
        regs.carry = regs.a + value + carry > 0xFF
        regs.half_carry = (regs.a & 0x0F) + (value & 0x0F) + carry > 0x0F
        regs.a = (regs.a + value + carry) & 0xFF
        regs.zero = regs.a == 0
        regs.subtract = False
        self._step(1, 1)

    def adc_a_n8(self) -> None:
        self.adc_a(self._immediate8())
        self._step(1, 1)

    def adc_a_hl(self) -> None:
        self.adc_a(self.read8(self.registers.hl))
        self.cycles += 1

    def sub_a(self, value: int) -> None:
        regs = self.registers
        regs.carry = regs.a < value
        regs.half_carry = (regs.a & 0x0F) < (value & 0x0F)
        regs.a = (regs.a - value) & 0xFF
        regs.zero = regs.a == 0
        regs.subtract = True
        self._step(1, 1)

    def sub_a_n8(self) -> None:
        self.sub_a(self._immediate8())
        self._step(1, 1)

    def sub_a_hl(self) -> None:
        self.sub_a(self.read8(self.registers.hl))
        self.cycles += 1

    def sbc_a(self, value: int) -> None:
        regs = self.registers
        carry = regs.carry
        regs.carry = regs.a < value + carry
        regs.half_carry = (regs.a & 0x0F) - (value & 0x0F) - carry < 0
        regs.a = (regs.a - ((value + carry) & 0xFF)) & 0xFF
        regs.zero = regs.a == 0
        regs.subtract = True
        self._step(1, 1)

    def sbc_a_n8(self) -> None:
        self.sbc_a(self._immediate8())
        self._step(1, 1)

    def sbc_a_hl(self) -> None:
        self.sbc_a(self.read8(self.registers.hl))
        self.cycles += 1

    def _logic_result(self, value: int, half_carry: bool) -> None:
        regs = self.registers
        regs.a = value & 0xFF
        regs.zero = regs.a == 0
        regs.subtract = False
        regs.half_carry = half_carry
        regs.carry = False
        self._step(1, 1)

    def and_a(self, value: int) -> None:
        self._logic_result(self.registers.a & value, True)

    def and_a_n8(self) -> None:
        self.and_a(self._immediate8())
        self._step(1, 1)

    def and_a_hl(self) -> None:
        self.and_a(self.read8(self.registers.hl))
        self.cycles += 1

    def xor_a(self, value: int) -> None:
        self._logic_result(self.registers.a ^ value, False)

    def xor_a_n8(self) -> None:
        self.xor_a(self._immediate8())
        self._step(1, 1)

    def xor_a_hl(self) -> None:
        self.xor_a(self.read8(self.registers.hl))
        self.cycles += 1

    def or_a(self, value: int) -> None:
        self._logic_result(self.registers.a | value, False)

    def or_a_n8(self) -> None:
        self.or_a(self._immediate8())
        self._step(1, 1)

    def or_a_hl(self) -> None:
        self.or_a(self.read8(self.registers.hl))
        self.cycles += 1

    def cp_a(self, value: int) -> None:
        regs = self.registers
        regs.zero = ((regs.a - value) & 0xFF) == 0
        regs.subtract = True
        regs.half_carry = (regs.a & 0x0F) < (value & 0x0F)
        regs.carry = regs.a < value
        self._step(1, 1)

    def cp_a_n8(self) -> None:
        self.cp_a(self._immediate8())
        self._step(1, 1)

    def cp_a_hl(self) -> None:
        self.cp_a(self.read8(self.registers.hl))
        self.cycles += 1

    # -- accumulator rotates -----------------------------------------------

    def _rotate_flags(self, carry: int) -> None:
        regs = self.registers
        regs.zero = False
        regs.subtract = False
        regs.half_carry = False
        regs.carry = carry

    def rlca(self) -> None:
        regs = self.registers
        carry = regs.a >> 7
        regs.a = ((regs.a << 1) | carry) & 0xFF
        self._rotate_flags(carry)
        self._step(1, 1)

    def rrca(self) -> None:
        regs = self.registers
        carry = regs.a & 0x01
        regs.a = (regs.a >> 1) | (carry << 7)
        self._rotate_flags(carry)
        self._step(1, 1)

    def rla(self) -> None:
        regs = self.registers
        old_carry = regs.carry
        self._rotate_flags(regs.a >> 7)
        regs.a = ((regs.a << 1) | old_carry) & 0xFF
        self._step(1, 1)

    def rra(self) -> None:
        regs = self.registers
        old_carry = regs.carry
        self._rotate_flags(regs.a & 0x01)
        regs.a = (regs.a >> 1) | (old_carry << 7)
        self._step(1, 1)

    # -- jumps and flow control --------------------------------------------

    def jr(self) -> None:
        offset = _signed(self._immediate8())
        self._step(2 + offset, 3)

    def jr_cond(self, condition: bool) -> None:
        if condition:
            self.jr()
            self.taken_conditional = True
        else:
            self._step(2, 2)

    def daa(self) -> None:
        regs = self.registers
        adjustment = 0
        if regs.subtract:
            if regs.half_carry:
                adjustment += 0x06
            if regs.carry:
                adjustment += 0x60
            regs.a = (regs.a - adjustment) & 0xFF
        else:
            if regs.half_carry or (regs.a & 0x0F) > 0x09:
                adjustment += 0x06
            if regs.carry or regs.a > 0x99:
                adjustment += 0x60
                regs.carry = True
            regs.a = (regs.a + adjustment) & 0xFF
        regs.zero = regs.a == 0
        regs.half_carry = False
        self._step(1, 1)

    def cpl(self) -> None:
        regs = self.registers
        regs.a = ~regs.a & 0xFF
        regs.subtract = True
        regs.half_carry = True
        self._step(1, 1)

    def scf(self) -> None:
        regs = self.registers
        regs.carry = True
        regs.half_carry = False
        regs.subtract = False
        self._step(1, 1)

    def ccf(self) -> None:
        regs = self.registers
        regs.carry = not regs.carry
        regs.half_carry = False
        regs.subtract = False
        self._step(1, 1)

    def pop_r16(self, reg: str) -> None:
        regs = self.registers
        low = self.read8(regs.sp)
        regs.sp = (regs.sp + 1) & 0xFFFF
        high = self.read8(regs.sp)
        regs.sp = (regs.sp + 1) & 0xFFFF
        regs[reg] = (high << 8) | low
        self._step(1, 3)

    def pop_af(self) -> None:
        self.pop_r16("af")
        self.registers.f &= 0xF0

    def push_r16(self, reg: str) -> None:
        self.push_address(self.registers[reg])
        self._step(1, 4)

    def ret(self) -> None:
        self.pop_r16("pc")
        self._step(-1, 1)

    def ret_cond(self, condition: bool) -> None:
        if condition:
            self.ret()
            self.cycles += 1
            self.taken_conditional = True
        else:
            self._step(1, 2)

    def jp(self, address: int) -> None:
        self.registers.pc = address & 0xFFFF
        self.cycles += 4

    def jp_n16(self) -> None:
        self.jp(self._immediate16())

    def jp_cond(self, condition: bool) -> None:
        if condition:
            self.jp_n16()
            self.taken_conditional = True
        else:
            self._step(3, 4)

    def jp_hl(self) -> None:
        self.registers.pc = self.registers.hl
        self.cycles += 1

    def call(self) -> None:
        target = self._immediate16()
        regs = self.registers
        regs.pc = (regs.pc + 3) & 0xFFFF
        self.push_address(regs.pc)
        regs.pc = target
        self.cycles += 6

    def call_cond(self, condition: bool) -> None:
        if condition:
            self.call()
            self.taken_conditional = True
        else:
            self._step(3, 3)

    def rst(self, address: int) -> None:
        self.push_address(self.registers.pc + 1)
        self.registers.pc = address & 0xFFFF
        self.cycles += 4

    def ei(self) -> None:
        self.ime = True
        self._step(1, 1)

    def di(self) -> None:
        self.ime = False
        self._step(1, 1)

    def reti(self) -> None:
        self.ei()
        self.ret()
        self.cycles -= 1

    def halt(self) -> None:
        self.halted = True
        self._step(1, 0)

    # -- 0xCB-prefixed operations ------------------------------------------
    # Each takes the operand value and returns the new one.

    def _shift_result(self, value: int, carry: int) -> int:
        regs = self.registers
        value &= 0xFF
        regs.zero = value == 0
        regs.subtract = False
        regs.half_carry = False
        regs.carry = carry
        self._step(1, 2)
        return value

    def rlc(self, value: int) -> int:
        carry = value >> 7
        return self._shift_result((value << 1) | carry, carry)

    def rrc(self, value: int) -> int:
        carry = value & 0x01
        return self._shift_result((value >> 1) | (carry << 7), carry)

    def rl(self, value: int) -> int:
        return self._shift_result((value << 1) | self.registers.carry, value >> 7)

    def rr(self, value: int) -> int:
        return self._shift_result(
            (value >> 1) | (self.registers.carry << 7), value & 0x01
        )

    def sla(self, value: int) -> int:
        return self._shift_result(value << 1, value >> 7)

    def sra(self, value: int) -> int:
        return self._shift_result((value >> 1) | (value & 0x80), value & 0x01)

    def swap(self, value: int) -> int:
        return self._shift_result(((value & 0x0F) << 4) | (value >> 4), 0)

    def srl(self, value: int) -> int:
        return self._shift_result(value >> 1, value & 0x01)

    def test_bit(self, index: int, value: int) -> None:
        regs = self.registers
        regs.zero = ((value >> index) & 0x01) == 0
        regs.subtract = False
        regs.half_carry = True
        self._step(1, 2)

    def reset_bit(self, index: int, value: int) -> int:
        self._step(1, 2)
        return value & ~(1 << index) & 0xFF

    def set_bit(self, index: int, value: int) -> int:
        self._step(1, 2)
        return (value | (1 << index)) & 0xFF

    def apply_cb_register(self, operation: Callable[[int], int], reg: str) -> None:
        """Run a prefixed operation on a register and store its result."""
        self.registers[reg] = operation(self.registers[reg])

    def apply_cb_hl(self, operation: Callable[[int], int]) -> None:
        """Run a prefixed operation on the byte at (HL) and store its result."""
        hl = self.registers.hl
        self.write8(hl, operation(self.read8(hl)))
        self.cycles += 2

    def test_bit_hl(self, index: int) -> None:
        self.test_bit(index, self.read8(self.registers.hl))
        self.cycles += 1