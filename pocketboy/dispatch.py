"""Decoding of unprefixed opcodes into calls on an instruction set."""

from __future__ import annotations

from typing import Callable, Optional

from .instructions import InstructionSet

Handler = Callable[[InstructionSet], None]
Condition = Callable[[InstructionSet], bool]

PREFIX_OPCODE = 0xCB

# Operand order used by the opcode encoding; ``None`` stands for (HL).
_R8: tuple[Optional[str], ...] = ("b", "c", "d", "e", "h", "l", None, "a")
_R16 = ("bc", "de", "hl", "sp")

INVALID_OPCODES = frozenset(
    {0xD3, 0xDB, 0xDD, 0xE3, 0xE4, 0xEB, 0xEC, 0xED, 0xF4, 0xFC, 0xFD}
)


def _advance(cpu: InstructionSet, length: int, cycles: int) -> None:
    regs = cpu.registers
    regs.pc = (regs.pc + length) & 0xFFFF
    cpu.cycles += cycles


def _nop(cpu: InstructionSet) -> None:
    _advance(cpu, 1, 1)


def _stop(cpu: InstructionSet) -> None:
    _advance(cpu, 2, 0)


def _invalid(cpu: InstructionSet) -> None:
    _advance(cpu, 1, 1)


def _nz(cpu: InstructionSet) -> bool:
    return cpu.registers.zero == 0


def _z(cpu: InstructionSet) -> bool:
    return cpu.registers.zero == 1


def _nc(cpu: InstructionSet) -> bool:
    return cpu.registers.carry == 0


def _c(cpu: InstructionSet) -> bool:
    return cpu.registers.carry == 1


def _jr_if(condition: Condition) -> Handler:
    def handler(cpu: InstructionSet) -> None:
        cpu.jr_cond(condition(cpu))

    return handler


def _jp_if(condition: Condition) -> Handler:
    def handler(cpu: InstructionSet) -> None:
        cpu.jp_cond(condition(cpu))

    return handler


def _call_if(condition: Condition) -> Handler:
    def handler(cpu: InstructionSet) -> None:
        cpu.call_cond(condition(cpu))

    return handler


def _ret_if(condition: Condition) -> Handler:
    def handler(cpu: InstructionSet) -> None:
        cpu.ret_cond(condition(cpu))

    return handler


def _rst(address: int) -> Handler:
    def handler(cpu: InstructionSet) -> None:
        cpu.rst(address)

    return handler


def _store_a_at(pair: str) -> Handler:
    def handler(cpu: InstructionSet) -> None:
        cpu.ld_r16addr_a(pair)

    return handler


def _load_a_from(pair: str) -> Handler:
    def handler(cpu: InstructionSet) -> None:
        cpu.ld_r8_r16addr("a", cpu.registers[pair])

    return handler


def _load_from_hl(reg: str) -> Handler:
    def handler(cpu: InstructionSet) -> None:
        cpu.ld_r8_r16addr(reg, cpu.registers.hl)

    return handler


def _store_a_hl_then(delta: int) -> Handler:
    def handler(cpu: InstructionSet) -> None:
        cpu.ld_r16addr_a("hl")
        cpu.registers.hl = (cpu.registers.hl + delta) & 0xFFFF

    return handler


def _load_a_hl_then(delta: int) -> Handler:
    def handler(cpu: InstructionSet) -> None:
        cpu.ld_r8_r16addr("a", cpu.registers.hl)
        cpu.registers.hl = (cpu.registers.hl + delta) & 0xFFFF

    return handler


def _pop(pair: str) -> Handler:
    def handler(cpu: InstructionSet) -> None:
        cpu.pop_r16(pair)

    return handler


def _push(pair: str) -> Handler:
    def handler(cpu: InstructionSet) -> None:
        cpu.push_r16(pair)

    return handler


def _ldh_store_c(cpu: InstructionSet) -> None:
    cpu.ldh_store(cpu.registers.c, "a")


def _ldh_load_c(cpu: InstructionSet) -> None:
    cpu.ldh_load("a", cpu.registers.c)


def _rst_30(cpu: InstructionSet) -> None:
    # RST 0x30 is followed by LD HL,SP+e8 in the same step.
    cpu.rst(0x30)
    cpu.ld_hl_sp_e8()


def _pair_handlers(pair: str) -> dict[int, Handler]:
    def ld(cpu: InstructionSet) -> None:
        cpu.ld_r16_n16(pair)

    def inc(cpu: InstructionSet) -> None:
        cpu.inc_r16(pair)

    def add(cpu: InstructionSet) -> None:
        cpu.add_hl_r16(pair)

    def dec(cpu: InstructionSet) -> None:
        cpu.dec_r16(pair)

    return {0x01: ld, 0x03: inc, 0x09: add, 0x0B: dec}


def _r8_handlers(reg: str) -> dict[int, Handler]:
    def inc(cpu: InstructionSet) -> None:
        cpu.inc_r8(reg)

    def dec(cpu: InstructionSet) -> None:
        cpu.dec_r8(reg)

    def ld(cpu: InstructionSet) -> None:
        cpu.ld_r8_n8(reg)

    return {0x04: inc, 0x05: dec, 0x06: ld}


def _hl_handlers() -> dict[int, Handler]:
    def inc(cpu: InstructionSet) -> None:
        cpu.inc_hl()

    def dec(cpu: InstructionSet) -> None:
        cpu.dec_hl()

    def ld(cpu: InstructionSet) -> None:
        cpu.ld_hl_n8()

    return {0x04: inc, 0x05: dec, 0x06: ld}


def _ld_r8_r8(dst: str, src: str) -> Handler:
    def handler(cpu: InstructionSet) -> None:
        cpu.ld_r8_r8(dst, src)

    return handler


def _ld_hl_r8(src: str) -> Handler:
    def handler(cpu: InstructionSet) -> None:
        cpu.ld_hl_r8(src)

    return handler


def _halt(cpu: InstructionSet) -> None:
    cpu.halt()


# Each ALU row: (operation on a value, operation on (HL)).
_ALU: tuple[
    tuple[Callable[[InstructionSet, int], None], Handler], ...
] = (
    (lambda cpu, v: cpu.add_a(v), lambda cpu: cpu.add_a_hl()),
    (lambda cpu, v: cpu.adc_a(v), lambda cpu: cpu.adc_a_hl()),
    (lambda cpu, v: cpu.sub_a(v), lambda cpu: cpu.sub_a_hl()),
    (lambda cpu, v: cpu.sbc_a(v), lambda cpu: cpu.sbc_a_hl()),
    (lambda cpu, v: cpu.and_a(v), lambda cpu: cpu.and_a_hl()),
    (lambda cpu, v: cpu.xor_a(v), lambda cpu: cpu.xor_a_hl()),
    (lambda cpu, v: cpu.or_a(v), lambda cpu: cpu.or_a_hl()),
    (lambda cpu, v: cpu.cp_a(v), lambda cpu: cpu.cp_a_hl()),
)


def _alu_register(operation: Callable[[InstructionSet, int], None], reg: str) -> Handler:
    def handler(cpu: InstructionSet) -> None:
        operation(cpu, cpu.registers[reg])

    return handler


def _build_table() -> tuple[Optional[Handler], ...]:
    table: dict[int, Handler] = {
        0x00: _nop,
        0x02: _store_a_at("bc"),
        0x07: lambda cpu: cpu.rlca(),
        0x08: lambda cpu: cpu.ld_a16_r16("sp"),
        0x0A: _load_a_from("bc"),
        0x0F: lambda cpu: cpu.rrca(),
        0x10: _stop,
        0x12: _store_a_at("de"),
        0x17: lambda cpu: cpu.rla(),
        0x18: lambda cpu: cpu.jr(),
        0x1A: _load_a_from("de"),
        0x1F: lambda cpu: cpu.rra(),
        0x20: _jr_if(_nz),
        0x22: _store_a_hl_then(1),
        0x27: lambda cpu: cpu.daa(),
        0x28: _jr_if(_z),
        0x2A: _load_a_hl_then(1),
        0x2F: lambda cpu: cpu.cpl(),
        0x30: _jr_if(_nc),
        0x32: _store_a_hl_then(-1),
        0x37: lambda cpu: cpu.scf(),
        0x38: _jr_if(_c),
        0x3A: _load_a_hl_then(-1),
        0x3F: lambda cpu: cpu.ccf(),
        0xC0: _ret_if(_nz),
        0xC1: _pop("bc"),
        0xC2: _jp_if(_nz),
        0xC3: lambda cpu: cpu.jp_n16(),
        0xC4: _call_if(_nz),
        0xC5: _push("bc"),
        0xC6: lambda cpu: cpu.add_a_n8(),
        0xC7: _rst(0x00),
        0xC8: _ret_if(_z),
        0xC9: lambda cpu: cpu.ret(),
        0xCA: _jp_if(_z),
        0xCC: _call_if(_z),
        0xCD: lambda cpu: cpu.call(),
        0xCE: lambda cpu: cpu.adc_a_n8(),
        0xCF: _rst(0x08),
        0xD0: _ret_if(_nc),
        0xD1: _pop("de"),
        0xD2: _jp_if(_nc),
        0xD4: _call_if(_nc),
        0xD5: _push("de"),
        0xD6: lambda cpu: cpu.sub_a_n8(),
        0xD7: _rst(0x10),
        0xD8: _ret_if(_c),
        0xD9: lambda cpu: cpu.reti(),
        0xDA: _jp_if(_c),
        0xDC: _call_if(_c),
        0xDE: lambda cpu: cpu.sbc_a_n8(),
        0xDF: _rst(0x18),
        0xE0: lambda cpu: cpu.ldh_n8_a(),
        0xE1: _pop("hl"),
        0xE2: _ldh_store_c,
        0xE5: _push("hl"),
        0xE6: lambda cpu: cpu.and_a_n8(),
        0xE7: _rst(0x20),
        0xE8: lambda cpu: cpu.add_sp_e8(),
        0xE9: lambda cpu: cpu.jp_hl(),
        0xEA: lambda cpu: cpu.ld_a16_a(),
        0xEE: lambda cpu: cpu.xor_a_n8(),
        0xEF: _rst(0x28),
        0xF0: lambda cpu: cpu.ldh_a_n8(),
        0xF1: lambda cpu: cpu.pop_af(),
        0xF2: _ldh_load_c,
        0xF3: lambda cpu: cpu.di(),
        0xF5: _push("af"),
        0xF6: lambda cpu: cpu.or_a_n8(),
        0xF7: _rst_30,
        0xF8: lambda cpu: cpu.ld_hl_sp_e8(),
        0xF9: lambda cpu: cpu.ld_sp_hl(),
        0xFA: lambda cpu: cpu.ld_r8_a16("a"),
        0xFB: lambda cpu: cpu.ei(),
        0xFE: lambda cpu: cpu.cp_a_n8(),
        0xFF: _rst(0x38),
    }
    table.update(dict.fromkeys(INVALID_OPCODES, _invalid))

    for index, pair in enumerate(_R16):
        base = index << 4
        for low, handler in _pair_handlers(pair).items():
            table[base | low] = handler

    for index, reg in enumerate(_R8):
        base = index << 3
        handlers = _hl_handlers() if reg is None else _r8_handlers(reg)
        for low, handler in handlers.items():
            table[base | low] = handler

    for opcode in range(0x40, 0x80):
        dst, src = _R8[(opcode >> 3) & 7], _R8[opcode & 7]
        if dst is None and src is None:
            table[opcode] = _halt
        elif src is None:
            table[opcode] = _load_from_hl(dst)
        elif dst is None:
            table[opcode] = _ld_hl_r8(src)
        else:
            table[opcode] = _ld_r8_r8(dst, src)

    for opcode in range(0x80, 0xC0):
        operation, on_hl = _ALU[(opcode >> 3) & 7]
        src = _R8[opcode & 7]
        if src is None:
            table[opcode] = on_hl
        else:
            table[opcode] = _alu_register(operation, src)

    return tuple(table.get(opcode) for opcode in range(0x100))


_TABLE = _build_table()


def execute(cpu: InstructionSet, opcode: int) -> None:
    """Execute one unprefixed instruction on ``cpu``.

    Raises ValueError for values outside 0-255 and for the 0xCB prefix,
    which introduces the separately decoded prefixed instructions.
    """
    if not 0 <= opcode <= 0xFF:
        raise ValueError(f"opcode out of range: {opcode!r}")
    handler = _TABLE[opcode]
    if handler is None:
        raise ValueError(f"opcode 0x{opcode:02X} is a prefix, not an instruction")
    handler(cpu)