"""Static tables describing the instruction set: names, lengths and timings."""

from __future__ import annotations

_REGISTER_OPERANDS = ("B", "C", "D", "E", "H", "L", "(HL)", "A")

_NAMES_00_3F = (
    "NOP", "LD BC,nn", "LD (BC),A", "INC BC", "INC B", "DEC B", "LD B,n", "RLCA",
    "LD (nn),SP", "ADD HL,BC", "LD A,(BC)", "DEC BC", "INC C", "DEC C", "LD C,n", "RRCA",
    "STOP", "LD DE,nn", "LD (DE),A", "INC DE", "INC D", "DEC D", "LD D,n", "RLA",
    "JR n", "ADD HL,DE", "LD A,(DE)", "DEC DE", "INC E", "DEC E", "LD E,n", "RRA",
    "JR NZ,n", "LD HL,nn", "LD (HL+),A", "INC HL", "INC H", "DEC H", "LD H,n", "DAA",
    "JR Z,n", "ADD HL,HL", "LD A,(HLI)", "DEC HL", "INC L", "DEC L", "LD L,n", "CPL",
    "JR NC,n", "LD SP,nn", "LD (HL-),A", "INC SP", "INC (HL)", "DEC (HL)", "LD (HL),n", "SCF",
    "JR C,n", "ADD HL,SP", "LD A,(HLD)", "DEC SP", "INC A", "DEC A", "LDA,n", "CCF",
)

_NAMES_40_7F = tuple(
    "HALT" if (dst, src) == (6, 6) else f"LD {_REGISTER_OPERANDS[dst]},{_REGISTER_OPERANDS[src]}"
    for dst in range(8)
    for src in range(8)
)

_NAMES_80_BF = tuple(
    f"{prefix}{operand}"
    for prefix in ("ADD A,", "ADC A,", "SUB ", "SBC A,", "AND ", "XOR ", "OR ", "CP ")
    for operand in _REGISTER_OPERANDS
)

_UNUSED = "unused opcode"

_NAMES_C0_FF = (
    "RET NZ", "POP BC", "JP NZ,nn", "JP nn", "CALL NZ,nn", "PUSH BC", "ADD A,n", "RST ",
    "RET Z", "RET", "JP Z,nn", "cb opcode", "CALL Z,nn", "CALL nn", "ADC A,n", "RST 0x08",
    "RET NC", "POP DE", "JP NC,nn", _UNUSED, "CALL NC,nn", "PUSH DE", "SUB n", "RST 0x10",
    "RET C", "RETI", "JP C,nn", _UNUSED, "CALL C,nn", _UNUSED, "SBC A,n", "RST 0x18",
    "LD (0xFF00+n),A", "POP HL", "LD (0xFF00+C),A", _UNUSED, _UNUSED, "PUSH HL", "AND n", "RST 0x20",
    "ADD SP,n", "JP (HL)", "LD (nn),A", _UNUSED, _UNUSED, _UNUSED, "XOR n", "RST 0x28",
    "LD A,(0xFF00+n)", "POP AF", "LD A,(0xFF00+C)", "DI", _UNUSED, "PUSH AF", "OR n", "RST 0x30",
    "LD HL,SP", "LD SP,HL", "LD A,(nn)", "EI", _UNUSED, _UNUSED, "CP n", "RST 0x38",
)

OPCODE_NAMES: tuple[str, ...] = _NAMES_00_3F + _NAMES_40_7F + _NAMES_80_BF + _NAMES_C0_FF

CB_OPCODE_NAMES: tuple[str, ...] = tuple(
    f"{op} {operand}"
    for op in ("RLC", "RRC", "RL", "RR", "SLA", "SRA", "SWAP", "SRL")
    for operand in _REGISTER_OPERANDS
) + tuple(
    f"{op} {bit} {operand}"
    for op in ("BIT", "RES", "SET")
    for bit in range(8)
    for operand in _REGISTER_OPERANDS
)

_ALU_ROW = (1, 1, 1, 1, 1, 1, 2, 1, 1, 1, 1, 1, 1, 1, 2, 1)

OPCODE_CYCLES: tuple[int, ...] = (
    (1, 3, 2, 2, 1, 1, 2, 1, 5, 2, 2, 2, 1, 1, 2, 1)
    + (0, 3, 2, 2, 1, 1, 2, 1, 3, 2, 2, 2, 1, 1, 2, 1)
    + (2, 3, 2, 2, 1, 1, 2, 1, 2, 2, 2, 2, 1, 1, 2, 1)
    + (2, 3, 2, 2, 3, 3, 3, 1, 2, 2, 2, 2, 1, 1, 2, 1)
    + _ALU_ROW * 3
    + (2, 2, 2, 2, 2, 2, 0, 2, 1, 1, 1, 1, 1, 1, 2, 1)
    + _ALU_ROW * 4
    + (2, 3, 3, 4, 3, 4, 2, 4, 2, 4, 3, 0, 3, 6, 2, 4)
    + (2, 3, 3, 0, 3, 4, 2, 4, 2, 4, 3, 0, 3, 0, 2, 4)
    + (3, 3, 2, 0, 0, 4, 2, 4, 4, 1, 4, 0, 0, 0, 2, 4)
    + (3, 3, 2, 1, 0, 4, 2, 4, 3, 2, 4, 1, 0, 0, 2, 4)
)

OPCODE_TAKEN_CYCLES: tuple[int, ...] = (
    (1, 3, 2, 2, 1, 1, 2, 1, 5, 2, 2, 2, 1, 1, 2, 1)
    + (0, 3, 2, 2, 1, 1, 2, 1, 3, 2, 2, 2, 1, 1, 2, 1)
    + (3, 3, 2, 2, 1, 1, 2, 1, 3, 2, 2, 2, 1, 1, 2, 1)
    + (3, 3, 2, 2, 3, 3, 3, 1, 3, 2, 2, 2, 1, 1, 2, 1)
    + _ALU_ROW * 3
    + (2, 2, 2, 2, 2, 2, 0, 2, 1, 1, 1, 1, 1, 1, 2, 1)
    + _ALU_ROW * 4
    + (5, 3, 4, 4, 6, 4, 2, 4, 5, 4, 4, 0, 6, 6, 2, 4)
    + (5, 3, 4, 0, 6, 4, 2, 4, 5, 4, 4, 0, 6, 0, 2, 4)
    + (3, 3, 2, 0, 0, 4, 2, 4, 4, 1, 4, 0, 0, 0, 2, 4)
    + (3, 3, 2, 1, 0, 4, 2, 4, 3, 2, 4, 1, 0, 0, 2, 4)
)

CB_OPCODE_CYCLES: tuple[int, ...] = (
    (2, 2, 2, 2, 2, 2, 4, 2, 2, 2, 2, 2, 2, 2, 4, 2) * 4
    + (2, 2, 2, 2, 2, 2, 3, 2, 2, 2, 2, 2, 2, 2, 3, 2) * 4
    + (2, 2, 2, 2, 2, 2, 4, 2, 2, 2, 2, 2, 2, 2, 4, 2) * 8
)

_PREFIX_ROW_LENGTHS = (2, 3, 1, 1, 1, 1, 2, 1, 2, 1, 1, 1, 1, 1, 2, 1)

OPCODE_LENGTHS: tuple[int, ...] = (
    (1, 3, 1, 1, 1, 1, 2, 1, 3, 1, 1, 1, 1, 1, 2, 1)
    + _PREFIX_ROW_LENGTHS * 3
    + (1,) * 128
    + (1, 1, 3, 3, 3, 1, 2, 1, 1, 1, 3, 3, 3, 3, 2, 1)
    + (1, 1, 3, 1, 3, 1, 2, 1, 1, 1, 3, 1, 3, 1, 2, 1)
    + (2, 1, 1, 1, 1, 1, 2, 1, 2, 1, 3, 1, 1, 1, 2, 1)
    + (2, 1, 1, 1, 1, 1, 2, 1, 2, 1, 3, 1, 1, 1, 2, 1)
)


def _checked(opcode: int) -> int:
    if not 0 <= opcode <= 0xFF:
        raise ValueError(f"opcode out of range: {opcode!r}")
    return opcode


def opcode_name(opcode: int, prefixed: bool = False) -> str:
    """Return the mnemonic of ``opcode``; ``prefixed`` selects the 0xCB table."""
    table = CB_OPCODE_NAMES if prefixed else OPCODE_NAMES
    return table[_checked(opcode)]


def instruction_length(opcode: int) -> int:
    """Return the length in bytes of an unprefixed instruction."""
    return OPCODE_LENGTHS[_checked(opcode)]


def base_cycles(opcode: int, taken: bool = False) -> int:
    """Return the machine cycles of an unprefixed instruction.

    ``taken`` selects the timing used when a conditional branch is taken.
    """
    table = OPCODE_TAKEN_CYCLES if taken else OPCODE_CYCLES
    return table[_checked(opcode)]


def prefixed_cycles(opcode: int) -> int:
    """Return the machine cycles of a 0xCB-prefixed instruction."""
    return CB_OPCODE_CYCLES[_checked(opcode)]