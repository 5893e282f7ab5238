import pytest

from pocketboy.cb_dispatch import execute_cb
from pocketboy.instructions import InstructionSet
from pocketboy.opcode_tables import prefixed_cycles


class FakeBus:
    def __init__(self):
        self.memory = bytearray(0x10000)

    def read(self, address):
        return self.memory[address]

    def write(self, address, data):
        self.memory[address] = data


def make_cpu():
    cpu = InstructionSet(FakeBus())
    cpu.registers.pc = 0x0200
    cpu.registers.hl = 0xC000
    return cpu


@pytest.mark.parametrize("opcode", range(0x100))
def test_every_opcode_advances_pc_and_matches_cycle_table(opcode):
    cpu = make_cpu()
    execute_cb(cpu, opcode)
    assert cpu.registers.pc == 0x0201
    assert cpu.cycles == prefixed_cycles(opcode)


def test_rlc_b_sets_carry_from_top_bit():
    cpu = make_cpu()
    cpu.registers.b = 0x85
    execute_cb(cpu, 0x00)
    assert cpu.registers.b == 0x0B
    assert cpu.registers.carry == 1


def test_rlc_then_rrc_restores_register():
    cpu = make_cpu()
    cpu.registers.e = 0x5A
    execute_cb(cpu, 0x03)  # RLC E
    execute_cb(cpu, 0x0B)  # RRC E
    assert cpu.registers.e == 0x5A


def test_rlc_hl_operates_on_memory():
    cpu = make_cpu()
    cpu.bus.memory[0xC000] = 0x80
    execute_cb(cpu, 0x06)
    assert cpu.bus.memory[0xC000] == 0x01
    assert cpu.registers.carry == 1


def test_swap_twice_is_identity():
    cpu = make_cpu()
    cpu.registers.a = 0xF0
    execute_cb(cpu, 0x37)
    assert cpu.registers.a == 0x0F
    execute_cb(cpu, 0x37)
    assert cpu.registers.a == 0xF0


def test_swap_zero_sets_zero_flag():
    cpu = make_cpu()
    cpu.registers.c = 0
    execute_cb(cpu, 0x31)
    assert cpu.registers.zero == 1


@pytest.mark.parametrize("value, zero", [(0x80, 0), (0x00, 1)])
def test_bit_7_h(value, zero):
    cpu = make_cpu()
    cpu.registers.h = value
    execute_cb(cpu, 0x7C)
    assert cpu.registers.zero == zero
    assert cpu.registers.half_carry == 1
    assert cpu.registers.h == value


def test_bit_hl_does_not_modify_memory():
    cpu = make_cpu()
    cpu.bus.memory[0xC000] = 0x01
    execute_cb(cpu, 0x46)
    assert cpu.registers.zero == 0
    assert cpu.bus.memory[0xC000] == 0x01


def test_res_0_a_clears_bit():
    cpu = make_cpu()
    cpu.registers.a = 0xFF
    execute_cb(cpu, 0x87)
    assert cpu.registers.a == 0xFE


def test_set_7_hl_sets_bit_in_memory():
    cpu = make_cpu()
    execute_cb(cpu, 0xFE)
    assert cpu.bus.memory[0xC000] == 0x80


@pytest.mark.parametrize("bit", range(8))
def test_set_then_res_round_trip_on_d(bit):
    cpu = make_cpu()
    cpu.registers.d = 0
    execute_cb(cpu, 0xC2 | (bit << 3))
    assert (cpu.registers.d >> bit) & 1 == 1
    execute_cb(cpu, 0x82 | (bit << 3))
    assert cpu.registers.d == 0


def test_srl_shifts_into_carry():
    cpu = make_cpu()
    cpu.registers.l = 0x01
    execute_cb(cpu, 0x3D)
    assert cpu.registers.l == 0
    assert cpu.registers.carry == 1
    assert cpu.registers.zero == 1


@pytest.mark.parametrize("opcode", [-1, 0x100])
def test_out_of_range_opcode_raises(opcode):
    with pytest.raises(ValueError):
        execute_cb(make_cpu(), opcode)