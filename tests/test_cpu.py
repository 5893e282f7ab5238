import pytest

from pocketboy.cpu import CLOCK_SPEED, CPU, IE_ADDRESS, IF_ADDRESS


class FakeBus:
    def __init__(self):
        self.memory = bytearray(0x10000)

    def read(self, address):
        return self.memory[address]

    def write(self, address, data):
        self.memory[address] = data


class FakeGameBoy:
    def __init__(self):
        self.mmu = FakeBus()


@pytest.fixture
def cpu():
    return CPU(FakeGameBoy())


def test_reset_values(cpu):
    regs = cpu.registers
    regs.af = 0
    regs.pc = 0x1234
    cpu.ime = True
    cpu.halted = True
    cpu.reset()
    assert (regs.af, regs.bc, regs.de, regs.hl) == (0x01B0, 0x0013, 0x00D8, 0x014D)
    assert (regs.sp, regs.pc) == (0xFFFE, 0x0000)
    assert cpu.cycles == 0
    assert cpu.ime is False and cpu.halted is False


def test_nop_then_wait_one_cycle(cpu):
    cpu.tick()
    assert cpu.registers.pc == 1
    assert cpu.internal_clock == 1
    cpu.tick()
    assert cpu.registers.pc == 1
    assert cpu.internal_clock == 0
    cpu.tick()
    assert cpu.registers.pc == 2


def test_set_interrupt_flag_sets_and_clears(cpu):
    cpu.set_interrupt_flag(2, True)
    assert cpu.gb.mmu.memory[IF_ADDRESS] & 0x04
    cpu.set_interrupt_flag(0, True)
    cpu.set_interrupt_flag(2, False)
    assert cpu.gb.mmu.memory[IF_ADDRESS] == 0x01


def test_interrupt_dispatch_pushes_pc_and_jumps(cpu):
    mem = cpu.gb.mmu.memory
    mem[IE_ADDRESS] = 0x01
    mem[IF_ADDRESS] = 0x01
    cpu.ime = True
    cpu.registers.pc = 0x1234
    cpu.tick()
    regs = cpu.registers
    assert regs.pc == 0x41  # NOP at the vector was executed
    assert regs.sp == 0xFFFC
    assert mem[regs.sp] == 0x34
    assert mem[regs.sp + 1] == 0x12
    assert mem[IF_ADDRESS] & 0x01 == 0
    assert cpu.ime is False


def test_interrupt_priority_lowest_bit_first(cpu):
    mem = cpu.gb.mmu.memory
    mem[IE_ADDRESS] = 0x06
    mem[IF_ADDRESS] = 0x06
    cpu.ime = True
    cpu.tick()
    assert cpu.registers.pc == 0x49
    assert mem[IF_ADDRESS] == 0x04


def test_interrupt_ignored_when_ime_clear(cpu):
    mem = cpu.gb.mmu.memory
    mem[IE_ADDRESS] = 0x01
    mem[IF_ADDRESS] = 0x01
    cpu.tick()
    assert cpu.registers.pc == 1
    assert mem[IF_ADDRESS] == 0x01
    assert cpu.registers.sp == 0xFFFE


def test_halted_without_interrupt_does_nothing(cpu):
    cpu.gb.mmu.memory[0] = 0x3C  # INC A
    cpu.halted = True
    a_before = cpu.registers.a
    cpu.tick()
    assert cpu.halted is True
    assert cpu.registers.pc == 0
    assert cpu.registers.a == a_before


def test_halt_bug_repeats_instruction(cpu):
    mem = cpu.gb.mmu.memory
    mem[0] = 0x3C  # INC A
    mem[IE_ADDRESS] = 0x01
    mem[IF_ADDRESS] = 0x01
    cpu.halted = True
    a_before = cpu.registers.a
    cpu.tick()
    assert cpu.halted is False
    assert cpu.registers.a == a_before + 1
    assert cpu.registers.pc == 0
    assert cpu.halt_bug is False


def test_halt_instruction_stops_execution(cpu):
    cpu.gb.mmu.memory[0] = 0x76
    cpu.tick()
    assert cpu.halted is True
    assert cpu.registers.pc == 1
    cpu.tick()
    assert cpu.registers.pc == 1


def test_prefixed_instruction(cpu):
    mem = cpu.gb.mmu.memory
    mem[0] = 0xCB
    mem[1] = 0x37  # SWAP A
    cpu.registers.a = 0x12
    cpu.tick()
    assert cpu.registers.a == 0x21
    assert cpu.registers.pc == 2


def test_taken_conditional_cleared_after_step(cpu):
    mem = cpu.gb.mmu.memory
    mem[0] = 0x20  # JR NZ
    mem[1] = 0x05
    cpu.registers.zero = False
    cpu.tick()
    assert cpu.registers.pc == 7
    assert cpu.taken_conditional is False


def test_cycles_wrap_at_clock_speed(cpu):
    cpu.cycles = CLOCK_SPEED - 1
    cpu.tick()
    assert cpu.cycles == 0
    assert cpu.internal_clock == 1