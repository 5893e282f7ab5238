from types import SimpleNamespace

import pytest

from pocketboy.memory_bus import MemoryBus


class FakePPU:
    def __init__(self):
        self.vram = bytearray(0x2000)
        self.oam = bytearray(0xA0)

    def read_vram(self, address):
        return self.vram[address - 0x8000]

    def write_vram(self, address, data):
        self.vram[address - 0x8000] = data

    def read_oam(self, address):
        return self.oam[address - 0xFE00]

    def write_oam(self, address, data):
        self.oam[address - 0xFE00] = data


class FakeCartridge:
    def __init__(self):
        self.rom = bytearray(range(256)) * 128
        self.ram = bytearray(0x2000)
        self.rom_writes = []

    def read_rom(self, address):
        return self.rom[address]

    def write_rom(self, address, value):
        self.rom_writes.append((address, value))

    def read_ram(self, address):
        return self.ram[address - 0xA000]

    def write_ram(self, address, value):
        self.ram[address - 0xA000] = value


class FakeGameBoy:
    def __init__(self, cartridge=True):
        self.active_cartridge = FakeCartridge() if cartridge else None
        self.ppu = FakePPU()
        self.timer = SimpleNamespace(div=0)

    def update_input(self, joyp):
        return joyp | 0x0F


def make_bus(cartridge=True, sink=None):
    gb = FakeGameBoy(cartridge)
    return gb, MemoryBus(gb, serial_sink=sink)


def test_reads_are_zero_without_cartridge():
    _, bus = make_bus(cartridge=False)
    assert bus.read(0xFF00) == 0
    assert bus.read(0x0100) == 0


def test_reset_releases_joypad_lines():
    _, bus = make_bus()
    assert bus.read(0xFF00) == 0xFF


def test_writes_ignored_without_cartridge():
    gb, bus = make_bus(cartridge=False)
    bus.write(0xC000, 0x12)
    gb.active_cartridge = FakeCartridge()
    assert bus.read(0xC000) == 0


def test_work_ram_round_trip():
    _, bus = make_bus()
    bus.write(0xC123, 0x77)
    assert bus.read(0xC123) == 0x77


def test_write_masks_to_byte():
    _, bus = make_bus()
    bus.write(0xC000, 0x1FF)
    assert bus.read(0xC000) == 0xFF


def test_rom_is_read_and_written_through_cartridge():
    gb, bus = make_bus()
    assert bus.read(0x0042) == gb.active_cartridge.rom[0x0042]
    bus.write(0x2000, 0x03)
    assert gb.active_cartridge.rom_writes == [(0x2000, 0x03)]


def test_external_ram_round_trip():
    gb, bus = make_bus()
    bus.write(0xA010, 0x99)
    assert gb.active_cartridge.ram[0x10] == 0x99
    assert bus.read(0xA010) == 0x99


def test_vram_and_oam_go_to_ppu():
    gb, bus = make_bus()
    bus.write(0x8001, 0x11)
    bus.write(0xFE02, 0x22)
    assert gb.ppu.vram[1] == 0x11
    assert gb.ppu.oam[2] == 0x22
    assert bus.read(0x8001) == 0x11
    assert bus.read(0xFE02) == 0x22


def test_div_write_resets_timer_and_read_returns_timer_div():
    gb, bus = make_bus()
    gb.timer.div = 0x30
    assert bus.read(0xFF04) == 0x30
    bus.write(0xFF04, 0xAB)
    assert gb.timer.div == 0
    assert bus.read(0xFF04) == 0


def test_joypad_write_stores_input_state():
    gb, bus = make_bus()
    bus.write(0xFF00, 0x20)
    assert bus.read(0xFF00) == gb.update_input(0x20)


def test_dma_copies_into_oam():
    gb, bus = make_bus()
    for offset in range(0xA0):
        bus.write(0xC000 + offset, offset)
    bus.write(0xFF46, 0xC0)
    assert list(gb.ppu.oam) == list(range(0xA0))
    assert bus.read(0xFF46) == 0xC0


def test_serial_transfer_sends_data_byte():
    received = []
    _, bus = make_bus(sink=received.append)
    bus.write(0xFF01, ord("A"))
    bus.write(0xFF02, 0x81)
    assert received == [ord("A")]


def test_serial_default_prints_character(capsys):
    _, bus = make_bus()
    bus.write(0xFF01, ord("Z"))
    bus.write(0xFF02, 0x81)
    assert capsys.readouterr().out == "Z"


def test_reset_clears_memory():
    _, bus = make_bus()
    bus.write(0xC000, 0x55)
    bus.reset()
    assert bus.read(0xC000) == 0


@pytest.mark.parametrize("address", [-1, 0x10000])
def test_out_of_range_address_raises(address):
    _, bus = make_bus()
    with pytest.raises(ValueError):
        bus.read(address)
    with pytest.raises(ValueError):
        bus.write(address, 0)