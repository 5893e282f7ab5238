"""Address decoding for the 16-bit memory map."""

from __future__ import annotations

import sys
from typing import Callable, Optional

JOYP_ADDRESS = 0xFF00
SERIAL_DATA_ADDRESS = 0xFF01
SERIAL_CONTROL_ADDRESS = 0xFF02
DIV_ADDRESS = 0xFF04
DMA_ADDRESS = 0xFF46

_SERIAL_START = 0x81
_OAM_START = 0xFE00
_OAM_LENGTH = 0xA0


def _print_serial(value: int) -> None:
    sys.stdout.write(chr(value))
    sys.stdout.flush()


class MemoryBus:
    """Routes reads and writes to the cartridge, video memory and I/O registers.

    ``gameboy`` must provide ``active_cartridge``, ``ppu``, ``timer`` and
    ``update_input``. Bytes sent over the serial port are passed to
    ``serial_sink``, which by default prints them as characters.
    """

    def __init__(
        self, gameboy, serial_sink: Optional[Callable[[int], None]] = None
    ) -> None:
        self.gb = gameboy
        self.serial_sink = serial_sink or _print_serial
        self.memory = bytearray(0x10000)
        self.reset()

    def reset(self) -> None:
        """Clear all memory and release every joypad line."""
        self.memory[:] = bytes(len(self.memory))
        self.memory[JOYP_ADDRESS] = 0xFF

    @staticmethod
    def _check(address: int) -> None:
        if not 0 <= address <= 0xFFFF:
            raise ValueError(f"address out of range: 0x{address:X}")

    def write(self, address: int, data: int) -> None:
        """Write a byte, dispatching it to the component that owns ``address``."""
        self._check(address)
        data &= 0xFF
        gb = self.gb

        if address == SERIAL_CONTROL_ADDRESS and data == _SERIAL_START:
            self.serial_sink(self.read(SERIAL_DATA_ADDRESS))

        if address == DIV_ADDRESS:
            self.memory[address] = 0

        if address == DMA_ADDRESS:
            source = data * 0x100
            for offset in range(_OAM_LENGTH):
                gb.ppu.write_oam(_OAM_START + offset, self.read(source + offset))
            self.memory[DMA_ADDRESS] = data
            return

        cartridge = gb.active_cartridge
        if cartridge is None:
            return

        if address == JOYP_ADDRESS:
            self.memory[JOYP_ADDRESS] = gb.update_input(data) & 0xFF
        elif address == DIV_ADDRESS:
            gb.timer.div = 0
        elif address <= 0x7FFF:
            cartridge.write_rom(address, data)
        elif 0xA000 <= address <= 0xBFFF:
            cartridge.write_ram(address, data)
        elif 0x8000 <= address <= 0x9FFF:
            gb.ppu.write_vram(address, data)
        elif 0xFE00 <= address <= 0xFE9F:
            gb.ppu.write_oam(address, data)
        else:
            self.memory[address] = data

    def read(self, address: int) -> int:
        """Read a byte; everything reads as zero while no cartridge is inserted."""
        self._check(address)
        gb = self.gb
        cartridge = gb.active_cartridge
        if cartridge is None:
            return 0

        if address <= 0x7FFF:
            return cartridge.read_rom(address)
        if 0xA000 <= address <= 0xBFFF:
            return cartridge.read_ram(address)
        if 0x8000 <= address <= 0x9FFF:
            return gb.ppu.read_vram(address)
        if 0xFE00 <= address <= 0xFE9F:
            return gb.ppu.read_oam(address)
        if address == DIV_ADDRESS:
            return gb.timer.div
        return self.memory[address]