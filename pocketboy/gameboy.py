"""The console: wires the components together and runs them from a ROM file."""

from __future__ import annotations

import argparse
import enum
import logging
from pathlib import Path
from typing import Callable, Optional

from .bits import clear_bit, get_bit, set_bit
from .cartridge import Cartridge, CartridgeError
from .cpu import CLOCK_SPEED, CPU
from .memory_bus import MemoryBus
from .ppu import PPU
from .timer import Timer

logger = logging.getLogger(__name__)

JOYPAD_INTERRUPT_BIT = 4
BOOTROM_END = 0x100


class Joypad(enum.IntEnum):
    DPAD_RIGHT = 0
    DPAD_LEFT = 1
    DPAD_UP = 2
    DPAD_DOWN = 3
    BUTTON_A = 4
    BUTTON_B = 5
    BUTTON_SELECT = 6
    BUTTON_START = 7


class GameBoy:
    """A complete console: memory bus, processor, picture unit and timer."""

    def __init__(self, serial_sink: Optional[Callable[[int], None]] = None) -> None:
        self.active_cartridge: Optional[Cartridge] = None
        self.keys = [False] * len(Joypad)
        self.on_bootrom = False
        self.mmu = MemoryBus(self, serial_sink)
        self.cpu = CPU(self)
        self.ppu = PPU(self)
        self.timer = Timer(self)

    def update(self, dt: float) -> None:
        """Advance every component by one machine cycle."""
        cartridge = self.active_cartridge
        if cartridge is None:
            return

        if self.on_bootrom and self.cpu.registers.pc == BOOTROM_END:
            self.on_bootrom = False
            cartridge.unload_bootrom()

        self.cpu.tick()
        self.timer.update(1)
        self.ppu.tick(1)

    def update_input(self, joyp: int) -> int:
        """Return the joypad register after a write of ``joyp``."""
        joyp &= 0xFF
        if get_bit(joyp, 5) and get_bit(joyp, 4):
            return joyp | 0x0F

        if not get_bit(joyp, 5):
            for key in range(Joypad.BUTTON_A, Joypad.BUTTON_START + 1):
                line = key - Joypad.BUTTON_A
                if self.keys[key]:
                    if get_bit(joyp, line):
                        self.cpu.set_interrupt_flag(JOYPAD_INTERRUPT_BIT, True)
                        joyp = clear_bit(joyp, line)
                else:
                    joyp = set_bit(joyp, line)

        if not get_bit(joyp, 4):
            for key in range(Joypad.DPAD_RIGHT, Joypad.BUTTON_START):
                if self.keys[key]:
                    if get_bit(joyp, key):
                        self.cpu.set_interrupt_flag(JOYPAD_INTERRUPT_BIT, True)
                        joyp = clear_bit(joyp, key)
                else:
                    joyp = set_bit(joyp, key)

        return joyp & 0xFF

    def on_input_pressed(self, button: Joypad) -> None:
        if self.keys[button]:
            return
        self.cpu.set_interrupt_flag(JOYPAD_INTERRUPT_BIT, True)
        logger.debug("Button %d pressed", int(button))
        self.keys[button] = True

    def on_input_released(self, button: Joypad) -> None:
        if not self.keys[button]:
            return
        logger.debug("Button %d released", int(button))
        self.keys[button] = False

    def load_rom(self, rom_path) -> bool:
        """Insert the ROM at ``rom_path`` and restart; False if it cannot be read.

        Raises CartridgeError when the file is not a usable cartridge image.
        """
        try:
            data = Path(rom_path).read_bytes()
        except OSError:
            logger.error("Could not load ROM at path: %s", rom_path)
            return False

        cartridge = Cartridge()
        cartridge.load_rom(str(rom_path), data)

        self.mmu.reset()
        self.active_cartridge = cartridge
        self.cpu.reset()
        self.ppu.reset()
        self.timer.reset()
        self.on_bootrom = True
        return True


def main(argv=None) -> int:
    """Run a ROM without a display for a number of machine cycles."""
    parser = argparse.ArgumentParser(description="Run a cartridge image headless.")
    parser.add_argument("rom", help="path of the ROM file")
    parser.add_argument(
        "--cycles",
        type=int,
        default=CLOCK_SPEED // 4,
        help="machine cycles to run (default: one emulated second)",
    )
    args = parser.parse_args(argv)

    gameboy = GameBoy()
    try:
        loaded = gameboy.load_rom(args.rom)
    except CartridgeError as error:
        print(f"Invalid cartridge: {error}")
        return 1
    if not loaded:
        print(f"Could not load ROM at path: {args.rom}")
        return 1

    for _ in range(args.cycles):
        gameboy.update(0.0)

    regs = gameboy.cpu.registers
    print(
        f"\nAF: 0x{regs.af:04X} BC: 0x{regs.bc:04X} DE: 0x{regs.de:04X} "
        f"HL: 0x{regs.hl:04X} SP: 0x{regs.sp:04X} PC: 0x{regs.pc:04X}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())