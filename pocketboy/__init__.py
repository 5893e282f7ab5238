"""A headless Game Boy (DMG) emulator core: CPU, memory bus, timer, PPU and cartridges."""

__version__ = "0.1.0"