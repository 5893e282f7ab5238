# pocketboy

A Game Boy (DMG) emulator core in pure Python, with no dependencies outside
the standard library. It provides:

- the SM83 processor with its base and `0xCB`-prefixed instruction sets,
  interrupt handling and cycle pacing;
- the memory bus, which decodes the 16-bit address map, performs OAM DMA and
  passes serial bytes to a callback;
- the DIV and TIMA timers;
- a pixel-FIFO picture unit that draws background, window and sprites into a
  160×144 buffer of shade indices (0–3);
- cartridges without a mapper and with an MBC1 mapper, with a boot ROM laid
  over the first 256 bytes of the cartridge until execution reaches `0x0100`.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Command line

```
pocketboy path/to/game.gb
pocketboy path/to/game.gb --cycles 2000000
```

The command loads the ROM and runs it with no display for the given number of
machine cycles. The default is 1,048,576, which is one emulated second. Bytes
sent over the serial port appear on standard output, so the text that test
ROMs print shows up there. At the end the command prints the register pairs
`AF`, `BC`, `DE`, `HL`, `SP` and `PC`. It exits with status 1 if the file
cannot be read or is not a valid cartridge image.

## Library use

```python
from pocketboy.gameboy import GameBoy, Joypad

gb = GameBoy()
gb.load_rom("game.gb")

gb.on_input_pressed(Joypad.BUTTON_START)
for _ in range(70224 // 4):      # about one frame of machine cycles
    gb.update(0.0)
gb.on_input_released(Joypad.BUTTON_START)

frame = gb.ppu.screen_pixels      # 160 * 144 shade indices, 0..3
print(hex(gb.cpu.registers.pc))
```

Each call to `GameBoy.update` advances the CPU, the timer and the PPU by one
machine cycle. `GameBoy.load_rom` returns `False` when the file cannot be
read. It raises `pocketboy.cartridge.CartridgeError` when the file is not a
usable image. To collect serial output instead of printing it, pass a
callable that takes each byte: `GameBoy(serial_sink=buffer.append)`.

### Modules

- `pocketboy.gameboy`: `GameBoy`, `Joypad` and `main`, the command-line entry
  point.
- `pocketboy.cpu`: `CPU`, with `tick`, `reset` and `set_interrupt_flag`.
- `pocketboy.instructions`: `Registers`, the register file with the pairs
  `af`, `bc`, `de` and `hl`, the flags as properties and access by name.
  `InstructionSet`, which holds the individual instructions.
- `pocketboy.dispatch` and `pocketboy.cb_dispatch`: `execute` and
  `execute_cb`, which decode one opcode and run it on an `InstructionSet`.
- `pocketboy.memory_bus`: `MemoryBus`.
- `pocketboy.ppu`: `PPU`, plus `FetcherType`, `FifoPixel`, `Sprite` and
  `Fetcher`.
- `pocketboy.timer`: `Timer` and `frequency_from_tac`.
- `pocketboy.cartridge`: `parse_header`, `CartridgeHeader`, `CartridgeType`,
  `Cartridge`, and the mappers `Mapper`, `NoMBC` and `MBC1`. `CartridgeError`
  is raised in these cases:
  - the image is too short to hold a header;
  - the header checksum does not match;
  - the image size is not a multiple of 16 KiB;
  - the image is larger than its header declares;
  - the ROM size code is unsupported.
- `pocketboy.opcode_tables`: `opcode_name`, `instruction_length`,
  `base_cycles` and `prefixed_cycles`, for disassembly and timing.
- `pocketboy.bits`: `get_bit`, `set_bit` and `clear_bit`.

## What it does not do

- There is no window, screen output or sound. The frame exists only as
  `ppu.screen_pixels`, and you decide how to show it.
- Only ROM-only and MBC1 cartridges are banked. Every other cartridge type
  uses plain, unbanked ROM access, and unknown type codes are logged and
  treated the same way.
- Cartridge RAM is not saved to disk.
- `STOP` is skipped and DMA completes at once.
- The PPU keeps running even when the LCD is disabled in `LCDC`.