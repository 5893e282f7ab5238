"""Picture processing unit: OAM scan, pixel FIFO fetcher and LCD output."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from .bits import clear_bit, get_bit, set_bit

SCREEN_WIDTH = 160
SCREEN_HEIGHT = 144

LCDC_ADDRESS = 0xFF40
STAT_ADDRESS = 0xFF41
SCY_ADDRESS = 0xFF42
SCX_ADDRESS = 0xFF43
LY_ADDRESS = 0xFF44
LYC_ADDRESS = 0xFF45
BGP_ADDRESS = 0xFF47
OBP0_ADDRESS = 0xFF48
OBP1_ADDRESS = 0xFF49
WY_ADDRESS = 0xFF4A
WX_ADDRESS = 0xFF4B

VBLANK_INTERRUPT_BIT = 0
STAT_INTERRUPT_BIT = 1

VRAM_START = 0x8000
VRAM_END = 0x9FFF
OAM_START = 0xFE00
OAM_END = 0xFE9F

MODE_HBLANK = 0
MODE_VBLANK = 1
MODE_OAM_SCAN = 2
MODE_DRAWING = 3

_FIFO_SIZE = 16
_SPRITE_COUNT = 40
_MAX_SPRITES_PER_LINE = 10
_SCANLINE_CYCLES = 456
_OAM_SCAN_CYCLES = 80
_LAST_VISIBLE_LINE = 143
_LAST_VBLANK_LINE = 153


class FetcherType(enum.Enum):
    BACKGROUND = 0
    WINDOW = 1
    SPRITE = 2


@dataclass(frozen=True)
class FifoPixel:
    """A palette-mapped colour (0-3) waiting in the pixel FIFO."""

    color: int = 0
    type: FetcherType = FetcherType.BACKGROUND


@dataclass(frozen=True)
class Sprite:
    """One object attribute entry."""

    y_pos: int = 0
    x_pos: int = 0
    tile: int = 0
    flags: int = 0


@dataclass
class Fetcher:
    """State of a tile fetcher."""

    fetcher_x_position: int = 0
    tile_low_data: int = 0
    tile_high_data: int = 0
    tile_id: int = 0


def _c_remainder(value: int, divisor: int) -> int:
    """Remainder that keeps the sign of ``value``, as integer division truncates."""
    magnitude = abs(value) % divisor
    return -magnitude if value < 0 else magnitude


def _palette_colour(palette: int, color: int) -> int:
    return (palette >> (color * 2)) & 0x03


class PPU:
    """Renders the 160x144 screen into ``screen_pixels`` as colours 0-3.

    ``gameboy`` must provide ``mmu`` (with ``read``/``write``) and ``cpu``
    (with ``set_interrupt_flag``).
    """

    def __init__(self, gameboy) -> None:
        self.gb = gameboy
        self.screen_pixels = [0] * (SCREEN_WIDTH * SCREEN_HEIGHT)
        self.requested_vram_debug_update = False

        self._mode = MODE_OAM_SCAN
        self._pause_time = 0
        self._internal_clock = 0
        self._fifo_clock = 0
        self._current_line_x = 0
        self._line_processed_pixel_count = 0
        self._window_line_counter = 0
        self._scanline_time = 0

        self._fetcher_stage = 0
        self._fetcher_type = FetcherType.BACKGROUND
        self._background_fetcher = Fetcher()
        self._reached_window_in_frame = False
        self._sprite_fetcher = Fetcher()

        self._vram = bytearray(VRAM_END - VRAM_START + 1)
        self._oam = bytearray(OAM_END - OAM_START + 1)

        self._objects: list[Sprite] = []
        self._fifo: list[FifoPixel] = [FifoPixel()] * _FIFO_SIZE
        self._fifo_pixel_count = 0
        self._current_rendering_sprite = Sprite()

        self.reset()

    @property
    def mode(self) -> int:
        """The current LCD mode (0 H-Blank, 1 V-Blank, 2 OAM scan, 3 drawing)."""
        return self._mode

    @property
    def objects(self) -> tuple[Sprite, ...]:
        """Sprites selected by the last OAM scan that are not yet drawn."""
        return tuple(self._objects)

    def reset(self) -> None:
        """Return to OAM scan and clear video and object memory."""
        self.switch_mode(MODE_OAM_SCAN)
        self._fetcher_type = FetcherType.BACKGROUND
        self._vram[:] = bytes(len(self._vram))
        self._oam[:] = bytes(len(self._oam))

    # -- memory ------------------------------------------------------------

    def read_vram(self, address: int) -> int:
        if not VRAM_START <= address <= VRAM_END:
            raise ValueError(f"VRAM address out of range: 0x{address:X}")
        return self._vram[address - VRAM_START]

    def write_vram(self, address: int, data: int) -> None:
        if not VRAM_START <= address <= VRAM_END:
            raise ValueError(f"VRAM address out of range: 0x{address:X}")
        self._vram[address - VRAM_START] = data & 0xFF

    def is_vram_accessible(self) -> bool:
        return self._mode != MODE_DRAWING

    def read_oam(self, address: int) -> int:
        if not OAM_START <= address <= OAM_END:
            raise ValueError(f"OAM address out of range: 0x{address:X}")
        return self._oam[address - OAM_START]

    def write_oam(self, address: int, data: int) -> None:
        if not OAM_START <= address <= OAM_END:
            raise ValueError(f"OAM address out of range: 0x{address:X}")
        self._oam[address - OAM_START] = data & 0xFF

    # -- timing ------------------------------------------------------------

    def _spend(self, clock_cycles: int) -> None:
        self._internal_clock -= clock_cycles
        self._scanline_time = (self._scanline_time + clock_cycles) & 0xFFFF

    def tick(self, cycles: int) -> None:
        """Advance the PPU by ``cycles`` machine cycles."""
        cycles &= 0xFF
        mmu = self.gb.mmu
        cpu = self.gb.cpu

        lcd_control = mmu.read(LCDC_ADDRESS)
        ly = mmu.read(LY_ADDRESS)
        lyc = mmu.read(LYC_ADDRESS)
        lcd_status = mmu.read(STAT_ADDRESS)

        if ly == lyc:
            cpu.set_interrupt_flag(STAT_INTERRUPT_BIT, True)
            lcd_status = set_bit(set_bit(lcd_status, 6), 2)
        else:
            lcd_status = clear_bit(clear_bit(lcd_status, 6), 2)

        if lcd_status & 0x1C:
            cpu.set_interrupt_flag(STAT_INTERRUPT_BIT, True)

        lcd_status = (lcd_status & 0xFC) | self._mode
        mmu.write(STAT_ADDRESS, lcd_status)

        self._internal_clock = (self._internal_clock + cycles * 4) & 0xFFFF
        if self._internal_clock == 0 or self._internal_clock < self._pause_time:
            return
        self._internal_clock -= self._pause_time
        self._scanline_time = (self._scanline_time + self._pause_time) & 0xFFFF
        self._pause_time = 0

        if self._mode == MODE_OAM_SCAN:
            self.switch_mode(MODE_DRAWING)
        elif self._mode == MODE_DRAWING:
            self._draw(lcd_control, ly, cycles)
        elif self._mode == MODE_HBLANK:
            self._end_scanline()
        elif self._mode == MODE_VBLANK:
            self._vblank_line()

    # -- drawing -----------------------------------------------------------

    def _draw(self, lcd_control: int, ly: int, cycles: int) -> None:
        mmu = self.gb.mmu
        scy = mmu.read(SCY_ADDRESS)
        scx = mmu.read(SCX_ADDRESS)

        if self._fetcher_stage == 0 and self._internal_clock >= 2:
            if self._fetcher_type is FetcherType.SPRITE:
                self._select_sprite(lcd_control, ly)
            else:
                self._fetch_tile_id(lcd_control, ly, scx, scy)
            self._spend(2)
            self._fetcher_stage = 1

        if self._fetcher_stage == 1 and self._internal_clock >= 2:
            self._fetch_tile_row(ly, scy)
            self._spend(2)
            self._fetcher_stage = 2

        if self._fetcher_stage == 2 and self._internal_clock >= 2:
            self._spend(2)
            fetcher = (
                self._sprite_fetcher
                if self._fetcher_type is FetcherType.SPRITE
                else self._background_fetcher
            )
            fetcher.tile_high_data = (fetcher.tile_low_data + 1) & 0xFFFF
            self._fetcher_stage = 3

        if self._fetcher_stage == 3 and self._internal_clock >= 2:
            if self._fetcher_type is FetcherType.SPRITE and self._fifo_pixel_count >= 8:
                self._mix_sprite()
            elif self._fifo_pixel_count <= 8:
                self._push_background_row()

        self._push_to_lcd(cycles)

    def _select_sprite(self, lcd_control: int, ly: int) -> None:
        for index, sprite in enumerate(self._objects):
            if sprite.x_pos <= self._current_line_x + 8:
                tile = sprite.tile
                if get_bit(lcd_control, 2) and ly + 16 >= sprite.y_pos + 8:
                    tile = set_bit(tile, 0)
                self._sprite_fetcher.tile_id = tile & 0xFF
                self._current_rendering_sprite = sprite
                del self._objects[index]
                break

    def _fetch_tile_id(self, lcd_control: int, ly: int, scx: int, scy: int) -> None:
        offset = self._background_fetcher.fetcher_x_position
        if self._fetcher_type is FetcherType.BACKGROUND:
            use_high_map = get_bit(lcd_control, 3)
            offset = ((offset + scx // 8) & 0xFFFF) % 0x20
            offset += 32 * (((ly + scy) % 0x100) // 8)
        else:
            use_high_map = get_bit(lcd_control, 6)
            offset += 32 * (self._window_line_counter // 8)
        offset &= 0xFFFF

        base = 0x9C00 if use_high_map else 0x9800
        address = (base + offset % 0x4000) & 0xFFFF
        self._background_fetcher.tile_id = self.read_vram(address)

    def _fetch_tile_row(self, ly: int, scy: int) -> None:
        if self._fetcher_type is FetcherType.SPRITE:
            sprite = self._current_rendering_sprite
            offset = (2 * _c_remainder(ly - sprite.y_pos + 16, 8)) & 0xFFFF
            if get_bit(sprite.flags, 6):
                offset = (14 - offset) & 0xFFFF
            fetcher = self._sprite_fetcher
            base = self._tile_address(fetcher.tile_id, True)
        else:
            if self._fetcher_type is FetcherType.BACKGROUND:
                offset = 2 * ((ly + scy) % 8)
            else:
                offset = 2 * (self._window_line_counter % 8)
            fetcher = self._background_fetcher
            base = self._tile_address(fetcher.tile_id, False)
        fetcher.tile_low_data = (base + offset) & 0xFFFF

    def _mix_sprite(self) -> None:
        self._spend(2)
        mmu = self.gb.mmu
        sprite = self._current_rendering_sprite
        fetcher = self._sprite_fetcher

        high = mmu.read(fetcher.tile_high_data)
        low = mmu.read(fetcher.tile_low_data)
        flipped = get_bit(sprite.flags, 5)

        obp0 = mmu.read(OBP0_ADDRESS)
        obp1 = mmu.read(OBP1_ADDRESS)
        bgp = mmu.read(BGP_ADDRESS)
        background_zero = get_bit(bgp, 0) | (get_bit(bgp, 1) << 1)
        palette = obp1 if get_bit(sprite.flags, 4) else obp0

        line_start = self._current_line_x + 8
        for i in range(8):
            pixel_x = (sprite.x_pos + i) & 0xFF
            if pixel_x < 8 or pixel_x >= SCREEN_WIDTH + 8 or pixel_x < line_start:
                continue
            fifo_id = (pixel_x - line_start) & 0xFF
            if fifo_id >= _FIFO_SIZE:
                continue

            bit = i if flipped else 7 - i
            color = (get_bit(high, bit) << 1) | get_bit(low, bit)
            if color == 0:
                continue
            if get_bit(sprite.flags, 7) and self._fifo[fifo_id].color != background_zero:
                continue

            self._fifo[fifo_id] = FifoPixel(
                _palette_colour(palette, color), FetcherType.SPRITE
            )

        self._fetcher_type = FetcherType.BACKGROUND
        self._fetcher_stage = 0

    def _push_background_row(self) -> None:
        self._spend(2)
        mmu = self.gb.mmu
        fetcher = self._background_fetcher
        fetcher.fetcher_x_position = (fetcher.fetcher_x_position + 1) & 0xFFFF

        high = mmu.read(fetcher.tile_high_data)
        low = mmu.read(fetcher.tile_low_data)
        bgp = mmu.read(BGP_ADDRESS)

        start = self._fifo_pixel_count
        for i in range(8):
            bit = 7 - i
            color = (get_bit(high, bit) << 1) | get_bit(low, bit)
            self._fifo[start + i] = FifoPixel(
                _palette_colour(bgp, color), FetcherType.BACKGROUND
            )

        self._fifo_pixel_count += 8
        self._fetcher_stage = 0

    def _push_to_lcd(self, cycles: int) -> None:
        if self._fifo_pixel_count <= 8 or self._fetcher_type is FetcherType.SPRITE:
            return

        mmu = self.gb.mmu
        ly = mmu.read(LY_ADDRESS)
        scx = mmu.read(SCX_ADDRESS)
        lcdc = mmu.read(LCDC_ADDRESS)
        wy = mmu.read(WY_ADDRESS)
        wx = mmu.read(WX_ADDRESS)

        if wy == ly:
            self._reached_window_in_frame = True

        self._fifo_clock = (self._fifo_clock + cycles * 4) & 0xFFFF

        while self._fifo_clock > 0:
            if self._fifo_pixel_count <= 8 or self._fetcher_type is FetcherType.SPRITE:
                break

            self._fifo_clock -= 1

            if (
                self._fetcher_type is FetcherType.BACKGROUND
                and get_bit(lcdc, 5)
                and self._reached_window_in_frame
                and self._current_line_x >= wx - 7
            ):
                self._fifo_pixel_count = 0
                self._background_fetcher.fetcher_x_position = 0
                self._fetcher_stage = 0
                self._fetcher_type = FetcherType.WINDOW
                return

            if any(
                sprite.x_pos <= self._current_line_x + 8 for sprite in self._objects
            ):
                self._fetcher_stage = 0
                self._fetcher_type = FetcherType.SPRITE
                return

            count = self._fifo_pixel_count
            pixel = self._fifo[0]
            self._fifo[: count - 1] = self._fifo[1:count]
            self._fifo_pixel_count = count - 1

            if self._line_processed_pixel_count < scx % 8:
                self._line_processed_pixel_count += 1
                continue
            self._line_processed_pixel_count += 1

            self.screen_pixels[self._current_line_x + ly * SCREEN_WIDTH] = pixel.color
            self._current_line_x += 1

            if self._current_line_x == SCREEN_WIDTH:
                self.switch_mode(MODE_HBLANK)
                break

    def _end_scanline(self) -> None:
        mmu = self.gb.mmu
        ly = mmu.read(LY_ADDRESS)

        if self._reached_window_in_frame:
            self._window_line_counter = (self._window_line_counter + 1) & 0xFFFF

        mmu.write(LY_ADDRESS, (ly + 1) & 0xFF)
        self._current_line_x = 0

        if ly == _LAST_VISIBLE_LINE:
            self.switch_mode(MODE_VBLANK)
        else:
            self.switch_mode(MODE_OAM_SCAN)

    def _vblank_line(self) -> None:
        if self._internal_clock < _SCANLINE_CYCLES:
            return
        self._internal_clock -= _SCANLINE_CYCLES

        mmu = self.gb.mmu
        ly = mmu.read(LY_ADDRESS)
        if ly >= _LAST_VBLANK_LINE:
            mmu.write(LY_ADDRESS, 0)
            self.switch_mode(MODE_OAM_SCAN)
            self.requested_vram_debug_update = True
        else:
            mmu.write(LY_ADDRESS, (ly + 1) & 0xFF)

    def _tile_address(self, tile_id: int, obj: bool) -> int:
        lcdc = self.gb.mmu.read(LCDC_ADDRESS)
        if obj or lcdc & 0x10:
            return 0x8000 + tile_id * 0x10
        if tile_id >= 128:
            return 0x8800 + (tile_id - 128) * 0x10
        return 0x9000 + tile_id * 0x10

    # -- modes -------------------------------------------------------------

    def _scan_oam(self, ly: int, lcd_control: int) -> None:
        sprite_height = 16 if lcd_control & 0x04 else 8
        self._objects = []
        for index in range(_SPRITE_COUNT):
            y_pos, x_pos, tile, flags = self._oam[4 * index : 4 * index + 4]
            if x_pos == 0:
                continue
            if not y_pos <= ly + 16 < y_pos + sprite_height:
                continue
            if sprite_height == 16:
                tile = clear_bit(tile, 0)
            self._objects.append(Sprite(y_pos, x_pos, tile, flags))
            if len(self._objects) >= _MAX_SPRITES_PER_LINE:
                break

    def switch_mode(self, mode: int) -> None:
        """Enter LCD mode ``mode`` and update the STAT register."""
        if mode not in (MODE_HBLANK, MODE_VBLANK, MODE_OAM_SCAN, MODE_DRAWING):
            raise ValueError(f"unknown LCD mode: {mode!r}")
        if mode == self._mode:
            return

        mmu = self.gb.mmu
        ly = mmu.read(LY_ADDRESS)
        lcd_status = mmu.read(STAT_ADDRESS)
        lcd_control = mmu.read(LCDC_ADDRESS)

        lcd_status &= ~0x38 & 0xFF

        if mode == MODE_OAM_SCAN:
            lcd_status = set_bit(lcd_status, 5)
            self._pause_time = _OAM_SCAN_CYCLES
            self._scan_oam(ly, lcd_control)
        elif mode == MODE_DRAWING:
            self._fetcher_stage = 0
            self._line_processed_pixel_count = 0
            self._current_line_x = 0
            self._background_fetcher.fetcher_x_position = 0
            self._fetcher_type = FetcherType.BACKGROUND
            self._fifo_pixel_count = 0
        elif mode == MODE_HBLANK:
            lcd_status = set_bit(lcd_status, 3)
            if self._scanline_time < _SCANLINE_CYCLES:
                self._pause_time = _SCANLINE_CYCLES - self._scanline_time
                self._scanline_time = 0
        else:
            lcd_status = set_bit(lcd_status, 4)
            self.gb.cpu.set_interrupt_flag(VBLANK_INTERRUPT_BIT, True)
            self._window_line_counter = 0
            self._reached_window_in_frame = False

        self._mode = mode
        mmu.write(STAT_ADDRESS, lcd_status)