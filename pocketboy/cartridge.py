"""Cartridge header parsing, memory bank controllers and the boot ROM overlay."""

from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

log = logging.getLogger(__name__)

ROM_BANK_SIZE = 0x4000
RAM_BANK_SIZE = 0x2000
BOOT_ROM_SIZE = 0x100
HEADER_END = 0x150

_MAX_ROM_SIZE_CODE = 0x08

_RAM_SIZES = {
    0x00: 0,
    0x02: 8 * 1024,
    0x03: 32 * 1024,
    0x04: 128 * 1024,
    0x05: 64 * 1024,
}

DMG_BOOT_ROM = bytes((
    0x31, 0xFE, 0xFF, 0x21, 0xFF, 0x9F, 0xAF, 0x32,
    0xCB, 0x7C, 0x20, 0xFA, 0x0E, 0x11, 0x21, 0x26,
    0xFF, 0x3E, 0x80, 0x32, 0xE2, 0x0C, 0x3E, 0xF3,
    0x32, 0xE2, 0x0C, 0x3E, 0x77, 0x32, 0xE2, 0x11,
    0x04, 0x01, 0x21, 0x10, 0x80, 0x1A, 0xCD, 0xB8,
    0x00, 0x1A, 0xCB, 0x37, 0xCD, 0xB8, 0x00, 0x13,
    0x7B, 0xFE, 0x34, 0x20, 0xF0, 0x11, 0xCC, 0x00,
    0x06, 0x08, 0x1A, 0x13, 0x22, 0x23, 0x05, 0x20,
    0xF9, 0x21, 0x04, 0x99, 0x01, 0x0C, 0x01, 0xCD,
    0xB1, 0x00, 0x3E, 0x19, 0x77, 0x21, 0x24, 0x99,
    0x0E, 0x0C, 0xCD, 0xB1, 0x00, 0x3E, 0x91, 0xE0,
    0x40, 0x06, 0x10, 0x11, 0xD4, 0x00, 0x78, 0xE0,
    0x43, 0x05, 0x7B, 0xFE, 0xD8, 0x28, 0x04, 0x1A,
    0xE0, 0x47, 0x13, 0x0E, 0x1C, 0xCD, 0xA7, 0x00,
    0xAF, 0x90, 0xE0, 0x43, 0x05, 0x0E, 0x1C, 0xCD,
    0xA7, 0x00, 0xAF, 0xB0, 0x20, 0xE0, 0xE0, 0x43,
    0x3E, 0x83, 0xCD, 0x9F, 0x00, 0x0E, 0x27, 0xCD,
    0xA7, 0x00, 0x3E, 0xC1, 0xCD, 0x9F, 0x00, 0x11,
    0x8A, 0x01, 0xF0, 0x44, 0xFE, 0x90, 0x20, 0xFA,
    0x1B, 0x7A, 0xB3, 0x20, 0xF5, 0x18, 0x49, 0x0E,
    0x13, 0xE2, 0x0C, 0x3E, 0x87, 0xE2, 0xC9, 0xF0,
    0x44, 0xFE, 0x90, 0x20, 0xFA, 0x0D, 0x20, 0xF7,
    0xC9, 0x78, 0x22, 0x04, 0x0D, 0x20, 0xFA, 0xC9,
    0x47, 0x0E, 0x04, 0xAF, 0xC5, 0xCB, 0x10, 0x17,
    0xC1, 0xCB, 0x10, 0x17, 0x0D, 0x20, 0xF5, 0x22,
    0x23, 0x22, 0x23, 0xC9, 0x3C, 0x42, 0xB9, 0xA5,
    0xB9, 0xA5, 0x42, 0x3C, 0x00, 0x54, 0xA8, 0xFC,
    0x42, 0x4F, 0x4F, 0x54, 0x49, 0x58, 0x2E, 0x44,
    0x4D, 0x47, 0x20, 0x76, 0x31, 0x2E, 0x32, 0x00,
    0x3E, 0xFF, 0xC6, 0x01, 0x0B, 0x1E, 0xD8, 0x21,
    0x4D, 0x01, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00,
    0x00, 0x00, 0x00, 0x00, 0x3E, 0x01, 0xE0, 0x50,
))


class CartridgeError(Exception):
    """Raised when a ROM image cannot be used as a cartridge."""


class CartridgeType(enum.Enum):
    ROM_ONLY = enum.auto()
    MBC1 = enum.auto()
    MBC2 = enum.auto()
    MBC3 = enum.auto()
    MBC5 = enum.auto()
    MBC6 = enum.auto()
    MBC7 = enum.auto()


_TYPE_CODES: dict[int, CartridgeType] = {
    0x00: CartridgeType.ROM_ONLY,
    0x08: CartridgeType.ROM_ONLY,
    0x09: CartridgeType.ROM_ONLY,
    0x01: CartridgeType.MBC1,
    0x02: CartridgeType.MBC1,
    0x03: CartridgeType.MBC1,
    0x05: CartridgeType.MBC2,
    0x06: CartridgeType.MBC2,
    **{code: CartridgeType.MBC3 for code in range(0x10, 0x14)},
    **{code: CartridgeType.MBC5 for code in range(0x19, 0x1F)},
    0x20: CartridgeType.MBC6,
    0x22: CartridgeType.MBC7,
}


@dataclass
class CartridgeHeader:
    """Fields read from the cartridge header at 0x0100-0x014F."""

    title: bytes
    nintendo_logo: bytes
    licensee_code: int
    sgb_flag: int
    destination_code: int
    old_licensee_code: int
    mask_rom_version: int
    header_checksum: int
    global_checksum: int
    cartridge_type: CartridgeType
    rom_size: int
    ram_size: int


def parse_header(rom: bytes) -> CartridgeHeader:
    """Parse and validate the header of a ROM image.

    Raises CartridgeError if the image is too short or its header checksum
    does not match.
    """
    if len(rom) < HEADER_END:
        raise CartridgeError(f"ROM image too short for a header: {len(rom)} bytes")

    type_code = rom[0x147]
    cartridge_type = _TYPE_CODES.get(type_code)
    if cartridge_type is None:
        log.warning(
            "unsupported cartridge type 0x%02X, treating it as ROM only", type_code
        )
        cartridge_type = CartridgeType.ROM_ONLY

    old_licensee = rom[0x14B]
    checksum = 0
    for byte in rom[0x134:0x14D]:
        checksum = (checksum - byte - 1) & 0xFF

    if checksum != rom[0x14D]:
        raise CartridgeError("header checksum is invalid")

    return CartridgeHeader(
        title=bytes(rom[0x134:0x144]),
        nintendo_logo=bytes(rom[0x104:0x134]),
        licensee_code=rom[0x144] if old_licensee == 0x33 else 0,
        sgb_flag=rom[0x146],
        destination_code=rom[0x14A],
        old_licensee_code=old_licensee,
        mask_rom_version=rom[0x14C],
        header_checksum=rom[0x14D],
        global_checksum=int.from_bytes(rom[0x14E:0x150], "big"),
        cartridge_type=cartridge_type,
        rom_size=rom[0x148],
        ram_size=rom[0x149],
    )


class Mapper(ABC):
    """Memory bank controller holding the cartridge ROM and RAM."""

    def __init__(self, header: CartridgeHeader) -> None:
        if header.rom_size > _MAX_ROM_SIZE_CODE:
            raise CartridgeError(f"unsupported ROM size code 0x{header.rom_size:02X}")
        rom_size = 0x8000 << header.rom_size
        ram_size = _RAM_SIZES.get(header.ram_size, 0)

        self.rom = bytearray(rom_size)
        self.ram = bytearray(ram_size)
        self.rom_bank_count = rom_size // ROM_BANK_SIZE
        self.ram_bank_count = ram_size // RAM_BANK_SIZE

    @property
    def allocated_rom_size(self) -> int:
        return len(self.rom)

    @property
    def allocated_ram_size(self) -> int:
        return len(self.ram)

    @abstractmethod
    def read_rom(self, address: int) -> int:
        """Read a byte from the 0x0000-0x7FFF window."""

    @abstractmethod
    def write_rom(self, address: int, value: int) -> None:
        """Handle a write to the 0x0000-0x7FFF window."""

    @abstractmethod
    def read_ram(self, address: int) -> int:
        """Read a byte from the 0xA000-0xBFFF window."""

    @abstractmethod
    def write_ram(self, address: int, value: int) -> None:
        """Write a byte to the 0xA000-0xBFFF window."""


class NoMBC(Mapper):
    """Cartridge without a bank controller: ROM is fixed, RAM is mapped directly."""

    def read_rom(self, address: int) -> int:
        return self.rom[address]

    def write_rom(self, address: int, value: int) -> None:
        pass

    def read_ram(self, address: int) -> int:
        return self.ram[address - 0xA000]

    def write_ram(self, address: int, value: int) -> None:
        self.ram[address - 0xA000] = value & 0xFF


class MBC1(Mapper):
    """MBC1 controller with switchable ROM and RAM banks."""

    def __init__(self, header: CartridgeHeader) -> None:
        super().__init__(header)
        self.rom_bank_number = 1
        self.ram_bank_number = 0
        self.banking_mode = 0
        self.ram_enabled = False

    def read_rom(self, address: int) -> int:
        if address <= 0x3FFF:
            return self.rom[address]
        return self.rom[address + ROM_BANK_SIZE * (self.rom_bank_number - 1)]

    def write_rom(self, address: int, value: int) -> None:
        if address <= 0x1FFF:
            self.ram_enabled = (value & 0x0F) == 0x0A
        elif address <= 0x3FFF:
            bank = value & 0x1F
            if bank in (0x00, 0x20, 0x40, 0x60):
                bank += 1
            self.rom_bank_number = bank & (self.rom_bank_count - 1)
        elif address <= 0x5FFF:
            value &= 0x03
            if self.banking_mode:
                if value >= self.ram_bank_count:
                    return
                self.ram_bank_number = value & (self.ram_bank_count - 1)
            else:
                bank = (self.rom_bank_number | (value << 5)) & 0xFF
                if bank in (0x20, 0x40, 0x60):
                    bank += 1
                self.rom_bank_number = bank & (self.rom_bank_count - 1)
        else:
            self.banking_mode = value & 0x01

    def _ram_offset(self, address: int) -> int:
        bank = self.banking_mode * self.ram_bank_number
        return (address - 0xA000) + RAM_BANK_SIZE * bank

    def read_ram(self, address: int) -> int:
        if not self.ram_enabled:
            return 0xFF
        return self.ram[self._ram_offset(address)]

    def write_ram(self, address: int, value: int) -> None:
        if self.ram_enabled:
            self.ram[self._ram_offset(address)] = value & 0xFF


class Cartridge:
    """A loaded cartridge with the boot ROM overlaid on its first 256 bytes."""

    def __init__(self) -> None:
        self.path = ""
        self.header: CartridgeHeader | None = None
        self.mapper: Mapper | None = None
        self._hidden_by_boot_rom = bytes(BOOT_ROM_SIZE)

    def load_rom(self, path, data: bytes) -> CartridgeHeader:
        """Load a ROM image, choose its mapper and overlay the boot ROM."""
        self.path = str(path)
        data = bytes(data)
        header = parse_header(data)
        self.header = header

        if len(data) % ROM_BANK_SIZE != 0:
            raise CartridgeError("ROM size must be a multiple of 16 KB")

        if header.cartridge_type is CartridgeType.MBC1:
            mapper: Mapper = MBC1(header)
        else:
            mapper = NoMBC(header)

        if len(data) > mapper.allocated_rom_size:
            raise CartridgeError(
                f"ROM image of {len(data)} bytes exceeds the size in its header"
            )

        mapper.rom[: len(data)] = data
        self._hidden_by_boot_rom = bytes(mapper.rom[:BOOT_ROM_SIZE])
        mapper.rom[:BOOT_ROM_SIZE] = DMG_BOOT_ROM
        self.mapper = mapper
        return header

    def unload_bootrom(self) -> None:
        """Restore the cartridge bytes that the boot ROM covered."""
        self._loaded().rom[:BOOT_ROM_SIZE] = self._hidden_by_boot_rom

    def _loaded(self) -> Mapper:
        if self.mapper is None:
            raise CartridgeError("no ROM is loaded")
        return self.mapper

    @staticmethod
    def _check_rom_address(address: int) -> None:
        if not 0 <= address <= 0x7FFF:
            raise ValueError(f"ROM address out of range: 0x{address:X}")

    @staticmethod
    def _check_ram_address(address: int) -> None:
        if not 0xA000 <= address <= 0xBFFF:
            raise ValueError(f"RAM address out of range: 0x{address:X}")

    def read_rom(self, address: int) -> int:
        self._check_rom_address(address)
        return self._loaded().read_rom(address)

    def write_rom(self, address: int, value: int) -> None:
        self._check_rom_address(address)
        self._loaded().write_rom(address, value)

    def read_ram(self, address: int) -> int:
        self._check_ram_address(address)
        mapper = self._loaded()
        if mapper.allocated_ram_size == 0:
            return 0xFF
        return mapper.read_ram(address)

    def write_ram(self, address: int, value: int) -> None:
        self._check_ram_address(address)
        mapper = self._loaded()
        if mapper.allocated_ram_size == 0:
            return
        mapper.write_ram(address, value)