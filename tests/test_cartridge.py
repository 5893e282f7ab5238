import pytest

from pocketboy.cartridge import (
    DMG_BOOT_ROM,
    MBC1,
    Cartridge,
    CartridgeError,
    CartridgeType,
    NoMBC,
    parse_header,
)

BANK_MARK_OFFSET = 0x200


def _fix_checksum(rom: bytearray) -> None:
    for candidate in range(256):
        rom[0x14D] = candidate
        try:
            parse_header(bytes(rom))
        except CartridgeError:
            continue
        return
    raise AssertionError("no checksum value accepted")


def make_rom(
    cart_type=0x00,
    rom_code=0x00,
    ram_code=0x00,
    *,
    size_code=None,
    old_licensee=0x00,
    licensee=0x00,
    title=b"TESTGAME",
):
    rom = bytearray(0x8000 << rom_code)
    rom[: 0x100] = bytes((i * 7 + 3) & 0xFF for i in range(0x100))
    for bank in range(1, len(rom) // 0x4000):
        rom[bank * 0x4000 + BANK_MARK_OFFSET] = bank
    rom[0x134 : 0x134 + len(title)] = title
    rom[0x144] = licensee
    rom[0x147] = cart_type
    rom[0x148] = rom_code if size_code is None else size_code
    rom[0x149] = ram_code
    rom[0x14B] = old_licensee
    _fix_checksum(rom)
    return bytes(rom)


def loaded(**kwargs):
    cart = Cartridge()
    cart.load_rom("game.gb", make_rom(**kwargs))
    return cart


def test_exactly_one_checksum_value_is_accepted():
    rom = bytearray(make_rom())
    accepted = []
    for candidate in range(256):
        rom[0x14D] = candidate
        try:
            parse_header(bytes(rom))
        except CartridgeError:
            continue
        accepted.append(candidate)
    assert len(accepted) == 1


def test_header_fields_are_read():
    rom = make_rom(rom_code=1, ram_code=3)
    header = parse_header(rom)
    assert header.title == b"TESTGAME" + bytes(8)
    assert header.rom_size == 1
    assert header.ram_size == 3
    assert header.header_checksum == rom[0x14D]
    assert header.nintendo_logo == rom[0x104:0x134]


@pytest.mark.parametrize(
    "code, expected",
    [
        (0x00, CartridgeType.ROM_ONLY),
        (0x03, CartridgeType.MBC1),
        (0x05, CartridgeType.MBC2),
        (0x13, CartridgeType.MBC3),
        (0x1B, CartridgeType.MBC5),
        (0x20, CartridgeType.MBC6),
        (0x22, CartridgeType.MBC7),
        (0xFC, CartridgeType.ROM_ONLY),
    ],
)
def test_cartridge_type_codes(code, expected):
    assert parse_header(make_rom(cart_type=code)).cartridge_type is expected


def test_new_licensee_code_used_only_with_marker():
    header = parse_header(make_rom(old_licensee=0x33, licensee=0x41))
    assert header.licensee_code == 0x41
    plain = parse_header(make_rom(old_licensee=0x01, licensee=0x41))
    assert plain.licensee_code == 0


def test_bad_checksum_raises():
    rom = bytearray(make_rom())
    rom[0x14D] ^= 0xFF
    with pytest.raises(CartridgeError):
        parse_header(bytes(rom))


def test_short_image_raises():
    with pytest.raises(CartridgeError):
        parse_header(bytes(0x100))


def test_boot_rom_overlay_and_unload():
    data = make_rom()
    cart = Cartridge()
    cart.load_rom("game.gb", data)
    assert cart.path == "game.gb"
    assert bytes(cart.read_rom(a) for a in range(0x100)) == DMG_BOOT_ROM
    cart.unload_bootrom()
    assert bytes(cart.read_rom(a) for a in range(0x100)) == data[:0x100]


def test_size_not_multiple_of_bank_raises():
    data = make_rom() + b"\x00"
    with pytest.raises(CartridgeError):
        Cartridge().load_rom("odd.gb", data)


def test_unsupported_rom_size_code_raises():
    data = make_rom(size_code=0x52)
    with pytest.raises(CartridgeError):
        Cartridge().load_rom("big.gb", data)


def test_unloaded_cartridge_raises():
    with pytest.raises(CartridgeError):
        Cartridge().read_rom(0x0000)


def test_address_ranges_are_checked():
    cart = loaded()
    with pytest.raises(ValueError):
        cart.read_rom(0x8000)
    with pytest.raises(ValueError):
        cart.read_ram(0x9FFF)
    with pytest.raises(ValueError):
        cart.write_ram(0xC000, 1)


def test_rom_only_ignores_rom_writes():
    cart = loaded()
    cart.unload_bootrom()
    before = cart.read_rom(0x0150)
    cart.write_rom(0x0150, before ^ 0xFF)
    assert cart.read_rom(0x0150) == before
    assert isinstance(cart.mapper, NoMBC)


def test_missing_ram_reads_open_bus():
    cart = loaded()
    cart.write_ram(0xA000, 0x12)
    assert cart.read_ram(0xA000) == 0xFF


def test_rom_only_ram_round_trip():
    cart = loaded(ram_code=2)
    cart.write_ram(0xA010, 0x5A)
    cart.write_ram(0xBFFF, 0x3C)
    assert cart.read_ram(0xA010) == 0x5A
    assert cart.read_ram(0xBFFF) == 0x3C


def test_mapper_sizes_match_bank_counts():
    header = parse_header(make_rom(rom_code=2, ram_code=3))
    mapper = NoMBC(header)
    assert mapper.rom_bank_count * 0x4000 == mapper.allocated_rom_size
    assert mapper.ram_bank_count * 0x2000 == mapper.allocated_ram_size


def test_mbc1_rom_bank_switching():
    cart = loaded(cart_type=0x01, rom_code=2)
    assert isinstance(cart.mapper, MBC1)
    assert cart.read_rom(0x4000 + BANK_MARK_OFFSET) == 1
    cart.write_rom(0x2000, 3)
    assert cart.read_rom(0x4000 + BANK_MARK_OFFSET) == 3
    cart.write_rom(0x2000, 0)
    assert cart.read_rom(0x4000 + BANK_MARK_OFFSET) == 1


def test_mbc1_bank_zero_window_is_fixed():
    cart = loaded(cart_type=0x01, rom_code=2)
    before = [cart.read_rom(a) for a in range(0x100, 0x400)]
    cart.write_rom(0x2000, 5)
    assert [cart.read_rom(a) for a in range(0x100, 0x400)] == before


def test_mbc1_bank_number_is_masked_to_bank_count():
    cart = loaded(cart_type=0x01, rom_code=2)
    for requested in range(1, 0x20):
        cart.write_rom(0x2000, requested)
        mark = cart.read_rom(0x4000 + BANK_MARK_OFFSET)
        assert 0 <= mark < cart.mapper.rom_bank_count
        assert mark == requested % cart.mapper.rom_bank_count


def test_mbc1_ram_enable_gate():
    cart = loaded(cart_type=0x03, ram_code=2)
    cart.write_ram(0xA000, 0x42)
    assert cart.read_ram(0xA000) == 0xFF
    cart.write_rom(0x0000, 0x0A)
    cart.write_ram(0xA000, 0x42)
    assert cart.read_ram(0xA000) == 0x42
    cart.write_rom(0x0000, 0x00)
    assert cart.read_ram(0xA000) == 0xFF


def test_mbc1_ram_banks_are_independent():
    cart = loaded(cart_type=0x03, ram_code=3)
    cart.write_rom(0x0000, 0x0A)
    cart.write_rom(0x6000, 0x01)
    cart.write_rom(0x4000, 2)
    cart.write_ram(0xA000, 0x11)
    cart.write_rom(0x4000, 0)
    cart.write_ram(0xA000, 0x22)
    assert cart.read_ram(0xA000) == 0x22
    cart.write_rom(0x4000, 2)
    assert cart.read_ram(0xA000) == 0x11


def test_mbc1_ram_bank_beyond_count_is_ignored():
    cart = loaded(cart_type=0x03, ram_code=2)
    cart.write_rom(0x0000, 0x0A)
    cart.write_rom(0x6000, 0x01)
    cart.write_ram(0xA005, 0x77)
    cart.write_rom(0x4000, 3)
    assert cart.mapper.ram_bank_number == 0
    assert cart.read_ram(0xA005) == 0x77