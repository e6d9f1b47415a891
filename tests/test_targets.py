import pytest

from esploader.errors import InvalidTargetError, UnsupportedChipError
from esploader.targets import (
    ESP32_SPI_REG_BASE,
    ESP32S2_SPI_REG_BASE,
    Chip,
    adjust_pin_number,
    chip_from_magic,
    encryption_in_begin_flash_cmd,
    read_mac,
    read_spi_config,
    spi_config_esp32,
    spi_config_esp32xx,
    target_for,
    target_from_chip_id,
)


def registers(values, log=None):
    def read(address):
        if log is not None:
            log.append(address)
        return values.get(address, 0)

    return read


def failing_read(address):
    raise AssertionError(f"unexpected register read at 0x{address:x}")


@pytest.mark.parametrize(
    "chip_id, chip",
    [(0, Chip.ESP32), (2, Chip.ESP32S2), (5, Chip.ESP32C3), (9, Chip.ESP32S3),
     (12, Chip.ESP32C2), (13, Chip.ESP32C6), (16, Chip.ESP32H2), (0xFF, Chip.ESP8266)],
)
def test_target_from_chip_id(chip_id, chip):
    assert target_from_chip_id(chip_id) == chip


def test_target_from_unknown_chip_id():
    assert target_from_chip_id(1234) == Chip.UNKNOWN


@pytest.mark.parametrize(
    "magic, chip",
    [(0xFFF0C101, Chip.ESP8266), (0x00F01D83, Chip.ESP32), (0x000007C6, Chip.ESP32S2),
     (0x6921506F, Chip.ESP32C3), (0x1B31506F, Chip.ESP32C3), (0x4881606F, Chip.ESP32C3),
     (0x4361606F, Chip.ESP32C3), (0x00000009, Chip.ESP32S3), (0x6F51306F, Chip.ESP32C2),
     (0x7C41A06F, Chip.ESP32C2), (0xD7B73E80, Chip.ESP32H2), (0x2CE0806F, Chip.ESP32C6)],
)
def test_chip_from_magic(magic, chip):
    assert chip_from_magic(magic) == chip


def test_chip_from_unknown_magic_raises():
    with pytest.raises(InvalidTargetError):
        chip_from_magic(0x12345678)


def test_every_known_chip_round_trips_through_its_chip_id():
    for chip in (Chip.ESP32, Chip.ESP32S2, Chip.ESP32C3, Chip.ESP32S3,
                 Chip.ESP32C2, Chip.ESP32H2, Chip.ESP32C6):
        assert target_from_chip_id(target_for(chip).chip_id) == chip


def test_target_for_unknown_raises():
    with pytest.raises(InvalidTargetError):
        target_for(Chip.UNKNOWN)


def test_register_layouts():
    assert target_for(Chip.ESP32).registers.w0 == ESP32_SPI_REG_BASE + 0x80
    assert target_for(Chip.ESP32S2).registers.w0 == ESP32S2_SPI_REG_BASE + 0x58
    assert target_for(Chip.ESP8266).registers.mosi_dlen == 0


@pytest.mark.parametrize("num, expected", [(0, 0), (29, 29), (30, 32), (31, 33)])
def test_adjust_pin_number(num, expected):
    assert adjust_pin_number(num) == expected


def test_read_mac_orders_bytes():
    base = target_for(Chip.ESP32).efuse_base + 0x04
    read = registers({base: 0x33445566, base + 4: 0xAAAA1122})
    assert read_mac(Chip.ESP32, read) == bytes.fromhex("112233445566")


def test_read_mac_uses_chip_offset():
    log = []
    read_mac(Chip.ESP32C2, registers({}, log))
    base = target_for(Chip.ESP32C2).efuse_base
    assert log == [base + 0x40, base + 0x44]


@pytest.mark.parametrize("pins", [0, 0xFFFFF])
def test_spi_config_esp32_default(pins):
    base = 0x1000
    assert spi_config_esp32(registers({base + 20: pins}), base) == 0


def test_spi_config_esp32_packs_pins():
    base = 0x1000
    clk, q, d, cs, hd = 6, 17, 8, 30, 9
    reg5 = clk | (q << 5) | (d << 10) | (cs << 15)
    reg3 = hd << 4
    config = spi_config_esp32(registers({base + 20: reg5, base + 12: reg3}), base)
    assert config & 0x3F == clk
    assert (config >> 6) & 0x3F == q
    assert (config >> 12) & 0x3F == d
    assert (config >> 18) & 0x3F == adjust_pin_number(cs)
    assert config >> 24 == hd


def test_spi_config_esp32_duplicate_pins_fall_back():
    base = 0x1000
    reg5 = 6 | (6 << 5) | (8 << 10) | (11 << 15)
    assert spi_config_esp32(registers({base + 20: reg5}), base) == 0


def test_spi_config_esp32xx_combines_words():
    base = 0x2000
    reg1 = 0xABCD0000
    reg2 = 0xFFF12345
    config = spi_config_esp32xx(registers({base + 72: reg1, base + 76: reg2}), base)
    assert config & 0xFFFF == 0xABCD
    assert config >> 16 == 0x12345 & 0x3FFF
    assert config <= 0x3FFFFFFF


def test_spi_config_esp32xx_default():
    assert spi_config_esp32xx(registers({}), 0x2000) == 0


def test_read_spi_config_reads_efuse_words():
    log = []
    read_spi_config(Chip.ESP32, registers({}, log))
    base = target_for(Chip.ESP32).efuse_base
    assert log == [base + 20, base + 12]


def test_read_spi_config_unsupported_returns_zero_without_reading():
    assert read_spi_config(Chip.ESP32C6, failing_read) == 0
    assert read_spi_config(Chip.ESP32H2, failing_read) == 0


def test_read_spi_config_esp8266_raises():
    with pytest.raises(UnsupportedChipError):
        read_spi_config(Chip.ESP8266, failing_read)


def test_encryption_in_begin_flash_cmd():
    assert encryption_in_begin_flash_cmd(Chip.ESP32) is False
    assert encryption_in_begin_flash_cmd(Chip.ESP8266) is False
    assert encryption_in_begin_flash_cmd(Chip.ESP32S3) is True
    assert encryption_in_begin_flash_cmd(Chip.ESP32C6) is True