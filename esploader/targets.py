"""Chip models, their SPI register layouts and eFuse-derived settings."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import InvalidTargetError, UnsupportedChipError

ReadRegister = Callable[[int], int]
SpiConfigReader = Callable[[ReadRegister, int], int]

CHIP_DETECT_MAGIC_REG_ADDR = 0x40001000

ESP8266_SPI_REG_BASE = 0x60000200
ESP32S2_SPI_REG_BASE = 0x3F402000
ESP32H2_SPI_REG_BASE = 0x60003000
ESP32C6_SPI_REG_BASE = 0x60003000
ESP32XX_SPI_REG_BASE = 0x60002000
ESP32_SPI_REG_BASE = 0x3FF42000

CHIP_ID_NONE = 0xFF


class Chip(enum.IntEnum):
    """Supported chip models, in the order the target table lists them."""

    ESP8266 = 0
    ESP32 = 1
    ESP32S2 = 2
    ESP32C3 = 3
    ESP32S3 = 4
    ESP32C2 = 5
    RESERVED = 6
    ESP32H2 = 7
    ESP32C6 = 8
    UNKNOWN = 9


@dataclass(frozen=True)
class TargetRegisters:
    """Addresses of the SPI controller registers used for flash commands."""

    cmd: int = 0
    usr: int = 0
    usr1: int = 0
    usr2: int = 0
    w0: int = 0
    mosi_dlen: int = 0
    miso_dlen: int = 0


@dataclass(frozen=True)
class Target:
    """Static description of one chip model.

    ``spi_pins_fixed`` marks chips whose SPI flash pins cannot be
    reconfigured through eFuses; their SPI configuration is always 0.
    """

    chip: Chip
    registers: TargetRegisters = TargetRegisters()
    efuse_base: int = 0
    magic_values: tuple[int, ...] = (0, 0, 0, 0)
    mac_efuse_offset: int = 0
    chip_id: int = CHIP_ID_NONE
    spi_config: Optional[SpiConfigReader] = None
    spi_pins_fixed: bool = False
    encryption_in_begin_flash_cmd: bool = False


def _efuse_word_addr(efuse_base: int, n: int) -> int:
    return efuse_base + n * 4


def adjust_pin_number(num: int) -> int:
    """Map eFuse pin numbers 30 and 31 to GPIO32 and GPIO33."""
    return num + 2 if num >= 30 else num


def spi_config_esp32(read_register: ReadRegister, efuse_base: int) -> int:
    """SPI pin configuration burnt into the eFuses of an ESP32, or 0 for default."""
    reg5 = read_register(_efuse_word_addr(efuse_base, 5))
    reg3 = read_register(_efuse_word_addr(efuse_base, 3))

    pins = reg5 & 0xFFFFF
    if pins in (0, 0xFFFFF):
        return 0

    clk = adjust_pin_number(pins & 0x1F)
    q = adjust_pin_number((pins >> 5) & 0x1F)
    d = adjust_pin_number((pins >> 10) & 0x1F)
    cs = adjust_pin_number((pins >> 15) & 0x1F)
    hd = adjust_pin_number((reg3 >> 4) & 0x1F)

    if clk in (cs, d, q) or q in (cs, d):
        return 0

    return (hd << 24) | (cs << 18) | (d << 12) | (q << 6) | clk


def spi_config_esp32xx(read_register: ReadRegister, efuse_base: int) -> int:
    """SPI pin configuration of the newer chips, or 0 for default."""
    reg1 = read_register(_efuse_word_addr(efuse_base, 18))
    reg2 = read_register(_efuse_word_addr(efuse_base, 19))

    pins = ((reg1 >> 16) | ((reg2 & 0xFFFFF) << 16)) & 0x3FFFFFFF
    if pins in (0, 0xFFFFFFFF):
        return 0
    return pins


def _xx_registers(base: int) -> TargetRegisters:
    return TargetRegisters(
        cmd=base + 0x00,
        usr=base + 0x18,
        usr1=base + 0x1C,
        usr2=base + 0x20,
        w0=base + 0x58,
        mosi_dlen=base + 0x24,
        miso_dlen=base + 0x28,
    )


_TARGETS: dict[Chip, Target] = {
    Chip.ESP8266: Target(
        chip=Chip.ESP8266,
        registers=TargetRegisters(
            cmd=ESP8266_SPI_REG_BASE + 0x00,
            usr=ESP8266_SPI_REG_BASE + 0x1C,
            usr1=ESP8266_SPI_REG_BASE + 0x20,
            usr2=ESP8266_SPI_REG_BASE + 0x24,
            w0=ESP8266_SPI_REG_BASE + 0x40,
        ),
        magic_values=(0xFFF0C101, 0, 0, 0),
        chip_id=CHIP_ID_NONE,
    ),
    Chip.ESP32: Target(
        chip=Chip.ESP32,
        registers=TargetRegisters(
            cmd=ESP32_SPI_REG_BASE + 0x00,
            usr=ESP32_SPI_REG_BASE + 0x1C,
            usr1=ESP32_SPI_REG_BASE + 0x20,
            usr2=ESP32_SPI_REG_BASE + 0x24,
            w0=ESP32_SPI_REG_BASE + 0x80,
            mosi_dlen=ESP32_SPI_REG_BASE + 0x28,
            miso_dlen=ESP32_SPI_REG_BASE + 0x2C,
        ),
        efuse_base=0x3FF5A000,
        magic_values=(0x00F01D83, 0, 0, 0),
        mac_efuse_offset=0x04,
        chip_id=0,
        spi_config=spi_config_esp32,
    ),
    Chip.ESP32S2: Target(
        chip=Chip.ESP32S2,
        registers=_xx_registers(ESP32S2_SPI_REG_BASE),
        efuse_base=0x3F41A000,
        magic_values=(0x000007C6, 0, 0, 0),
        mac_efuse_offset=0x44,
        chip_id=2,
        spi_config=spi_config_esp32xx,
        encryption_in_begin_flash_cmd=True,
    ),
    Chip.ESP32C3: Target(
        chip=Chip.ESP32C3,
        registers=_xx_registers(ESP32XX_SPI_REG_BASE),
        efuse_base=0x60008800,
        magic_values=(0x6921506F, 0x1B31506F, 0x4881606F, 0x4361606F),
        mac_efuse_offset=0x44,
        chip_id=5,
        spi_config=spi_config_esp32xx,
        encryption_in_begin_flash_cmd=True,
    ),
    Chip.ESP32S3: Target(
        chip=Chip.ESP32S3,
        registers=_xx_registers(ESP32XX_SPI_REG_BASE),
        efuse_base=0x60007000,
        magic_values=(0x00000009, 0, 0, 0),
        mac_efuse_offset=0x44,
        chip_id=9,
        spi_config=spi_config_esp32xx,
        encryption_in_begin_flash_cmd=True,
    ),
    Chip.ESP32C2: Target(
        chip=Chip.ESP32C2,
        registers=_xx_registers(ESP32XX_SPI_REG_BASE),
        efuse_base=0x60008800,
        magic_values=(0x6F51306F, 0x7C41A06F, 0, 0),
        mac_efuse_offset=0x40,
        chip_id=12,
        spi_config=spi_config_esp32xx,
        encryption_in_begin_flash_cmd=True,
    ),
    Chip.RESERVED: Target(chip=Chip.RESERVED, chip_id=CHIP_ID_NONE),
    Chip.ESP32H2: Target(
        chip=Chip.ESP32H2,
        registers=_xx_registers(ESP32H2_SPI_REG_BASE),
        efuse_base=0x600B0800,
        magic_values=(0xD7B73E80, 0, 0, 0),
        mac_efuse_offset=0x44,
        chip_id=16,
        spi_pins_fixed=True,
        encryption_in_begin_flash_cmd=True,
    ),
    Chip.ESP32C6: Target(
        chip=Chip.ESP32C6,
        registers=_xx_registers(ESP32C6_SPI_REG_BASE),
        efuse_base=0x600B0800,
        magic_values=(0x2CE0806F, 0, 0, 0),
        mac_efuse_offset=0x44,
        chip_id=13,
        spi_pins_fixed=True,
        encryption_in_begin_flash_cmd=True,
    ),
}


def target_for(chip: int) -> Target:
    """The description of ``chip``; raises for an unknown chip."""
    try:
        return _TARGETS[Chip(chip)]
    except (KeyError, ValueError):
        raise InvalidTargetError(f"no target description for chip {chip!r}") from None


def target_from_chip_id(chip_id: int) -> Chip:
    """The chip whose security-info chip id is ``chip_id``, or ``Chip.UNKNOWN``."""
    return next(
        (target.chip for target in _TARGETS.values() if target.chip_id == chip_id),
        Chip.UNKNOWN,
    )


def chip_from_magic(magic_value: int) -> Chip:
    """The chip identified by the value of the ROM magic register."""
    for target in _TARGETS.values():
        if magic_value in target.magic_values:
            return target.chip
    raise InvalidTargetError(f"unknown chip magic value 0x{magic_value:08x}")


def read_spi_config(chip: int, read_register: ReadRegister) -> int:
    """Read the SPI flash pin configuration of ``chip`` through ``read_register``."""
    target = target_for(chip)
    if target.spi_pins_fixed:
        return 0
    if target.spi_config is None:
        raise UnsupportedChipError(f"{target.chip.name} has no SPI configuration")
    return target.spi_config(read_register, target.efuse_base)


def read_mac(chip: int, read_register: ReadRegister) -> bytes:
    """Read the six-byte factory MAC address from the eFuses of ``chip``."""
    target = target_for(chip)
    address = target.efuse_base + target.mac_efuse_offset
    part1 = read_register(address) & 0xFFFFFFFF
    part2 = read_register(address + 4)
    return bytes(((part2 >> 8) & 0xFF, part2 & 0xFF)) + part1.to_bytes(4, "big")


def encryption_in_begin_flash_cmd(chip: int) -> bool:
    """Whether FLASH_BEGIN carries the encryption word for ``chip``."""
    return target_for(chip).encryption_in_begin_flash_cmd