"""Flash helpers: timeouts, erase sizes, flash identification and security info."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Callable

from .errors import (
    InvalidParameterError,
    InvalidResponseError,
    LoaderTimeoutError,
    UnsupportedChipError,
)
from .targets import Chip, TargetRegisters, target_from_chip_id

ReadRegister = Callable[[int], int]
WriteRegister = Callable[[int, int], None]

SHORT_TIMEOUT = 100
DEFAULT_TIMEOUT = 1000
DEFAULT_FLASH_TIMEOUT = 3000
LOAD_RAM_TIMEOUT_PER_MB = 2_000_000
MD5_TIMEOUT_PER_MB = 8000
ERASE_REGION_TIMEOUT_PER_MB = 10000

SPI_FLASH_READ_ID = 0x9F

SPI_USR_CMD = 1 << 31
SPI_USR_MISO = 1 << 28
SPI_USR_MOSI = 1 << 27
SPI_CMD_USR = 1 << 18
CMD_LEN_SHIFT = 28

MAX_RX_BITS = 32
MAX_TX_BYTES = 64
SPI_COMMAND_POLL_TRIALS = 10

ESP8266_SECTORS_PER_BLOCK = 16
FLASH_SECTOR_SIZE = 4096

_MASK32 = 0xFFFFFFFF

FLASH_SIZE_BY_ID: dict[int, int] = {
    0x12: 256 * 1024,
    0x13: 512 * 1024,
    0x14: 1 * 1024 * 1024,
    0x15: 2 * 1024 * 1024,
    0x16: 4 * 1024 * 1024,
    0x17: 8 * 1024 * 1024,
    0x18: 16 * 1024 * 1024,
    0x19: 32 * 1024 * 1024,
    0x1A: 64 * 1024 * 1024,
    0x1B: 128 * 1024 * 1024,
    0x1C: 256 * 1024 * 1024,
    0x20: 64 * 1024 * 1024,
    0x21: 128 * 1024 * 1024,
    0x22: 256 * 1024 * 1024,
    0x32: 256 * 1024,
    0x33: 512 * 1024,
    0x34: 1 * 1024 * 1024,
    0x35: 2 * 1024 * 1024,
    0x36: 4 * 1024 * 1024,
    0x37: 8 * 1024 * 1024,
    0x38: 16 * 1024 * 1024,
    0x39: 32 * 1024 * 1024,
    0x3A: 64 * 1024 * 1024,
}

SECURE_BOOT_EN = 1 << 0
SECURE_BOOT_AGGRESSIVE_REVOKE = 1 << 1
SECURE_DOWNLOAD_ENABLE = 1 << 2
SECURE_BOOT_KEY_REVOKE0 = 1 << 3
SECURE_BOOT_KEY_REVOKE1 = 1 << 4
SECURE_BOOT_KEY_REVOKE2 = 1 << 5
SOFT_DIS_JTAG = 1 << 6
HARD_DIS_JTAG = 1 << 7
DIS_USB = 1 << 8
DIS_DOWNLOAD_DCACHE = 1 << 9
DIS_DOWNLOAD_ICACHE = 1 << 10

_SECURITY_INFO = struct.Struct("<IB7sII")
_SECURITY_INFO_SHORT_SIZE = _SECURITY_INFO.size - 8


def timeout_per_mb(size_bytes: int, time_per_mb: int) -> int:
    """Timeout in ms scaled by size, never below the default flash timeout."""
    timeout = int(time_per_mb * (size_bytes / 1e6)) & _MASK32
    return max(timeout, DEFAULT_FLASH_TIMEOUT)


def calc_erase_size(chip: int, offset: int, image_size: int, stub_running: bool) -> int:
    """Size to request for erasure, compensating for the ESP8266 ROM erase bug."""
    if chip != Chip.ESP8266 or stub_running:
        return image_size

    num_sectors = (image_size + FLASH_SECTOR_SIZE - 1) // FLASH_SECTOR_SIZE
    start_sector = offset // FLASH_SECTOR_SIZE
    head_sectors = ESP8266_SECTORS_PER_BLOCK - (start_sector % ESP8266_SECTORS_PER_BLOCK)

    # The ROM erases extra sectors: num_sectors if the block boundary is not
    # crossed, head_sectors if it is.
    if num_sectors <= head_sectors:
        return ((num_sectors + 1) // 2) * FLASH_SECTOR_SIZE
    return (num_sectors - head_sectors) * FLASH_SECTOR_SIZE


def flash_size_from_id(flash_id: int) -> int:
    """Flash size in bytes encoded in a JEDEC READ_ID value."""
    size_id = (flash_id >> 16) & 0xFF
    try:
        return FLASH_SIZE_BY_ID[size_id]
    except KeyError:
        raise UnsupportedChipError(f"unknown flash size id 0x{size_id:02x}") from None


@dataclass(frozen=True)
class SecurityInfo:
    """Security state of the target as reported by GET_SECURITY_INFO."""

    target_chip: Chip
    eco_version: int
    secure_boot_enabled: bool
    secure_boot_aggressive_revoke_enabled: bool
    secure_download_mode_enabled: bool
    secure_boot_revoked_keys: tuple[bool, bool, bool]
    jtag_software_disabled: bool
    jtag_hardware_disabled: bool
    usb_disabled: bool
    flash_encryption_enabled: bool
    dcache_in_uart_download_disabled: bool
    icache_in_uart_download_disabled: bool


def parse_security_info(data: bytes) -> SecurityInfo:
    """Decode the GET_SECURITY_INFO response data.

    The full response carries the chip id and ECO version; the shorter one
    sent by the ESP32-S2 ROM lacks both.
    """
    data = bytes(data)
    if len(data) == _SECURITY_INFO.size:
        flags, _crypt_cnt, key_purposes, chip_id, eco_version = _SECURITY_INFO.unpack(data)
        target_chip = target_from_chip_id(chip_id)
    elif len(data) == _SECURITY_INFO_SHORT_SIZE:
        flags, _crypt_cnt, key_purposes = struct.unpack("<IB7s", data)
        target_chip = Chip.ESP32S2
        eco_version = 0
    else:
        raise InvalidResponseError(f"security info of unexpected size {len(data)}")

    # An odd number of set bits in the key purposes means flash is encrypted.
    set_bits = sum(bin(byte).count("1") for byte in key_purposes)

    return SecurityInfo(
        target_chip=target_chip,
        eco_version=eco_version,
        secure_boot_enabled=bool(flags & SECURE_BOOT_EN),
        secure_boot_aggressive_revoke_enabled=bool(flags & SECURE_BOOT_AGGRESSIVE_REVOKE),
        secure_download_mode_enabled=bool(flags & SECURE_DOWNLOAD_ENABLE),
        secure_boot_revoked_keys=(
            bool(flags & SECURE_BOOT_KEY_REVOKE0),
            bool(flags & SECURE_BOOT_KEY_REVOKE1),
            bool(flags & SECURE_BOOT_KEY_REVOKE2),
        ),
        jtag_software_disabled=bool(flags & SOFT_DIS_JTAG),
        jtag_hardware_disabled=bool(flags & HARD_DIS_JTAG),
        usb_disabled=bool(flags & DIS_USB),
        flash_encryption_enabled=set_bits % 2 == 1,
        dcache_in_uart_download_disabled=bool(flags & DIS_DOWNLOAD_DCACHE),
        icache_in_uart_download_disabled=bool(flags & DIS_DOWNLOAD_ICACHE),
    )


def _set_data_lengths(
    registers: TargetRegisters,
    chip: int,
    write_register: WriteRegister,
    mosi_bits: int,
    miso_bits: int,
) -> None:
    if chip == Chip.ESP8266:
        mosi_mask = mosi_bits - 1 if mosi_bits else 0
        miso_mask = miso_bits - 1 if miso_bits else 0
        write_register(registers.usr1, ((miso_mask << 8) | (mosi_mask << 17)) & _MASK32)
        return
    if mosi_bits > 0:
        write_register(registers.mosi_dlen, mosi_bits - 1)
    if miso_bits > 0:
        write_register(registers.miso_dlen, miso_bits - 1)


def run_spi_flash_command(
    registers: TargetRegisters,
    chip: int,
    read_register: ReadRegister,
    write_register: WriteRegister,
    command: int,
    tx_data: bytes,
    rx_bits: int,
) -> int:
    """Run one SPI flash command through the target's SPI controller registers.

    Sends ``tx_data`` (at most 64 bytes) after ``command`` and returns the
    first data register, which holds up to ``rx_bits`` (at most 32) bits of
    the flash's answer. The controller configuration is restored afterwards.
    """
    tx_data = bytes(tx_data)
    if rx_bits > MAX_RX_BITS:
        raise InvalidParameterError(f"cannot read more than {MAX_RX_BITS} bits")
    if len(tx_data) > MAX_TX_BYTES:
        raise InvalidParameterError(f"cannot write more than {MAX_TX_BYTES} bytes")
    tx_bits = len(tx_data) * 8

    old_usr = read_register(registers.usr)
    old_usr2 = read_register(registers.usr2)

    _set_data_lengths(registers, chip, write_register, tx_bits, rx_bits)

    usr_reg2 = ((7 << CMD_LEN_SHIFT) | command) & _MASK32
    usr_reg = SPI_USR_CMD
    if rx_bits > 0:
        usr_reg |= SPI_USR_MISO
    if tx_bits > 0:
        usr_reg |= SPI_USR_MOSI

    write_register(registers.usr, usr_reg)
    write_register(registers.usr2, usr_reg2)

    if not tx_data:
        # Clear the data register before it is read back.
        write_register(registers.w0, 0)
    else:
        padded = tx_data + bytes(-len(tx_data) % 4)
        words = struct.unpack(f"<{len(padded) // 4}I", padded)
        for index, word in enumerate(words):
            write_register(registers.w0 + 4 * index, word)

    write_register(registers.cmd, SPI_CMD_USR)

    for _ in range(SPI_COMMAND_POLL_TRIALS):
        if read_register(registers.cmd) & SPI_CMD_USR == 0:
            break
    else:
        raise LoaderTimeoutError("SPI flash command did not complete")

    value = read_register(registers.w0)

    write_register(registers.usr, old_usr)
    write_register(registers.usr2, old_usr2)

    return value