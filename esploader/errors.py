"""Exceptions raised by the loader and the ROM error codes it reports."""

from __future__ import annotations

import enum
from typing import Optional


class LoaderError(Exception):
    """Base class for every failure reported by the loader."""


class LoaderTimeoutError(LoaderError, TimeoutError):
    """The target did not answer in time."""


class ImageSizeError(LoaderError):
    """The image does not fit into the target's flash."""


class InvalidMd5Error(LoaderError):
    """The checksum computed by the target does not match the local one."""


class InvalidParameterError(LoaderError, ValueError):
    """An argument is outside what the target or the link supports."""


class InvalidTargetError(LoaderError):
    """The connected chip could not be identified."""


class UnsupportedChipError(LoaderError):
    """The operation is not available for the connected chip."""


class UnsupportedFunctionError(LoaderError):
    """The operation is not available in the loader's current state."""


class RomErrorCode(enum.IntEnum):
    """Error codes carried in the status of a failed ROM response."""

    INVALID_CRC = 0x05
    INVALID_COMMAND = 0x06
    COMMAND_FAILED = 0x07
    FLASH_WRITE_ERR = 0x08
    FLASH_READ_ERR = 0x09
    READ_LENGTH_ERR = 0x0A
    DEFLATE_ERROR = 0x0B


def describe_rom_error(code: int) -> str:
    """Return the name of a ROM error code, or ``"UNKNOWN ERROR"``."""
    try:
        return RomErrorCode(code).name
    except ValueError:
        return "UNKNOWN ERROR"


class InvalidResponseError(LoaderError):
    """The target sent a malformed response or reported a failure."""

    def __init__(self, message: str = "invalid response", rom_error: Optional[int] = None):
        if rom_error is not None:
            message = f"{message}: {describe_rom_error(rom_error)}"
        super().__init__(message)
        self.rom_error = rom_error