import pytest

from esploader.errors import (
    ImageSizeError,
    InvalidMd5Error,
    InvalidParameterError,
    InvalidResponseError,
    InvalidTargetError,
    LoaderError,
    LoaderTimeoutError,
    RomErrorCode,
    UnsupportedChipError,
    UnsupportedFunctionError,
    describe_rom_error,
)


@pytest.mark.parametrize("code", list(RomErrorCode))
def test_describe_known_codes_gives_name(code):
    assert describe_rom_error(code) == code.name
    assert describe_rom_error(int(code)) == code.name


def test_describe_invalid_crc():
    assert describe_rom_error(RomErrorCode.INVALID_CRC) == "INVALID_CRC"


def test_describe_unknown_code():
    assert describe_rom_error(0xFF) == "UNKNOWN ERROR"


def test_rom_error_descriptions_are_distinct():
    descriptions = {describe_rom_error(int(code)) for code in RomErrorCode}
    assert len(descriptions) == len(list(RomErrorCode))
    assert "UNKNOWN ERROR" not in descriptions


@pytest.mark.parametrize(
    "error_type",
    [
        LoaderTimeoutError,
        ImageSizeError,
        InvalidMd5Error,
        InvalidParameterError,
        InvalidTargetError,
        UnsupportedChipError,
        UnsupportedFunctionError,
        InvalidResponseError,
    ],
)
def test_every_error_is_a_loader_error(error_type):
    error = error_type("boom")
    assert isinstance(error, LoaderError)
    assert str(error) == "boom"


def test_timeout_error_is_builtin_timeout():
    error = LoaderTimeoutError("slow")
    assert isinstance(error, TimeoutError)
    assert str(error) == "slow"


def test_invalid_response_carries_rom_error():
    error = InvalidResponseError("command failed", rom_error=RomErrorCode.FLASH_READ_ERR)
    assert error.rom_error == RomErrorCode.FLASH_READ_ERR
    assert "FLASH_READ_ERR" in str(error)
    assert str(error).startswith("command failed")


def test_invalid_response_without_rom_error():
    error = InvalidResponseError("bad packet")
    assert error.rom_error is None
    assert str(error) == "bad packet"