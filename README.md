# esploader

Building blocks for talking to the ROM bootloader of Espressif chips: a
serial port with reset and boot-strapping control, SLIP framing, per-chip
register maps and chip detection, and the helpers needed to size, erase and
inspect a target's flash.

Known chips are listed in `esploader.targets.Chip`: ESP8266, ESP32,
ESP32-S2, ESP32-C3, ESP32-S3, ESP32-C2, ESP32-H2 and ESP32-C6.

## Installation

```
pip install esploader
```

## Modules

- `esploader.errors` — the exceptions raised on failure, all derived from
  `LoaderError`: `LoaderTimeoutError`, `ImageSizeError`, `InvalidMd5Error`,
  `InvalidParameterError`, `InvalidTargetError`, `UnsupportedChipError`,
  `UnsupportedFunctionError` and `InvalidResponseError`. `RomErrorCode` and
  `describe_rom_error()` name the error codes a ROM reports in a failed
  response.
- `esploader.port` — the host side of the link. `Port` is the abstract
  interface (`write`, `read`, `enter_bootloader`, `reset_target`,
  `change_transmission_rate`, plus timer helpers `start_timer`,
  `remaining_time`, `delay_ms` and `debug_print`). `SerialPort` implements it
  with pyserial and drives the reset and GPIO0 lines through a `set_pin`
  callable you supply. `Deadline` is the millisecond countdown behind the
  port timer. `validate_baudrate()` accepts only standard serial rates.
- `esploader.slip` — SLIP framing: `encode()` escapes a payload, and
  `SlipLink` sends frames and receives them through a `Port`.
- `esploader.targets` — per-chip descriptions (`Target`, `TargetRegisters`,
  `target_for()`), chip identification from the ROM magic register
  (`chip_from_magic()`) or a security-info chip id (`target_from_chip_id()`),
  eFuse decoding of the SPI flash pin configuration (`read_spi_config()`,
  `spi_config_esp32()`, `spi_config_esp32xx()`, `adjust_pin_number()`), the
  factory MAC address (`read_mac()`) and `encryption_in_begin_flash_cmd()`.
- `esploader.flashing` — `timeout_per_mb()`, `calc_erase_size()` (with the
  ESP8266 ROM erase-size correction), `flash_size_from_id()`,
  `parse_security_info()` returning a `SecurityInfo`, and
  `run_spi_flash_command()`, which drives a flash command through the
  target's SPI controller registers.

Functions that need to touch the target take plain callables such as
`read_register(address) -> int` and `write_register(address, value)`, so
they work with any way of reaching the chip's registers.

## Examples

Opening a serial link and resetting the target into its bootloader:

```python
from esploader.port import SerialPort

def set_pin(pin: int, level: int) -> None:
    ...  # drive the GPIO with your board's GPIO library

with SerialPort("/dev/ttyUSB0", 115200, reset_trigger_pin=17,
                gpio0_trigger_pin=27, set_pin=set_pin) as port:
    port.enter_bootloader()
    port.start_timer(1000)          # reads are bounded by this timer
    data = port.read(4, port.remaining_time())
```

SLIP framing:

```python
from esploader.slip import encode, SlipLink

assert encode(b"\xc0\xdb") == b"\xdb\xdc\xdb\xdd"

link = SlipLink(port)
link.send_delimiter()
link.send(b"payload")
link.send_delimiter()
packet = link.receive_packet(max_size=64)
```

Identifying a chip and decoding flash information:

```python
from esploader.targets import Chip, chip_from_magic, read_mac
from esploader.flashing import flash_size_from_id, calc_erase_size

assert chip_from_magic(0x00F01D83) is Chip.ESP32
assert flash_size_from_id(0x164020) == 4 * 1024 * 1024
erase = calc_erase_size(Chip.ESP8266, 0x1000, 0x2000, stub_running=False)

mac = read_mac(Chip.ESP32, read_register)   # six bytes
```

## What this package does not do

It does not encode or send bootloader commands, so there is no sync or
connect sequence, no register read or write over the link, no flash write,
flash read or RAM loading, no MD5 verification of written images, no flasher
stub support and no SPI-slave transport. It provides the link, framing and
chip knowledge on which such operations are built; the command layer is left
to the caller. There is no command-line tool.

## Running the tests

```
pip install esploader[test]
pytest
```