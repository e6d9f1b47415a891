"""Transport ports: the byte-level link to the target and its control pins."""

from __future__ import annotations

import abc
import logging
import time
from typing import Callable, Optional

import serial

from .errors import (
    InvalidParameterError,
    LoaderError,
    LoaderTimeoutError,
)

logger = logging.getLogger(__name__)

DEFAULT_RESET_HOLD_TIME_MS = 100
DEFAULT_BOOT_HOLD_TIME_MS = 50
SERIAL_SETTLE_TIME_MS = 10

SUPPORTED_BAUDRATES = frozenset(
    {
        50, 75, 110, 134, 150, 200, 300, 600, 1200, 1800, 2400, 4800, 9600,
        19200, 38400, 57600, 115200, 230400, 460800, 500000, 576000, 921600,
        1000000, 1152000, 1500000, 2000000, 2500000, 3000000, 3500000, 4000000,
    }
)

_NS_PER_MS = 1_000_000


def validate_baudrate(baudrate: int) -> int:
    """Return ``baudrate`` if it is a standard serial rate, else raise."""
    if baudrate not in SUPPORTED_BAUDRATES:
        raise InvalidParameterError(f"unsupported baud rate: {baudrate}")
    return baudrate


class Deadline:
    """A single countdown measured in milliseconds."""

    def __init__(self, clock: Callable[[], int] = time.monotonic_ns):
        self._clock = clock
        self._end_ns: Optional[int] = None

    def start(self, ms: int) -> None:
        """Start counting down ``ms`` milliseconds from now."""
        self._end_ns = self._clock() + ms * _NS_PER_MS

    def remaining_ms(self) -> int:
        """Milliseconds left, never below zero."""
        if self._end_ns is None:
            return 0
        remaining = (self._end_ns - self._clock()) // _NS_PER_MS
        return max(remaining, 0)


class Port(abc.ABC):
    """A link to the target: data transfer, reset control and timing."""

    def __init__(
        self,
        clock: Callable[[], int] = time.monotonic_ns,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._deadline = Deadline(clock)
        self._sleep = sleep

    @abc.abstractmethod
    def write(self, data: bytes, timeout: int) -> None:
        """Send all of ``data`` within ``timeout`` milliseconds."""

    @abc.abstractmethod
    def read(self, size: int, timeout: int) -> bytes:
        """Receive exactly ``size`` bytes within ``timeout`` milliseconds."""

    @abc.abstractmethod
    def enter_bootloader(self) -> None:
        """Reset the target into its serial bootloader."""

    @abc.abstractmethod
    def reset_target(self) -> None:
        """Pulse the target's reset line."""

    @abc.abstractmethod
    def change_transmission_rate(self, rate: int) -> None:
        """Switch the link to a new transmission rate."""

    def delay_ms(self, ms: int) -> None:
        self._sleep(ms / 1000)

    def start_timer(self, ms: int) -> None:
        self._deadline.start(ms)

    def remaining_time(self) -> int:
        return self._deadline.remaining_ms()

    def debug_print(self, message: str) -> None:
        logger.debug("DEBUG: %s", message)


class SerialPort(Port):
    """A UART link with reset and boot-strapping lines driven through ``set_pin``.

    ``set_pin(pin, level)`` drives a GPIO output to 0 or 1.
    """

    def __init__(
        self,
        device: str,
        baudrate: int,
        reset_trigger_pin: int,
        gpio0_trigger_pin: int,
        set_pin: Callable[[int, int], None],
        *,
        reset_invert: bool = False,
        boot_invert: bool = False,
        reset_hold_time_ms: int = DEFAULT_RESET_HOLD_TIME_MS,
        boot_hold_time_ms: int = DEFAULT_BOOT_HOLD_TIME_MS,
        connection=None,
        clock: Callable[[], int] = time.monotonic_ns,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(clock=clock, sleep=sleep)
        validate_baudrate(baudrate)
        self._reset_pin = reset_trigger_pin
        self._boot_pin = gpio0_trigger_pin
        self._set_pin = set_pin
        self._reset_invert = reset_invert
        self._boot_invert = boot_invert
        self._reset_hold_ms = reset_hold_time_ms
        self._boot_hold_ms = boot_hold_time_ms

        if connection is None:
            try:
                connection = serial.Serial(
                    port=device,
                    baudrate=baudrate,
                    bytesize=serial.EIGHTBITS,
                    parity=serial.PARITY_NONE,
                    stopbits=serial.STOPBITS_ONE,
                    timeout=1.0,
                    xonxoff=False,
                    rtscts=False,
                )
            except (serial.SerialException, OSError) as exc:
                raise LoaderError(f"serial port {device!r} could not be opened") from exc
        else:
            connection.baudrate = baudrate
        self._serial = connection
        self._serial.dtr = True
        self._serial.rts = True
        self.delay_ms(SERIAL_SETTLE_TIME_MS)

    def write(self, data: bytes, timeout: int) -> None:
        """Write ``data``; the timeout is governed by the serial driver."""
        try:
            written = self._serial.write(data)
        except serial.SerialTimeoutException as exc:
            raise LoaderTimeoutError("serial write timed out") from exc
        except (serial.SerialException, OSError) as exc:
            raise LoaderError("serial write failed") from exc
        if written is not None and written < len(data):
            raise LoaderTimeoutError(f"only {written} of {len(data)} bytes written")

    def read(self, size: int, timeout: int) -> bytes:
        """Read ``size`` bytes, each bounded by the time left on the port timer."""
        data = bytearray()
        for _ in range(size):
            self._serial.timeout = max(self.remaining_time() // 100, 1) / 10
            try:
                chunk = self._serial.read(1)
            except (serial.SerialException, OSError) as exc:
                raise LoaderError("serial read failed") from exc
            if not chunk:
                raise LoaderTimeoutError(f"timed out after {len(data)} of {size} bytes")
            data += chunk
        return bytes(data)

    def enter_bootloader(self) -> None:
        self._set_pin(self._boot_pin, 1 if self._boot_invert else 0)
        self.reset_target()
        self.delay_ms(self._boot_hold_ms)
        self._set_pin(self._boot_pin, 0 if self._boot_invert else 1)

    def reset_target(self) -> None:
        self._set_pin(self._reset_pin, 1 if self._reset_invert else 0)
        self.delay_ms(self._reset_hold_ms)
        self._set_pin(self._reset_pin, 0 if self._reset_invert else 1)

    def change_transmission_rate(self, rate: int) -> None:
        self._serial.baudrate = validate_baudrate(rate)

    def close(self) -> None:
        self._serial.close()

    def __enter__(self) -> "SerialPort":
        return self

    def __exit__(self, *args) -> None:
        self.close()