"""Serial link, SLIP framing and chip knowledge for Espressif ROM bootloaders."""

__version__ = "0.1.0"