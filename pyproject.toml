[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "esploader"
version = "0.1.0"
description = "Building blocks for talking to the serial bootloader of Espressif chips"
requires-python = ">=3.10"
keywords = ["esp32", "esp8266", "bootloader", "slip", "serial", "efuse"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems",
]
dependencies = [
    "pyserial",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["esploader"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
