[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pocketboy"
version = "0.1.0"
description = "A headless Game Boy (DMG) emulator core: SM83 CPU, memory bus, timer, pixel-FIFO PPU and cartridge mappers"
requires-python = ">=3.10"
dependencies = []
keywords = ["gameboy", "emulator", "dmg", "sm83", "ppu", "mbc1"]
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
    "Topic :: System :: Emulators",
    "Topic :: Games/Entertainment",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
pocketboy = "pocketboy.gameboy:main"

[tool.hatch.build.targets.wheel]
packages = ["pocketboy"]

[tool.pytest.ini_options]
addopts = "-ra"
