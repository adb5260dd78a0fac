[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "simplekernel"
version = "0.1.0"
description = "A small simulated hobby kernel: heap allocator, sector-addressed disks, interrupts, a text console and a FAT12 filesystem over disk images"
requires-python = ">=3.10"
dependencies = []
keywords = ["fat12", "filesystem", "disk-image", "kernel", "simulation", "heap", "allocator"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
simplekernel = "simplekernel.kernel:main"

[tool.hatch.build.targets.wheel]
packages = ["simplekernel"]

[tool.pytest.ini_options]
addopts = "-ra"
