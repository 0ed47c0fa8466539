[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pjonbus"
version = "0.1.0"
description = "Multi-master single-wire device bus protocol with a software bit-bang strategy"
requires-python = ">=3.10"
keywords = ["bus", "bitbang", "protocol", "crc8", "embedded", "one-wire"]
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
    "Topic :: Communications",
    "Topic :: Software Development :: Embedded Systems",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["pjonbus"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
