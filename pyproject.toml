[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "blehost"
version = "0.1.0"
description = "Bluetooth Low Energy host-side building blocks: UUIDs, GATT profiles, advertising packets, HCI events and an ATT/GATT client and server."
requires-python = ">=3.10"
dependencies = []
keywords = ["bluetooth", "ble", "gatt", "att", "hci", "advertising"]
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
    "Topic :: System :: Networking",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["blehost"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
