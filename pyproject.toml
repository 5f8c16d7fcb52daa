[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rana"
version = "0.1.0"
description = "Small networking toolkit: channel-multiplexed UDP and WebSocket client transports, IPv4 lookup with a time limit, and timing helpers"
requires-python = ">=3.10"
keywords = ["networking", "udp", "websocket", "multiplexing", "dns", "frame-rate"]
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
dependencies = [
    "websockets",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["rana"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
