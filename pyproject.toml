[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "signalr-client"
version = "0.1.2"
description = "An asyncio client for SignalR hubs: invocations, streams and hub callbacks over WebSockets with the JSON hub protocol."
requires-python = ">=3.10"
keywords = ["signalr", "websockets", "asyncio", "aiohttp", "hub", "rpc"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "aiohttp>=3.9",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "pytest-asyncio>=0.23",
    "aiohttp>=3.9",
]

[tool.hatch.build.targets.wheel]
packages = ["signalr_client"]

[tool.hatch.build.targets.sdist]
include = ["signalr_client", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
