[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chainsync"
version = "0.1.0"
description = "Wallet back-office services: business registration, EIP-1559 transaction building, broadcasting workers, block scanning and business notification."
requires-python = ">=3.10"
dependencies = [
    "requests",
]
keywords = [
    "wallet",
    "blockchain",
    "deposit",
    "withdraw",
    "notification",
    "eip1559",
]
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
    "Topic :: Office/Business :: Financial",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["chainsync"]

[tool.hatch.build.targets.sdist]
include = [
    "chainsync",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
