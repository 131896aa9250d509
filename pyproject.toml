[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "walog"
version = "0.1.0"
description = "A segmented write-ahead log with checksummed records, rotation, archival and checkpoint recovery"
requires-python = ">=3.10"
dependencies = []
keywords = ["wal", "write-ahead log", "durability", "recovery", "checkpoint", "database"]
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
    "Topic :: Database",
    "Topic :: System :: Recovery Tools",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
walog = "walog.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["walog"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
strict = true
