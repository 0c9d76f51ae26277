[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "docsync"
version = "0.95.0"
description = "Range-based set reconciliation, queries, download policies and key bounds for replicated key-value documents"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = [
    "sync",
    "set-reconciliation",
    "replication",
    "fingerprint",
    "documents",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "hypothesis",
]

[tool.hatch.build.targets.wheel]
packages = ["docsync"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
