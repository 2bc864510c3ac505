[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "backendify"
version = "0.1.0"
description = "HTTP service that looks up company records from per-country backends and returns them in one JSON shape"
requires-python = ">=3.10"
keywords = ["http", "gateway", "company", "backend", "cache", "statsd"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "requests",
    "cachetools",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
backendify = "backendify.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["backendify"]

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
