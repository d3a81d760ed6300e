[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ofborg"
version = "0.1.0"
description = "Core pieces of a pull-request build bot: comment parsing, access control, git checkouts, job messages and metrics"
requires-python = ">=3.10"
dependencies = []
keywords = ["ci", "build-bot", "nix", "nixpkgs", "github", "amqp", "prometheus"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ofborg"]

[tool.hatch.build.targets.sdist]
include = ["ofborg", "tests", "pyproject.toml", "README.md"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
