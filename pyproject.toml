[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ferryman"
version = "0.1.0"
description = "Helpers for coding agents: unified diffs, a patch format with context matching, file globbing, file access records and a persistent shell."
requires-python = ">=3.10"
dependencies = []
keywords = ["diff", "patch", "unified-diff", "glob", "shell", "agent"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ferryman"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
