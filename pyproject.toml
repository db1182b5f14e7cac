[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mdview"
version = "0.1.0"
description = "MarkdownView resources: schema, admission defaulting and validation, a reconciler for ConfigMap, Deployment and Service, and manager options"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "kubernetes",
    "controller",
    "operator",
    "reconciler",
    "webhook",
    "markdown",
    "mdbook",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["mdview"]

[tool.hatch.build.targets.sdist]
include = ["mdview", "tests", "README.md"]

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
check_untyped_defs = true
