[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vulnscope"
version = "0.1.0"
description = "Option handling, vulnerability DB management, caching and scan orchestration for a container and filesystem vulnerability scanner"
requires-python = ">=3.10"
keywords = [
    "security",
    "vulnerability",
    "scanner",
    "container",
    "misconfiguration",
    "cache",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security",
    "Typing :: Typed",
]
dependencies = [
    "redis",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
vulnscope-eol = "vulnscope.eol:main"

[tool.hatch.build.targets.wheel]
packages = ["vulnscope"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
