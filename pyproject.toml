[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "configreloader"
version = "0.1.0"
description = "Parse, rewrite and validate per-namespace fluentd configuration fragments."
requires-python = ">=3.10"
dependencies = []
keywords = ["fluentd", "logging", "kubernetes", "configuration"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Logging",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["configreloader"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
