[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "magikarp"
version = "0.1.0"
description = "Short-video backend: feed, comments, favorites and an HTTP gateway in front of them"
requires-python = ">=3.10"
keywords = ["short-video", "feed", "gateway", "flask", "comments", "favorites"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Framework :: Flask",
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
    "flask",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["magikarp"]

[tool.hatch.build.targets.sdist]
include = [
    "magikarp",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
