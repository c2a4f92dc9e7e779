[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bondview"
version = "0.1.0"
description = "Inspect tables, indexes and rows of a key-value store in process or over HTTP, plus unique ID generators."
requires-python = ">=3.10"
dependencies = [
    "requests",
]
keywords = ["database", "inspection", "key-value", "http", "cli", "wsgi", "id-generator"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Environment :: Console",
    "Environment :: Web Environment",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Front-Ends",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
bondview = "bondview.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["bondview"]

[tool.pytest.ini_options]
addopts = "-ra"
