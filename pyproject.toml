[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "inbucket"
version = "3.0.0"
description = "On-disk mail storage and HTML/CSS sanitizing for a disposable e-mail testing server"
requires-python = ">=3.10"
dependencies = []
keywords = ["email", "mailbox", "storage", "sanitizer", "testing"]
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
    "Topic :: Communications :: Email :: Post-Office",
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["inbucket"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
