[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "falba"
version = "0.1.0"
description = "Collect test results from a directory of artifacts and extract facts and metrics from them"
requires-python = ">=3.10"
dependencies = []
keywords = ["benchmark", "results", "metrics", "artifacts", "jsonpath", "analysis"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
falba = "falba.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["falba"]

[tool.hatch.build.targets.sdist]
include = ["falba", "tests", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
