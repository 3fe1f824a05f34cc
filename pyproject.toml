[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "claw"
version = "0.1.0"
description = "Binary encoding, reflection and JSON input and output for Claw Structs"
requires-python = ">=3.10"
dependencies = []
keywords = ["serialization", "binary", "encoding", "reflection", "json"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["claw"]

[tool.pytest.ini_options]
addopts = "-ra"
