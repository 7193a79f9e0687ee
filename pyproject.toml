[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "orbitenv"
version = "0.1.0"
description = "Space environment models: point-mass and spherical-harmonics gravity, a multi-body gravity effector and geomagnetic frame handling"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "astrodynamics",
    "gravity",
    "spherical harmonics",
    "geomagnetic",
    "orbit",
    "simulation",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Physics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["orbitenv"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
