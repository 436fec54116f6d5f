[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gmrsal"
version = "0.1.0"
description = "Graph-based manifold ranking saliency detection on SLIC superpixels"
requires-python = ">=3.10"
keywords = ["saliency", "superpixels", "slic", "supervoxels", "manifold-ranking", "image-processing"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Processing",
]
dependencies = [
    "numpy",
    "scipy",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
    "numpy",
]

[project.scripts]
gmrsal = "gmrsal.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["gmrsal"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
