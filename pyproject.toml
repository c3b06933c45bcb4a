[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rawalloc"
version = "0.10.1"
description = "A minimal memory allocation interface for raw buffers over a simulated heap, with structured errors, allocation guards and allocation statistics."
requires-python = ">=3.10"
dependencies = []
keywords = ["allocator", "memory", "allocation", "layout", "heap", "statistics"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["rawalloc"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
strict = true
