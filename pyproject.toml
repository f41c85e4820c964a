[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "opfaultproof"
version = "0.1.0"
description = "Fault dispute game client: find, challenge, resolve and claim bonds from OP Succinct fault dispute games"
requires-python = ">=3.10"
keywords = [
    "optimism",
    "fault-proof",
    "dispute-game",
    "challenger",
    "json-rpc",
    "ethereum",
    "rollup",
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
    "Topic :: System :: Distributed Computing",
    "Typing :: Typed",
]
dependencies = [
    "requests>=2.28",
    "pycryptodome>=3.15",
    "python-dotenv>=1.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
]

[project.scripts]
opfaultproof-challenger = "opfaultproof.challenger:main"

[tool.hatch.build.targets.wheel]
packages = ["opfaultproof"]

[tool.hatch.build.targets.sdist]
include = ["opfaultproof", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
ignore_missing_imports = true
