[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rmqclient"
version = "0.1.0"
description = "Consumer-side building blocks for a message queue client: queue allocation strategies, consume statistics and a push consumer core."
requires-python = ">=3.10"
dependencies = []
keywords = ["message queue", "consumer", "rebalance", "consistent hashing", "statistics"]
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
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["rmqclient"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
