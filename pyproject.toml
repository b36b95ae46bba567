[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "saga-orchestrator"
version = "0.1.0"
description = "Saga and step models with status-transition rules, typed action payloads, REST conversion, validation conditions and service lifecycle helpers"
requires-python = ">=3.10"
keywords = ["saga", "orchestration", "transactions", "compensation", "workflow"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Libraries :: Application Frameworks",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["saga_orchestrator"]

[tool.pytest.ini_options]
addopts = "-ra"
