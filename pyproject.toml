[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "apiserver"
version = "1.0.0"
description = "An ASGI API server with routing groups, CORS, token auth, request IDs, per-request timeouts, rotating logs and system endpoints."
requires-python = ">=3.10"
keywords = ["http", "api", "server", "asgi", "cors", "middleware", "starlette", "uvicorn"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Web Environment",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "starlette",
    "uvicorn",
]

[project.optional-dependencies]
test = [
    "pytest",
    "httpx",
]

[project.scripts]
apiserver = "apiserver.app:main"

[tool.hatch.build.targets.wheel]
packages = ["apiserver"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
