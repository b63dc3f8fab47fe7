[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rayrelay"
version = "0.1.0"
description = "OpenAI-compatible HTTP relay in front of the Raycast AI chat backend"
requires-python = ">=3.10"
keywords = ["openai", "raycast", "proxy", "relay", "chat-completions", "sse", "asgi"]
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
    "Topic :: Internet :: Proxy Servers",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "starlette>=0.27",
    "httpx>=0.25",
    "uvicorn>=0.23",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "pytest-asyncio>=0.21",
    "respx>=0.20",
]

[project.scripts]
rayrelay = "rayrelay.app:main"

[tool.hatch.build.targets.wheel]
packages = ["rayrelay"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
