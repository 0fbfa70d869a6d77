[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "windowlimit"
version = "0.1.0"
description = "Per-client-IP sliding window rate limiting middleware for WSGI applications"
requires-python = ">=3.10"
dependencies = []
keywords = ["rate limiting", "wsgi", "middleware", "sliding window", "throttling"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Middleware",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["windowlimit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
