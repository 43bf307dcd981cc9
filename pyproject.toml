[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "klip"
version = "0.1.0"
description = "Copy/paste anything over the network"
requires-python = ">=3.11"
dependencies = [
    "cryptography",
]
keywords = ["clipboard", "copy", "paste", "network", "encryption", "xchacha20", "ed25519"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Framework :: AsyncIO",
    "Intended Audience :: End Users/Desktop",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: File Sharing",
    "Topic :: Security :: Cryptography",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
klip = "klip.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["klip"]

[tool.pytest.ini_options]
addopts = "-ra"
