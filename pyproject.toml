[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mtwire"
version = "0.1.0"
description = "MTProto wire toolkit: TL serialization, transport framing, message envelopes and session encodings"
requires-python = ">=3.10"
dependencies = []
keywords = ["mtproto", "tl", "serialization", "transport", "framing", "protocol"]
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
    "Topic :: Communications :: Chat",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["mtwire"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
