[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "apfreedog"
version = "3.11.1715"
description = "Captive-portal gateway helpers: connectivity tracking, status reports, address validation, auth-server URL building and a control socket with its command-line client"
requires-python = ">=3.10"
dependencies = []
keywords = ["captive-portal", "wifidog", "gateway", "hotspot", "control-socket"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
wdctlx = "apfreedog.wdctl:main"

[tool.hatch.build.targets.wheel]
packages = ["apfreedog"]

[tool.pytest.ini_options]
addopts = "-ra"
