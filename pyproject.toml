[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bandtop"
version = "0.1.0"
description = "Per-connection bandwidth accounting for network interfaces, with a config reader, link-layer decoders and a daily per-host traffic recorder"
requires-python = ">=3.10"
keywords = ["bandwidth", "network", "monitoring", "traffic", "packet-capture", "interface"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
]
dependencies = [
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
bandtop-dump = "bandtop.dump:main"

[tool.hatch.build.targets.wheel]
packages = ["bandtop"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
