[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "clustermeta"
version = "0.1.0"
description = "NAT translation tracking for conntrack netlink messages and an in-memory Kubernetes metadata cache"
requires-python = ">=3.10"
dependencies = []
keywords = ["conntrack", "netlink", "nat", "kubernetes", "metadata", "observability"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["clustermeta"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
