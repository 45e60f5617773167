[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "netreactor"
version = "0.1.0"
description = "Building blocks for event-driven network servers: a readiness poller with task queues, listeners, socket helpers and load balancers."
requires-python = ">=3.10"
dependencies = []
keywords = ["networking", "event-loop", "epoll", "kqueue", "reactor", "sockets", "load-balancing"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Operating System :: MacOS",
    "Operating System :: POSIX :: BSD",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["netreactor"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
