[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "webk8s"
version = "0.0.0"
description = "A small web control plane for a Kubernetes cluster: node reporting and deployment management over HTTP"
requires-python = ">=3.10"
keywords = ["kubernetes", "cluster", "monitoring", "deployment", "flask"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Clustering",
]
dependencies = [
    "flask",
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
webk8s-master = "webk8s.master:main"
webk8s-worker = "webk8s.worker:main"

[tool.hatch.build.targets.wheel]
packages = ["webk8s"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
