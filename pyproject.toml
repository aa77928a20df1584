[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "curltree"
version = "0.1.0"
description = "Link-in-bio profiles served as plain text to curl and as JSON to everything else"
requires-python = ">=3.10"
dependencies = []
keywords = ["profile", "links", "curl", "wsgi", "sqlite", "link-in-bio"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Web Environment",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
curltree-server = "curltree.server:main"

[tool.hatch.build.targets.wheel]
packages = ["curltree"]

[tool.pytest.ini_options]
addopts = "-ra"
