[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kineticsub"
version = "0.2.0"
description = "Kinetic subtitle animation: keyframes, easing, motion paths, baked ASS scripts and ffmpeg rendering"
requires-python = ">=3.10"
dependencies = []
keywords = ["subtitles", "ass", "animation", "keyframes", "kinetic typography", "ffmpeg", "video"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Video",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["kineticsub"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
