[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pdfrelay"
version = "0.1.0"
description = "Merge, split and flatten PDFs through pdfcpu, PDFtk and QPDF with engine fallback, form handlers, webhook delivery and gauge metrics"
requires-python = ">=3.10"
keywords = ["pdf", "merge", "split", "flatten", "qpdf", "pdftk", "pdfcpu", "webhook", "metrics"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["pdfrelay"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
