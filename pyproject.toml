[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "retrybill"
version = "0.1.0"
description = "Hosting billing core: catalog, orders, balances, currency rates, payment invoices and Inertia-style page rendering"
requires-python = ">=3.10"
keywords = ["billing", "hosting", "orders", "currency", "exchange-rates", "invoices", "inertia", "vite"]
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
    "Topic :: Office/Business :: Financial",
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
]
dependencies = [
    "sqlalchemy>=2.0",
    "requests>=2.28",
    "bcrypt>=4.0",
    "python-dotenv>=1.0",
    "jinja2>=3.1",
    "markupsafe>=2.1",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
]

[tool.hatch.build.targets.wheel]
packages = ["retrybill"]

[tool.hatch.build.targets.sdist]
include = ["retrybill", "tests", "pyproject.toml", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
