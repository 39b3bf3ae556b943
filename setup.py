"""
Packaging for trx-reporter.

The pytest plugin is published through the ``pytest11`` entry point so that
installing the package is enough to make ``--trx`` available.
"""

from pathlib import Path

from setuptools import find_packages, setup

_ROOT = Path(__file__).parent


def read_version() -> str:
    """Read ``__version__`` without importing the package."""
    init_py = _ROOT / "src" / "trx_reporter" / "__init__.py"
    for line in init_py.read_text(encoding="utf-8").splitlines():
        if line.startswith("__version__"):
            return line.split("=", 1)[1].strip().strip("\"'")
    raise RuntimeError(f"__version__ not found in {init_py}")


setup(
    name="trx-reporter",
    version=read_version(),
    description="Visual Studio TRX test run reports from test runner lifecycle events",
    long_description=(_ROOT / "README.md").read_text(encoding="utf-8"),
    long_description_content_type="text/markdown",
    python_requires=">=3.9",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "loguru>=0.7",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "pytest>=8.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
        ],
    },
    entry_points={
        "pytest11": [
            "trx = trx_reporter.plugin",
        ],
    },
    classifiers=[
        "Framework :: Pytest",
        "Programming Language :: Python :: 3",
        "Topic :: Software Development :: Testing",
    ],
)
