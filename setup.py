"""
Setup script for zabr_smile package.

Pure Python install; numerics run on numpy/scipy.
"""

from pathlib import Path

from setuptools import find_packages, setup

ROOT = Path(__file__).parent


def read_version() -> str:
    """Read __version__ without importing the package."""
    init = ROOT / "src" / "python" / "zabr_smile" / "__init__.py"
    for line in init.read_text().splitlines():
        if line.startswith("__version__"):
            return line.split("=", 1)[1].strip().strip('"').strip("'")
    raise RuntimeError("Unable to find __version__")


# Main setup
setup(
    name="zabr-smile",
    version=read_version(),
    description="ZABR stochastic volatility smile calibration",
    python_requires=">=3.9",
    package_dir={"": "src/python"},
    packages=find_packages("src/python"),
    install_requires=[
        "numpy>=1.22",
        "scipy>=1.8",
        "pandas>=1.4",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "zabr-smile=zabr_smile.cli:main",
        ],
    },
    zip_safe=False,
)
