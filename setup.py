"""Setup script for the autocrop decision engine package."""

from setuptools import setup, find_namespace_packages
from pathlib import Path

# Read README if it exists
readme_file = Path(__file__).parent / "README.md"
long_description = ""
if readme_file.exists():
    long_description = readme_file.read_text(encoding="utf-8")

setup(
    name="autocrop-engine",
    version="0.1.0",
    description="Black-bar crop decisions for media players from noisy crop detection",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Autocrop Team",
    packages=find_namespace_packages(include=["autocrop", "autocrop.*", "scripts"]),
    python_requires=">=3.9",
    install_requires=[
        "pandas>=2.2.0",
        "pyyaml>=6.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
        "dev": [
            "pytest>=7.4.0",
            "black",
            "flake8",
            "mypy",
        ],
    },
    entry_points={
        "console_scripts": [
            "autocrop-replay=scripts.replay_trace:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
