"""
Setup script for carrier_mc package.

Installation:
    pip install -e .
"""

from setuptools import setup, find_packages

setup(
    name="carrier_mc",
    version="0.1.0",
    description="Monte Carlo charge carrier propagation in semiconductor sensors",
    author="William Comaskey",
    packages=find_packages(include=["carrier_mc", "carrier_mc.*"]),
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.24",
        "scipy>=1.10",
        "numba>=0.58",
        "pyyaml>=6.0",
        "tqdm>=4.65",
    ],
    extras_require={
        "dev": ["pytest>=7.3", "black>=23.0", "mypy>=1.3", "ipython>=8.12"],
    },
)
