"""
Setup configuration for Chrona.

This file tells pip how to install the package and creates the 'chrona' command.

To install for development (editable mode):
    pip install -e .

To also install the test tools:
    pip install -e ".[test]"
"""

from setuptools import setup, find_packages

setup(
    name="chrona",
    version="0.1.0",
    description="Calendar-based health tracker for periods, HRT, HSV outbreaks, mood and workouts",
    author="Your Name",
    python_requires=">=3.10",

    # Finds both the chrona package and the web package
    packages=find_packages(exclude=["tests", "tests.*"]),

    install_requires=[
        "click>=8.0.0",
        "tabulate>=0.9.0",
        "flask>=2.2.0",
        "pandas>=1.5.0",
        "openpyxl>=3.0.0",
        "reportlab>=3.6.0",
    ],

    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },

    # When someone types 'chrona', run the 'main' function from chrona.cli
    entry_points={
        "console_scripts": [
            "chrona=chrona.cli:main",
        ],
    },
)
