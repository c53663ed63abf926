"""
Setup script for diamond-iq.

Diamond IQ drills baseball and softball game situations in the terminal.
It serves three roles:

1. Drill Engine - Spaced repetition scheduling with weakness-first selection
2. Content Pipeline - Validation for scenario packs
3. Offline Play - Local JSON/SQLite session state with debounced sync

The 'diamond-iq' command is the primary entry point.
"""

from setuptools import find_packages, setup

setup(
    name="diamond-iq",
    version="2.0.0",
    description="Adaptive baseball and softball situation drills for the terminal",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Diamond IQ",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config"],
    package_data={"src.drill": ["data/*.json"]},
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "diamond-iq=src.drill.drill_cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Games/Entertainment",
    ],
    keywords="baseball softball spaced-repetition cli education drills",
)
