"""
Entry point for running Diamond IQ as a module.

Usage:
    python -m src.drill drill
    python -m src.drill stats
    python -m src.drill --help
"""
from .drill_cli import main

if __name__ == "__main__":
    main()
