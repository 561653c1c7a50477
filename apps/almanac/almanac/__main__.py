"""
Entry point for running the almanac as a module.

Usage:
    python -m almanac <command>
"""

from almanac.cli import cli

if __name__ == "__main__":
    cli()
