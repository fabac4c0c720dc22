"""
Entry point for running pcall as a module: python -m pcall
"""

from pcall.cli.commands import app

if __name__ == "__main__":
    app()
