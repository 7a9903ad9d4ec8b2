"""
Convenience entry point for running equislot directly.

Usage: python -m equislot [command] [options]
"""

from .cli.app import app

if __name__ == "__main__":
    app()
