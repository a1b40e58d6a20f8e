"""
Entry point for running formlingo as a module.

Usage:
    python -m formlingo --help
    python -m formlingo info survey.json
"""
from .cli import app


if __name__ == "__main__":
    app()
