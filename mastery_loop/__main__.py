"""
Entry point for running the mastery loop as a module.

Usage:
    python -m mastery_loop run quiz.json --user alice
    python -m mastery_loop profile --user alice
    python -m mastery_loop --help
"""
from mastery_loop.cli.main import app

if __name__ == "__main__":
    app()
