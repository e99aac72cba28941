# repoviewer/main.py
import sys
import os

# Ensure the package root is discoverable when this file is executed directly
if __package__ in (None, "") and not hasattr(sys, "frozen"):
    path = os.path.realpath(os.path.abspath(__file__))
    sys.path.insert(0, os.path.dirname(os.path.dirname(path)))

from repoviewer.cli import app


def run() -> None:
    """Console entry point; logging is configured by the CLI callback."""
    app(prog_name="repoviewer")


if __name__ == "__main__":
    run()
