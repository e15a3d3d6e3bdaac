"""Main entry point for running the Optica API server."""

import sys

from src.lifecycle import LifecycleController


def main() -> None:
    """Main entry point for the Optica API application."""
    sys.exit(LifecycleController().run())


if __name__ == "__main__":
    main()
