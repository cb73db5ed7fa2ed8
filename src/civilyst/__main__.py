"""Main entry point for the Civilyst CLI.

Usage:
    python -m civilyst --help
    civilyst --help  # If installed via pip/uv
"""

from civilyst.cli import main

if __name__ == "__main__":
    main()
