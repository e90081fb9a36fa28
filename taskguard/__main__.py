"""Main entry point when executing taskguard as a package.

This allows running the package using python -m taskguard.
"""

from taskguard.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
