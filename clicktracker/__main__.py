"""Main entry point when executing clicktracker as a package.

This allows running the package using python -m clicktracker.
"""

from clicktracker.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
