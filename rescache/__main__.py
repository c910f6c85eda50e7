"""Main entry point when executing rescache as a package.

This allows running the package using python -m rescache.
"""

from rescache.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
