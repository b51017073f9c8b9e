"""Allow running ccblocks as ``python -m ccblocks``."""

from ccblocks import cli

if __name__ == "__main__":
    cli.app()
