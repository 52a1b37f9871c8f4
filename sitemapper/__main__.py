"""Entry point for ``python -m sitemapper``."""

from sitemapper.cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
