"""Entry point for ``python -m xray``."""

from xray.cli import main

if __name__ == "__main__":
    main()
