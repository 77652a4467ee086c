"""Entry point for python -m quant_cli."""

from quant_cli.cli import main

if __name__ == "__main__":
    main()
