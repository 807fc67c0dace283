"""Entry point for python -m photosort."""

import sys


def main():
    """Main entry point."""
    from photosort.cli.main import main as cli_main
    sys.exit(cli_main())


if __name__ == "__main__":
    main()
