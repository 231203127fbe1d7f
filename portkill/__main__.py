"""
Main entry point for the PortKill command-line shell.
"""
import sys

from portkill.app import main


def main_entry():
    """
    Main function to run PortKill.
    """
    sys.exit(main())


if __name__ == "__main__":
    main_entry()
