"""
Run the Putt Party relay as a module:
    python -m putt_party

The installed command is putt-party-server.
"""

from .cli import cli_main

if __name__ == "__main__":
    cli_main()
