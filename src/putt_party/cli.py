"""
Command-line wrapper for the Putt Party relay.

Referenced by the putt-party-server console script; delegates to server.main().
"""

import sys

from .server import main


def cli_main() -> None:
    """Entry point of the putt-party-server command."""
    try:
        main()
    except KeyboardInterrupt:
        print("\nRelay interrupted by user")
        sys.exit(0)
    except SystemExit:
        raise
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli_main()
