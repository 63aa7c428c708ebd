"""
Relay entrypoint.
Starts the HTTP endpoint and the operator console.
"""

from hookrelay.server import main


if __name__ == "__main__":
    raise SystemExit(main())
