# CipherSafe - Main Entry Point
#
# Runs the API server. Configuration comes from the environment
# (CIPHERSAFE_* variables, optionally from a .env file).

import argparse
import sys

from . import __version__
from .core import ConfigError, EventType, load_config, log_security_event


def main():
    """Parse arguments and run the API server."""
    parser = argparse.ArgumentParser(
        description="CipherSafe - authenticated encrypted-vault storage server",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Interface to bind (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=5000,
        help="Port to listen on (default: 5000)",
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Path to a .env file to load before reading configuration",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"CipherSafe v{__version__}",
    )
    args = parser.parse_args()

    try:
        config = load_config(dotenv_path=args.env_file)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    from .api.main import start_api_server

    try:
        start_api_server(host=args.host, port=args.port, config=config)
    except KeyboardInterrupt:
        print("\nShutting down...")
    except Exception as e:
        log_security_event(
            EventType.SYSTEM_STOP,
            "CipherSafe crashed",
            level="error",
            error=str(e),
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
