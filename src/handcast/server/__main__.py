"""
Entry point for the HANDCAST server application.

Usage:
    uv run -m handcast.server
    # or after install:
    handcast-server

Options that are not given on the command line fall back to the settings file,
then to the built-in defaults.
"""

import argparse
import sys

from handcast.shared.constants import DEFAULT_CONFIG_PATH, SENSOR_KINDS


def main() -> int:
    parser = argparse.ArgumentParser(
        description="HANDCAST Engaged-Hand Broadcast Server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind to (default: 8181)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=DEFAULT_CONFIG_PATH,
        help="Path to settings file",
    )
    parser.add_argument(
        "--sensor",
        choices=SENSOR_KINDS,
        default=None,
        help="Source of raw sensor events (default: simulated)",
    )
    parser.add_argument(
        "--replay",
        type=str,
        default=None,
        help="JSON-lines recording for the replay sensor",
    )
    parser.add_argument(
        "--send-timeout",
        type=float,
        default=None,
        help="Seconds before a stalled subscriber is dropped (default: 0.5)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)",
    )

    args = parser.parse_args()

    import os

    os.environ["HANDCAST_CONFIG_PATH"] = args.config
    cli_overrides = {
        "HANDCAST_HOST": args.host,
        "HANDCAST_PORT": args.port,
        "HANDCAST_SENSOR": args.sensor,
        "HANDCAST_REPLAY_PATH": args.replay,
        "HANDCAST_SEND_TIMEOUT": args.send_timeout,
        "HANDCAST_LOG_LEVEL": args.log_level,
    }
    for env_name, value in cli_overrides.items():
        if value is not None:
            os.environ[env_name] = str(value)

    import logging

    import pydantic

    from handcast.server.config import settings_from_env
    from handcast.shared.constants import LOG_FORMAT

    try:
        settings = settings_from_env()
    except pydantic.ValidationError as e:
        parser.error(f"Invalid settings: {e}")

    if settings.sensor == "replay" and not settings.replay_path:
        parser.error("--sensor replay requires --replay")

    os.environ["HANDCAST_LOG_LEVEL"] = settings.log_level
    logging.basicConfig(level=getattr(logging, settings.log_level), format=LOG_FORMAT)

    import uvicorn

    uvicorn.run(
        "handcast.server.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())
