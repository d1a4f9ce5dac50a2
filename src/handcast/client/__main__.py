"""
Entry point for the HANDCAST monitor client.

Usage:
    uv run -m handcast.client
    # or after install:
    handcast-monitor
"""

import argparse
import sys

from handcast.shared.constants import DEFAULT_SERVER_URL


def main() -> int:
    parser = argparse.ArgumentParser(
        description="HANDCAST Hand State Monitor",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--server",
        "-s",
        default=DEFAULT_SERVER_URL,
        help="WebSocket server URL",
    )
    parser.add_argument(
        "--count",
        "-n",
        type=int,
        default=None,
        help="Exit after this many hand states",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level",
    )

    args = parser.parse_args()

    import asyncio
    import logging

    import websockets

    from handcast.client.monitor import monitor
    from handcast.shared.constants import LOG_FORMAT

    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT)
    logger = logging.getLogger("handcast.client")

    def log_state(state):
        logger.info(
            f"{'CLOSED' if state.closed else 'open  '} "
            f"x={state.pos_x:.3f} y={state.pos_y:.3f}"
        )

    try:
        asyncio.run(monitor(args.server, log_state, max_messages=args.count))
    except KeyboardInterrupt:
        return 0
    except OSError as e:
        logger.error(f"Could not connect to {args.server}: {e}")
        return 1
    except websockets.ConnectionClosed as e:
        logger.error(f"Connection to {args.server} lost: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
