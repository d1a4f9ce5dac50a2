"""
Constants for the HANDCAST project.

This module defines all shared constants used across the HANDCAST package.
"""

# ====================================================================================
# Network Config
# ====================================================================================

# Subscribers connect to ws://127.0.0.1:8181 with no path
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8181
DEFAULT_WS_PATH = "/"
DEFAULT_SERVER_URL = f"ws://{DEFAULT_HOST}:{DEFAULT_PORT}{DEFAULT_WS_PATH}"

# Upper bound for a single websocket send before the subscriber is dropped
DEFAULT_SEND_TIMEOUT_S = 0.5

# ====================================================================================
# Sensor Config
# ====================================================================================

SENSOR_KINDS: tuple[str, ...] = ("simulated", "replay", "none")
DEFAULT_SENSOR = "simulated"
DEFAULT_SENSOR_RATE_HZ = 30.0  # Body frame rate of the tracking camera

# Simulated sensor
SIMULATED_BODY_ID = 72057594037928000
SIMULATED_BYSTANDER_ID = 72057594037928001
SIMULATED_GRIP_PERIOD_S = 2.0  # Full open -> closed -> open cycle

# ====================================================================================
# Monitoring
# ====================================================================================

STATS_INTERVAL_S = 1.0  # How often the dispatch rate is logged

# ===================================================================================
# File Paths
# ====================================================================================

DEFAULT_CONFIG_PATH = "config/handcast.json"
CONFIG_PATH_ENV = "HANDCAST_CONFIG_PATH"

# ===================================================================================
# Logging
# ====================================================================================

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
