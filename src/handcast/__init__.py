"""
HANDCAST - Engaged-hand state broadcaster.

This package provides:
- server: FastAPI websocket server that tracks the engaged hand and
  broadcasts its state to every connected subscriber
- client: Console monitor that subscribes to the broadcast
- shared: Shared types, constants, and wire format models
"""

__version__ = "0.1.0"
