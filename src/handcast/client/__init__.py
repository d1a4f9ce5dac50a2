"""
HANDCAST client: subscribe to the broadcast and log every hand state.
"""

from handcast.client.monitor import decode_hand_state, monitor

__all__ = ["decode_hand_state", "monitor"]
