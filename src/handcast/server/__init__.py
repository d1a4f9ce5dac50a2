"""
HANDCAST server: engagement tracking, change detection, and websocket fan-out.
"""
