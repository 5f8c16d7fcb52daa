"""Networking toolkit: channel-multiplexed UDP and WebSocket client transports, IPv4 lookup and timing helpers."""

__version__ = "0.1.0"