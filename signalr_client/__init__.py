"""Asyncio client for SignalR hubs using the JSON hub protocol over WebSockets."""

__version__ = "0.1.2"