"""Link harvesting sessions streamed to WebSocket consumers."""

__version__ = "0.1.0"
