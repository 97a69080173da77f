"""DAM Queue: durable polling job queue for asset version processing."""

__version__ = "1.0.0"
