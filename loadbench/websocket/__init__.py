"""
WebSocket streaming of benchmark notifications.
"""

from .streaming import stream_results

__all__ = ["stream_results"]
