"""
LoadBench: database benchmark runner with normalized, persisted results.
"""

__version__ = "0.1.0"
