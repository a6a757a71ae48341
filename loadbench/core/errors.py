"""
Exception types raised by the benchmark core.
"""


class LoadBenchError(Exception):
    """Base class for benchmark core errors."""


class ConfigurationError(LoadBenchError):
    """The target is not set up for the required transaction semantics."""


class ResultStoreError(LoadBenchError):
    """The result sink could not persist or read a metric record."""
