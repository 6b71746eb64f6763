"""NotifyHub scheduled dispatch daemon."""

__version__ = "0.1.0"
