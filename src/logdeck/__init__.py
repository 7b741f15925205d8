"""logdeck: interactive terminal dashboard over a live stream of log records."""

__version__ = "0.1.0"
