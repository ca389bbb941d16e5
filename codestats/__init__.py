"""Per-module code pattern statistics with historical JSON snapshots."""

__version__ = "0.1.0"
