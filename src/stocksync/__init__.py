"""stocksync - offline-first inventory and sales store synced with a remote sheet."""

__version__ = "0.1.0"
