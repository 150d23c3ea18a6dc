"""Water & Grow: a shared hydration tracker for two."""

__version__ = "0.1.0"
