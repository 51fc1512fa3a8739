"""Version information for applock."""

__version__ = "1.0.0"
