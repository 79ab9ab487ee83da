"""TTK Lab: weapon time-to-kill simulation engine and service."""

__version__ = "1.0.0"
