"""SaySo: local business discovery, reviews and ownership claims."""

__version__ = "0.1.0"
