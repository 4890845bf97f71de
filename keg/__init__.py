"""keg — local package installer."""

__version__ = "0.1.0"
