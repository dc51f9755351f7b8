"""Portrait variation studio."""

__version__ = "0.1.0"
