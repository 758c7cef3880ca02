"""Task assignment and status tracking for a school department."""

__version__ = "0.1.0"
