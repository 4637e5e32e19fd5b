"""Somnus: sleep hypnogram geometry, cycle synthesis and sleep scoring."""

__version__ = "0.1.0"
