"""Concurrent resolution of binary specs into a lock."""

from resolution.engine import BinaryResolver, display_name

__all__ = ["BinaryResolver", "display_name"]
