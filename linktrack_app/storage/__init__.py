"""
Click storage module (analytics recorder).

Implements the Strategy Pattern so the analytics store can differ from the
transactional one.
"""

from .strategies import ClickStorageStrategy, SQLClickStorage

__all__ = [
    "ClickStorageStrategy",
    "SQLClickStorage",
]
