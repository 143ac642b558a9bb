"""
Database models for the link shortener.

Links are transactional data; click events are the analytics trail written
by the enrichment worker, one row per resolved redirect.
"""

from .link import Link
from .click import ClickEvent

__all__ = ["Link", "ClickEvent"]
