"""
Database integration for the janitor.

This module provides the synchronous database capability used by the
schema shrinker, with MySQL as the primary target and SQLite for local runs.
"""

from .database import Database

__all__ = ["Database"]
