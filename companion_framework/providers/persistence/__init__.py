"""
Persistence providers.
"""

from .memory_store import InMemorySessionStore
from .json_store import JsonFileSessionStore

__all__ = ['InMemorySessionStore', 'JsonFileSessionStore']
