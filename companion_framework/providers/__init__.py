"""
Provider implementations for the companion framework.

The sounddevice capture provider needs PortAudio at import time, so it is
imported from `providers.capture` explicitly rather than from here.
"""

from .response import OpenAIChatProvider
from .persistence import InMemorySessionStore, JsonFileSessionStore

__all__ = [
    'OpenAIChatProvider',
    'InMemorySessionStore',
    'JsonFileSessionStore',
]
