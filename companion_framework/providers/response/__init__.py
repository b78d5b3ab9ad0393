"""
Text-generation providers.
"""

from .openai_chat import OpenAIChatProvider

__all__ = ['OpenAIChatProvider']
