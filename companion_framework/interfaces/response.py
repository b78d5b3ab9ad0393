"""
Abstract interface for text-generation providers.
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Optional


class TextGenerationInterface(ABC):
    """Abstract base class for all LLM providers."""

    @abstractmethod
    async def complete(self,
                       system_prompt: str,
                       user_prompt: str,
                       temperature: float = 0.7,
                       history: Optional[List[Dict[str, str]]] = None,
                       json_mode: bool = False) -> str:
        """
        Request a single completion.

        Args:
            system_prompt: System instructions
            user_prompt: The latest user message / extraction request
            temperature: Sampling temperature
            history: Optional prior `{"role", "content"}` messages, oldest first
            json_mode: Ask the service for a strict JSON object

        Returns:
            The completion text

        Raises:
            Any transport error; callers treat all errors as request failures.
        """
        pass

    async def cleanup(self) -> None:
        """Release network resources."""
        return None
