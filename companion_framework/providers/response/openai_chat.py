"""
OpenAI chat-completions provider for replies and structured extraction.
"""

import os
from typing import Any, Dict, List, Optional

try:
    from openai import AsyncOpenAI
except ImportError:
    raise ImportError("openai package is required. Install with: pip install openai")

from ...interfaces.response import TextGenerationInterface
from ...utils.logging_config import get_logger

logger = get_logger("openai_chat")


class OpenAIChatProvider(TextGenerationInterface):
    """
    Text generation through `AsyncOpenAI().chat.completions`.

    Structured calls (`json_mode=True`) request `response_format=json_object`
    so the completion is a single JSON object.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Args:
            config: Configuration dictionary containing:
                - api_key: OpenAI API key (optional, falls back to OPENAI_API_KEY)
                - model: Chat model (default: 'gpt-4o')
                - base_url: Optional alternative endpoint
                - max_tokens: Completion token cap (default: 800)
                - request_timeout_seconds: HTTP timeout (default: 30)
        """
        self.api_key = config.get('api_key') or os.getenv('OPENAI_API_KEY')
        if not self.api_key:
            raise ValueError("OpenAI API key is required. Set OPENAI_API_KEY env var or pass in config.")

        self.model = config.get('model', 'gpt-4o')
        self.base_url = config.get('base_url')
        self.max_tokens = int(config.get('max_tokens', 800))
        self.timeout = float(config.get('request_timeout_seconds', 30.0))

        # Client (lazy initialization)
        self._client: Optional[AsyncOpenAI] = None

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            kwargs: Dict[str, Any] = {'api_key': self.api_key, 'timeout': self.timeout}
            if self.base_url:
                kwargs['base_url'] = self.base_url
            self._client = AsyncOpenAI(**kwargs)
        return self._client

    async def complete(self,
                       system_prompt: str,
                       user_prompt: str,
                       temperature: float = 0.7,
                       history: Optional[List[Dict[str, str]]] = None,
                       json_mode: bool = False) -> str:
        messages: List[Dict[str, str]] = [{"role": "system", "content": system_prompt}]
        messages.extend(history or [])
        messages.append({"role": "user", "content": user_prompt})

        kwargs: Dict[str, Any] = {
            'model': self.model,
            'messages': messages,
            'temperature': temperature,
            'max_tokens': self.max_tokens,
        }
        if json_mode:
            kwargs['response_format'] = {"type": "json_object"}

        response = await self._get_client().chat.completions.create(**kwargs)
        if not response.choices:
            raise RuntimeError("OpenAI returned no choices")

        content = response.choices[0].message.content or ""
        usage = getattr(response, 'usage', None)
        if usage is not None:
            logger.debug(f"{self.model}: {usage.prompt_tokens} prompt / {usage.completion_tokens} completion tokens")
        return content.strip()

    async def cleanup(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
