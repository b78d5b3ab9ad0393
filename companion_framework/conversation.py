"""
Conversational reply generation with running message history.
"""

from typing import Dict, List, Optional

from .config_models import OpenAIConfig, TurnTakingConfig
from .interfaces.response import TextGenerationInterface
from .utils.error_handling import ErrorHandler, retry_with_backoff
from .utils.logging_config import get_logger

logger = get_logger("chat")


DEFAULT_SYSTEM_PROMPT = (
    "You are a supportive, concise conversational partner. Acknowledge feelings, "
    "ask brief clarifying questions when useful, and keep responses under ~120 "
    "words unless asked for more."
)

FALLBACK_REPLY = "Sorry, I didn't catch that. Can you try again?"


class ChatSession:
    """
    Keeps the system prompt and message history for one conversation.

    The user message is recorded before the request; the assistant message
    is recorded only when a reply actually arrives. When every attempt fails
    (or times out) the fallback line is returned and nothing is appended.
    """

    def __init__(self,
                 generator: TextGenerationInterface,
                 system_prompt: str = DEFAULT_SYSTEM_PROMPT,
                 temperature: float = 0.7,
                 max_attempts: int = 2,
                 retry_delay: float = 0.5,
                 timeout: Optional[float] = 20.0,
                 max_history: int = 40,
                 error_handler: Optional[ErrorHandler] = None):
        self.generator = generator
        self.system_prompt = system_prompt
        self.temperature = temperature
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.max_history = max_history
        self.error_handler = error_handler
        self._history: List[Dict[str, str]] = []

    @classmethod
    def from_config(cls,
                    generator: TextGenerationInterface,
                    turn_taking: Optional[TurnTakingConfig] = None,
                    openai: Optional[OpenAIConfig] = None,
                    error_handler: Optional[ErrorHandler] = None) -> 'ChatSession':
        """Build a session from the reply settings in the framework config."""
        turn_taking = turn_taking or TurnTakingConfig()
        openai = openai or OpenAIConfig()
        return cls(
            generator,
            system_prompt=openai.system_prompt or DEFAULT_SYSTEM_PROMPT,
            temperature=openai.reply_temperature,
            max_attempts=turn_taking.reply_max_attempts,
            timeout=turn_taking.reply_timeout_seconds,
            error_handler=error_handler,
        )

    @property
    def history(self) -> List[Dict[str, str]]:
        return list(self._history)

    def reset(self) -> None:
        """Forget the conversation (start of a new session)."""
        self._history.clear()

    async def reply(self, user_text: str) -> str:
        """
        Generate the assistant's reply to `user_text`.

        Returns:
            The trimmed reply, or `FALLBACK_REPLY` if the service failed
        """
        prior = self._trimmed_history()
        self._append("user", user_text)

        async def _request() -> str:
            return await self.generator.complete(
                system_prompt=self.system_prompt,
                user_prompt=user_text,
                temperature=self.temperature,
                history=prior,
            )

        try:
            raw = await retry_with_backoff(
                _request,
                max_attempts=self.max_attempts,
                initial_delay=self.retry_delay,
                timeout=self.timeout,
                error_handler=self.error_handler,
                component_name="chat",
            )
        except Exception as e:
            logger.error(f"Reply request failed: {e}")
            return FALLBACK_REPLY

        reply = (raw or "").strip()
        if not reply:
            logger.warning("Empty reply from text generation service")
            return FALLBACK_REPLY

        self._append("assistant", reply)
        return reply

    def _append(self, role: str, content: str) -> None:
        self._history.append({"role": role, "content": content})

    def _trimmed_history(self) -> List[Dict[str, str]]:
        if self.max_history <= 0:
            return []
        return list(self._history[-self.max_history:])
