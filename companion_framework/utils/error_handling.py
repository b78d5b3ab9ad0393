"""
Structured error handling with recovery strategies.

Also defines the framework's exception hierarchy. The rule of thumb:
- transient I/O is retried (`retry_with_backoff`) and logged,
- malformed external responses raise `MalformedResponseError` and are
  handled exactly like a failed request for that unit of work,
- resource denial raises `ResourceDeniedError` before a session starts,
- terminal operations that exhaust their retries raise to the caller.
"""

import asyncio
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Callable, Dict, Any, TypeVar, List, Awaitable
from datetime import datetime

from .logging_config import get_logger

logger = get_logger("errors")


class FrameworkError(Exception):
    """Base class for all companion framework errors."""


class ResourceDeniedError(FrameworkError):
    """Microphone or speech-recognition permission was refused."""

    def __init__(self, resource: str, message: Optional[str] = None):
        self.resource = resource
        super().__init__(message or f"Access to {resource} was denied")


class MalformedResponseError(FrameworkError):
    """An external service returned something that does not match its schema."""

    def __init__(self, message: str, raw: Optional[str] = None):
        self.raw = raw
        super().__init__(message)


class SummarizationError(FrameworkError):
    """Summarization could not produce a result after exhausting retries."""


class InvalidTransitionError(FrameworkError, ValueError):
    """A state-machine transition that is not allowed from the current state."""


class ErrorSeverity(Enum):
    """Error severity levels."""
    WARNING = "warning"          # Log and continue
    RECOVERABLE = "recoverable"  # Attempt recovery
    FATAL = "fatal"              # Must stop component


@dataclass
class ComponentError:
    """Structured error information."""
    component: str
    severity: ErrorSeverity
    message: str
    exception: Optional[BaseException] = None
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())
    traceback_str: Optional[str] = None

    def __post_init__(self):
        if self.exception and not self.traceback_str:
            self.traceback_str = ''.join(
                traceback.format_exception(
                    type(self.exception),
                    self.exception,
                    self.exception.__traceback__
                )
            )


class ErrorHandler:
    """
    Centralized error handling with recovery strategies.

    Features:
    - Severity-based handling
    - Component-specific recovery strategies
    - Bounded error history
    """

    def __init__(self, max_history: int = 100):
        self._error_log: List[ComponentError] = []
        self._recovery_strategies: Dict[str, Callable[[ComponentError], Awaitable[None]]] = {}
        self._max_history = max_history

    def register_recovery(self, component: str, strategy: Callable[[ComponentError], Awaitable[None]]):
        """
        Register recovery strategy for a component.

        Args:
            component: Component name
            strategy: Async recovery function that takes ComponentError
        """
        self._recovery_strategies[component] = strategy
        logger.debug(f"Registered recovery strategy for: {component}")

    async def handle_error(self, error: ComponentError) -> bool:
        """
        Handle error based on severity.

        Returns:
            True if handled or recovered, False if fatal or recovery failed
        """
        self._error_log.append(error)
        if len(self._error_log) > self._max_history:
            self._error_log.pop(0)

        if error.severity == ErrorSeverity.WARNING:
            return self._handle_warning(error)
        elif error.severity == ErrorSeverity.RECOVERABLE:
            return await self._handle_recoverable(error)
        return self._handle_fatal(error)

    def _handle_warning(self, error: ComponentError) -> bool:
        detail = f" ({error.exception})" if error.exception else ""
        logger.warning(f"{error.component}: {error.message}{detail}")
        return True

    async def _handle_recoverable(self, error: ComponentError) -> bool:
        logger.info(f"🔧 {error.component}: {error.message} (attempting recovery)")

        strategy = self._recovery_strategies.get(error.component)
        if not strategy:
            logger.warning(f"No recovery strategy for {error.component}")
            return False

        try:
            await strategy(error)
            return True
        except Exception as e:
            logger.error(f"Recovery failed for {error.component}: {e}")
            return False

    def _handle_fatal(self, error: ComponentError) -> bool:
        logger.critical(f"FATAL ERROR in {error.component}: {error.message}")
        if error.traceback_str:
            logger.debug(error.traceback_str)
        return False

    def get_error_history(self, component: Optional[str] = None) -> List[ComponentError]:
        """Get error history, optionally filtered by component."""
        if component:
            return [e for e in self._error_log if e.component == component]
        return self._error_log.copy()

    def get_error_summary(self) -> Dict[str, Any]:
        """Get counts of errors by severity and by component."""
        summary = {
            'total_errors': len(self._error_log),
            'by_severity': {},
            'by_component': {}
        }

        for error in self._error_log:
            severity = error.severity.value
            summary['by_severity'][severity] = summary['by_severity'].get(severity, 0) + 1
            summary['by_component'][error.component] = summary['by_component'].get(error.component, 0) + 1

        return summary


T = TypeVar('T')


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    exceptions: tuple = (Exception,),
    timeout: Optional[float] = None,
    error_handler: Optional[ErrorHandler] = None,
    component_name: str = "unknown"
) -> T:
    """
    Retry an async callable with exponential backoff.

    Args:
        func: Zero-argument async callable to retry
        max_attempts: Maximum number of attempts
        initial_delay: Initial delay in seconds
        backoff_factor: Multiplier for delay on each retry
        exceptions: Tuple of exceptions that trigger a retry
        timeout: Optional per-attempt deadline; expiry counts as a failure
        error_handler: Optional error handler for logging
        component_name: Component name for error logging

    Returns:
        Result of the first successful call

    Raises:
        The last exception if every attempt fails
    """
    delay = initial_delay
    retry_on = tuple(exceptions) + ((asyncio.TimeoutError,) if timeout is not None else ())

    for attempt in range(max_attempts):
        try:
            if timeout is not None:
                return await asyncio.wait_for(func(), timeout=timeout)
            return await func()
        except retry_on as e:
            last_attempt = attempt == max_attempts - 1

            if error_handler:
                await error_handler.handle_error(ComponentError(
                    component=component_name,
                    severity=ErrorSeverity.FATAL if last_attempt else ErrorSeverity.WARNING,
                    message=f"Attempt {attempt + 1}/{max_attempts} failed",
                    exception=e,
                    context={'attempt': attempt + 1, 'max_attempts': max_attempts}
                ))

            if last_attempt:
                raise

            logger.warning(
                f"{component_name}: attempt {attempt + 1}/{max_attempts} failed "
                f"({type(e).__name__}: {e}); retrying in {delay}s"
            )
            await asyncio.sleep(delay)
            delay *= backoff_factor

    raise RuntimeError("retry_with_backoff called with max_attempts < 1")


async def safe_cleanup(*cleanup_funcs: Callable[[], Awaitable[Any]]) -> List[tuple]:
    """
    Run every cleanup function even if some of them fail.

    Returns:
        List of (function name, exception) pairs for the failures
    """
    errors = []

    for func in cleanup_funcs:
        try:
            await func()
        except Exception as e:
            name = getattr(func, '__name__', repr(func))
            errors.append((name, e))
            logger.warning(f"Cleanup error in {name}: {e}")

    if errors:
        logger.warning(f"{len(errors)} cleanup errors occurred")
    return errors
