# Utils package

from .logging_config import setup_logging, get_logger, ComponentLogger
from .error_handling import (
    FrameworkError,
    ResourceDeniedError,
    MalformedResponseError,
    SummarizationError,
    InvalidTransitionError,
    ErrorHandler,
    ErrorSeverity,
    ComponentError,
    retry_with_backoff,
    safe_cleanup,
)
from .background import fire_and_forget

__all__ = [
    "setup_logging",
    "get_logger",
    "ComponentLogger",
    "FrameworkError",
    "ResourceDeniedError",
    "MalformedResponseError",
    "SummarizationError",
    "InvalidTransitionError",
    "ErrorHandler",
    "ErrorSeverity",
    "ComponentError",
    "retry_with_backoff",
    "safe_cleanup",
    "fire_and_forget",
]
