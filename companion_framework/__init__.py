"""
Companion Framework - voice-first session manager for a conversational companion.

This framework provides:
- Turn taking: energy VAD, silence commit, recognition lifecycle, barge-in
  and a session time limit, coordinated by a single state machine
- Conversational replies with running history (OpenAI chat completions)
- Session summarization: chunk, map, reduce, gratitude guard
- Range insights with digest-gated caching

Usage:
    from companion_framework import (
        TurnCoordinator, ProviderFactory, get_framework_config, get_provider_config,
    )

    providers = ProviderFactory.create_all_providers(get_provider_config())
    coordinator = TurnCoordinator.from_config(
        get_framework_config(), recognizer, providers['capture'], playback,
        providers['response'], providers['persistence'],
    )
    await coordinator.start_session()
"""

from .coordinator import TurnCoordinator
from .conversation import ChatSession
from .factory import ProviderFactory
from .config import get_framework_config, get_provider_config
from .summarization import SummarizationPipeline, InsightsService
from . import interfaces
from . import models
from . import providers

__version__ = "1.0.0"

__all__ = [
    'TurnCoordinator',
    'ChatSession',
    'ProviderFactory',
    'get_framework_config',
    'get_provider_config',
    'SummarizationPipeline',
    'InsightsService',
    'interfaces',
    'models',
    'providers'
]
