"""
Factory for creating provider instances based on configuration.
"""

from typing import Any, Dict

from .interfaces import AudioCaptureInterface, PersistenceInterface, TextGenerationInterface
from .providers.response import OpenAIChatProvider
from .providers.persistence import InMemorySessionStore, JsonFileSessionStore


class ProviderFactory:
    """Factory for creating provider instances."""

    RESPONSE_PROVIDERS = {
        'openai_chat': OpenAIChatProvider,
    }

    PERSISTENCE_PROVIDERS = {
        'memory': lambda config: InMemorySessionStore(),
        'json_file': lambda config: JsonFileSessionStore(config['path']),
    }

    CAPTURE_PROVIDERS = ('sounddevice',)

    @classmethod
    def create_response_provider(cls,
                                 provider_name: str,
                                 config: Dict[str, Any]) -> TextGenerationInterface:
        """
        Create a text-generation provider instance.

        Raises:
            ValueError: If provider name is not supported
        """
        if provider_name not in cls.RESPONSE_PROVIDERS:
            available = ', '.join(cls.RESPONSE_PROVIDERS.keys())
            raise ValueError(f"Unsupported response provider: {provider_name}. Available: {available}")
        return cls.RESPONSE_PROVIDERS[provider_name](config)

    @classmethod
    def create_persistence_provider(cls,
                                    provider_name: str,
                                    config: Dict[str, Any]) -> PersistenceInterface:
        """
        Create a session store instance.

        Raises:
            ValueError: If provider name is not supported
        """
        if provider_name not in cls.PERSISTENCE_PROVIDERS:
            available = ', '.join(cls.PERSISTENCE_PROVIDERS.keys())
            raise ValueError(f"Unsupported persistence provider: {provider_name}. Available: {available}")
        return cls.PERSISTENCE_PROVIDERS[provider_name](config)

    @classmethod
    def create_capture_provider(cls,
                                provider_name: str,
                                config: Dict[str, Any]) -> AudioCaptureInterface:
        """
        Create a microphone capture instance.

        Raises:
            ValueError: If provider name is not supported
        """
        if provider_name not in cls.CAPTURE_PROVIDERS:
            available = ', '.join(cls.CAPTURE_PROVIDERS)
            raise ValueError(f"Unsupported capture provider: {provider_name}. Available: {available}")
        # PortAudio is only loaded when a capture provider is actually requested
        from .providers.capture import SoundDeviceCapture
        return SoundDeviceCapture(config)

    @classmethod
    def create_all_providers(cls, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create the providers described by a sectioned config dictionary
        (see `FrameworkConfig.to_legacy_dict`).
        """
        providers: Dict[str, Any] = {}
        if 'response' in config:
            section = config['response']
            providers['response'] = cls.create_response_provider(section['provider'], section.get('config', {}))
        if 'persistence' in config:
            section = config['persistence']
            providers['persistence'] = cls.create_persistence_provider(section['provider'], section.get('config', {}))
        if 'capture' in config:
            section = config['capture']
            providers['capture'] = cls.create_capture_provider(section['provider'], section.get('config', {}))
        return providers
