"""Speech synthesis backends for meditone, selectable by name from config."""

from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from .base import TTSProvider

from .elevenlabs import ElevenLabsProvider
from .openai import OpenAIProvider

__all__ = ["ProviderRegistry"]


class ProviderRegistry:
    """Name -> provider class table with one shared instance per name.

    The pipeline asks for ``get_instance(config.tts.provider)``, so every
    request in the process reuses one API client and its connection pool.
    """

    _providers: ClassVar[dict[str, type["TTSProvider"]]] = {}
    _instances: ClassVar[dict[str, "TTSProvider"]] = {}

    @classmethod
    def register(cls, name: str, provider_class: type["TTSProvider"]) -> None:
        """Make ``provider_class`` available as ``name``.

        Re-registering a name drops any instance built from the old class.
        """
        cls._providers[name] = provider_class
        cls._instances.pop(name, None)

    @classmethod
    def get(cls, name: str) -> type["TTSProvider"]:
        """Look up a provider class.

        Raises:
            KeyError: If nothing is registered under ``name``
        """
        try:
            return cls._providers[name]
        except KeyError:
            available = ", ".join(cls._providers) or "none"
            raise KeyError(
                f"Provider '{name}' not found. Available providers: {available}"
            ) from None

    @classmethod
    def get_instance(cls, name: str) -> "TTSProvider":
        """Return the shared instance for ``name``, constructing it on first use.

        Raises:
            KeyError: If nothing is registered under ``name``
        """
        instance = cls._instances.get(name)
        if instance is None:
            instance = cls._instances[name] = cls.get(name)()
        return instance

    @classmethod
    def names(cls) -> list[str]:
        return list(cls._providers)


ProviderRegistry.register("openai", OpenAIProvider)
ProviderRegistry.register("elevenlabs", ElevenLabsProvider)
