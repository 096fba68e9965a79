"""Backend registry with configuration-driven provider selection.

Maps provider name strings to backend classes. Use get_backend() to
instantiate a backend by name with backend-specific configuration.
"""

from audio_transcriber.backend.gemini import GeminiBackend
from audio_transcriber.backend.interface import MediaBackend
from audio_transcriber.utils.errors import ConfigurationError

BACKENDS: dict[str, type[MediaBackend]] = {
    "gemini": GeminiBackend,
}


def get_backend(provider: str, **kwargs: object) -> MediaBackend:
    """Create a backend instance by provider name.

    Args:
        provider: Provider name (e.g., "gemini").
        **kwargs: Backend-specific configuration passed to the constructor.

    Raises:
        ConfigurationError: If the provider name is not registered.
    """
    backend_cls = BACKENDS.get(provider)
    if not backend_cls:
        available = ", ".join(sorted(BACKENDS.keys()))
        raise ConfigurationError(
            f"Unknown backend provider: '{provider}'. Available: {available}"
        )
    return backend_cls(**kwargs)
