"""Factory for creating embedding providers from configuration."""

from ace_playbook.core.config import EmbeddingsConfig, get_config
from ace_playbook.embeddings.client import (
    EmbeddingProvider,
    GeminiEmbeddingProvider,
    MockEmbeddingProvider,
    OpenAICompatibleEmbeddingProvider,
    SentenceTransformerEmbeddingProvider,
)


def create_embedding_provider(config: EmbeddingsConfig | None = None) -> EmbeddingProvider | None:
    """Create an embedding provider based on configuration.

    Args:
        config: EmbeddingsConfig to use. If None, loads from global config.

    Returns:
        EmbeddingProvider instance, or None when embeddings are disabled.

    Raises:
        ValueError: If provider is not supported.
    """
    if config is None:
        config = get_config().embeddings

    if not config.enabled:
        return None

    provider = config.provider.lower()

    if provider == "mock":
        return MockEmbeddingProvider(max_chars=config.max_chars)
    elif provider == "openai":
        return OpenAICompatibleEmbeddingProvider(
            api_key=config.api_key or None,
            model=config.model,
            base_url=config.base_url or None,
            max_chars=config.max_chars,
        )
    elif provider == "gemini":
        return GeminiEmbeddingProvider(
            api_key=config.api_key or None,
            model=config.model,
            base_url=config.base_url or None,
            max_chars=config.max_chars,
        )
    elif provider == "local":
        return SentenceTransformerEmbeddingProvider(model=config.model, max_chars=config.max_chars)
    else:
        raise ValueError(
            f"Unsupported embedding provider: {config.provider}. "
            f"Supported providers: openai, gemini, local, mock"
        )
