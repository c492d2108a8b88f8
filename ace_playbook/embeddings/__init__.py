from ace_playbook.embeddings.client import (
    EmbeddingError,
    EmbeddingProvider,
    GeminiEmbeddingProvider,
    MockEmbeddingProvider,
    OpenAICompatibleEmbeddingProvider,
    SentenceTransformerEmbeddingProvider,
    cosine_similarity,
    embed_text,
)
from ace_playbook.embeddings.factory import create_embedding_provider

__all__ = [
    "EmbeddingError",
    "EmbeddingProvider",
    "GeminiEmbeddingProvider",
    "MockEmbeddingProvider",
    "OpenAICompatibleEmbeddingProvider",
    "SentenceTransformerEmbeddingProvider",
    "cosine_similarity",
    "create_embedding_provider",
    "embed_text",
]
