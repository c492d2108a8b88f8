import asyncio
import hashlib
import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, Optional

import numpy as np
import requests

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 2000


class EmbeddingError(Exception):
    """Raised by providers when a vector could not be produced."""

    pass


def cosine_similarity(vec1: Sequence[float] | None, vec2: Sequence[float] | None) -> float:
    """Cosine similarity of two vectors; 0.0 when either is empty, zero or the sizes differ."""
    if not vec1 or not vec2 or len(vec1) != len(vec2):
        return 0.0
    a = np.asarray(vec1, dtype=np.float64)
    b = np.asarray(vec2, dtype=np.float64)
    norm = float(np.linalg.norm(a) * np.linalg.norm(b))
    if norm == 0.0:
        return 0.0
    return float(np.dot(a, b) / norm)


class EmbeddingProvider(ABC):
    """
    Abstract base class for embedding providers.

    Implementations may raise anything on failure; callers go through
    embed_text(), which turns every failure into "no embedding".
    """

    max_chars: int = DEFAULT_MAX_CHARS

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """
        Produce an embedding vector for text.

        Args:
            text: Input text, already truncated to max_chars

        Returns:
            The embedding as a list of floats
        """
        pass


async def embed_text(provider: EmbeddingProvider | None, text: str) -> list[float] | None:
    """Embed text, returning None instead of raising when the provider fails."""
    if provider is None:
        return None
    try:
        vector = await provider.embed(text[: provider.max_chars])
    except Exception as e:
        logger.warning(f"Embedding failed ({type(e).__name__}: {e}); continuing without it")
        return None
    if not vector:
        return None
    return [float(x) for x in vector]


class MockEmbeddingProvider(EmbeddingProvider):
    """
    Deterministic embedding provider for tests and offline use.

    Texts listed in ``vectors`` get exactly that vector; any other text gets a
    stable pseudo-random unit vector derived from its SHA-256 digest.
    """

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        dim: int = 8,
        fail: bool = False,
        max_chars: int = DEFAULT_MAX_CHARS,
    ):
        self.vectors = dict(vectors or {})
        self.dim = dim
        self.fail = fail
        self.max_chars = max_chars
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise EmbeddingError("mock provider configured to fail")
        if text in self.vectors:
            return list(self.vectors[text])
        seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "big")
        rng = np.random.default_rng(seed)
        vec = rng.normal(size=self.dim)
        return (vec / np.linalg.norm(vec)).tolist()


class OpenAICompatibleEmbeddingProvider(EmbeddingProvider):
    """
    Embeddings over any OpenAI-compatible ``/embeddings`` endpoint.

    Works for OpenAI itself and for the many vendors that mirror its API
    (Zhipu, SiliconFlow, DeepSeek, Moonshot, ...) via ``base_url``.
    """

    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "text-embedding-3-small",
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        max_chars: int = DEFAULT_MAX_CHARS,
    ):
        self.api_key = api_key or os.getenv("ACE_EMBEDDINGS_API_KEY")
        self.model = model
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.max_chars = max_chars
        logger.info(f"Initialized OpenAICompatibleEmbeddingProvider with model: {model}")

    async def embed(self, text: str) -> list[float]:
        return await asyncio.to_thread(self._embed_sync, text)

    def _embed_sync(self, text: str) -> list[float]:
        if not self.api_key:
            raise EmbeddingError("No embedding API key configured (ACE_EMBEDDINGS_API_KEY)")
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {"input": text, "model": self.model}
        try:
            response = requests.post(
                f"{self.base_url}/embeddings",
                headers=headers,
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data: Any = response.json()
            return list(data["data"][0]["embedding"])
        except requests.exceptions.RequestException as e:
            raise EmbeddingError(f"Embedding API request failed: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise EmbeddingError(f"Failed to parse embedding response: {e}") from e


class GeminiEmbeddingProvider(EmbeddingProvider):
    """Embeddings via the native Gemini ``embedContent`` endpoint."""

    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "text-embedding-004",
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        max_chars: int = DEFAULT_MAX_CHARS,
    ):
        self.api_key = api_key or os.getenv("ACE_EMBEDDINGS_API_KEY")
        self.model = model
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.max_chars = max_chars
        logger.info(f"Initialized GeminiEmbeddingProvider with model: {model}")

    async def embed(self, text: str) -> list[float]:
        return await asyncio.to_thread(self._embed_sync, text)

    def _embed_sync(self, text: str) -> list[float]:
        if not self.api_key:
            raise EmbeddingError("No embedding API key configured (ACE_EMBEDDINGS_API_KEY)")
        payload = {
            "model": f"models/{self.model}",
            "content": {"parts": [{"text": text}]},
        }
        try:
            response = requests.post(
                f"{self.base_url}/models/{self.model}:embedContent",
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return list(response.json()["embedding"]["values"])
        except requests.exceptions.RequestException as e:
            raise EmbeddingError(f"Gemini embedding request failed: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise EmbeddingError(f"Failed to parse Gemini embedding response: {e}") from e


class SentenceTransformerEmbeddingProvider(EmbeddingProvider):
    """Local embeddings (all-MiniLM-L6-v2 by default: 384d, Apache 2.0 license)."""

    def __init__(
        self,
        model: str = "sentence-transformers/all-MiniLM-L6-v2",
        max_chars: int = DEFAULT_MAX_CHARS,
    ):
        self.model_name = model
        self.max_chars = max_chars
        self._model: Any | None = None

    def _get_model(self) -> Any:
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            self._model = SentenceTransformer(self.model_name)
        return self._model

    async def embed(self, text: str) -> list[float]:
        return await asyncio.to_thread(self._embed_sync, text)

    def _embed_sync(self, text: str) -> list[float]:
        embedding = self._get_model().encode(text, convert_to_numpy=True)
        return np.asarray(embedding, dtype=np.float32).tolist()
