# tests/test_embeddings.py
from unittest.mock import MagicMock, patch

import pytest
import requests

from ace_playbook.core.config import EmbeddingsConfig
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


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def _config(**overrides):
    values = dict(
        enabled=True,
        provider="mock",
        model="text-embedding-3-small",
        base_url="",
        api_key="",
        max_chars=2000,
    )
    values.update(overrides)
    return EmbeddingsConfig(**values)


class TestCosineSimilarity:
    def test_identical(self):
        assert cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)

    def test_orthogonal(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 3.0]) == pytest.approx(0.0)

    def test_opposite(self):
        assert cosine_similarity([1.0, 0.0], [-2.0, 0.0]) == pytest.approx(-1.0)

    @pytest.mark.parametrize(
        "a,b",
        [([], [1.0]), (None, [1.0]), ([1.0, 0.0], [1.0]), ([0.0, 0.0], [1.0, 1.0])],
    )
    def test_degenerate_inputs(self, a, b):
        assert cosine_similarity(a, b) == 0.0


class TestEmbedText:
    def test_provider_is_abstract(self):
        with pytest.raises(TypeError):
            EmbeddingProvider()  # type: ignore

    @pytest.mark.asyncio
    async def test_no_provider(self):
        assert await embed_text(None, "anything") is None

    @pytest.mark.asyncio
    async def test_failure_becomes_none(self):
        assert await embed_text(MockEmbeddingProvider(fail=True), "anything") is None

    @pytest.mark.asyncio
    async def test_input_is_truncated(self):
        provider = MockEmbeddingProvider(max_chars=5)
        await embed_text(provider, "abcdefgh")
        assert provider.calls == ["abcde"]

    @pytest.mark.asyncio
    async def test_mock_is_deterministic_unit_vector(self):
        provider = MockEmbeddingProvider(dim=16)
        first = await embed_text(provider, "same text")
        second = await embed_text(provider, "same text")
        assert first == second
        assert len(first) == 16
        assert cosine_similarity(first, first) == pytest.approx(1.0)
        assert sum(x * x for x in first) == pytest.approx(1.0)


class TestOpenAICompatibleProvider:
    @pytest.mark.asyncio
    async def test_posts_to_embeddings_endpoint(self):
        provider = OpenAICompatibleEmbeddingProvider(
            api_key="sk-test", model="embed-small", base_url="https://llm.example.com/v1/"
        )
        with patch("ace_playbook.embeddings.client.requests.post") as post:
            post.return_value = _response({"data": [{"embedding": [0.1, 0.2, 0.3]}]})
            vector = await provider.embed("hello")

        assert vector == [0.1, 0.2, 0.3]
        args, kwargs = post.call_args
        assert args[0] == "https://llm.example.com/v1/embeddings"
        assert kwargs["json"] == {"input": "hello", "model": "embed-small"}
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"

    @pytest.mark.asyncio
    async def test_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("ACE_EMBEDDINGS_API_KEY", "sk-env")
        provider = OpenAICompatibleEmbeddingProvider()
        assert provider.api_key == "sk-env"

    @pytest.mark.asyncio
    async def test_missing_key(self):
        provider = OpenAICompatibleEmbeddingProvider()
        with pytest.raises(EmbeddingError):
            await provider.embed("hello")
        assert await embed_text(provider, "hello") is None

    @pytest.mark.asyncio
    async def test_http_error(self):
        provider = OpenAICompatibleEmbeddingProvider(api_key="sk-test")
        with patch("ace_playbook.embeddings.client.requests.post") as post:
            post.side_effect = requests.exceptions.ConnectionError("refused")
            with pytest.raises(EmbeddingError):
                await provider.embed("hello")

    @pytest.mark.asyncio
    async def test_malformed_response(self):
        provider = OpenAICompatibleEmbeddingProvider(api_key="sk-test")
        with patch("ace_playbook.embeddings.client.requests.post") as post:
            post.return_value = _response({"data": []})
            assert await embed_text(provider, "hello") is None


class TestGeminiProvider:
    @pytest.mark.asyncio
    async def test_embed_content(self):
        provider = GeminiEmbeddingProvider(api_key="g-test", model="text-embedding-004")
        with patch("ace_playbook.embeddings.client.requests.post") as post:
            post.return_value = _response({"embedding": {"values": [0.5, 0.5]}})
            vector = await provider.embed("hello")

        assert vector == [0.5, 0.5]
        args, kwargs = post.call_args
        assert args[0].endswith("/models/text-embedding-004:embedContent")
        assert kwargs["params"] == {"key": "g-test"}
        assert kwargs["json"]["content"] == {"parts": [{"text": "hello"}]}


class TestFactory:
    def test_disabled(self):
        assert create_embedding_provider(_config(enabled=False)) is None

    def test_mock(self):
        provider = create_embedding_provider(_config(max_chars=50))
        assert isinstance(provider, MockEmbeddingProvider)
        assert provider.max_chars == 50

    def test_openai(self):
        provider = create_embedding_provider(
            _config(provider="openai", base_url="https://api.siliconflow.cn/v1", api_key="k")
        )
        assert isinstance(provider, OpenAICompatibleEmbeddingProvider)
        assert provider.base_url == "https://api.siliconflow.cn/v1"
        assert provider.api_key == "k"

    def test_gemini(self):
        provider = create_embedding_provider(_config(provider="gemini", model="text-embedding-004"))
        assert isinstance(provider, GeminiEmbeddingProvider)

    def test_local_does_not_load_model_eagerly(self):
        provider = create_embedding_provider(_config(provider="local", model="all-MiniLM-L6-v2"))
        assert isinstance(provider, SentenceTransformerEmbeddingProvider)
        assert provider._model is None

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unsupported embedding provider"):
            create_embedding_provider(_config(provider="word2vec"))
