# ace_playbook/core/retrieve.py

from ace_playbook.embeddings.client import EmbeddingProvider, cosine_similarity, embed_text

from .schema import Playbook, SelectedBullet

MIN_SIMILARITY = 0.25
MAX_QUERY_TOKENS = 8
MIN_TOKEN_CHARS = 2


def flatten_bullets(playbook: Playbook) -> list[SelectedBullet]:
    """All bullets with their section metadata, in section then insertion order."""
    flat = []
    for section_key, section in playbook.sections.items():
        for bullet in section.bullets:
            flat.append(
                SelectedBullet(
                    section_key=section_key,
                    section_title=section.title or section_key,
                    bullet=bullet,
                )
            )
    return flat


def _recency_key(item: SelectedBullet) -> str:
    return item.bullet.updated_at or item.bullet.created_at or ""


def select_recent(playbook: Playbook, top_k: int) -> list[SelectedBullet]:
    flat = flatten_bullets(playbook)
    # sorted() is stable, so equal timestamps keep flatten order
    return sorted(flat, key=_recency_key, reverse=True)[:top_k]


def select_by_vector(
    playbook: Playbook,
    query_vector: list[float],
    top_k: int,
    min_similarity: float = MIN_SIMILARITY,
) -> list[SelectedBullet]:
    scored = []
    for item in flatten_bullets(playbook):
        if not item.bullet.embedding:
            continue
        score = cosine_similarity(query_vector, item.bullet.embedding)
        if score > min_similarity:
            item.score = score
            scored.append(item)
    scored.sort(key=lambda x: x.score, reverse=True)
    return scored[:top_k]


def select_by_keywords(
    playbook: Playbook,
    query: str,
    top_k: int,
    max_query_tokens: int = MAX_QUERY_TOKENS,
) -> list[SelectedBullet]:
    """Naive lexical fallback: count query tokens that occur as substrings of the content."""
    tokens = [t for t in query.lower().split() if t][:max_query_tokens]
    scored = []
    for item in flatten_bullets(playbook):
        text = item.bullet.content.lower()
        score = sum(1 for tok in tokens if len(tok) >= MIN_TOKEN_CHARS and tok in text)
        if score > 0:
            item.score = float(score)
            scored.append(item)
    scored.sort(key=lambda x: x.score, reverse=True)
    return scored[:top_k]


class Retriever:
    """Rank playbook bullets against a query. Never mutates the playbook."""

    def __init__(
        self,
        embedder: EmbeddingProvider | None = None,
        min_similarity: float = MIN_SIMILARITY,
        max_query_tokens: int = MAX_QUERY_TOKENS,
    ):
        self.embedder = embedder
        self.min_similarity = min_similarity
        self.max_query_tokens = max_query_tokens

    async def select(
        self, playbook: Playbook, query: str | None, top_k: int = 10
    ) -> list[SelectedBullet]:
        """
        Pick up to top_k bullets for a query.

        - Empty query: most recently updated first.
        - Embeddings available: cosine similarity against the query vector,
          keeping scores above min_similarity.
        - Otherwise (disabled, or the embedding call failed): keyword overlap.
        """
        top_k = max(0, top_k)
        q = (query or "").strip()
        if not q:
            return select_recent(playbook, top_k)

        if self.embedder is not None:
            query_vector = await embed_text(self.embedder, q)
            if query_vector:
                return select_by_vector(playbook, query_vector, top_k, self.min_similarity)

        return select_by_keywords(playbook, q, top_k, self.max_query_tokens)


async def select_bullets(
    playbook: Playbook,
    query: str | None,
    embedder: EmbeddingProvider | None = None,
    top_k: int = 10,
) -> list[SelectedBullet]:
    return await Retriever(embedder).select(playbook, query, top_k)
