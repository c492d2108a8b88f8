# ace_playbook/pipeline.py
"""
Playbook memory loop for a conversational assistant.

Per turn:
  load playbook → select bullets for the user message → count hits and save
  in the background → render the selection into the system prompt.

After the turn, the reflector/curator models (outside this package) reply with
JSON; their feedback tags and ADD operations are folded back in here:
  tag bullets → apply delta operations → save.
"""

import logging
from dataclasses import dataclass
from typing import Any

from ace_playbook.core.config import ACEConfig
from ace_playbook.core.merge import MIN_CONTENT_CHARS, apply_delta_operations
from ace_playbook.core.render import (
    CURATOR_MAX_TOKENS,
    INJECTION_MAX_TOKENS,
    render_bullets_for_injection,
    render_playbook_for_curator,
)
from ace_playbook.core.retrieve import MAX_QUERY_TOKENS, MIN_SIMILARITY, Retriever
from ace_playbook.core.schema import ApplyResult, PromptAddon
from ace_playbook.core.store import PlaybookStore
from ace_playbook.core.usage import apply_bullet_tags, record_hits
from ace_playbook.curator.semantic_matcher import DEFAULT_DEDUP_THRESHOLD
from ace_playbook.embeddings.client import EmbeddingProvider
from ace_playbook.embeddings.factory import create_embedding_provider
from ace_playbook.reflector.parser import parse_curator_output, parse_reflector_output
from ace_playbook.utils import log_event

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 10
MAX_TOP_K = 30


def clamp_top_k(top_k: int | None) -> int:
    return max(1, min(MAX_TOP_K, top_k or DEFAULT_TOP_K))


async def get_system_prompt_addon(
    store: PlaybookStore,
    work_id: str | None,
    query: str | None,
    embedder: EmbeddingProvider | None = None,
    top_k: int | None = DEFAULT_TOP_K,
    max_tokens: int = INJECTION_MAX_TOKENS,
    retriever: Retriever | None = None,
) -> PromptAddon:
    """Select bullets for a prompt, count the hits and render them.

    The save triggered by the hit counters runs in the background; the caller
    gets the addon immediately whatever the outcome of that save.
    """
    playbook = await store.load(work_id)
    retriever = retriever or Retriever(embedder)
    selection = await retriever.select(playbook, query, clamp_top_k(top_k))

    if selection:
        record_hits(playbook, selection)
        store.save_in_background(work_id, playbook)

    return PromptAddon(text=render_bullets_for_injection(selection, max_tokens), bullets=selection)


@dataclass
class TurnUpdateResult:
    """Outcome of folding one turn's reflector/curator output into the playbook."""

    tagged: int
    added: int
    merged: int
    saved: bool


class PlaybookPipeline:
    """Wires store, retriever, applier and renderers together for one deployment."""

    def __init__(
        self,
        store: PlaybookStore,
        embedder: EmbeddingProvider | None = None,
        top_k: int = DEFAULT_TOP_K,
        min_similarity: float = MIN_SIMILARITY,
        max_query_tokens: int = MAX_QUERY_TOKENS,
        dedup_threshold: float = DEFAULT_DEDUP_THRESHOLD,
        min_content_chars: int = MIN_CONTENT_CHARS,
        injection_max_tokens: int = INJECTION_MAX_TOKENS,
        curator_max_tokens: int = CURATOR_MAX_TOKENS,
    ):
        self.store = store
        self.embedder = embedder
        self.top_k = top_k
        self.dedup_threshold = dedup_threshold
        self.min_content_chars = min_content_chars
        self.injection_max_tokens = injection_max_tokens
        self.curator_max_tokens = curator_max_tokens
        self.retriever = Retriever(
            embedder, min_similarity=min_similarity, max_query_tokens=max_query_tokens
        )

    @classmethod
    def from_config(
        cls, config: ACEConfig, store: PlaybookStore | None = None
    ) -> "PlaybookPipeline":
        return cls(
            store=store or PlaybookStore(db_url=config.database.url),
            embedder=create_embedding_provider(config.embeddings),
            top_k=config.retrieval.top_k,
            min_similarity=config.retrieval.min_similarity,
            max_query_tokens=config.retrieval.max_query_tokens,
            dedup_threshold=config.curation.dedup_threshold,
            min_content_chars=config.curation.min_content_chars,
            injection_max_tokens=config.render.injection_max_tokens,
            curator_max_tokens=config.render.curator_max_tokens,
        )

    async def get_system_prompt_addon(
        self, work_id: str | None, query: str | None, top_k: int | None = None
    ) -> PromptAddon:
        return await get_system_prompt_addon(
            self.store,
            work_id,
            query,
            embedder=self.embedder,
            top_k=top_k or self.top_k,
            max_tokens=self.injection_max_tokens,
            retriever=self.retriever,
        )

    async def render_for_curator(self, work_id: str | None) -> str:
        """Curator preview of the whole playbook. Does not count hits."""
        playbook = await self.store.load(work_id)
        return render_playbook_for_curator(playbook, self.curator_max_tokens)

    async def commit(self, work_id: str | None, operations: Any) -> ApplyResult:
        """Apply ADD operations and persist the result."""
        playbook = await self.store.load(work_id)
        result = await apply_delta_operations(
            playbook,
            operations if isinstance(operations, list) else [],
            embedder=self.embedder,
            threshold=self.dedup_threshold,
            min_content_chars=self.min_content_chars,
        )
        if result.added or result.merged:
            await self.store.save(work_id, result.playbook)
        return result

    async def tag(self, work_id: str | None, tags: Any) -> int:
        """Apply helpful/harmful feedback and persist. Returns counters updated."""
        playbook = await self.store.load(work_id)
        playbook, updated = apply_bullet_tags(playbook, tags)
        if updated:
            await self.store.save(work_id, playbook)
        return updated

    async def update_from_turn(
        self,
        work_id: str | None,
        reflector_text: str | None,
        curator_text: str | None,
    ) -> TurnUpdateResult:
        """Fold raw reflector and curator replies for one turn into the playbook."""
        playbook = await self.store.load(work_id)

        reflection = parse_reflector_output(reflector_text or "")
        playbook, tagged = apply_bullet_tags(playbook, reflection.bullet_tags)

        curation = parse_curator_output(curator_text or "")
        result = await apply_delta_operations(
            playbook,
            curation.operations,
            embedder=self.embedder,
            threshold=self.dedup_threshold,
            min_content_chars=self.min_content_chars,
        )

        saved = False
        if tagged or result.added or result.merged:
            saved = await self.store.save(work_id, result.playbook)

        log_event(
            "turn_update",
            {
                "work_id": playbook.work_id,
                "tagged": tagged,
                "added": result.added,
                "merged": result.merged,
                "saved": saved,
            },
        )
        return TurnUpdateResult(
            tagged=tagged, added=result.added, merged=result.merged, saved=saved
        )

    async def reset(self, work_id: str | None):
        return await self.store.reset(work_id)
