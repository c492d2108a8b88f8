# ace_playbook/core/merge.py
"""
Incremental delta application.

The curator never rewrites the playbook; it proposes ADD operations and this
module folds them in one at a time. Each candidate is either merged into an
existing bullet of its section (exact text match, or embedding similarity at
or above the dedup threshold) or appended as a new bullet. Nothing else in the
playbook is touched, which is what keeps accumulated knowledge from collapsing.
"""

import logging
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from ace_playbook.curator.semantic_matcher import DEFAULT_DEDUP_THRESHOLD, SemanticMatcher
from ace_playbook.embeddings.client import EmbeddingProvider, embed_text
from ace_playbook.utils import count_non_whitespace, log_event, now_iso

from .schema import AddOperation, ApplyResult, Bullet, Playbook, Section
from .sections import SECTION_TITLES
from .store import allocate_id, ensure_sections

logger = logging.getLogger(__name__)

MIN_CONTENT_CHARS = 8


def parse_operation(raw: Any) -> AddOperation | None:
    """Validate one untrusted operation payload; None for anything not a usable ADD."""
    if isinstance(raw, AddOperation):
        return raw
    if not isinstance(raw, dict):
        return None
    op_type = str(raw.get("type") or "").strip().upper()
    if op_type != "ADD":
        return None
    content = raw.get("content")
    if not isinstance(content, str) or not content.strip():
        return None
    try:
        return AddOperation(section=raw.get("section"), content=content.strip())
    except ValidationError as e:
        logger.debug(f"Discarding malformed operation: {e}")
        return None


def parse_operations(raw: Any) -> list[AddOperation]:
    """Keep only well-formed ADD operations from an untrusted list, in order."""
    if not isinstance(raw, list):
        return []
    ops = []
    for item in raw:
        op = parse_operation(item)
        if op is not None:
            ops.append(op)
    return ops


def _merge_into(bullet: Bullet, now: str) -> None:
    bullet.hit_count += 1
    bullet.touch(now)


async def apply_delta_operations(
    playbook: Playbook,
    operations: Iterable[AddOperation | dict[str, Any]] | None,
    embedder: EmbeddingProvider | None = None,
    threshold: float = DEFAULT_DEDUP_THRESHOLD,
    min_content_chars: int = MIN_CONTENT_CHARS,
) -> ApplyResult:
    """
    Apply curator operations to a playbook in place.

    Args:
        playbook: Playbook to mutate
        operations: Raw or parsed operations; anything but a valid ADD is ignored
        embedder: Embedding provider, or None to dedup on exact text only
        threshold: Cosine similarity at or above which a candidate is merged
        min_content_chars: Minimum non-whitespace characters for a candidate

    Returns:
        ApplyResult with the playbook and the number of added / merged bullets
    """
    ensure_sections(playbook)
    ops = parse_operations(list(operations or []))
    matcher = SemanticMatcher(threshold=threshold)
    now = now_iso()

    added = 0
    merged = 0

    for op in ops:
        content = op.content.strip()
        if count_non_whitespace(content) < min_content_chars:
            logger.debug(f"Skipping short candidate: {content!r}")
            continue

        section = playbook.sections.get(op.section)
        if section is None:
            section = playbook.sections[op.section] = Section(title=SECTION_TITLES[op.section])

        existing = matcher.find_exact(content, section.bullets)
        if existing is not None:
            _merge_into(existing, now)
            merged += 1
            logger.debug(f"Merged exact duplicate into {existing.id}")
            continue

        embedding = None
        if embedder is not None:
            embedding = await embed_text(embedder, content)
            near, score = matcher.find_near_duplicate(embedding, section.bullets)
            if near is not None:
                _merge_into(near, now)
                merged += 1
                logger.debug(f"Merged near duplicate into {near.id} (cosine={score:.3f})")
                continue

        bullet = Bullet(
            id=allocate_id(playbook),
            content=content,
            embedding=embedding,
            created_at=now,
            updated_at=now,
        )
        section.bullets.append(bullet)
        added += 1
        logger.debug(f"Added {bullet.id} to {op.section}")

    if added or merged:
        playbook.touch(now)

    log_event(
        "delta_applied",
        {
            "work_id": playbook.work_id,
            "operations": len(ops),
            "added": added,
            "merged": merged,
        },
    )
    return ApplyResult(playbook=playbook, added=added, merged=merged)
