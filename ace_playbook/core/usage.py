# ace_playbook/core/usage.py
import logging
from typing import Any

from ace_playbook.utils import now_iso

from .schema import BulletFeedback, Playbook, SelectedBullet

logger = logging.getLogger(__name__)


def record_hits(playbook: Playbook, selection: list[SelectedBullet]) -> int:
    """Count one hit on every bullet injected into a prompt. Returns bullets touched."""
    if not selection:
        return 0
    now = now_iso()
    for item in selection:
        item.bullet.hit_count += 1
        item.bullet.touch(now)
    playbook.touch(now)
    return len(selection)


def parse_bullet_tags(raw: Any) -> list[BulletFeedback]:
    """Keep well-formed {id, tag} entries; tags are case-insensitive."""
    if not isinstance(raw, list):
        return []
    tags = []
    for item in raw:
        if isinstance(item, BulletFeedback):
            tags.append(item)
            continue
        if not isinstance(item, dict):
            continue
        bullet_id = str(item.get("id") or "").strip()
        tag = str(item.get("tag") or "").strip().lower()
        if not bullet_id or tag not in ("helpful", "harmful", "neutral"):
            continue
        tags.append(BulletFeedback(id=bullet_id, tag=tag))
    return tags


def apply_bullet_tags(playbook: Playbook, raw_tags: Any) -> tuple[Playbook, int]:
    """
    Apply helpful/harmful feedback to the referenced bullets.

    Neutral tags, unknown ids and malformed entries are ignored.

    Returns:
        (playbook, number of counter updates applied)
    """
    updated = 0
    now = now_iso()
    for fb in parse_bullet_tags(raw_tags):
        if fb.tag == "neutral":
            continue
        bullet = playbook.find_bullet(fb.id)
        if bullet is None:
            logger.debug(f"Feedback for unknown bullet {fb.id} ignored")
            continue
        if fb.tag == "helpful":
            bullet.helpful_count += 1
        else:
            bullet.harmful_count += 1
        bullet.touch(now)
        updated += 1
    if updated:
        playbook.touch(now)
    return playbook, updated
