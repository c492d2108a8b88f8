"""
Per-work playbook persistence.

Each work id maps to one document in a key-value backend. Loads repair
whatever they find (missing fields, missing sections, stray bullets) rather
than rejecting it; saves are best-effort and never raise.
"""

import asyncio
import logging
from typing import Any

from pydantic import ValidationError

from ace_playbook.utils import generate_bullet_id, now_iso, parse_bullet_seq

from .schema import PLAYBOOK_VERSION, Bullet, Playbook, Section
from .sections import DEFAULT_SECTIONS, SECTION_TITLES, classify_section
from .storage.kv_store import KeyValueBackend, SQLiteKeyValueBackend

logger = logging.getLogger(__name__)

STORAGE_PREFIX = "author-ace-playbook-"
DEFAULT_WORK_ID = "work-default"


def normalize_work_id(work_id: str | None) -> str:
    return (work_id or "").strip() or DEFAULT_WORK_ID


def storage_key(work_id: str | None) -> str:
    return STORAGE_PREFIX + normalize_work_id(work_id)


def make_empty_playbook(work_id: str | None) -> Playbook:
    now = now_iso()
    return Playbook(
        version=PLAYBOOK_VERSION,
        work_id=normalize_work_id(work_id),
        created_at=now,
        updated_at=now,
        next_bullet_seq=1,
        sections={key: Section(title=title) for key, title in DEFAULT_SECTIONS},
    )


def allocate_id(playbook: Playbook) -> str:
    """Hand out the next bullet id and advance the playbook's own counter."""
    n = max(1, playbook.next_bullet_seq)
    playbook.next_bullet_seq = n + 1
    return generate_bullet_id(n)


def ensure_sections(playbook: Playbook) -> Playbook:
    """Make the sections exactly the canonical set, in declared order.

    Bullets stored under any other key are appended, in order, to the canonical
    section that key classifies to.
    """
    ordered: dict[str, Section] = {}
    for key, title in DEFAULT_SECTIONS:
        section = playbook.sections.get(key)
        if section is None:
            section = Section(title=title)
        elif not section.title.strip():
            section.title = title
        ordered[key] = section
    for key, section in playbook.sections.items():
        if key not in ordered:
            target = classify_section(key)
            ordered[target].bullets.extend(section.bullets)
            logger.info(f"Folded section {key!r} into {target} ({len(section.bullets)} bullets)")
    playbook.sections = ordered
    return playbook


_COUNTER_KEYS = ("hit_count", "hits", "helpful_count", "helpful", "harmful_count", "harmful")
_TIMESTAMP_KEYS = ("created_at", "createdAt", "updated_at", "updatedAt")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _drop_bad_fields(data: dict[str, Any], int_keys: tuple[str, ...]) -> None:
    for key in int_keys:
        if key in data and not _is_int(data[key]):
            del data[key]
    for key in _TIMESTAMP_KEYS:
        if key in data and not isinstance(data[key], str):
            del data[key]


def _repair_bullet(raw: Any, section_key: str) -> dict[str, Any] | None:
    if not isinstance(raw, dict):
        logger.warning(f"Dropping non-object bullet in section {section_key}")
        return None
    content = raw.get("content")
    if not isinstance(content, str) or not content.strip():
        logger.warning(f"Dropping bullet {raw.get('id')!r} in {section_key}: no content")
        return None
    bullet = dict(raw)
    if not isinstance(bullet.get("id"), str):
        bullet["id"] = ""
    embedding = bullet.get("embedding")
    if embedding is not None and not (
        isinstance(embedding, list)
        and embedding
        and all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in embedding)
    ):
        bullet["embedding"] = None
    _drop_bad_fields(bullet, _COUNTER_KEYS)
    try:
        Bullet.model_validate(bullet)
    except ValidationError as e:
        logger.warning(f"Dropping malformed bullet {bullet.get('id')!r}: {e}")
        return None
    return bullet


def repair_playbook(raw: Any, work_id: str | None) -> Playbook:
    """Build a valid Playbook from a possibly damaged stored document."""
    wid = normalize_work_id(work_id)
    if not isinstance(raw, dict):
        return make_empty_playbook(wid)

    data = dict(raw)
    if not _is_int(data.get("version")) or not data["version"]:
        data["version"] = PLAYBOOK_VERSION
    stored_wid = data.get("work_id") or data.get("workId")
    data.pop("workId", None)
    data["work_id"] = stored_wid if isinstance(stored_wid, str) and stored_wid.strip() else wid
    _drop_bad_fields(data, ("next_bullet_seq", "nextId"))

    raw_sections = data.get("sections")
    sections: dict[str, dict[str, Any]] = {}
    if isinstance(raw_sections, dict):
        for key, sec in raw_sections.items():
            if not isinstance(sec, dict):
                continue
            title = sec.get("title")
            raw_bullets = sec.get("bullets")
            bullets = [
                b
                for b in (
                    _repair_bullet(item, str(key))
                    for item in (raw_bullets if isinstance(raw_bullets, list) else [])
                )
                if b is not None
            ]
            sections[str(key)] = {
                "title": title if isinstance(title, str) else SECTION_TITLES.get(key, str(key)),
                "bullets": bullets,
            }
    data["sections"] = sections

    try:
        playbook = Playbook.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Stored playbook for {wid} is unreadable, starting fresh: {e}")
        return make_empty_playbook(wid)

    ensure_sections(playbook)

    # Never reissue an id that is already in the store
    highest = max(
        (parse_bullet_seq(b.id) or 0 for b in playbook.all_bullets()),
        default=0,
    )
    playbook.next_bullet_seq = max(1, playbook.next_bullet_seq, highest + 1)
    seen: set[str] = set()
    for bullet in playbook.all_bullets():
        if not bullet.id or bullet.id in seen:
            bullet.id = allocate_id(playbook)
        seen.add(bullet.id)
    return playbook


class PlaybookStore:
    """Load/save playbooks for many works through one key-value backend."""

    def __init__(self, backend: KeyValueBackend | None = None, db_url: str | None = None):
        """
        Args:
            backend: Key-value backend to persist into. Defaults to sqlite at db_url.
            db_url: sqlite URL used when no backend is given.
        """
        self.backend = backend if backend is not None else SQLiteKeyValueBackend(db_url)
        self._pending: set[asyncio.Task] = set()
        # Works whose stored document could not be read; saving them would clobber it
        self._unreadable: set[str] = set()

    async def load(self, work_id: str | None) -> Playbook:
        """Return the stored playbook for work_id, creating and persisting one if absent."""
        wid = normalize_work_id(work_id)
        key = storage_key(wid)
        try:
            raw = await self.backend.get(key)
        except Exception as e:
            # Do not persist over a document we merely failed to read
            logger.warning(f"Failed to read playbook for {wid}, using an empty one: {e}")
            self._unreadable.add(wid)
            return make_empty_playbook(wid)
        self._unreadable.discard(wid)
        if raw is not None:
            return repair_playbook(raw, wid)

        fresh = make_empty_playbook(wid)
        await self.save(wid, fresh)
        return fresh

    async def save(self, work_id: str | None, playbook: Playbook) -> bool:
        """Persist playbook. Failures are logged and reported as False, never raised."""
        wid = normalize_work_id(work_id)
        if wid in self._unreadable:
            logger.warning(f"Not saving playbook for {wid}: last load could not read the store")
            return False
        try:
            payload = playbook.model_dump(mode="json")
            await self.backend.set(storage_key(wid), payload)
        except Exception as e:
            logger.warning(f"Failed to save playbook for {wid}: {e}")
            return False
        logger.debug(f"Saved playbook for {wid} ({len(playbook.all_bullets())} bullets)")
        return True

    def save_in_background(self, work_id: str | None, playbook: Playbook) -> None:
        """Schedule a save without waiting for it. Needs a running event loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; background save skipped")
            return
        task = loop.create_task(self.save(work_id, playbook))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def wait_for_pending_saves(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def reset(self, work_id: str | None) -> Playbook:
        """Replace the stored playbook with an empty one."""
        fresh = make_empty_playbook(work_id)
        self._unreadable.discard(fresh.work_id)
        await self.save(work_id, fresh)
        return fresh

    def close(self) -> None:
        self.backend.close()
