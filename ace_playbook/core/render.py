"""
Token-budgeted serialization of playbooks and bullet selections.

All views share one greedy walk over the canonical sections in declared order:
a section whose header no longer fits ends the walk; a bullet that no longer
fits ends its own section only. The result is always a prefix of the full
rendering, so earlier sections and bullets are never dropped in favour of
later ones, and the estimated cost of the text never exceeds the budget.
"""

from collections.abc import Iterable

from ace_playbook.utils import estimate_tokens

from .schema import PLAYBOOK_VERSION, Bullet, Playbook, SelectedBullet
from .sections import SECTION_KEYS, SECTION_TITLES

CURATOR_MAX_TOKENS = 2500
INJECTION_MAX_TOKENS = 1200
TEXT_MAX_TOKENS = 12000

# Blank line written after every emitted section
SECTION_GAP_TOKENS = 1


def render_budgeted(
    blocks: Iterable[tuple[str, list[str]]],
    max_tokens: int,
    preamble: list[str] | None = None,
) -> str:
    """Greedy prefix-preserving layout of (header, lines) blocks within max_tokens."""
    lines: list[str] = list(preamble or [])
    used = estimate_tokens("\n".join(lines)) if lines else 0
    if max_tokens <= 0 or used > max_tokens:
        return ""

    for header, bullet_lines in blocks:
        header_cost = estimate_tokens(header + "\n") + SECTION_GAP_TOKENS
        if used + header_cost > max_tokens:
            break
        lines.append(header)
        used += header_cost

        for line in bullet_lines:
            cost = estimate_tokens(line + "\n")
            if used + cost > max_tokens:
                break
            lines.append(line)
            used += cost
        lines.append("")

    return "\n".join(lines).strip()


def _ordered_section_keys(keys: Iterable[str]) -> list[str]:
    present = list(dict.fromkeys(keys))
    canonical = [k for k in SECTION_KEYS if k in present]
    return canonical + [k for k in present if k not in SECTION_KEYS]


def _curator_line(bullet: Bullet) -> str:
    return (
        f"- [{bullet.id}] hits={bullet.hit_count} helpful={bullet.helpful_count} "
        f"harmful={bullet.harmful_count} :: {bullet.content}"
    )


def _plain_line(bullet: Bullet) -> str:
    return f"- [{bullet.id}] {bullet.content}"


def _playbook_blocks(playbook: Playbook, with_counters: bool) -> list[tuple[str, list[str]]]:
    blocks = []
    line_fn = _curator_line if with_counters else _plain_line
    for key in SECTION_KEYS:
        section = playbook.sections.get(key)
        if section is None:
            continue
        title = section.title or SECTION_TITLES[key]
        blocks.append((f"## {title} ({key})", [line_fn(b) for b in section.bullets]))
    return blocks


def _playbook_preamble(playbook: Playbook) -> list[str]:
    return [
        f"playbook_version={playbook.version or PLAYBOOK_VERSION}",
        f"work_id={playbook.work_id}",
        "",
    ]


def render_playbook_for_curator(playbook: Playbook, max_tokens: int = CURATOR_MAX_TOKENS) -> str:
    """Whole playbook with usage counters, for the curator model to read."""
    return render_budgeted(
        _playbook_blocks(playbook, with_counters=True),
        max_tokens,
        preamble=_playbook_preamble(playbook),
    )


def render_playbook_as_text(playbook: Playbook, max_tokens: int = TEXT_MAX_TOKENS) -> str:
    """Whole playbook without counters, for display."""
    return render_budgeted(
        _playbook_blocks(playbook, with_counters=False),
        max_tokens,
        preamble=_playbook_preamble(playbook),
    )


def render_bullets_for_injection(
    selection: list[SelectedBullet], max_tokens: int = INJECTION_MAX_TOKENS
) -> str:
    """Selected bullets grouped by section, for splicing into a prompt."""
    if not selection:
        return ""

    grouped: dict[str, list[SelectedBullet]] = {}
    for item in selection:
        grouped.setdefault(item.section_key or "misc", []).append(item)

    blocks = []
    for key in _ordered_section_keys(grouped):
        items = grouped[key]
        title = items[0].section_title or SECTION_TITLES.get(key, key)
        blocks.append((f"【{title}】", [_plain_line(item.bullet) for item in items]))
    return render_budgeted(blocks, max_tokens)
