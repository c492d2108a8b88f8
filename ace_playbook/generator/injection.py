PROMPT_BLOCK_SEPARATOR = "\n\n---\n\n"
ADDON_HEADER = "【ACE Playbook (conversation memory, for reference only)】"


def inject_addon_into_system_prompt(system_prompt: str | None, addon_text: str | None) -> str:
    """Splice playbook text into a system prompt made of ``---``-separated blocks.

    The addon goes right before the final block (usually the task instruction)
    so it stays salient; a single-block prompt gets it appended.
    """
    base = system_prompt or ""
    if not addon_text:
        return base
    section = f"{ADDON_HEADER}\n{addon_text}"
    if not base:
        return section
    parts = base.split(PROMPT_BLOCK_SEPARATOR)
    if len(parts) >= 2:
        parts.insert(len(parts) - 1, section)
    else:
        parts.append(section)
    return PROMPT_BLOCK_SEPARATOR.join(parts)
