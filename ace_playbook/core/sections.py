"""Canonical playbook sections and the label classifier.

Every playbook carries exactly these sections, in this order. Free-form labels
coming from the curator model (English, Chinese, singular/plural, etc.) are
folded onto one of them; anything unrecognized lands in ``misc``.
"""

from typing import Literal

SectionKey = Literal["preferences", "project", "workflow", "open_threads", "misc"]

# Declared order matters: renderers walk sections in this order when truncating.
DEFAULT_SECTIONS: tuple[tuple[SectionKey, str], ...] = (
    ("preferences", "Preferences / output format"),
    ("project", "Project / work context"),
    ("workflow", "Workflow / tool usage"),
    ("open_threads", "Open threads / todos"),
    ("misc", "Other"),
)

SECTION_KEYS: tuple[SectionKey, ...] = tuple(key for key, _ in DEFAULT_SECTIONS)
SECTION_TITLES: dict[str, str] = dict(DEFAULT_SECTIONS)

SECTION_ALIASES: dict[str, SectionKey] = {
    # preferences
    "preference": "preferences",
    "preferences": "preferences",
    "pref": "preferences",
    "prefs": "preferences",
    "style": "preferences",
    "format": "preferences",
    "output": "preferences",
    "偏好": "preferences",
    "输出": "preferences",
    "格式": "preferences",
    # project
    "project": "project",
    "context": "project",
    "work": "project",
    "setting": "project",
    "作品": "project",
    "设定": "project",
    # workflow
    "workflow": "workflow",
    "tool": "workflow",
    "tools": "workflow",
    "process": "workflow",
    "工具": "workflow",
    "工作流": "workflow",
    # open_threads
    "open": "open_threads",
    "open_threads": "open_threads",
    "open threads": "open_threads",
    "todo": "open_threads",
    "todos": "open_threads",
    "待办": "open_threads",
    "未决": "open_threads",
    # misc
    "misc": "misc",
    "other": "misc",
    "others": "misc",
    "其他": "misc",
}


def classify_section(raw_label: object) -> SectionKey:
    """Map any label onto a canonical section key. Never raises."""
    if raw_label is None:
        return "misc"
    raw = str(raw_label).strip()
    if not raw:
        return "misc"
    lowered = raw.lower()
    if lowered in SECTION_ALIASES:
        return SECTION_ALIASES[lowered]
    if raw in SECTION_ALIASES:
        return SECTION_ALIASES[raw]
    return "misc"
