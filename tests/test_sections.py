# tests/test_sections.py
import pytest

from ace_playbook.core.sections import DEFAULT_SECTIONS, SECTION_KEYS, classify_section


def test_canonical_order():
    assert SECTION_KEYS == ("preferences", "project", "workflow", "open_threads", "misc")
    assert len(DEFAULT_SECTIONS) == 5


@pytest.mark.parametrize(
    "label,expected",
    [
        ("preferences", "preferences"),
        ("Preference", "preferences"),
        ("  STYLE ", "preferences"),
        ("偏好", "preferences"),
        ("context", "project"),
        ("设定", "project"),
        ("tools", "workflow"),
        ("open threads", "open_threads"),
        ("TODO", "open_threads"),
        ("待办", "open_threads"),
        ("other", "misc"),
    ],
)
def test_classify_known_labels(label, expected):
    assert classify_section(label) == expected


@pytest.mark.parametrize("label", [None, "", "   ", "characters", 42, ["preferences"]])
def test_classify_unknown_falls_back_to_misc(label):
    assert classify_section(label) == "misc"
