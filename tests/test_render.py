# tests/test_render.py
"""Tests for token-budgeted rendering."""

import re

import pytest

from ace_playbook.core.render import (
    SECTION_GAP_TOKENS,
    render_bullets_for_injection,
    render_budgeted,
    render_playbook_as_text,
    render_playbook_for_curator,
)
from ace_playbook.core.retrieve import flatten_bullets
from ace_playbook.core.schema import Bullet, SelectedBullet
from ace_playbook.utils import estimate_tokens

ID_RE = re.compile(r"\[(ace-\d+)\]")


def _sel(section_key, title, bullet_id, content):
    return SelectedBullet(
        section_key=section_key,
        section_title=title,
        bullet=Bullet(id=bullet_id, content=content),
    )


def _header_cost(title):
    return estimate_tokens(f"【{title}】\n") + SECTION_GAP_TOKENS


def _line_cost(bullet_id, content):
    return estimate_tokens(f"- [{bullet_id}] {content}\n")


@pytest.fixture
def filled_playbook(playbook, add_bullet):
    add_bullet(playbook, "preferences", "ace-00001", "Answer in a formal register")
    add_bullet(playbook, "preferences", "ace-00002", "用中文回复")
    add_bullet(playbook, "project", "ace-00003", "Novel set in 1920s Shanghai")
    add_bullet(playbook, "open_threads", "ace-00004", "Decide who betrays the guild")
    playbook.sections["preferences"].bullets[0].hit_count = 3
    playbook.sections["preferences"].bullets[0].helpful_count = 1
    return playbook


def test_curator_view_layout(filled_playbook):
    text = render_playbook_for_curator(filled_playbook, 2500)
    lines = text.splitlines()
    assert lines[0] == "playbook_version=1"
    assert lines[1] == "work_id=w1"
    assert "## Preferences / output format (preferences)" in lines
    assert "- [ace-00001] hits=3 helpful=1 harmful=0 :: Answer in a formal register" in lines
    # Empty sections still get their header
    assert "## Workflow / tool usage (workflow)" in lines
    assert text.index("(preferences)") < text.index("(project)") < text.index("(open_threads)")


def test_plain_text_view_has_no_counters(filled_playbook):
    text = render_playbook_as_text(filled_playbook)
    assert "- [ace-00003] Novel set in 1920s Shanghai" in text
    assert "hits=" not in text


def test_curator_view_too_small_for_preamble(filled_playbook):
    assert render_playbook_for_curator(filled_playbook, 3) == ""
    assert render_playbook_for_curator(filled_playbook, 0) == ""


@pytest.mark.parametrize("budget", list(range(0, 160, 3)))
def test_curator_view_stays_within_budget(filled_playbook, budget):
    assert estimate_tokens(render_playbook_for_curator(filled_playbook, budget)) <= budget


@pytest.mark.parametrize("budget", list(range(0, 80)))
def test_injection_stays_within_budget(filled_playbook, budget):
    text = render_bullets_for_injection(flatten_bullets(filled_playbook), budget)
    assert estimate_tokens(text) <= budget


def test_injection_empty_selection():
    assert render_bullets_for_injection([], 1200) == ""


def test_injection_groups_in_canonical_order():
    selection = [
        _sel("misc", "Other", "ace-00003", "Reader is twelve years old"),
        _sel("preferences", "Preferences", "ace-00001", "Short paragraphs please"),
        _sel("misc", "Other", "ace-00004", "Avoid graphic violence"),
    ]
    text = render_bullets_for_injection(selection, 1200)
    assert text.splitlines() == [
        "【Preferences】",
        "- [ace-00001] Short paragraphs please",
        "",
        "【Other】",
        "- [ace-00003] Reader is twelve years old",
        "- [ace-00004] Avoid graphic violence",
    ]


def test_header_that_does_not_fit_ends_rendering():
    pref = ("preferences", "P", "ace-00001", "Use formal tone always")
    proj = ("project", "x" * 400, "ace-00002", "Setting is Lisbon")
    flow = ("workflow", "W", "ace-00003", "Outline first please")
    budget = (
        _header_cost("P")
        + _line_cost("ace-00001", pref[3])
        + _header_cost("W")
        + _line_cost("ace-00003", flow[3])
    )
    assert _header_cost(proj[1]) > budget

    text = render_bullets_for_injection([_sel(*pref), _sel(*proj), _sel(*flow)], budget)
    assert ID_RE.findall(text) == ["ace-00001"]
    assert "【W】" not in text


def test_bullet_that_does_not_fit_ends_only_its_section():
    huge = ("preferences", "P", "ace-00001", "y" * 400)
    small = ("preferences", "P", "ace-00002", "Keep it brief please")
    flow = ("workflow", "W", "ace-00003", "Outline first please")
    budget = (
        _header_cost("P")
        + _line_cost("ace-00002", small[3])
        + _header_cost("W")
        + _line_cost("ace-00003", flow[3])
    )

    text = render_bullets_for_injection([_sel(*huge), _sel(*small), _sel(*flow)], budget)
    # Later bullets of the same section are not pulled forward
    assert ID_RE.findall(text) == ["ace-00003"]
    assert text.startswith("【P】")


def test_uniform_bullets_render_monotonically():
    sections = [("preferences", "Preferences"), ("project", "Project"), ("misc", "Other")]
    selection = [
        _sel(key, title, f"ace-0000{n}", f"Standing fact {n} about the draft")
        for n, (key, title) in enumerate(
            [sections[0], sections[0], sections[1], sections[1], sections[1], sections[2]],
            start=1,
        )
    ]
    previous: set[str] = set()
    for budget in range(0, 120):
        ids = set(ID_RE.findall(render_bullets_for_injection(selection, budget)))
        assert previous <= ids, f"budget {budget} dropped {previous - ids}"
        previous = ids
    assert len(previous) == 6


def test_render_budgeted_prefix_of_full_output():
    blocks = [("# A", ["- one", "- two"]), ("# B", ["- three"])]
    full = render_budgeted(blocks, 10_000)
    assert full == "# A\n- one\n- two\n\n# B\n- three"
    for budget in range(0, 20):
        assert full.startswith(render_budgeted(blocks, budget))
