# tests/test_usage.py
from ace_playbook.core.retrieve import flatten_bullets
from ace_playbook.core.usage import apply_bullet_tags, parse_bullet_tags, record_hits

OLD = "2025-01-01T00:00:00.000000+00:00"


def test_record_hits_counts_each_selected_bullet(playbook, add_bullet):
    add_bullet(playbook, "preferences", "ace-00001", "Short sentences")
    add_bullet(playbook, "project", "ace-00002", "Heist thriller")
    add_bullet(playbook, "misc", "ace-00003", "Not selected")

    selection = flatten_bullets(playbook)[:2]
    assert record_hits(playbook, selection) == 2

    assert playbook.find_bullet("ace-00001").hit_count == 1
    assert playbook.find_bullet("ace-00002").hit_count == 1
    assert playbook.find_bullet("ace-00003").hit_count == 0
    assert playbook.find_bullet("ace-00001").updated_at > OLD
    assert playbook.find_bullet("ace-00003").updated_at == OLD


def test_record_hits_empty_selection(playbook):
    stamp = playbook.updated_at
    assert record_hits(playbook, []) == 0
    assert playbook.updated_at == stamp


def test_parse_bullet_tags():
    tags = parse_bullet_tags(
        [
            {"id": "ace-00001", "tag": "Helpful"},
            {"id": " ace-00002 ", "tag": "HARMFUL"},
            {"id": "ace-00003", "tag": "neutral"},
            {"id": "ace-00004", "tag": "amazing"},
            {"tag": "helpful"},
            "ace-00005:helpful",
        ]
    )
    assert [(t.id, t.tag) for t in tags] == [
        ("ace-00001", "helpful"),
        ("ace-00002", "harmful"),
        ("ace-00003", "neutral"),
    ]
    assert parse_bullet_tags("helpful") == []


def test_apply_bullet_tags(playbook, add_bullet):
    add_bullet(playbook, "preferences", "ace-00001", "Short sentences")
    add_bullet(playbook, "project", "ace-00002", "Heist thriller")

    playbook, updated = apply_bullet_tags(
        playbook,
        [
            {"id": "ace-00001", "tag": "helpful"},
            {"id": "ace-00001", "tag": "helpful"},
            {"id": "ace-00002", "tag": "harmful"},
            {"id": "ace-00002", "tag": "neutral"},
            {"id": "ace-99999", "tag": "helpful"},
        ],
    )
    assert updated == 3
    first = playbook.find_bullet("ace-00001")
    second = playbook.find_bullet("ace-00002")
    assert (first.helpful_count, first.harmful_count) == (2, 0)
    assert (second.helpful_count, second.harmful_count) == (0, 1)
    assert first.hit_count == 0


def test_apply_bullet_tags_nothing_to_do(playbook, add_bullet):
    add_bullet(playbook, "misc", "ace-00001", "Some standing fact")
    stamp = playbook.updated_at
    playbook, updated = apply_bullet_tags(playbook, [{"id": "ace-00001", "tag": "neutral"}])
    assert updated == 0
    assert playbook.updated_at == stamp
    assert playbook.find_bullet("ace-00001").updated_at == OLD
