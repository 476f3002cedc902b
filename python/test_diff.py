"""
Tests for the line differ (amend.diff).

Run: pytest test_diff.py
From: python/
"""

import sys

import pytest
from pydantic import ValidationError

import amend.diff
from amend.config import DiffSettings
from amend.diff import detect_separator, diff, lcs_ops, parse_list_item, split_lines
from amend.models import OpKind, Representation


def _kinds(line_diff):
    return [(op.kind, op.text) for op in line_diff.ops]


def test_identical_inputs_are_all_eq():
    text = "Line A\nLine B\nLine C"
    result = diff(text, text)
    assert all(op.kind == OpKind.EQ for op in result.ops)
    assert [op.text for op in result.ops] == ["Line A", "Line B", "Line C"]

    # Short identical input does not fall into the trivial-input branch
    assert _kinds(diff("x", "x")) == [(OpKind.EQ, "x")]


def test_empty_string_is_empty_sequence():
    assert split_lines("") == []
    assert diff("", "").ops == []
    assert _kinds(diff("", "new")) == [(OpKind.ADD, "new")]


def test_replaced_line_is_del_then_add():
    result = diff("Line A\nLine B\nLine C", "Line A\nLine X\nLine C")
    assert result.representation == Representation.PLAIN
    assert _kinds(result) == [
        (OpKind.EQ, "Line A"),
        (OpKind.DEL, "Line B"),
        (OpKind.ADD, "Line X"),
        (OpKind.EQ, "Line C"),
    ]
    assert result.ops[1].src_index == 1 and result.ops[1].dst_index is None
    assert result.ops[2].dst_index == 1 and result.ops[2].src_index is None


def test_trivial_input_reports_only_additions():
    """Fewer than 5 combined lines: every proposed line is an add, no deletions."""
    result = diff("a\nb", "a\nc")
    assert _kinds(result) == [(OpKind.ADD, "a"), (OpKind.ADD, "c")]


def test_trivial_threshold_is_configurable():
    result = diff("a\nb", "a\nc", DiffSettings(min_total_lines=0))
    assert _kinds(result) == [(OpKind.EQ, "a"), (OpKind.DEL, "b"), (OpKind.ADD, "c")]


def test_large_input_skips_lcs(monkeypatch):
    """Above the cap only a truncated preview is emitted and LCS never runs."""

    def fail(*args, **kwargs):
        raise AssertionError("lcs_ops must not run above the line cap")

    monkeypatch.setattr(sys.modules["amend.diff"], "lcs_ops", fail)

    current = "\n".join(f"line {i}" for i in range(300))
    proposed = "\n".join(f"other {i}" for i in range(300))
    result = diff(current, proposed)

    assert _kinds(result) == [
        (OpKind.DEL, "line 0"),
        (OpKind.DEL, "line 1"),
        (OpKind.DEL, "line 2"),
        (OpKind.ADD, "other 0"),
        (OpKind.ADD, "other 1"),
        (OpKind.ADD, "other 2"),
    ]


def test_cap_follows_settings():
    current = "\n".join(f"line {i}" for i in range(10))
    proposed = "\n".join(f"line {i}" for i in range(1, 11))
    result = diff(current, proposed, DiffSettings(max_total_lines=10, truncated_context=1))
    assert _kinds(result) == [(OpKind.DEL, "line 0"), (OpKind.ADD, "line 1")]


def test_list_mode_aligns_items_by_text():
    result = diff("- A\n- B\n- C", "- A\n- X\n- C")
    assert result.representation == Representation.LIST
    assert _kinds(result) == [(OpKind.EQ, "- A"), (OpKind.DEL, "- B"), (OpKind.ADD, "- X"), (OpKind.EQ, "- C")]


def test_list_mode_marker_change_becomes_delete_and_add():
    result = diff("- A\n- B\n- C", "- A\n* B\n- C")
    assert result.representation == Representation.LIST
    assert _kinds(result) == [(OpKind.EQ, "- A"), (OpKind.DEL, "- B"), (OpKind.ADD, "* B"), (OpKind.EQ, "- C")]
    assert result.ops[1].src_index == 1
    assert result.ops[2].dst_index == 1


def test_list_mode_added_line_uses_proposed_marker():
    result = diff("1. A\n2. B\n3. C", "1. A\n2. B\n3. C\n  4. D")
    assert result.representation == Representation.LIST
    assert result.ops[-1].kind == OpKind.ADD
    assert result.ops[-1].text == "  4. D"


def test_mixed_lines_stay_plain():
    result = diff("Intro\nMore\n- A\nOutro", "Intro\nMore\n- B\nOutro")
    assert result.representation == Representation.PLAIN


def test_crlf_separator_is_detected():
    assert detect_separator("a\nb", "c\r\nd") == "\r\n"
    result = diff("a\r\nb\r\nc", "a\r\nx\r\nc")
    assert result.separator == "\r\n"
    assert _kinds(result) == [(OpKind.EQ, "a"), (OpKind.DEL, "b"), (OpKind.ADD, "x"), (OpKind.EQ, "c")]


def test_lcs_prefers_deletion_on_tie():
    assert lcs_ops(["a", "b"], ["b", "a"]) == [
        (OpKind.DEL, 0, None),
        (OpKind.EQ, 1, 0),
        (OpKind.ADD, None, 1),
    ]
    # Same input, same output
    assert lcs_ops("abcabba", "cbabac") == lcs_ops("abcabba", "cbabac")


def test_parse_list_item():
    item = parse_list_item("  12. Item text")
    assert item.indent == "  "
    assert item.marker == "12."
    assert item.text == "Item text"

    assert parse_list_item("+ plus") is not None
    assert parse_list_item("-no space") is None
    assert parse_list_item("plain line") is None


def test_settings_are_validated():
    with pytest.raises(ValidationError):
        DiffSettings(max_total_lines=-1)
    with pytest.raises(ValidationError):
        DiffSettings(list_ratio=1.5)
