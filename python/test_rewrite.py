"""
Tests for word-diff write-back of flattened text (amend.rewrite).
"""

from amend.rewrite import diff_text_words, rewrite_document, rewrite_ratio
from amend.structure.mapper import build_index
from amend.structure.nodes import block, document, text_node

BOLD = [{"type": "bold"}]


def test_word_diff_reconstructs_both_sides():
    old = "The Supplier shall deliver the goods."
    new = "The Vendor shall promptly deliver the goods."
    diffs = diff_text_words(old, new)
    assert "".join(t for op, t in diffs if op <= 0) == old
    assert "".join(t for op, t in diffs if op >= 0) == new


def test_word_diff_of_empty_texts():
    assert diff_text_words("", "") == []
    assert diff_text_words("", "new") == [(1, "new")]


def test_rewrite_ratio():
    assert rewrite_ratio([]) == 0.0
    assert rewrite_ratio([(0, "unchanged")]) == 0.0
    assert rewrite_ratio([(-1, "abc"), (1, "xyz")]) == 1.0
    assert rewrite_ratio([(0, "ab"), (-1, "cd"), (1, "ef")]) == 0.5


def test_rewrite_keeps_untouched_runs_and_marks():
    doc = document(block("paragraph", text_node("Hello "), text_node("world", BOLD)))
    new_doc = rewrite_document(doc, "Hi world")

    runs = new_doc.content[0].content
    assert [(r.text, r.marks) for r in runs] == [("Hi ", []), ("world", BOLD)]


def test_rewrite_applies_several_changes():
    doc = document(block("paragraph", text_node("one two three")))
    new_doc = rewrite_document(doc, "uno two tres")
    assert build_index(new_doc).full_text == "uno two tres"
    assert len(new_doc.content) == 1


def test_rewrite_deletion_only():
    doc = document(block("paragraph", text_node("Hello big world")))
    assert build_index(rewrite_document(doc, "Hello world")).full_text == "Hello world"


def test_rewrite_at_end_of_block_keeps_following_block():
    doc = document(block("paragraph", text_node("Hello world")), block("paragraph", text_node("Bye")))
    new_doc = rewrite_document(doc, "Hello thereBye")
    assert [b.text_content for b in new_doc.content] == ["Hello there", "Bye"]


def test_rewrite_first_word_of_second_block():
    doc = document(block("paragraph", text_node("Hello world")), block("paragraph", text_node("Bye now")))
    new_doc = rewrite_document(doc, "Hello worldHi now")
    assert [b.text_content for b in new_doc.content] == ["Hello world", "Hi now"]


def test_deletion_across_blocks_keeps_both_blocks():
    doc = document(block("paragraph", text_node("Hello world")), block("paragraph", text_node("Bye now")))
    new_doc = rewrite_document(doc, "Hello now")

    # Each block loses its own part; neither is merged away
    assert [b.text_content for b in new_doc.content] == ["Hello ", "now"]
    assert build_index(new_doc).full_text == "Hello now"


def test_unchanged_text_returns_same_document():
    doc = document(block("paragraph", text_node("Same")))
    assert rewrite_document(doc, "Same") is doc


def test_document_without_text_is_replaced():
    new_doc = rewrite_document(document(block("paragraph")), "Hello")
    assert [b.text_content for b in new_doc.content] == ["Hello"]


def test_multiline_text_is_replaced_as_blocks():
    doc = document(block("paragraph", text_node("Old")))
    new_doc = rewrite_document(doc, "First\n\nSecond")
    assert [b.text_content for b in new_doc.content] == ["First", "Second"]
