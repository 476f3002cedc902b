"""
Tests for move detection (amend.moves).
"""

from amend.diff import diff
from amend.models import DiffOp, MoveRole, OpKind
from amend.moves import annotate_moves, normalize_move_text, pair_partner


def test_reordered_list_gives_one_pair():
    annotation = annotate_moves(diff("- A\n- B\n- C", "- B\n- C\n- A").ops)

    assert len(annotation.pairs) == 1
    pair = annotation.pairs[0]
    assert (pair.from_index, pair.to_index) == (0, 3)
    assert pair.text == "- A"

    src, dst = annotation.ops[0], annotation.ops[3]
    assert src.kind == OpKind.DEL and src.moved and src.role == MoveRole.FROM
    assert dst.kind == OpKind.ADD and dst.moved and dst.role == MoveRole.TO
    assert src.pair_id == dst.pair_id == 0

    # eq ops are never moved
    assert not any(op.moved for op in annotation.ops if op.kind == OpKind.EQ)


def test_marker_is_ignored_when_pairing():
    # Only one list line out of four, so this diffs in plain mode
    annotation = annotate_moves(diff("x\n- A\ny\nz", "x\ny\nz\n1. A").ops)
    assert len(annotation.pairs) == 1
    assert annotation.ops[annotation.pairs[0].from_index].text == "- A"
    assert annotation.ops[annotation.pairs[0].to_index].text == "1. A"


def test_positional_pairing_leaves_extras_unmoved():
    ops = [
        DiffOp(kind=OpKind.DEL, text="A", src_index=0),
        DiffOp(kind=OpKind.DEL, text="A", src_index=1),
        DiffOp(kind=OpKind.ADD, text="A", dst_index=0),
    ]
    annotation = annotate_moves(ops)

    assert [(p.from_index, p.to_index) for p in annotation.pairs] == [(0, 2)]
    assert annotation.ops[1].moved is False
    assert annotation.ops[1].pair_id is None


def test_pair_ids_are_sequential():
    ops = [
        DiffOp(kind=OpKind.DEL, text="A", src_index=0),
        DiffOp(kind=OpKind.DEL, text="B", src_index=1),
        DiffOp(kind=OpKind.ADD, text="B", dst_index=0),
        DiffOp(kind=OpKind.ADD, text="A", dst_index=1),
    ]
    annotation = annotate_moves(ops)
    assert [p.text for p in annotation.pairs] == ["A", "B"]
    assert annotation.ops[0].pair_id == annotation.ops[3].pair_id == 0
    assert annotation.ops[1].pair_id == annotation.ops[2].pair_id == 1


def test_pair_partner():
    annotation = annotate_moves(diff("- A\n- B\n- C", "- B\n- C\n- A").ops)
    assert pair_partner(annotation.ops, 0) == 3
    assert pair_partner(annotation.ops, 3) == 0
    assert pair_partner(annotation.ops, 1) == -1


def test_annotation_does_not_rewrite_text():
    assert normalize_move_text("  - item") == "item"
    assert normalize_move_text("10. item") == "item"
    assert normalize_move_text("no marker") == "no marker"

    ops = diff("x\n- A\ny\nz", "x\ny\nz\n1. A").ops
    annotated = annotate_moves(ops).ops
    assert [op.text for op in annotated] == [op.text for op in ops]
