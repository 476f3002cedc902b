"""
Detects relocated lines in a line diff.

A deletion and an addition whose text matches (ignoring a leading list marker)
are reported as one move instead of an unrelated delete+add pair. Pairing is
positional: the first deletion of a given text pairs with the first addition
of that text, the second with the second, and so on. This is right for the
common "reorder a list" case, but two genuinely different lines that happen
to share the same text can be mispaired. That is a known limitation of the
heuristic, not something to paper over here.
"""

import re
from typing import Dict, List

import structlog

from amend.models import AnnotatedOp, DiffOp, MoveAnnotation, MovePair, MoveRole, OpKind

logger = structlog.get_logger(__name__)

LIST_MARKER_RE = re.compile(r"^(\s*)([-*+]|\d+\.)\s+")


def normalize_move_text(text: str) -> str:
    """Comparison key for move detection. Never written back to an op."""
    return LIST_MARKER_RE.sub("", text, count=1)


def annotate_moves(ops: List[DiffOp]) -> MoveAnnotation:
    deleted: Dict[str, List[int]] = {}
    added: Dict[str, List[int]] = {}
    for idx, op in enumerate(ops):
        if op.kind == OpKind.DEL:
            deleted.setdefault(normalize_move_text(op.text), []).append(idx)
        elif op.kind == OpKind.ADD:
            added.setdefault(normalize_move_text(op.text), []).append(idx)

    annotations: Dict[int, dict] = {}
    pairs: List[MovePair] = []
    for key, del_indices in deleted.items():
        add_indices = added.get(key)
        if not add_indices:
            continue
        for from_idx, to_idx in zip(del_indices, add_indices):
            pair_id = len(pairs)
            annotations[from_idx] = {"moved": True, "pair_id": pair_id, "role": MoveRole.FROM}
            annotations[to_idx] = {"moved": True, "pair_id": pair_id, "role": MoveRole.TO}
            pairs.append(MovePair(from_index=from_idx, to_index=to_idx, text=ops[to_idx].text))

    if pairs:
        logger.debug(f"Detected {len(pairs)} moved line(s)")

    fields = set(DiffOp.model_fields)
    annotated = [
        AnnotatedOp(**op.model_dump(include=fields), **annotations.get(idx, {})) for idx, op in enumerate(ops)
    ]
    return MoveAnnotation(ops=annotated, pairs=pairs)


def pair_partner(ops: List[AnnotatedOp], index: int) -> int:
    """
    Index of the other half of the move pair `ops[index]` belongs to,
    or -1 when the op is not part of a move.
    """
    op = ops[index]
    if not op.moved or op.pair_id is None:
        return -1
    for idx, other in enumerate(ops):
        if idx != index and other.moved and other.pair_id == op.pair_id:
            return idx
    return -1
