"""
Selective accept/reject of diff lines and deterministic reconstruction of the
merged text.

A selection value always means "apply this op":
- add: True keeps the new line in the output
- del: True honors the deletion (the old line is dropped)
- eq: no selection, the line is always kept

Defaults are computed on demand and never stored. Additions are opt-out,
plain deletions are opt-in, and the deletion half of a detected move defaults
to applied so a reorder merges as a move instead of duplicating the line.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Union

import structlog

from amend.config import DiffSettings
from amend.diff import diff
from amend.models import AnnotatedOp, DiffOp, LineDiff, MoveAnnotation, OpKind, WordDiff
from amend.moves import annotate_moves, pair_partner
from amend.words import diff_words

logger = structlog.get_logger(__name__)

Op = Union[DiffOp, AnnotatedOp]

_BLANK_RUN_RE = re.compile(r"\n{3,}")


def default_selection(op: Op) -> Optional[bool]:
    if op.kind == OpKind.ADD:
        return True
    if op.kind == OpKind.DEL:
        return bool(getattr(op, "moved", False))
    return None


def is_applied(op: Op, index: int, selections: Optional[Mapping[int, bool]] = None) -> bool:
    if selections is not None and index in selections:
        return bool(selections[index])
    return bool(default_selection(op))


def normalize_merged(text: str) -> str:
    """Collapse runs of blank lines to a single blank line and trim the ends."""
    return _BLANK_RUN_RE.sub("\n\n", text).strip()


def merge_selected(
    ops: List[Op], selections: Optional[Mapping[int, bool]] = None, separator: str = "\n"
) -> str:
    """
    Rebuilds the text from a diff and the caller's accept/reject choices.

    Args:
        ops: The diff ops, plain or move-annotated, in their original order.
        selections: op index -> "apply this op". Missing indices use the defaults.
        separator: Line separator of the original texts.

    Returns:
        The merged text, already normalized. Callers must not reformat it.
    """
    kept: List[str] = []
    for idx, op in enumerate(ops):
        if op.kind == OpKind.EQ:
            kept.append(op.text)
        elif op.kind == OpKind.DEL:
            if not is_applied(op, idx, selections):
                kept.append(op.text)
        elif op.kind == OpKind.ADD:
            if is_applied(op, idx, selections):
                kept.append(op.text)

    merged = normalize_merged("\n".join(kept))
    if separator != "\n":
        merged = merged.replace("\n", separator)
    return merged


class SelectionModel:
    """
    Per-target overrides of the default selections.
    Only indices the user actually touched are stored.
    """

    def __init__(self):
        self._overrides: Dict[str, Dict[int, bool]] = {}

    def selections(self, target_id: str) -> Dict[int, bool]:
        return dict(self._overrides.get(target_id, {}))

    def is_applied(self, target_id: str, index: int, op: Op) -> bool:
        return is_applied(op, index, self._overrides.get(target_id))

    def set(self, target_id: str, index: int, value: bool):
        self._overrides.setdefault(target_id, {})[index] = bool(value)

    def toggle(self, target_id: str, index: int, ops: List[Op]) -> bool:
        """
        Flips the selection of `ops[index]`. A move is one decision stored as two
        ops, so both halves of a move pair always end up with the same value.
        Returns the new value.
        """
        value = not self.is_applied(target_id, index, ops[index])
        self.set(target_id, index, value)

        partner = pair_partner(ops, index) if isinstance(ops[index], AnnotatedOp) else -1
        if partner != -1:
            self.set(target_id, partner, value)
        return value

    def accept_all(self, target_id: str, ops: List[Op]):
        for idx, op in enumerate(ops):
            if op.kind != OpKind.EQ:
                self.set(target_id, idx, True)

    def reject_all(self, target_id: str, ops: List[Op]):
        for idx, op in enumerate(ops):
            if op.kind != OpKind.EQ:
                self.set(target_id, idx, False)

    def reset(self, target_id: str):
        self._overrides.pop(target_id, None)

    def merge(self, target_id: str, ops: List[Op], separator: str = "\n") -> str:
        return merge_selected(ops, self._overrides.get(target_id), separator)


@dataclass
class ProposalReview:
    """
    Everything needed to review one proposed rewrite of one target block.
    """

    target_id: str
    current: str
    proposed: str
    line_diff: LineDiff
    annotation: MoveAnnotation
    _partners: Dict[int, int] = field(default_factory=dict, repr=False)

    @classmethod
    def build(
        cls, target_id: str, current: str, proposed: str, settings: Optional[DiffSettings] = None
    ) -> "ProposalReview":
        line_diff = diff(current, proposed, settings)
        annotation = annotate_moves(line_diff.ops)
        partners = {}
        for pair in annotation.pairs:
            partners[pair.from_index] = pair.to_index
            partners[pair.to_index] = pair.from_index
        return cls(target_id, current, proposed, line_diff, annotation, partners)

    @property
    def ops(self) -> List[AnnotatedOp]:
        return self.annotation.ops

    def partner(self, index: int) -> Optional[int]:
        return self._partners.get(index)

    def word_diff(self, index: int) -> Optional[WordDiff]:
        """Word-level view of a moved line against the line it moved from."""
        op = self.ops[index]
        partner = self.partner(index)
        if partner is None or op.kind != OpKind.ADD:
            return None
        return diff_words(self.ops[partner].text, op.text)

    def merged(self, model: Optional[SelectionModel] = None) -> str:
        if model is None:
            return merge_selected(self.ops, None, self.line_diff.separator)
        return model.merge(self.target_id, self.ops, self.line_diff.separator)
