"""
Line-level diff between the current text of a block and an AI-proposed
replacement.

The core is a classic LCS table. Two fallback branches keep the diff cheap
enough to run on every hover or keypress:
- very large inputs only get a truncated preview (no LCS at all)
- trivial inputs report every proposed line as an addition
"""

import re
from typing import List, NamedTuple, Optional, Sequence, Tuple

import structlog

from amend.config import DEFAULT_SETTINGS, DiffSettings
from amend.models import DiffOp, LineDiff, OpKind, Representation

logger = structlog.get_logger(__name__)

LIST_ITEM_RE = re.compile(r"^(\s*)([-*+]|\d+\.)\s+(.*)$")


class ListItem(NamedTuple):
    indent: str
    marker: str
    text: str


def parse_list_item(line: str) -> Optional[ListItem]:
    match = LIST_ITEM_RE.match(line)
    if not match:
        return None
    return ListItem(*match.groups())


def detect_separator(*texts: str) -> str:
    return "\r\n" if any("\r\n" in t for t in texts) else "\n"


def split_lines(text: str, separator: str = "\n") -> List[str]:
    # An empty string is an empty sequence, not one empty line.
    if not text:
        return []
    return text.split(separator)


def lcs_ops(a: Sequence, b: Sequence) -> List[Tuple[OpKind, Optional[int], Optional[int]]]:
    """
    Longest-common-subsequence diff over two sequences of hashable items.

    Returns (kind, a_index, b_index) triples in output order. On a mismatch the
    backtrack prefers a deletion whenever it keeps the same remaining LCS
    length, so identical inputs always produce identical output.
    """
    m, n = len(a), len(b)
    dp = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(m - 1, -1, -1):
        row, below = dp[i], dp[i + 1]
        for j in range(n - 1, -1, -1):
            if a[i] == b[j]:
                row[j] = below[j + 1] + 1
            else:
                row[j] = max(below[j], row[j + 1])

    ops: List[Tuple[OpKind, Optional[int], Optional[int]]] = []
    i = j = 0
    while i < m and j < n:
        if a[i] == b[j]:
            ops.append((OpKind.EQ, i, j))
            i += 1
            j += 1
        elif dp[i + 1][j] >= dp[i][j + 1]:
            ops.append((OpKind.DEL, i, None))
            i += 1
        else:
            ops.append((OpKind.ADD, None, j))
            j += 1
    while i < m:
        ops.append((OpKind.DEL, i, None))
        i += 1
    while j < n:
        ops.append((OpKind.ADD, None, j))
        j += 1
    return ops


def _is_list_like(lines: List[str], ratio: float) -> bool:
    if not lines:
        return False
    items = sum(1 for line in lines if parse_list_item(line))
    return items >= ratio * len(lines)


def _with_marker(text: str, source: List[Optional[ListItem]]) -> str:
    """Re-attach the marker of the first list item in `source` carrying `text`."""
    for item in source:
        if item and item.text == text:
            return f"{item.indent}{item.marker} {item.text}"
    return text


def _truncated_ops(a: List[str], b: List[str], context: int) -> List[DiffOp]:
    ops = [DiffOp(kind=OpKind.DEL, text=line, src_index=i) for i, line in enumerate(a[:context])]
    ops.extend(DiffOp(kind=OpKind.ADD, text=line, dst_index=j) for j, line in enumerate(b[:context]))
    return ops


def diff_lines(
    a: List[str], b: List[str], settings: Optional[DiffSettings] = None
) -> Tuple[Representation, List[DiffOp]]:
    settings = settings or DEFAULT_SETTINGS

    if a == b:
        return Representation.PLAIN, [
            DiffOp(kind=OpKind.EQ, text=line, src_index=i, dst_index=i) for i, line in enumerate(a)
        ]

    total = len(a) + len(b)
    if total > settings.max_total_lines:
        logger.info(f"Diff input too large ({total} lines), emitting truncated context")
        return Representation.PLAIN, _truncated_ops(a, b, settings.truncated_context)

    if total < settings.min_total_lines:
        logger.debug(f"Trivial diff input ({total} lines), reporting proposed lines as additions")
        return Representation.PLAIN, [DiffOp(kind=OpKind.ADD, text=line, dst_index=j) for j, line in enumerate(b)]

    if _is_list_like(a, settings.list_ratio) and _is_list_like(b, settings.list_ratio):
        items_a = [parse_list_item(line) for line in a]
        items_b = [parse_list_item(line) for line in b]
        keys_a = [item.text if item else line for item, line in zip(items_a, a)]
        keys_b = [item.text if item else line for item, line in zip(items_b, b)]

        ops = []
        for kind, i, j in lcs_ops(keys_a, keys_b):
            if kind == OpKind.ADD:
                ops.append(DiffOp(kind=kind, text=_with_marker(keys_b[j], items_b), dst_index=j))
                continue

            text = _with_marker(keys_a[i], items_a)
            if kind == OpKind.EQ:
                proposed = _with_marker(keys_b[j], items_b)
                if proposed != text:
                    # Same item, new marker or indent: keep both sides so a merge can pick either
                    ops.append(DiffOp(kind=OpKind.DEL, text=text, src_index=i))
                    ops.append(DiffOp(kind=OpKind.ADD, text=proposed, dst_index=j))
                    continue
            ops.append(DiffOp(kind=kind, text=text, src_index=i, dst_index=j))
        return Representation.LIST, ops

    ops = []
    for kind, i, j in lcs_ops(a, b):
        text = b[j] if kind == OpKind.ADD else a[i]
        ops.append(DiffOp(kind=kind, text=text, src_index=i, dst_index=j))
    return Representation.PLAIN, ops


def diff(current: str, proposed: str, settings: Optional[DiffSettings] = None) -> LineDiff:
    """
    Diffs the current text of a block against the proposed text, line by line.
    """
    separator = detect_separator(current, proposed)
    a = split_lines(current, separator)
    b = split_lines(proposed, separator)
    representation, ops = diff_lines(a, b, settings)
    return LineDiff(representation=representation, ops=ops, separator=separator)
