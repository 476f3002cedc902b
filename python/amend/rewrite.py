"""
Write-back of edited flattened text into a structured document.

Instead of replacing the whole document, the old and new text are diffed at
word level and only the changed spans are touched, so untouched text keeps
its nodes and marks.

The flattened text has no separator between blocks, so the old text is
tokenized one segment at a time and every deletion is cut at segment
boundaries. No edit ever removes a block's closing token, which keeps the
block structure intact.
"""

import re
from typing import Iterable, List, Tuple

import structlog
from diff_match_patch import diff_match_patch

from amend.errors import PositionMappingFailed
from amend.markup import text_to_blocks
from amend.structure.mapper import PositionIndex, build_index
from amend.structure.nodes import Node, delete_range, insert_content, load_document, replace_document

logger = structlog.get_logger(__name__)

TOKEN_RE = re.compile(r"\S+|\s+")
HEAVY_REWRITE_RATIO = 0.7

# (old_start, old_end, inserted) in flattened-text offsets
Change = Tuple[int, int, str]


def segment_tokens(texts: Iterable[str]) -> List[str]:
    """Word and whitespace tokens of each text run in turn. A token never spans two runs."""
    tokens: List[str] = []
    for text in texts:
        tokens.extend(TOKEN_RE.findall(text))
    return tokens


class _TokenCodec:
    """One private character per distinct token, so diff-match-patch diffs whole tokens."""

    FIRST_CODE = 0x100

    def __init__(self):
        self._chars = {}
        self._tokens: List[str] = []

    def encode(self, tokens: List[str]) -> str:
        out = []
        for token in tokens:
            char = self._chars.get(token)
            if char is None:
                char = chr(self.FIRST_CODE + len(self._tokens))
                self._chars[token] = char
                self._tokens.append(token)
            out.append(char)
        return "".join(out)

    def decode(self, chars: str) -> str:
        return "".join(self._tokens[ord(c) - self.FIRST_CODE] for c in chars)


def diff_tokens(old_tokens: List[str], new_tokens: List[str]) -> List[Tuple[int, str]]:
    """
    Token diff with semantic cleanup.
    Returns (op, text) pairs where op is 0 (kept), -1 (removed) or 1 (added).
    """
    if not old_tokens and not new_tokens:
        return []

    codec = _TokenCodec()
    old_chars = codec.encode(old_tokens)
    new_chars = codec.encode(new_tokens)

    dmp = diff_match_patch()
    diffs = dmp.diff_main(old_chars, new_chars)
    dmp.diff_cleanupSemantic(diffs)
    return [(op, codec.decode(chars)) for op, chars in diffs if chars]


def diff_text_words(old_text: str, new_text: str) -> List[Tuple[int, str]]:
    return diff_tokens(TOKEN_RE.findall(old_text), TOKEN_RE.findall(new_text))


def rewrite_ratio(diffs: List[Tuple[int, str]]) -> float:
    """How much of the old text a diff touches: 0.0 unchanged, 1.0 fully rewritten."""
    old_len = sum(len(t) for op, t in diffs if op <= 0)
    if old_len == 0:
        return 0.0
    removed = sum(len(t) for op, t in diffs if op < 0)
    added = sum(len(t) for op, t in diffs if op > 0)
    return (removed + added) / (2 * old_len)


def _changes(diffs: List[Tuple[int, str]]) -> List[Change]:
    """Adjacent removals and additions with no kept text between them form one change."""
    changes: List[Change] = []
    cursor = 0
    for op, text in diffs:
        if op == 0:
            cursor += len(text)
            continue

        adjacent = bool(changes) and changes[-1][1] == cursor
        if op == -1:
            if adjacent:
                start, _, inserted = changes[-1]
                changes[-1] = (start, cursor + len(text), inserted)
            else:
                changes.append((cursor, cursor + len(text), ""))
            cursor += len(text)
        else:
            if adjacent:
                start, end, inserted = changes[-1]
                changes[-1] = (start, end, inserted + text)
            else:
                changes.append((cursor, cursor, text))
    return changes


def _trim(old_text: str, change: Change) -> Change:
    """Drops the characters a change removes and re-adds unchanged at either end."""
    start, end, inserted = change
    removed = old_text[start:end]

    limit = min(len(removed), len(inserted))
    prefix = 0
    while prefix < limit and removed[prefix] == inserted[prefix]:
        prefix += 1

    limit -= prefix
    suffix = 0
    while suffix < limit and removed[-1 - suffix] == inserted[-1 - suffix]:
        suffix += 1

    return start + prefix, end - suffix, inserted[prefix : len(inserted) - suffix]


def _split_at_segments(index: PositionIndex, start: int, end: int) -> List[Tuple[int, int]]:
    pieces = []
    for seg in index.segments:
        lo, hi = max(start, seg.plain_start), min(end, seg.plain_end)
        if lo < hi:
            pieces.append((lo, hi))
    return pieces


def _map(index: PositionIndex, offset: int, assoc: int = -1) -> int:
    pos = index.plain_to_pm(offset, assoc)
    if pos is None:
        raise PositionMappingFailed(f"Failed to map plain offset {offset}", offset)
    return pos


def _apply_change(doc: Node, index: PositionIndex, change: Change) -> Node:
    start, end, inserted = change
    insert_at = _map(index, start, assoc=1 if start < end else -1)

    # Back-to-front, so earlier positions stay valid
    for lo, hi in reversed(_split_at_segments(index, start, end)):
        doc = delete_range(doc, _map(index, lo, assoc=1), _map(index, hi))
    if inserted:
        doc = insert_content(doc, insert_at, inserted)
    return doc


def _replace_all(doc: Node, new_text: str, reason: str) -> Node:
    logger.info(f"Rewrite: {reason}, replacing document content")
    blocks = text_to_blocks(new_text) if new_text else []
    return replace_document(doc, blocks)


def rewrite_document(doc, new_text: str) -> Node:
    """
    Brings the document's flattened text in line with `new_text`.

    Changes are applied back-to-front as structured deletes and inserts.
    Falls back to a wholesale replacement when the document has no text, the
    new text spans several lines, or the diff does not reconstruct `new_text`.
    """
    doc = load_document(doc)
    index = build_index(doc)
    old_text = index.full_text

    if old_text == new_text:
        return doc
    if not index.segments:
        return _replace_all(doc, new_text, "document has no text")
    if "\n" in new_text:
        return _replace_all(doc, new_text, "new text has line breaks")

    diffs = diff_tokens(segment_tokens(s.text for s in index.segments), TOKEN_RE.findall(new_text))

    ratio = rewrite_ratio(diffs)
    if ratio > HEAVY_REWRITE_RATIO:
        logger.info(f"Rewrite: heavy rewrite detected ({ratio:.0%})")

    # Accepting every change must produce the new text
    reconstructed = "".join(text for op, text in diffs if op >= 0)
    if reconstructed != new_text:
        return _replace_all(doc, new_text, "reconstruction mismatch")

    changes = [_trim(old_text, c) for c in _changes(diffs)]
    changes = [c for c in changes if c[0] < c[1] or c[2]]
    for change in reversed(changes):
        doc = _apply_change(doc, index, change)

    logger.debug(f"Rewrite: applied {len(changes)} change(s)")
    return doc
