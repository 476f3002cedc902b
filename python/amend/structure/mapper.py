from dataclasses import dataclass
from typing import List, Optional

import structlog

from amend.errors import AnchorNotFound
from amend.models import OccurrenceStrategy
from amend.structure.nodes import Node, iter_descendants

logger = structlog.get_logger(__name__)


@dataclass
class Segment:
    text: str
    plain_start: int
    plain_end: int
    struct_start: int
    struct_end: int


class PositionIndex:
    """
    Flattened plain-text view of a structured document.

    Every text leaf becomes one Segment, in document order. The concatenated
    segment text is the canonical flattened text that anchors are searched
    in; the segment list is the only thing used to translate offsets between
    plain-text space and structured-position space.
    """

    def __init__(self, doc: Node):
        self.doc = doc
        self.full_text = ""
        self.segments: List[Segment] = []
        self._build_map()

    def _build_map(self):
        self.segments = []
        parts = []
        plain_cursor = 0

        for node, pos in iter_descendants(self.doc):
            if not node.is_text or not node.text:
                continue
            text = node.text
            self.segments.append(
                Segment(
                    text=text,
                    plain_start=plain_cursor,
                    plain_end=plain_cursor + len(text),
                    struct_start=pos,
                    struct_end=pos + len(text),
                )
            )
            parts.append(text)
            plain_cursor += len(text)

        self.full_text = "".join(parts)

    def plain_to_pm(self, offset: int, assoc: int = -1) -> Optional[int]:
        """
        Structured position of a plain-text offset, or None when it lies outside
        every segment.

        Segment ends are inclusive, so an offset on the boundary between two
        segments belongs to both. By default the earlier segment wins
        (assoc=-1); assoc=1 picks the segment that starts there instead.
        """
        if offset < 0:
            return None

        candidates = [s for s in self.segments if s.plain_start <= offset <= s.plain_end]
        if not candidates:
            return None
        seg = candidates[-1] if assoc > 0 else candidates[0]
        return seg.struct_start + (offset - seg.plain_start)

    def pm_to_plain(self, pos: int) -> Optional[int]:
        for seg in self.segments:
            if seg.struct_start <= pos <= seg.struct_start + len(seg.text):
                return seg.plain_start + (pos - seg.struct_start)
        return None

    def find_occurrences(self, anchor: str) -> List[int]:
        """
        Start offsets of every occurrence of `anchor` in the flattened text.
        The search resumes one anchor length after each hit.
        """
        occurrences: List[int] = []
        if not anchor:
            return occurrences

        i = 0
        while i <= len(self.full_text):
            j = self.full_text.find(anchor, i)
            if j == -1:
                break
            occurrences.append(j)
            i = j + max(1, len(anchor))
        return occurrences

    def choose_occurrence(
        self,
        occurrences: List[int],
        caret_pm: Optional[int] = None,
        strategy: OccurrenceStrategy = OccurrenceStrategy.NEAREST,
    ) -> int:
        """
        Picks the occurrence closest to the caret (first one wins ties), then
        optionally steps to the next/previous occurrence, wrapping around.
        """
        caret_plain = self.pm_to_plain(caret_pm) if caret_pm is not None else None
        if caret_plain is None:
            caret_plain = 0

        nearest_idx = 0
        best_dist = abs(occurrences[0] - caret_plain)
        for k, value in enumerate(occurrences):
            dist = abs(value - caret_plain)
            if dist < best_dist:
                best_dist = dist
                nearest_idx = k

        chosen = nearest_idx
        count = len(occurrences)
        if strategy == OccurrenceStrategy.NEXT and count > 1:
            chosen = (nearest_idx + 1) % count
        elif strategy == OccurrenceStrategy.PREV and count > 1:
            chosen = (nearest_idx - 1 + count) % count
        return occurrences[chosen]

    def locate_anchor(
        self,
        anchor: str,
        caret_pm: Optional[int] = None,
        strategy: OccurrenceStrategy = OccurrenceStrategy.NEAREST,
    ) -> int:
        occurrences = self.find_occurrences(anchor)
        if not occurrences:
            raise AnchorNotFound(anchor)
        if len(occurrences) > 1:
            logger.debug(f"Anchor '{anchor[:20]}' occurs {len(occurrences)} times, using strategy {strategy.value}")
        return self.choose_occurrence(occurrences, caret_pm, strategy)


_cached_doc: Optional[Node] = None
_cached_index: Optional[PositionIndex] = None


def build_index(doc: Node) -> PositionIndex:
    """
    Returns the PositionIndex for `doc`. The last index built is reused while
    the same document object is passed in again.
    """
    global _cached_doc, _cached_index

    if _cached_index is not None and _cached_doc is doc:
        return _cached_index

    index = PositionIndex(doc)
    _cached_doc, _cached_index = doc, index
    return index
