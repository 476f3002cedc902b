from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import structlog
from pydantic import TypeAdapter, ValidationError

from amend.errors import AnchorNotFound, PositionMappingFailed
from amend.markup import text_to_blocks
from amend.models import (
    AnchoredReplaceOperation,
    ApplyResult,
    DeleteOperation,
    InsertOperation,
    OccurrenceStrategy,
    PointOperation,
    ReplaceDocumentOperation,
    ReplaceOperation,
    SetAttrsOperation,
)
from amend.structure.mapper import PositionIndex, build_index
from amend.structure.nodes import (
    Node,
    coerce_content,
    delete_range,
    insert_content,
    load_document,
    replace_document,
    set_node_attrs,
)

logger = structlog.get_logger(__name__)

_operation_adapter = TypeAdapter(PointOperation)

_OPERATION_TYPES = (
    ReplaceOperation,
    InsertOperation,
    DeleteOperation,
    SetAttrsOperation,
    AnchoredReplaceOperation,
    ReplaceDocumentOperation,
)


def parse_operation(payload: Union[Dict[str, Any], Any]):
    """Validates one host payload into a point operation model."""
    if isinstance(payload, _OPERATION_TYPES):
        return payload
    return _operation_adapter.validate_python(payload)


def resolve_anchored_range(
    index: PositionIndex,
    anchor: str,
    delete_length: int,
    caret_pm: Optional[int] = None,
    strategy: OccurrenceStrategy = OccurrenceStrategy.NEAREST,
) -> Tuple[int, int]:
    """
    Structured range [pm_from, pm_to) covering the `delete_length` characters
    right after the chosen occurrence of `anchor`.
    """
    start = index.locate_anchor(anchor, caret_pm, strategy)

    delete_from = start + len(anchor)
    delete_to = delete_from + delete_length
    pm_from = index.plain_to_pm(delete_from)
    pm_to = index.plain_to_pm(delete_to)
    if pm_from is None or pm_to is None:
        raise PositionMappingFailed(f"Failed to map plain offsets [{delete_from}:{delete_to}] after anchor", delete_from)
    return pm_from, pm_to


def apply_anchored_replace(
    index: PositionIndex,
    anchor: str,
    delete_length: int,
    insert_text: str = "",
    caret_pm: Optional[int] = None,
    strategy: OccurrenceStrategy = OccurrenceStrategy.NEAREST,
) -> Node:
    """
    Removes `delete_length` characters right after an occurrence of `anchor`
    and inserts `insert_text` in their place.

    When the anchor occurs more than once, the occurrence nearest to the caret
    is used, or its next/previous neighbour depending on `strategy`.

    Returns the edited document.
    Raises AnchorNotFound or PositionMappingFailed; the document is untouched then.
    """
    pm_from, pm_to = resolve_anchored_range(index, anchor, delete_length, caret_pm, strategy)

    doc = delete_range(index.doc, pm_from, pm_to)
    if insert_text:
        doc = insert_content(doc, pm_from, insert_text)
    return doc


class StructuredEditor:
    """
    Applies point operations from the host editor to a structured document.

    The editor owns the current document and the caret. Every operation swaps
    in a new document object, so `index` always reflects the latest state.
    """

    def __init__(self, doc, caret: int = 0):
        self.doc = load_document(doc)
        self.caret = caret

    @property
    def index(self) -> PositionIndex:
        return build_index(self.doc)

    @property
    def text(self) -> str:
        return self.index.full_text

    def _map_caret(self, start: int, end: int, inserted: int):
        if self.caret >= end:
            self.caret += inserted - (end - start)
        elif self.caret > start:
            self.caret = start + inserted

    def replace(self, start: int, end: int, content) -> Node:
        new_doc = insert_content(delete_range(self.doc, start, end), start, content)
        self._map_caret(start, end, new_doc.content_size - self.doc.content_size + (end - start))
        self.doc = new_doc
        return self.doc

    def insert(self, at: int, content) -> Node:
        new_doc = insert_content(self.doc, at, content)
        self._map_caret(at, at, new_doc.content_size - self.doc.content_size)
        self.doc = new_doc
        return self.doc

    def delete(self, start: int, end: int) -> Node:
        new_doc = delete_range(self.doc, start, end)
        self._map_caret(start, end, 0)
        self.doc = new_doc
        return self.doc

    def set_attrs(self, pos: int, attrs: Dict[str, Any]) -> bool:
        """Best effort. Returns False (and leaves the document alone) on failure."""
        try:
            self.doc = set_node_attrs(self.doc, pos, attrs)
        except PositionMappingFailed as e:
            logger.debug(f"setAttrs at {pos} ignored: {e}")
            return False
        return True

    def replace_document(self, content) -> Node:
        if isinstance(content, str):
            blocks = text_to_blocks(content) if content else []
        else:
            blocks = coerce_content(content)
        self.doc = replace_document(self.doc, blocks)
        self.caret = 0
        return self.doc

    def anchored_replace(
        self,
        anchor: str,
        delete_length: int,
        insert_text: str = "",
        strategy: OccurrenceStrategy = OccurrenceStrategy.NEAREST,
    ) -> Node:
        pm_from, pm_to = resolve_anchored_range(self.index, anchor, delete_length, self.caret, strategy)
        return self.replace(pm_from, pm_to, insert_text)

    def apply_operation(self, op, strategy: OccurrenceStrategy = OccurrenceStrategy.NEAREST) -> bool:
        op = parse_operation(op)

        if isinstance(op, ReplaceOperation):
            self.replace(op.start, op.end, op.content)
        elif isinstance(op, InsertOperation):
            self.insert(op.at, op.content)
        elif isinstance(op, DeleteOperation):
            self.delete(op.start, op.end)
        elif isinstance(op, SetAttrsOperation):
            self.set_attrs(op.pos, op.attrs)
        elif isinstance(op, AnchoredReplaceOperation):
            self.anchored_replace(op.anchor, op.effective_delete_length, op.insert, op.strategy or strategy)
        elif isinstance(op, ReplaceDocumentOperation):
            self.replace_document(op.content)
        return True

    def apply_operations(
        self,
        operations: Iterable[Any],
        strategy: OccurrenceStrategy = OccurrenceStrategy.NEAREST,
    ) -> ApplyResult:
        """
        Applies a batch in order. A failing operation is logged and skipped;
        the rest of the batch still runs.
        """
        result = ApplyResult()

        for idx, payload in enumerate(operations):
            try:
                self.apply_operation(payload, strategy)
            except AnchorNotFound as e:
                logger.warning(f"Skipping operation {idx}: anchor not found", anchor=e.anchor[:50])
                result.errors[idx] = str(e)
            except PositionMappingFailed as e:
                logger.warning(f"Skipping operation {idx}: {e}")
                result.errors[idx] = str(e)
            except (ValidationError, TypeError) as e:
                logger.warning(f"Skipping operation {idx}: invalid payload ({e.__class__.__name__})")
                result.errors[idx] = str(e)
            else:
                result.applied += 1
                result.statuses.append(True)
                continue

            result.skipped += 1
            result.statuses.append(False)

        logger.info(f"Operations summary: {result.applied} applied, {result.skipped} skipped")
        return result

    def to_json(self) -> Dict[str, Any]:
        return self.doc.to_json()


def apply_operations(
    doc, operations: List[Any], caret: int = 0, strategy: OccurrenceStrategy = OccurrenceStrategy.NEAREST
) -> tuple[Node, ApplyResult]:
    editor = StructuredEditor(doc, caret=caret)
    result = editor.apply_operations(operations, strategy)
    return editor.doc, result
