"""
Structured document tree in ProseMirror/TipTap JSON shape, and the primitive
edits the point-operation engine is built on.

Position arithmetic follows ProseMirror:
- the root's content starts at position 0
- a text node occupies len(text) positions
- a leaf (atom) node occupies 1 position
- any other node occupies its content size plus an opening and a closing token

Every edit returns a new document and leaves its input untouched, so an index
cached by document identity never goes stale.
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple

import structlog
from pydantic import BaseModel, Field

from amend.errors import PositionMappingFailed

logger = structlog.get_logger(__name__)

INLINE_LEAF_TYPES = {"hardBreak", "hard_break", "image", "mention", "emoji"}
BLOCK_LEAF_TYPES = {"horizontalRule", "horizontal_rule", "pageBreak"}
TEXTBLOCK_TYPES = {"paragraph", "heading", "codeBlock", "code_block", "title"}


class Node(BaseModel):
    type: str
    attrs: Dict[str, Any] = Field(default_factory=dict)
    content: List["Node"] = Field(default_factory=list)
    text: Optional[str] = None
    marks: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def is_text(self) -> bool:
        return self.type == "text"

    @property
    def is_leaf(self) -> bool:
        return self.type in INLINE_LEAF_TYPES or self.type in BLOCK_LEAF_TYPES

    @property
    def is_inline(self) -> bool:
        return self.is_text or self.type in INLINE_LEAF_TYPES

    @property
    def is_textblock(self) -> bool:
        if self.type in TEXTBLOCK_TYPES:
            return True
        return bool(self.content) and all(child.is_inline for child in self.content)

    @property
    def content_size(self) -> int:
        return sum(child.node_size for child in self.content)

    @property
    def node_size(self) -> int:
        if self.is_text:
            return len(self.text or "")
        if self.is_leaf:
            return 1
        return self.content_size + 2

    @property
    def text_content(self) -> str:
        if self.is_text:
            return self.text or ""
        return "".join(child.text_content for child in self.content)

    def descendants(self) -> Iterator[Tuple["Node", int]]:
        return iter_descendants(self)

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type}
        if self.attrs:
            data["attrs"] = dict(self.attrs)
        if self.is_text:
            data["text"] = self.text or ""
        if self.marks:
            data["marks"] = [dict(m) for m in self.marks]
        if self.content:
            data["content"] = [child.to_json() for child in self.content]
        return data


Node.model_rebuild()


def text_node(text: str, marks: Optional[List[Dict[str, Any]]] = None) -> Node:
    return Node(type="text", text=text, marks=list(marks or []))


def block(node_type: str, *children: Node, **attrs) -> Node:
    return Node(type=node_type, attrs=attrs, content=list(children))


def document(*blocks: Node) -> Node:
    return Node(type="doc", content=list(blocks))


def load_document(data) -> Node:
    if isinstance(data, Node):
        return data
    return Node.model_validate(data)


def iter_descendants(root: Node) -> Iterator[Tuple[Node, int]]:
    """Yields (node, pos) depth-first in document order, like ProseMirror's descendants()."""

    def walk(node: Node, offset: int):
        pos = offset
        for child in node.content:
            yield child, pos
            if not child.is_text and not child.is_leaf:
                yield from walk(child, pos + 1)
            pos += child.node_size

    yield from walk(root, 0)


def coerce_content(content) -> List[Node]:
    """Accepts a string, a node (or its JSON), a doc, or a list of any of those."""
    if content is None:
        return []
    if isinstance(content, str):
        return [text_node(content)] if content else []
    if isinstance(content, dict):
        content = Node.model_validate(content)
    if isinstance(content, Node):
        return list(content.content) if content.type == "doc" else [content]
    if isinstance(content, (list, tuple)):
        nodes: List[Node] = []
        for item in content:
            nodes.extend(coerce_content(item))
        return nodes
    raise TypeError(f"Unsupported content type: {type(content).__name__}")


def _normalize_inline(content: List[Node]) -> List[Node]:
    # Drop empty text and merge neighbouring text nodes that carry the same marks.
    out: List[Node] = []
    for node in content:
        if node.is_text:
            if not node.text:
                continue
            if out and out[-1].is_text and out[-1].marks == node.marks:
                out[-1] = text_node(out[-1].text + node.text, out[-1].marks)
                continue
        out.append(node)
    return out


def _check_range(doc: Node, start: int, end: int):
    if start < 0 or end < start or end > doc.content_size:
        raise PositionMappingFailed(f"Range [{start}:{end}] outside document of size {doc.content_size}", start)


# --- Deletion ----------------------------------------------------------------


def _join(head: Node, tail: Node):
    if head.is_textblock or tail.is_textblock or not head.content or not tail.content:
        head.content = _normalize_inline(head.content + tail.content)
        return
    last, first = head.content[-1], tail.content[0]
    if last.is_text or last.is_leaf or first.is_text or first.is_leaf:
        head.content = head.content + tail.content
        return
    _join(last, first)
    head.content = head.content + tail.content[1:]


def _delete_in(node: Node, offset: int, start: int, end: int):
    kept: List[Node] = []
    head_idx: Optional[int] = None
    tail_idx: Optional[int] = None
    cursor = offset

    for child in node.content:
        c_start, c_end = cursor, cursor + child.node_size
        cursor = c_end

        if c_end <= start or c_start >= end:
            kept.append(child)
            continue
        if start <= c_start and c_end <= end:
            continue

        if child.is_text:
            lo, hi = max(start, c_start) - c_start, min(end, c_end) - c_start
            kept.append(text_node(child.text[:lo] + child.text[hi:], child.marks))
            continue

        _delete_in(child, c_start + 1, start, end)
        kept.append(child)
        if head_idx is None:
            head_idx = len(kept) - 1
        else:
            tail_idx = len(kept) - 1

    # The range crossed from one container into a sibling: join them.
    if head_idx is not None and tail_idx is not None:
        _join(kept[head_idx], kept[tail_idx])
        del kept[tail_idx]

    node.content = _normalize_inline(kept)


def delete_range(doc: Node, start: int, end: int) -> Node:
    """
    Removes [start, end). Raises PositionMappingFailed when the range only
    covers boundary tokens that cannot be joined, so nothing would be removed.
    """
    _check_range(doc, start, end)
    if start == end:
        return doc
    new_doc = doc.model_copy(deep=True)
    _delete_in(new_doc, 0, start, end)
    if new_doc.content_size == doc.content_size:
        raise PositionMappingFailed(f"Range [{start}:{end}] removes no content", start)
    return new_doc


# --- Insertion ---------------------------------------------------------------


def _wrap_inline(nodes: List[Node]) -> List[Node]:
    blocks: List[Node] = []
    run: List[Node] = []
    for node in nodes:
        if node.is_inline:
            run.append(node)
            continue
        if run:
            blocks.append(block("paragraph", *run))
            run = []
        blocks.append(node)
    if run:
        blocks.append(block("paragraph", *run))
    return blocks


def _inherit_marks(nodes: List[Node], marks: List[Dict[str, Any]]) -> List[Node]:
    if not marks:
        return nodes
    return [text_node(n.text, marks) if n.is_text and not n.marks else n for n in nodes]


def _splice(parent: Node, index: int, nodes: List[Node]):
    if not parent.is_textblock:
        parent.content = parent.content[:index] + _wrap_inline(nodes) + parent.content[index:]
        return

    if any(not n.is_inline for n in nodes):
        raise PositionMappingFailed(f"Cannot place block content inside '{parent.type}'")

    before = parent.content[index - 1] if index > 0 else None
    after = parent.content[index] if index < len(parent.content) else None
    if before is not None and before.is_text:
        nodes = _inherit_marks(nodes, before.marks)
    elif after is not None and after.is_text:
        nodes = _inherit_marks(nodes, after.marks)

    parent.content = _normalize_inline(parent.content[:index] + nodes + parent.content[index:])


def _insert_in(parent: Node, offset: int, pos: int, nodes: List[Node]):
    cursor = offset
    for idx, child in enumerate(parent.content):
        size = child.node_size
        if pos == cursor:
            _splice(parent, idx, nodes)
            return
        if cursor < pos < cursor + size:
            if child.is_text:
                split = pos - cursor
                if any(not n.is_inline for n in nodes):
                    raise PositionMappingFailed(f"Cannot place block content inside text at {pos}", pos)
                left = text_node(child.text[:split], child.marks)
                right = text_node(child.text[split:], child.marks)
                middle = _inherit_marks(nodes, child.marks)
                parent.content = _normalize_inline(
                    parent.content[:idx] + [left] + middle + [right] + parent.content[idx + 1 :]
                )
                return
            if child.is_leaf:
                raise PositionMappingFailed(f"Position {pos} is inside leaf node '{child.type}'", pos)
            _insert_in(child, cursor + 1, pos, nodes)
            return
        cursor += size

    if pos == cursor:
        _splice(parent, len(parent.content), nodes)
        return
    raise PositionMappingFailed(f"Position {pos} does not resolve inside '{parent.type}'", pos)


def insert_content(doc: Node, pos: int, content) -> Node:
    nodes = coerce_content(content)
    _check_range(doc, pos, pos)
    if not nodes:
        return doc
    new_doc = doc.model_copy(deep=True)
    _insert_in(new_doc, 0, pos, nodes)
    return new_doc


def replace_range(doc: Node, start: int, end: int, content) -> Node:
    return insert_content(delete_range(doc, start, end), start, content)


# --- Attributes and wholesale replacement ------------------------------------


def _node_after(parent: Node, offset: int, pos: int) -> Optional[Node]:
    cursor = offset
    for child in parent.content:
        size = child.node_size
        if pos == cursor:
            return child
        if cursor < pos < cursor + size:
            if child.is_text or child.is_leaf:
                return child
            return _node_after(child, cursor + 1, pos)
        cursor += size
    return None


def set_node_attrs(doc: Node, pos: int, attrs: Dict[str, Any]) -> Node:
    """Merges `attrs` onto the node that starts at `pos`."""
    new_doc = doc.model_copy(deep=True)
    target = _node_after(new_doc, 0, pos)
    if target is None or target.is_text:
        raise PositionMappingFailed(f"No node starts at position {pos}", pos)
    target.attrs = {**target.attrs, **attrs}
    return new_doc


def replace_document(doc: Node, blocks: List[Node]) -> Node:
    content = _wrap_inline(blocks) or [block("paragraph")]
    return Node(type=doc.type, attrs=dict(doc.attrs), content=content)
