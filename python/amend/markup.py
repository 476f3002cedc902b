"""
Pure text transformation utilities for turning merged (markdown-ish) text
into block nodes and back.
"""

import re
from typing import List

import structlog

from amend.diff import parse_list_item
from amend.structure.nodes import Node, block, text_node

logger = structlog.get_logger(__name__)

HEADING_RE = re.compile(r"^(#{1,6})\s+(.*)$")
BLANK_LINE_RE = re.compile(r"\n[ \t]*\n")


def _inline(lines: List[str]) -> List[Node]:
    """Lines of one block, joined by hard breaks."""
    nodes: List[Node] = []
    for i, line in enumerate(lines):
        if i > 0:
            nodes.append(Node(type="hardBreak"))
        if line:
            nodes.append(text_node(line))
    return nodes


def _list_block(lines: List[str]) -> Node:
    first = parse_list_item(lines[0])
    ordered = first.marker[0].isdigit()
    items = []
    for line in lines:
        item = parse_list_item(line)
        items.append(block("listItem", block("paragraph", *_inline([item.text]))))
    if ordered:
        return block("orderedList", *items, start=int(first.marker[:-1]))
    return block("bulletList", *items)


def _chunk_to_blocks(chunk: str) -> List[Node]:
    lines = chunk.split("\n")
    blocks: List[Node] = []
    pending: List[str] = []

    def flush():
        if pending:
            blocks.append(block("paragraph", *_inline(pending)))
            pending.clear()

    i = 0
    while i < len(lines):
        line = lines[i]
        heading = HEADING_RE.match(line)
        if heading:
            flush()
            hashes, title = heading.groups()
            blocks.append(block("heading", *_inline([title.strip()]), level=len(hashes)))
            i += 1
            continue

        if parse_list_item(line):
            flush()
            j = i
            while j < len(lines) and parse_list_item(lines[j]):
                j += 1
            blocks.append(_list_block(lines[i:j]))
            i = j
            continue

        pending.append(line)
        i += 1

    flush()
    return blocks


def text_to_blocks(text: str) -> List[Node]:
    """
    Converts text to block nodes: headings (# to ######), bullet and ordered
    lists, and paragraphs with hard breaks between their lines.

    Text that yields no block at all (empty or whitespace-only) becomes a
    single paragraph holding the raw text instead.
    """
    normalized = text.replace("\r\n", "\n")
    blocks: List[Node] = []
    for chunk in BLANK_LINE_RE.split(normalized.strip("\n")):
        if chunk.strip():
            blocks.extend(_chunk_to_blocks(chunk.strip("\n")))

    if not blocks:
        logger.debug("Text produced no blocks, falling back to a raw paragraph")
        return [block("paragraph", *([text_node(text)] if text else []))]
    return blocks


def _block_lines(node: Node) -> List[str]:
    if node.type == "heading":
        level = int(node.attrs.get("level", 1))
        return ["#" * level + " " + node.text_content]
    if node.type in ("bulletList", "orderedList"):
        start = int(node.attrs.get("start", 1))
        lines = []
        for k, item in enumerate(node.content):
            marker = f"{start + k}." if node.type == "orderedList" else "-"
            lines.append(f"{marker} {item.text_content}")
        return lines
    if node.is_textblock:
        parts = []
        current = []
        for child in node.content:
            if child.type in ("hardBreak", "hard_break"):
                parts.append("".join(current))
                current = []
            else:
                current.append(child.text_content)
        parts.append("".join(current))
        return parts
    lines: List[str] = []
    for child in node.content:
        lines.extend(_block_lines(child))
    return lines


def blocks_to_text(nodes: List[Node]) -> str:
    """Renders block nodes as text, one blank line between blocks."""
    return "\n\n".join("\n".join(_block_lines(n)) for n in nodes)
