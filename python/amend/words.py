"""
Word-level sub-diff of two lines, rendered as HTML for display.

Runs the same LCS as the line differ, over whitespace/non-whitespace tokens.
The output only feeds rendering; merge decisions never look at it.
"""

import html
import re
from typing import List

from amend.diff import lcs_ops
from amend.models import OpKind, WordDiff

TOKEN_RE = re.compile(r"\s+|\S+")


def tokenize(text: str) -> List[str]:
    """Split into word and whitespace tokens. "".join(tokens) == text."""
    return TOKEN_RE.findall(text)


def _render(parts: List[tuple], tag: str) -> str:
    out = []
    run: List[str] = []
    for marked, token in parts:
        if marked:
            run.append(token)
            continue
        if run:
            out.append(f"<{tag}>{html.escape(''.join(run))}</{tag}>")
            run = []
        out.append(html.escape(token))
    if run:
        out.append(f"<{tag}>{html.escape(''.join(run))}</{tag}>")
    return "".join(out)


def diff_words(from_text: str, to_text: str) -> WordDiff:
    from_tokens = tokenize(from_text)
    to_tokens = tokenize(to_text)

    from_parts = []
    to_parts = []
    for kind, i, j in lcs_ops(from_tokens, to_tokens):
        if kind == OpKind.EQ:
            from_parts.append((False, from_tokens[i]))
            to_parts.append((False, to_tokens[j]))
        elif kind == OpKind.DEL:
            from_parts.append((True, from_tokens[i]))
        else:
            to_parts.append((True, to_tokens[j]))

    return WordDiff(from_html=_render(from_parts, "del"), to_html=_render(to_parts, "ins"))
