import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

import structlog
from pydantic import ValidationError

from amend import __version__
from amend.config import DiffSettings
from amend.diff import diff
from amend.markup import blocks_to_text
from amend.merge import SelectionModel, merge_selected
from amend.models import OccurrenceStrategy, OpKind
from amend.moves import annotate_moves
from amend.rewrite import rewrite_document
from amend.structure.engine import StructuredEditor
from amend.structure.nodes import Node, load_document

CLI_TARGET = "cli"

_SYMBOLS = {OpKind.EQ: " ", OpKind.DEL: "-", OpKind.ADD: "+"}


def configure_logging(verbose: bool = False):
    """Logs go to stderr as JSON so stdout only carries results."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(stream=sys.stderr, level=level, force=True)

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _read_text(path: Path) -> str:
    if not path.exists():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(1)
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def _read_json(path: Path) -> Any:
    text = _read_text(path)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        print(f"Error parsing JSON from {path}: {e}", file=sys.stderr)
        sys.exit(1)


def _load_doc(path: Path) -> Node:
    try:
        return load_document(_read_json(path))
    except ValidationError as e:
        print(f"Error: {path} is not a valid document: {e.error_count()} error(s)", file=sys.stderr)
        sys.exit(1)


def _write_output(text: str, output: Optional[Path], label: str):
    if output:
        with open(output, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        print(f"✅ Saved {label} to {output}", file=sys.stderr)
    else:
        print(text)


def handle_diff(args):
    settings = DiffSettings(max_total_lines=args.max_lines) if args.max_lines is not None else None
    line_diff = diff(_read_text(args.current), _read_text(args.proposed), settings)
    annotation = annotate_moves(line_diff.ops)

    if args.json:
        output = {
            "representation": line_diff.representation.value,
            "ops": [op.model_dump(mode="json") for op in annotation.ops],
            "pairs": [pair.model_dump() for pair in annotation.pairs],
        }
        print(json.dumps(output, indent=2))
        return

    changes = sum(1 for op in annotation.ops if op.kind != OpKind.EQ)
    print(f"Found {changes} changed lines, {len(annotation.pairs)} moved:", file=sys.stderr)
    for idx, op in enumerate(annotation.ops):
        suffix = f"  (moved, pair {op.pair_id})" if op.moved else ""
        print(f"{idx:>4} {_SYMBOLS[op.kind]} {op.text}{suffix}")


def handle_merge(args):
    line_diff = diff(_read_text(args.current), _read_text(args.proposed))
    ops = annotate_moves(line_diff.ops).ops

    model = SelectionModel()
    if args.accept_all:
        model.accept_all(CLI_TARGET, ops)
    elif args.reject_all:
        model.reject_all(CLI_TARGET, ops)

    for idx in args.toggle or []:
        if idx < 0 or idx >= len(ops) or ops[idx].kind == OpKind.EQ:
            print(f"⚠️  Ignoring --toggle {idx}: not a changed line", file=sys.stderr)
            continue
        model.toggle(CLI_TARGET, idx, ops)

    merged = merge_selected(ops, model.selections(CLI_TARGET), line_diff.separator)
    _write_output(merged, args.output, "merged text")


def handle_apply(args):
    doc = _load_doc(args.document)
    operations = _read_json(args.operations)
    if isinstance(operations, dict):
        operations = [operations]
    if not isinstance(operations, list):
        print("Error: operations file must hold a JSON list", file=sys.stderr)
        sys.exit(1)

    print(f"Applying {len(operations)} operations...", file=sys.stderr)
    editor = StructuredEditor(doc, caret=args.caret)
    result = editor.apply_operations(operations, OccurrenceStrategy(args.strategy))

    _write_output(json.dumps(editor.to_json(), indent=2), args.output, "document")
    print(f"Stats: {result.applied} applied, {result.skipped} skipped.", file=sys.stderr)
    for idx, reason in sorted(result.errors.items()):
        print(f"  [{idx}] {reason}", file=sys.stderr)
    if result.skipped > 0:
        sys.exit(1)


def handle_rewrite(args):
    doc = _load_doc(args.document)
    new_doc = rewrite_document(doc, _read_text(args.text).rstrip("\r\n"))
    _write_output(json.dumps(new_doc.to_json(), indent=2), args.output, "document")


def handle_text(args):
    doc = _load_doc(args.document)
    _write_output(blocks_to_text(doc.content), args.output, "text")


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(prog="amend", description="Amend: diff and selective merge of proposed edits")
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Subcommands")

    p_diff = subparsers.add_parser("diff", help="Line diff of two text files, with moved lines marked")
    p_diff.add_argument("current", type=Path, help="Current text file")
    p_diff.add_argument("proposed", type=Path, help="Proposed text file")
    p_diff.add_argument("--json", action="store_true", help="Output raw JSON ops")
    p_diff.add_argument("--max-lines", type=int, help="Combined line count above which only a preview is diffed")
    p_diff.set_defaults(func=handle_diff)

    p_merge = subparsers.add_parser("merge", help="Merge a proposed text into the current one")
    p_merge.add_argument("current", type=Path, help="Current text file")
    p_merge.add_argument("proposed", type=Path, help="Proposed text file")
    p_merge.add_argument(
        "--toggle",
        type=int,
        nargs="+",
        metavar="IDX",
        help="Flip the selection of these op indices (as listed by 'amend diff')",
    )
    group = p_merge.add_mutually_exclusive_group()
    group.add_argument("--accept-all", action="store_true", help="Apply every addition and deletion")
    group.add_argument("--reject-all", action="store_true", help="Keep the current text unchanged")
    p_merge.add_argument("-o", "--output", type=Path, help="Output file (default: stdout)")
    p_merge.set_defaults(func=handle_merge)

    p_apply = subparsers.add_parser("apply", help="Apply point operations to a JSON document")
    p_apply.add_argument("document", type=Path, help="Document JSON file")
    p_apply.add_argument("operations", type=Path, help="JSON file containing a list of operations")
    p_apply.add_argument("--caret", type=int, default=0, help="Caret position used to pick among repeated anchors")
    p_apply.add_argument(
        "--strategy",
        choices=[s.value for s in OccurrenceStrategy],
        default=OccurrenceStrategy.NEAREST.value,
        help="Which anchor occurrence to edit relative to the caret (default: nearest)",
    )
    p_apply.add_argument("-o", "--output", type=Path, help="Output document path (default: stdout)")
    p_apply.set_defaults(func=handle_apply)

    p_rewrite = subparsers.add_parser("rewrite", help="Rewrite a JSON document's text, keeping unchanged nodes")
    p_rewrite.add_argument("document", type=Path, help="Document JSON file")
    p_rewrite.add_argument("text", type=Path, help="Text file holding the new flattened text")
    p_rewrite.add_argument("-o", "--output", type=Path, help="Output document path (default: stdout)")
    p_rewrite.set_defaults(func=handle_rewrite)

    p_text = subparsers.add_parser("text", help="Render a JSON document as text")
    p_text.add_argument("document", type=Path, help="Document JSON file")
    p_text.add_argument("-o", "--output", type=Path, help="Output file (default: stdout)")
    p_text.set_defaults(func=handle_text)

    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
