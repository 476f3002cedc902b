from importlib.metadata import PackageNotFoundError, version

from amend.diff import diff
from amend.merge import ProposalReview, SelectionModel, merge_selected
from amend.moves import annotate_moves
from amend.rewrite import rewrite_document
from amend.structure.engine import StructuredEditor, apply_anchored_replace, apply_operations
from amend.structure.mapper import build_index
from amend.words import diff_words

try:
    __version__ = version("amend")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = [
    "diff",
    "annotate_moves",
    "diff_words",
    "merge_selected",
    "SelectionModel",
    "ProposalReview",
    "build_index",
    "apply_anchored_replace",
    "apply_operations",
    "StructuredEditor",
    "rewrite_document",
    "__version__",
]
