from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class OpKind(str, Enum):
    EQ = "eq"
    ADD = "add"
    DEL = "del"


class Representation(str, Enum):
    LIST = "list"
    PLAIN = "plain"


class MoveRole(str, Enum):
    FROM = "from"
    TO = "to"


class OccurrenceStrategy(str, Enum):
    NEAREST = "nearest"
    NEXT = "next"
    PREV = "prev"


class DiffOp(BaseModel):
    """
    One line of a line diff. Produced only by the line differ.
    """

    model_config = ConfigDict(frozen=True)

    kind: OpKind
    text: str
    src_index: Optional[int] = Field(None, description="Line index in the current text (eq, del).")
    dst_index: Optional[int] = Field(None, description="Line index in the proposed text (eq, add).")


class AnnotatedOp(DiffOp):
    moved: bool = False
    pair_id: Optional[int] = None
    role: Optional[MoveRole] = None


class MovePair(BaseModel):
    model_config = ConfigDict(frozen=True)

    from_index: int
    to_index: int
    text: str


class LineDiff(BaseModel):
    representation: Representation
    ops: List[DiffOp]
    separator: str = "\n"


class MoveAnnotation(BaseModel):
    ops: List[AnnotatedOp]
    pairs: List[MovePair] = Field(default_factory=list)


class WordDiff(BaseModel):
    from_html: str
    to_html: str


# --- Point operations -------------------------------------------------------
# Payload shapes sent by the host editor. Positions are structured positions.


class _PointOperation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ReplaceOperation(_PointOperation):
    type: Literal["replace"] = "replace"
    start: int = Field(..., alias="from")
    end: int = Field(..., alias="to")
    content: Any = Field(default_factory=list)


class InsertOperation(_PointOperation):
    type: Literal["insert"] = "insert"
    at: int
    content: Any = Field(default_factory=list)


class DeleteOperation(_PointOperation):
    type: Literal["delete"] = "delete"
    start: int = Field(..., alias="from")
    end: int = Field(..., alias="to")


class SetAttrsOperation(_PointOperation):
    type: Literal["setAttrs"] = "setAttrs"
    pos: int
    attrs: Dict[str, Any]


class AnchoredReplaceOperation(_PointOperation):
    """
    Locate `anchor` in the flattened text, remove the characters right after it
    and insert new text there.
    """

    type: Literal["anchoredReplace"] = "anchoredReplace"
    anchor: str
    delete: str = Field(
        "",
        description="The text expected right after the anchor. Only its length is used.",
    )
    delete_length: Optional[int] = Field(
        None,
        ge=0,
        description="Explicit number of characters to remove after the anchor. Overrides `delete`.",
    )
    insert: str = ""
    strategy: Optional[OccurrenceStrategy] = None

    @property
    def effective_delete_length(self) -> int:
        if self.delete_length is not None:
            return self.delete_length
        return len(self.delete)


class ReplaceDocumentOperation(_PointOperation):
    type: Literal["replaceDocument"] = "replaceDocument"
    content: str


PointOperation = Annotated[
    Union[
        ReplaceOperation,
        InsertOperation,
        DeleteOperation,
        SetAttrsOperation,
        AnchoredReplaceOperation,
        ReplaceDocumentOperation,
    ],
    Field(discriminator="type"),
]


class ApplyResult(BaseModel):
    applied: int = 0
    skipped: int = 0
    statuses: List[bool] = Field(default_factory=list)

    # Reasons for skipped operations, keyed by batch index.
    _errors: Dict[int, str] = PrivateAttr(default_factory=dict)

    @property
    def errors(self) -> Dict[int, str]:
        return self._errors
