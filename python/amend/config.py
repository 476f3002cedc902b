from pydantic import BaseModel, Field


class DiffSettings(BaseModel):
    """
    Tunables for the line differ.
    The defaults keep a diff inside a single UI event-loop turn.
    """

    max_total_lines: int = Field(
        500,
        ge=0,
        description="Combined line count above which the full LCS is skipped and only truncated context is emitted.",
    )
    min_total_lines: int = Field(
        5,
        ge=0,
        description="Combined line count below which every proposed line is reported as a plain addition.",
    )
    truncated_context: int = Field(
        3,
        ge=0,
        description="How many deletions and additions the truncated fallback emits from each side.",
    )
    list_ratio: float = Field(
        0.5,
        ge=0.0,
        le=1.0,
        description="Fraction of lines on both sides that must be list items to diff in list-aware mode.",
    )


DEFAULT_SETTINGS = DiffSettings()
