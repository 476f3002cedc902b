class AnchorNotFound(LookupError):
    """The anchor text does not occur in the flattened document text."""

    def __init__(self, anchor: str):
        super().__init__(f"Anchor not found: '{anchor[:50]}'")
        self.anchor = anchor


class PositionMappingFailed(ValueError):
    """
    A plain-text offset falls outside every segment, or a structured position
    does not resolve to a place where the requested edit can happen.
    """

    def __init__(self, message: str, position=None):
        super().__init__(message)
        self.position = position
