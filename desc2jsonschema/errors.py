"""Errors raised while converting a descriptor tree."""


class ConversionError(Exception):
    """The descriptor tree cannot be turned into a JSON Schema node."""

    def __init__(self, message, kind=None):
        super().__init__(message)
        self.kind = kind


class CyclicReferenceError(ConversionError):
    """A lazy descriptor resolved to one of its own ancestors."""


class DepthLimitError(ConversionError):
    """Nesting went deeper than the configured maximum."""

    def __init__(self, message, depth):
        super().__init__(message)
        self.depth = depth
