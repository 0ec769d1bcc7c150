"""
Exception hierarchy for MarkView.

Every error raised by the engine derives from MarkviewError so callers
can catch the whole family at the presentation boundary.
"""


class MarkviewError(Exception):
    """Base class for all MarkView errors."""
    pass


class StructuralError(MarkviewError):
    """Raised when a bookmark tree is cyclic or malformed."""
    pass


class FilterConstructionError(MarkviewError):
    """Raised when a filter has an unknown type or a missing discriminant."""
    pass


class PersistenceError(MarkviewError):
    """Raised when the key-value store cannot load or save a record."""
    pass


class ParseError(MarkviewError):
    """Raised when a serialized filter list cannot be decoded."""
    pass
