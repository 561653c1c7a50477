"""
Almanac Errors
==============

Distinct failure kinds raised by the engine. Validation always happens before
anything is written, so a ValidationError means nothing was applied.
"""

from typing import Optional


class AlmanacError(Exception):
    """Base class for all almanac errors."""
    pass


class ValidationError(AlmanacError):
    """Raised when a submission or link request is rejected before any mutation."""
    pass


class PersistenceError(AlmanacError):
    """Raised when the store fails to read or write a record."""

    def __init__(self, message: str, division: Optional[str] = None):
        super().__init__(message)
        self.division = division


class LineageCycleError(AlmanacError):
    """Raised when a lineage link would make a club its own ancestor."""
    pass
