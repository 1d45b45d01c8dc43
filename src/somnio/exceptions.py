"""Custom exceptions for somnio."""


class SomnioError(Exception):
    """Base exception for dream similarity operations."""


class InvalidInputError(SomnioError, ValueError):
    """Raised when an argument (e.g. a similarity threshold) is out of range."""


class DreamNotFoundError(SomnioError, LookupError):
    """Raised when a referenced dream cannot be found."""


class CollaboratorError(SomnioError):
    """Raised when the persistence store fails to read or write."""


class RecalculationInProgressError(SomnioError):
    """Raised when a full recalculation is requested while one is running."""
