"""
Error taxonomy for the catalog core.

Every error aborts the enclosing transaction scope. Nothing here is retried by
the core; the HTTP layer maps each kind to a response (see api.main).
"""


class CatalogError(Exception):
    """Base class for all catalog errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(CatalogError):
    """Caller input fails a precondition (e.g. empty title or url)."""


class NotFoundError(CatalogError):
    """Referenced item or tag id does not exist."""

    def __init__(self, kind: str, identifier: object) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class ConflictError(CatalogError):
    """Uniqueness race, e.g. two transactions creating the same new tag name."""


class StorageError(CatalogError):
    """Engine or I/O failure."""
